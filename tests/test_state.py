import json

import pytest
from filelock import Timeout

from staking_vault import state
from staking_vault.oracle import FixedPriceOracle
from staking_vault.simulation import build_simulated_vault

ETHER = 10**18
ALICE = "0x" + "a1" * 20


@pytest.fixture(autouse=True)
def state_home(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path))
    return tmp_path


def _funded(sim):
    sim.asset.credit(ALICE, 10 * ETHER)
    sim.vault.deposit(ALICE, 10 * ETHER)
    sim.clock.advance(1000)
    sim.vault.withdraw(ALICE, 4 * ETHER)
    return sim


def test_state_dir_follows_xdg(state_home):
    assert state.get_state_dir() == state_home / "staking_vault"
    assert state.get_state_dir().is_dir()


def test_save_and_load_round_trip(deployment):
    sim = _funded(deployment)
    path = state.save_state(sim.vault)
    assert path.name == f"{sim.vault.address}.json"
    assert not path.with_suffix(".json.tmp").exists()

    data = state.load_state(sim.vault.address)
    restored = state.vault_from_dict(data, lending_market=sim.market, asset=sim.asset, clock=sim.clock)

    assert restored.owner == sim.vault.owner
    assert restored.accounts() == sim.vault.accounts()
    assert restored.global_state() == sim.vault.global_state()
    assert restored.reward_token.balance_of(ALICE) == sim.vault.reward_token.balance_of(ALICE)
    assert restored.reward_token.vault_authority == sim.vault.address

    sim.clock.advance(5000)
    assert restored.accrued_reward(ALICE) == sim.vault.accrued_reward(ALICE)


def test_saved_file_is_plain_json(deployment):
    sim = _funded(deployment)
    with state.save_state(sim.vault).open(encoding="utf-8") as f:
        data = json.load(f)
    assert data["version"] == 1
    assert data["vault"]["priced"] is False
    assert data["vault"]["state"]["total_staked"] == 6 * ETHER
    assert data["vault"]["accounts"][ALICE]["staked_balance"] == 6 * ETHER


def test_load_missing_state_returns_none():
    assert state.load_state("0x" + "99" * 20) is None


def test_unknown_version_is_rejected(deployment):
    data = state.vault_to_dict(deployment.vault)
    data["version"] = 99
    with pytest.raises(ValueError, match="Unsupported state version"):
        state.vault_from_dict(data, lending_market=deployment.market, asset=deployment.asset)


def test_accrual_variant_must_match():
    priced = build_simulated_vault(price=FixedPriceOracle(100, 0))
    data = state.vault_to_dict(priced.vault)
    with pytest.raises(ValueError, match="price feed must be configured"):
        state.vault_from_dict(data, lending_market=priced.market, asset=priced.asset)

    flat = build_simulated_vault()
    data = state.vault_to_dict(flat.vault)
    with pytest.raises(ValueError, match="must not be configured"):
        state.vault_from_dict(
            data, lending_market=flat.market, asset=flat.asset, price_oracle=FixedPriceOracle(100, 0)
        )


def test_clear_state(deployment, state_home, capsys):
    state.save_state(deployment.vault)
    state.clear_state()
    assert not (state_home / "staking_vault").exists()
    assert "cleared" in capsys.readouterr().err

    # get_state_dir() recreates the directory, so a second clear still finds one
    state.clear_state()
    assert "cleared" in capsys.readouterr().err


def test_state_lock_is_exclusive(state_home):
    vault = "0x" + "5a" * 20
    with state.state_lock(vault):
        with pytest.raises(Timeout):
            state.state_lock(vault, timeout=0).acquire()
    # released on exit
    with state.state_lock(vault, timeout=0):
        assert (state_home / "staking_vault" / f"{vault}.lock").exists()
