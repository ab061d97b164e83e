import json
from unittest.mock import MagicMock

import pytest
from filelock import Timeout

from staking_vault import cli, state
from staking_vault.cli import main, parse_args
from staking_vault.simulation import SIM_VAULT_ADDRESS, build_simulated_vault

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
ETHER = 10**18


def _scenario(tmp_path, steps, wrap=False):
    path = tmp_path / "scenario.json"
    path.write_text(json.dumps({"steps": steps} if wrap else steps), encoding="utf-8")
    return str(path)


def test_parse_args_defaults():
    args = parse_args(["simulate", "s.json"])
    assert args.command == "simulate"
    assert args.rate_bp == 100
    assert args.min_stake == "2"
    assert args.price is None

    args = parse_args(["withdraw", "--account", ALICE, "--amount", "0.5", "--rpc-url", "http://x"])
    assert (args.account, args.amount, args.rpc_url) == (ALICE, "0.5", "http://x")
    assert args.priced is False


def test_parse_args_requires_a_command():
    with pytest.raises(SystemExit):
        parse_args([])


def test_simulate_prints_events_and_status(tmp_path, capsys):
    path = _scenario(
        tmp_path,
        [
            {"op": "deposit", "account": ALICE, "amount": "10"},
            {"op": "advance", "days": 365},
            {"op": "withdraw", "account": ALICE, "amount": "4"},
        ],
        wrap=True,
    )
    assert main(["simulate", path]) == 0

    out, err = capsys.readouterr()
    assert "📜 Events:" in out
    assert "🏦 STAKING VAULT" in out
    assert "reward 0.1 dUSDC" in out
    assert "Total staked: 6 ETH" in out
    assert "Applied 3 of 3 steps" in err


def test_simulate_with_price(tmp_path, capsys):
    path = _scenario(
        tmp_path,
        [
            {"op": "deposit", "account": ALICE, "amount": "10"},
            {"op": "advance", "seconds": 31_536_000},
            {"op": "withdraw", "account": ALICE, "amount": "10"},
        ],
    )
    assert main(["simulate", path, "--rate-bp", "1000", "--price", "100"]) == 0
    out = capsys.readouterr().out
    assert "Accrual: price-converted" in out
    assert "reward 100 dUSDC" in out


def test_simulate_with_rejected_step_exits_1(tmp_path, capsys):
    path = _scenario(tmp_path, [{"op": "deposit", "account": BOB, "amount": "1"}])
    assert main(["simulate", path]) == 1
    assert "Below minimum staking amount" in capsys.readouterr().err


def test_simulate_bad_input_exits_2(tmp_path, capsys):
    assert main(["simulate", str(tmp_path / "missing.json")]) == 2
    assert "Error:" in capsys.readouterr().err

    path = _scenario(tmp_path, {"op": "deposit"})
    assert main(["simulate", path]) == 2

    path = _scenario(tmp_path, ["deposit"])
    assert main(["simulate", path]) == 2

    path = _scenario(tmp_path, [{"op": "deposit", "account": ALICE, "amount": "Infinity"}])
    assert main(["simulate", path]) == 2


def test_live_command_without_rpc_url_exits_2(monkeypatch, capsys):
    monkeypatch.delenv("ETH_RPC_URL", raising=False)
    assert main(["status"]) == 2
    assert "RPC URL is required" in capsys.readouterr().err


def test_live_command_runs_under_state_lock(monkeypatch, tmp_path, capsys):
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path))
    sim = build_simulated_vault(start=1_700_000_000)
    sim.asset.credit(ALICE, 10 * ETHER)
    opened = []

    def open_vault(w3, args, vault_account):
        # a second command on the same vault cannot get in while this one runs
        with pytest.raises(Timeout):
            state.state_lock(vault_account, timeout=0).acquire()
        opened.append(vault_account)
        return sim.vault

    monkeypatch.setattr(cli, "_connect", lambda args: MagicMock())
    monkeypatch.setattr(cli, "_open_live_vault", open_vault)

    argv = ["deposit", "--vault-account", SIM_VAULT_ADDRESS, "--account", ALICE, "--amount", "10"]
    assert main(argv) == 0

    assert opened == [SIM_VAULT_ADDRESS]
    saved = state.load_state(SIM_VAULT_ADDRESS)
    assert saved["vault"]["state"]["total_staked"] == 10 * ETHER
    assert "Deposited" in capsys.readouterr().err


def test_live_command_waits_for_running_command(monkeypatch, tmp_path, capsys):
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path))
    monkeypatch.setattr(state, "DEFAULT_STATE_LOCK_TIMEOUT", 0)
    monkeypatch.setattr(cli, "_connect", lambda args: MagicMock())
    opened = MagicMock()
    monkeypatch.setattr(cli, "_open_live_vault", opened)

    with state.state_lock(SIM_VAULT_ADDRESS):
        assert main(["status", "--vault-account", SIM_VAULT_ADDRESS]) == 2

    opened.assert_not_called()
    assert "still running" in capsys.readouterr().err


def test_live_command_without_vault_account_exits_2(monkeypatch, capsys):
    monkeypatch.delenv("VAULT_ACCOUNT", raising=False)
    monkeypatch.setattr(cli, "_connect", lambda args: MagicMock())
    assert main(["status"]) == 2
    assert "Vault account is required" in capsys.readouterr().err
