"""Durable vault state: the ledger and the reward token, one JSON file per vault."""

import json
import os
import shutil
import sys
from collections.abc import Callable
from dataclasses import asdict
from pathlib import Path
from typing import Any

from filelock import FileLock

from staking_vault.asset import BaseAsset
from staking_vault.constants import DEFAULT_STATE_LOCK_TIMEOUT, STATE_DIR_NAME, STATE_VERSION
from staking_vault.formatters import normalize_address
from staking_vault.lending import LendingMarketAdapter
from staking_vault.models import AccountState, GlobalVaultState
from staking_vault.oracle import PriceOracle
from staking_vault.reward_token import RewardToken
from staking_vault.vault import Vault


def get_state_dir() -> Path:
    """Get the state directory path. Uses XDG_STATE_HOME if available, otherwise ~/.local/state."""
    state_home = os.getenv("XDG_STATE_HOME")
    if state_home:
        base = Path(state_home)
    else:
        base = Path.home() / ".local" / "state"
    state_dir = base / STATE_DIR_NAME
    state_dir.mkdir(parents=True, exist_ok=True)
    return state_dir


def state_path(vault_address: str) -> Path:
    return get_state_dir() / f"{normalize_address(vault_address)}.json"


def state_lock(vault_address: str, *, timeout: float | None = None) -> FileLock:
    """
    Exclusive lock for one vault's state file.

    Hold it from `load_state` through `save_state` so concurrent commands cannot both start from
    the same ledger and overwrite each other. Acquiring raises filelock.Timeout after `timeout`
    seconds.
    """
    if timeout is None:
        timeout = DEFAULT_STATE_LOCK_TIMEOUT
    return FileLock(str(state_path(vault_address).with_suffix(".lock")), timeout=timeout)


def clear_state() -> None:
    """Remove all persisted vault state."""
    state_dir = get_state_dir()
    if state_dir.exists():
        shutil.rmtree(state_dir)
        print("✅ Vault state cleared successfully.", file=sys.stderr)
    else:
        print("ℹ️  State directory does not exist (nothing to clear).", file=sys.stderr)


def vault_to_dict(vault: Vault) -> dict[str, Any]:
    """Serialize the vault ledger and its reward token."""
    return {
        "version": STATE_VERSION,
        "vault": {
            "address": vault.address,
            "owner": vault.owner,
            "priced": vault.priced,
            "state": asdict(vault.global_state()),
            "accounts": {k: asdict(v) for k, v in sorted(vault.accounts().items())},
        },
        "reward_token": vault.reward_token.to_dict(),
    }


def vault_from_dict(
    data: dict[str, Any],
    *,
    lending_market: LendingMarketAdapter,
    asset: BaseAsset,
    price_oracle: PriceOracle | None = None,
    clock: Callable[[], int] | None = None,
) -> Vault:
    """Rebuild a vault from `vault_to_dict` output, wired to the given collaborators."""
    if data.get("version") != STATE_VERSION:
        raise ValueError(f"Unsupported state version {data.get('version')!r} (expected {STATE_VERSION})")
    v = data["vault"]
    if v["priced"] and price_oracle is None:
        raise ValueError("Vault state accrues through a price oracle; a price feed must be configured")
    if not v["priced"] and price_oracle is not None:
        raise ValueError("Vault state accrues in staked-asset units; a price feed must not be configured")
    return Vault(
        address=v["address"],
        owner=v["owner"],
        reward_token=RewardToken.from_dict(data["reward_token"]),
        lending_market=lending_market,
        asset=asset,
        price_oracle=price_oracle,
        clock=clock,
        state=GlobalVaultState(**v["state"]),
        accounts={k: AccountState(**a) for k, a in v["accounts"].items()},
    )


def load_state(vault_address: str) -> dict[str, Any] | None:
    """Load persisted state for a vault. Returns None if nothing was saved yet."""
    path = state_path(vault_address)
    if not path.exists():
        return None
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def save_state(vault: Vault) -> Path:
    """Persist vault state, replacing the previous file atomically."""
    path = state_path(vault.address)
    tmp = path.with_suffix(".json.tmp")
    with tmp.open("w", encoding="utf-8") as f:
        json.dump(vault_to_dict(vault), f, ensure_ascii=False, indent=2)
    os.replace(tmp, path)
    return path
