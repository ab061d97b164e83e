"""CLI and main logic."""

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any

from staking_vault.constants import (
    DEFAULT_ANNUAL_RATE_BP,
    DEFAULT_MIN_STAKE_WEI,
    DEFAULT_RPC_TIMEOUT,
    WEI_PER_ETH,
)
from staking_vault.errors import ExternalCallFailure, VaultError
from staking_vault.formatters import format_eth, format_units, to_base_units
from staking_vault.oracle import FixedPriceOracle
from staking_vault.reports import summarize_ledger
from staking_vault.validation import validate_ledger

# Fixed prices given on the command line are scaled like a Chainlink USD feed.
PRICE_DECIMALS = 8


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command-line arguments."""
    p = argparse.ArgumentParser(description="Custodial staking vault: ledger, reward accrual and lending-market yield.")
    sub = p.add_subparsers(dest="command", required=True)

    ledger = argparse.ArgumentParser(add_help=False)
    ledger.add_argument(
        "--rate-bp",
        type=int,
        default=DEFAULT_ANNUAL_RATE_BP,
        help=f"Annual reward rate in basis points for a new vault. Default: {DEFAULT_ANNUAL_RATE_BP}.",
    )
    ledger.add_argument(
        "--min-stake",
        default=str(DEFAULT_MIN_STAKE_WEI / WEI_PER_ETH),
        help="Minimum stake in ETH for a new vault. Default: 2.",
    )

    sim = sub.add_parser("simulate", parents=[ledger], help="Replay a JSON scenario against an in-memory vault.")
    sim.add_argument("scenario", type=Path, help="JSON file: a list of steps, or an object with a 'steps' list.")
    sim.add_argument("--market-rate-bp", type=int, default=0, help="Lending-market supply rate in basis points.")
    sim.add_argument(
        "--price",
        default=None,
        help="Fixed price of one staked unit (e.g. 100); enables price-converted accrual.",
    )
    sim.add_argument("--start", type=int, default=0, help="Unix timestamp the scenario starts at.")

    live = argparse.ArgumentParser(add_help=False, parents=[ledger])
    live.add_argument(
        "--rpc-url",
        default=None,
        help="Execution-layer RPC URL. Required if ETH_RPC_URL environment variable is not set.",
    )
    live.add_argument(
        "--vault-account",
        default=None,
        help="Custody account the vault transacts from. Required if VAULT_ACCOUNT is not set.",
    )
    live.add_argument("--ctoken", default=None, help="Compound cEther address. Default: known address for the chain.")
    live.add_argument("--price-feed", default=None, help="Chainlink feed address; enables price-converted accrual.")
    live.add_argument(
        "--priced",
        action="store_true",
        help="Use the chain's default price feed (same as --price-feed with the known address).",
    )
    live.add_argument("--owner", default=None, help="Owner of a new vault. Default: the vault account.")

    sub.add_parser("status", parents=[live], help="Show the ledger and the lending-market balance.")

    for name, help_text in (("deposit", "Stake ETH from an account."), ("withdraw", "Withdraw stake and rewards.")):
        cmd = sub.add_parser(name, parents=[live], help=help_text)
        cmd.add_argument("--account", required=True)
        cmd.add_argument("--amount", required=True, help="Amount in ETH, e.g. 10 or 0.5.")

    accrued = sub.add_parser("accrued", parents=[live], help="Show an account's accrued reward.")
    accrued.add_argument("--account", required=True)

    for name, help_text in (
        ("skim", "Send lending-market interest above total stake to a recipient (owner only)."),
        ("claim-protocol-reward", "Claim the lending market's protocol reward to a recipient (owner only)."),
    ):
        cmd = sub.add_parser(name, parents=[live], help=help_text)
        cmd.add_argument("--caller", required=True)
        cmd.add_argument("--recipient", required=True)

    return p.parse_args(argv)


def _load_scenario(path: Path) -> list[dict[str, Any]]:
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    steps = data.get("steps") if isinstance(data, dict) else data
    if not isinstance(steps, list):
        raise ValueError(f"{path}: expected a list of steps")
    return steps


def run_simulation(args: argparse.Namespace) -> int:
    from staking_vault.console import print_event_log, print_vault_status
    from staking_vault.simulation import run_scenario

    try:
        steps = _load_scenario(args.scenario)
        price = None
        if args.price is not None:
            price = FixedPriceOracle(to_base_units(args.price, decimals=PRICE_DECIMALS), PRICE_DECIMALS)
        sim = run_scenario(
            steps,
            progress=True,
            annual_rate_bp=args.rate_bp,
            min_stake=to_base_units(args.min_stake),
            market_rate_bp=args.market_rate_bp,
            price=price,
            start=args.start,
        )
    except (OSError, ValueError) as ex:
        print(f"Error: {ex}", file=sys.stderr)
        return 2

    vault = sim.vault
    now = sim.clock()
    underlying = vault.lending_market.current_underlying_balance(vault.address)
    print_event_log(vault)
    print_vault_status(vault, summarize_ledger(vault, now=now, underlying_balance=underlying))

    for issue in validate_ledger(vault.global_state(), vault.accounts(), underlying_balance=underlying, warn_only=True):
        print(f"⚠️  {issue}", file=sys.stderr)

    print(f"ℹ️ Applied {sim.applied} of {len(steps)} steps", file=sys.stderr)
    return 1 if sim.failures else 0


def _connect(args: argparse.Namespace):
    try:
        from web3 import Web3
    except ImportError as ex:  # pragma: no cover
        print("Missing dependency. Run: pip install -e .", file=sys.stderr)
        raise SystemExit(2) from ex

    rpc_url = args.rpc_url or os.getenv("ETH_RPC_URL")
    if not rpc_url:
        print(
            "Error: RPC URL is required. Provide --rpc-url or set ETH_RPC_URL environment variable.",
            file=sys.stderr,
        )
        return None

    w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": DEFAULT_RPC_TIMEOUT}))
    if not w3.is_connected():
        print(f"Error: failed to connect to RPC at {rpc_url}", file=sys.stderr)
        return None
    return w3


def _open_live_vault(w3, args: argparse.Namespace, vault_account: str):
    """Wire the persisted (or a new) vault to Compound, native ether and the optional price feed."""
    from web3 import Web3

    from staking_vault.asset import NativeEtherAsset
    from staking_vault.contracts import block_clock, default_network_addresses, resolve_market_contracts
    from staking_vault.lending import CompoundEtherMarket
    from staking_vault.oracle import ChainlinkPriceFeed
    from staking_vault.reward_token import RewardToken
    from staking_vault.state import load_state, vault_from_dict
    from staking_vault.vault import Vault

    defaults = default_network_addresses(int(w3.eth.chain_id))
    ctoken = args.ctoken or defaults.get("ctoken")
    if not ctoken:
        raise ValueError(f"No known cEther address for chain {w3.eth.chain_id}; provide --ctoken")
    price_feed = args.price_feed or (defaults.get("price_feed") if args.priced else None)
    if args.priced and not price_feed:
        raise ValueError(f"No known price feed for chain {w3.eth.chain_id}; provide --price-feed")

    try:
        contracts = resolve_market_contracts(w3, ctoken)
    except Exception as ex:  # pylint: disable=broad-exception-caught
        raise ExternalCallFailure(f"failed to resolve Compound contracts from cToken ({ctoken}): {ex}") from ex
    print(f"ℹ️ Resolved Compound contracts from cToken ({ctoken[:10]}...)", file=sys.stderr)

    market = CompoundEtherMarket(w3, contracts, vault_account)
    asset = NativeEtherAsset(w3, vault_account)
    oracle = ChainlinkPriceFeed(w3, price_feed) if price_feed else None
    clock = block_clock(w3)

    doc = load_state(vault_account)
    if doc is not None:
        return vault_from_dict(doc, lending_market=market, asset=asset, price_oracle=oracle, clock=clock)

    owner = args.owner or vault_account
    token_address = "0x" + Web3.keccak(text=f"{vault_account.lower()}:reward-token").hex()[-40:]
    token = RewardToken(owner, address=token_address)
    vault = Vault(
        address=vault_account,
        owner=owner,
        reward_token=token,
        lending_market=market,
        asset=asset,
        annual_rate_bp=args.rate_bp,
        min_stake=to_base_units(args.min_stake),
        price_oracle=oracle,
        clock=clock,
    )
    token.set_vault_authority(owner, vault.address)
    print(f"ℹ️ Initialized new vault state for {vault.address}", file=sys.stderr)
    return vault


def run_live(args: argparse.Namespace) -> int:
    from filelock import Timeout

    from staking_vault.state import state_lock

    w3 = _connect(args)
    if w3 is None:
        return 2

    vault_account = args.vault_account or os.getenv("VAULT_ACCOUNT")
    if not vault_account:
        print("Error: Vault account is required. Provide --vault-account or set VAULT_ACCOUNT.", file=sys.stderr)
        return 2
    try:
        lock = state_lock(vault_account)
    except ValueError as ex:
        print(f"Error: {ex}", file=sys.stderr)
        return 2

    # One command per vault at a time: load, transact and save under the same lock.
    try:
        with lock:
            return _run_live_command(w3, args, vault_account)
    except Timeout:
        print(f"Error: another command is still running against vault {vault_account}", file=sys.stderr)
        return 2


def _run_live_command(w3, args: argparse.Namespace, vault_account: str) -> int:
    from staking_vault.console import print_vault_status
    from staking_vault.state import save_state

    try:
        vault = _open_live_vault(w3, args, vault_account)
    except (ValueError, ExternalCallFailure) as ex:
        print(f"Error: {ex}", file=sys.stderr)
        return 2

    for issue in validate_ledger(vault.global_state(), vault.accounts(), warn_only=True):
        print(f"⚠️  {issue}", file=sys.stderr)

    token = vault.reward_token
    try:
        if args.command == "status":
            now = vault.clock()
            try:
                underlying = vault.lending_market.current_underlying_balance(vault.address)
            except ExternalCallFailure as ex:
                print(f"⚠️  {ex}", file=sys.stderr)
                underlying = None
            print_vault_status(vault, summarize_ledger(vault, now=now, underlying_balance=underlying))
            issues = validate_ledger(
                vault.global_state(), vault.accounts(), underlying_balance=underlying, warn_only=True
            )
            for issue in issues:
                print(f"⚠️  {issue}", file=sys.stderr)
            return 0

        if args.command == "accrued":
            reward = vault.accrued_reward(args.account)
            print(format_units(reward, symbol=token.symbol, token_decimals=token.decimals))
            return 0

        if args.command == "deposit":
            amount = to_base_units(args.amount)
            vault.deposit(args.account, amount)
            msg = f"✅ Deposited {format_eth(amount, decimals=6)} for {args.account}"
        elif args.command == "withdraw":
            amount = to_base_units(args.amount)
            reward = vault.withdraw(args.account, amount)
            reward_label = format_units(reward, symbol=token.symbol, token_decimals=token.decimals)
            msg = f"✅ Withdrew {format_eth(amount, decimals=6)} to {args.account} (reward paid: {reward_label})"
        elif args.command == "skim":
            skimmed = vault.skim_external_interest(args.caller, args.recipient)
            msg = f"✅ Skimmed {format_eth(skimmed, decimals=9)} of lending-market interest to {args.recipient}"
        else:
            claimed = vault.claim_external_protocol_reward(args.caller, args.recipient)
            msg = f"✅ Claimed {claimed} base units of protocol reward to {args.recipient}"
    except VaultError as ex:
        print(f"❌ {type(ex).__name__}: {ex}", file=sys.stderr)
        return 1
    except ValueError as ex:
        print(f"Error: {ex}", file=sys.stderr)
        return 2

    path = save_state(vault)
    print(msg, file=sys.stderr)
    print(f"ℹ️ State saved to {path}", file=sys.stderr)
    return 0


def main(argv: list[str]) -> int:
    """Main entry point."""
    args = parse_args(argv)
    if args.command == "simulate":
        return run_simulation(args)
    return run_live(args)


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
