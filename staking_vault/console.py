"""Console output formatting."""

from datetime import datetime, timezone

from staking_vault.formatters import format_eth, format_rate, format_units, short_address
from staking_vault.models import Deposit, InterestSkimmed, LedgerSummary, ProtocolRewardClaimed, Withdrawal
from staking_vault.vault import Vault


def _reward(vault: Vault, amount: int) -> str:
    token = vault.reward_token
    return format_units(amount, symbol=token.symbol, token_decimals=token.decimals)


def print_vault_status(vault: Vault, summary: LedgerSummary) -> None:
    """Print the ledger summary followed by one block per account."""
    ts = datetime.fromtimestamp(summary.timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
    print("=" * 70)
    print("🏦 STAKING VAULT")
    print(f"   🕐 {ts}  •  vault={vault.address}")
    print("=" * 70)
    mode = "price-converted" if vault.priced else "staked-asset units"
    print(f"   📈 Rate: {format_rate(vault.annual_rate_bp)}  •  Accrual: {mode}")
    print(f"   🔒 Minimum stake: {format_eth(vault.min_stake, decimals=6)}")
    print(f"   👥 Accounts: {summary.accounts_active} active / {summary.accounts_total} total")
    print(f"   💰 Total staked: {format_eth(summary.total_staked_wei, decimals=6)}")
    print(f"   🎁 Rewards owed: {_reward(vault, summary.settled_reward + summary.pending_reward)}")
    print(f"      • Settled:  {_reward(vault, summary.settled_reward)}")
    print(f"      • Pending:  {_reward(vault, summary.pending_reward)}")
    if summary.underlying_balance_wei is not None:
        print(f"   🧮 Lending market balance: {format_eth(summary.underlying_balance_wei, decimals=6)}")
        surplus = summary.market_surplus_wei or 0
        marker = "🟢" if surplus >= 0 else "🔴"
        print(f"      • Skimmable interest: {marker} {format_eth(surplus, decimals=9)}")

    for key, acct in sorted(vault.accounts().items()):
        status = "🟢" if acct.staked_balance > 0 else "💤"
        print(f"\n{status} Account: {key}")
        print(f"   Staked: {format_eth(acct.staked_balance, decimals=6)}")
        print(f"   Accrued reward: {_reward(vault, vault.accrued_reward(key, summary.timestamp))}")
        print(f"   Reward token balance: {_reward(vault, vault.reward_token.balance_of(key))}")
    print("")


def print_event_log(vault: Vault) -> None:
    """Print the vault's events in emission order."""
    if not vault.events:
        return
    print("📜 Events:")
    for ev in vault.events:
        if isinstance(ev, Deposit):
            print(f"   ⬇️  Deposit     {short_address(ev.account)}  {format_eth(ev.amount, decimals=6)}")
        elif isinstance(ev, Withdrawal):
            print(
                f"   ⬆️  Withdrawal  {short_address(ev.account)}  {format_eth(ev.amount, decimals=6)}"
                f"  reward {_reward(vault, ev.reward_paid)}"
            )
        elif isinstance(ev, InterestSkimmed):
            print(f"   🧹 Skim        {short_address(ev.recipient)}  {format_eth(ev.amount, decimals=9)}")
        elif isinstance(ev, ProtocolRewardClaimed):
            print(f"   🪙 Claim       {short_address(ev.recipient)}  {ev.amount} base units")
    print("")
