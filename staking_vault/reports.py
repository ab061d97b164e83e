"""Ledger aggregation."""

from staking_vault.models import LedgerSummary
from staking_vault.vault import Vault


def summarize_ledger(vault: Vault, *, now: int, underlying_balance: int | None = None) -> LedgerSummary:
    """Compute aggregated metrics across all accounts at `now`."""
    accounts = vault.accounts()
    accounts_active = 0
    settled = 0
    pending = 0

    for key, acct in accounts.items():
        if acct.staked_balance > 0:
            accounts_active += 1
        settled += acct.settled_reward
        pending += vault.accrued_reward(key, now) - acct.settled_reward

    surplus = None
    if underlying_balance is not None:
        surplus = underlying_balance - vault.total_staked()

    return LedgerSummary(
        timestamp=now,
        accounts_total=len(accounts),
        accounts_active=accounts_active,
        total_staked_wei=vault.total_staked(),
        settled_reward=settled,
        pending_reward=pending,
        underlying_balance_wei=underlying_balance,
        market_surplus_wei=surplus,
    )
