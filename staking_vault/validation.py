"""Validation of ledger invariants."""

from collections.abc import Mapping

from staking_vault.constants import DEFAULT_MARKET_TOLERANCE_WEI
from staking_vault.models import AccountState, GlobalVaultState


def validate_ledger(
    state: GlobalVaultState,
    accounts: Mapping[str, AccountState],
    *,
    underlying_balance: int | None = None,
    tolerance_wei: int = DEFAULT_MARKET_TOLERANCE_WEI,
    warn_only: bool = False,
) -> list[str]:
    """
    Validate ledger invariants.

    Returns list of validation warnings/errors. If warn_only=False, raises ValueError on the first one.
    """
    issues: list[str] = []

    def report(msg: str) -> None:
        issues.append(msg)
        if not warn_only:
            raise ValueError(msg)

    # 1. Conservation: per-account principal sums to the vault total
    summed = sum(a.staked_balance for a in accounts.values())
    if summed != state.total_staked:
        report(f"Ledger imbalance: sum of account balances {summed} != total staked {state.total_staked}")

    for key, acct in sorted(accounts.items()):
        # 2. No account stranded between zero and the minimum stake
        if 0 < acct.staked_balance < state.min_stake:
            report(f"Account {key}: balance {acct.staked_balance} is below minimum stake {state.min_stake}")

        # 3. Non-negative values (all uint256 on-chain fields)
        for name, value in (
            ("stakedBalance", acct.staked_balance),
            ("settledReward", acct.settled_reward),
            ("lastAccrualTimestamp", acct.last_accrual_timestamp),
        ):
            if value < 0:
                report(f"Account {key}: negative {name}: {value}")

    # 4. The market must cover all principal, up to its rounding drift
    if underlying_balance is not None and underlying_balance + tolerance_wei < state.total_staked:
        report(
            f"Market shortfall: underlying balance {underlying_balance} < total staked {state.total_staked} "
            f"(tolerance {tolerance_wei})"
        )

    return issues
