"""Reward accrual math with checked uint256 arithmetic."""

from staking_vault.constants import MAX_UINT256, SECONDS_PER_YEAR, TOTAL_BASIS_POINTS
from staking_vault.errors import ArithmeticFault
from staking_vault.models import AccountState, PriceQuote


def checked(value: int, *, what: str = "value") -> int:
    """Return value if it fits in a uint256, otherwise raise ArithmeticFault."""
    if value < 0:
        raise ArithmeticFault(f"{what} underflow: {value}")
    if value > MAX_UINT256:
        raise ArithmeticFault(f"{what} overflow: {value}")
    return value


def checked_add(a: int, b: int, *, what: str = "value") -> int:
    return checked(a + b, what=what)


def checked_sub(a: int, b: int, *, what: str = "value") -> int:
    return checked(a - b, what=what)


def interval_reward(balance: int, annual_rate_bp: int, elapsed: int, price: PriceQuote | None = None) -> int:
    """
    Reward earned by `balance` held for `elapsed` seconds at `annual_rate_bp`.

    balance * rate * elapsed / SECONDS_PER_YEAR, floored to base units. With a price quote the
    result is denominated in the quote currency: multiplied by `price.value / 10**price.decimals`.
    A single floor division keeps rounding loss below one base unit per settlement.
    """
    if elapsed < 0:
        raise ArithmeticFault(f"Accrual interval is negative: {elapsed}s")
    if balance == 0 or elapsed == 0 or annual_rate_bp == 0:
        return 0
    numer = balance * annual_rate_bp * elapsed
    denom = TOTAL_BASIS_POINTS * SECONDS_PER_YEAR
    if price is not None:
        numer *= price.value
        denom *= 10**price.decimals
    return checked(numer // denom, what="reward")


def pending_reward(acct: AccountState, now: int, annual_rate_bp: int, price: PriceQuote | None = None) -> int:
    """Reward accrued since the account's last checkpoint (not yet settled)."""
    return interval_reward(acct.staked_balance, annual_rate_bp, now - acct.last_accrual_timestamp, price)


def settle(acct: AccountState, now: int, annual_rate_bp: int, price: PriceQuote | None = None) -> int:
    """
    Fold the pending interval into `settled_reward` and move the checkpoint to `now`.

    Must run before any change to `staked_balance` so the interval is priced at the balance that
    was actually held. Returns the amount added.
    """
    earned = pending_reward(acct, now, annual_rate_bp, price)
    acct.settled_reward = checked_add(acct.settled_reward, earned, what="settled reward")
    acct.last_accrual_timestamp = now
    return earned
