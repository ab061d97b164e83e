import pytest

from staking_vault.accrual import checked, checked_add, checked_sub, interval_reward, pending_reward, settle
from staking_vault.constants import MAX_UINT256, SECONDS_PER_YEAR
from staking_vault.errors import ArithmeticFault
from staking_vault.models import AccountState, PriceQuote

ETHER = 10**18


@pytest.mark.parametrize(
    "balance,rate_bp,elapsed,expected",
    [
        (10 * ETHER, 100, SECONDS_PER_YEAR, ETHER // 10),
        (10 * ETHER, 100, SECONDS_PER_YEAR // 2, ETHER // 20),
        (20 * ETHER, 250, SECONDS_PER_YEAR, ETHER // 2),
        (0, 100, SECONDS_PER_YEAR, 0),
        (10 * ETHER, 0, SECONDS_PER_YEAR, 0),
        (10 * ETHER, 100, 0, 0),
        # 1 wei for one second rounds down to nothing
        (1, 100, 1, 0),
    ],
)
def test_interval_reward(balance, rate_bp, elapsed, expected):
    assert interval_reward(balance, rate_bp, elapsed) == expected


def test_interval_reward_with_price():
    quote = PriceQuote(value=1_850_12345678, decimals=8)
    reward = interval_reward(ETHER, 1000, SECONDS_PER_YEAR, quote)
    # 0.1 ETH at 1850.12345678
    assert reward == 185_012345678 * 10**9


def test_negative_interval_is_a_fault():
    with pytest.raises(ArithmeticFault):
        interval_reward(ETHER, 100, -1)


def test_settle_moves_checkpoint_and_accumulates():
    acct = AccountState(staked_balance=10 * ETHER, last_accrual_timestamp=1000)
    assert pending_reward(acct, 1000 + SECONDS_PER_YEAR, 100) == ETHER // 10

    earned = settle(acct, 1000 + SECONDS_PER_YEAR, 100)

    assert earned == ETHER // 10
    assert acct.settled_reward == ETHER // 10
    assert acct.last_accrual_timestamp == 1000 + SECONDS_PER_YEAR
    assert pending_reward(acct, 1000 + SECONDS_PER_YEAR, 100) == 0

    settle(acct, 1000 + 2 * SECONDS_PER_YEAR, 100)
    assert acct.settled_reward == ETHER // 5


def test_settle_on_empty_account_only_moves_checkpoint():
    acct = AccountState(last_accrual_timestamp=5)
    assert settle(acct, 500, 100) == 0
    assert acct.last_accrual_timestamp == 500
    assert acct.settled_reward == 0


def test_checked_bounds():
    assert checked(0) == 0
    assert checked(MAX_UINT256) == MAX_UINT256
    with pytest.raises(ArithmeticFault, match="overflow"):
        checked_add(MAX_UINT256, 1)
    with pytest.raises(ArithmeticFault, match="underflow"):
        checked_sub(0, 1, what="total staked")
