"""Data models for the staking vault."""

from dataclasses import dataclass


@dataclass
class AccountState:
    """Ledger entry for a single depositor."""

    staked_balance: int = 0
    # Wall-clock time of the last settlement; accrual after this point is still pending.
    last_accrual_timestamp: int = 0
    # Reward accrued up to `last_accrual_timestamp`, not yet minted.
    settled_reward: int = 0


@dataclass
class GlobalVaultState:
    """Vault-wide ledger totals and accrual parameters."""

    total_staked: int
    annual_rate_bp: int
    min_stake: int


@dataclass(frozen=True)
class PriceQuote:
    """Latest oracle answer: `value / 10**decimals` units of the quote currency."""

    value: int
    decimals: int


@dataclass(frozen=True)
class Deposit:
    account: str
    amount: int


@dataclass(frozen=True)
class Withdrawal:
    account: str
    amount: int
    reward_paid: int


@dataclass(frozen=True)
class InterestSkimmed:
    recipient: str
    amount: int


@dataclass(frozen=True)
class ProtocolRewardClaimed:
    recipient: str
    amount: int


@dataclass(frozen=True)
class ChangedAuthority:
    new_authority: str


@dataclass(frozen=True)
class Transfer:
    sender: str
    recipient: str
    amount: int


@dataclass(frozen=True)
class MarketContracts:
    """Compound v2 contract addresses resolved from the cToken."""

    ctoken: str
    comptroller: str
    comp: str


@dataclass(frozen=True)
class LedgerSummary:
    """Aggregated view of the ledger at a point in time."""

    timestamp: int
    accounts_total: int
    accounts_active: int
    total_staked_wei: int
    settled_reward: int
    pending_reward: int
    # None when the market balance was not queried.
    underlying_balance_wei: int | None
    market_surplus_wei: int | None
