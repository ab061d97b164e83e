"""Staking ledger, reward accrual and external-yield extraction."""

import copy
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from staking_vault import accrual
from staking_vault.access import AccessControl
from staking_vault.accrual import checked_add, checked_sub
from staking_vault.asset import BaseAsset
from staking_vault.constants import DEFAULT_ANNUAL_RATE_BP, DEFAULT_MIN_STAKE_WEI
from staking_vault.errors import AccessDenied, BelowMinimumStake, ExceedsBalance, InvalidAmount, ReentrantCall
from staking_vault.formatters import normalize_address
from staking_vault.journal import Journaled
from staking_vault.lending import LendingMarketAdapter
from staking_vault.models import (
    AccountState,
    Deposit,
    GlobalVaultState,
    InterestSkimmed,
    PriceQuote,
    ProtocolRewardClaimed,
    Withdrawal,
)
from staking_vault.oracle import PriceOracle
from staking_vault.reward_token import RewardToken

VaultEvent = Deposit | Withdrawal | InterestSkimmed | ProtocolRewardClaimed


class Vault:
    """
    Custodial staking vault.

    Depositors' principal is forwarded to `lending_market`; each account accrues a fixed annual
    rate on its balance, paid out in `reward_token` on withdrawal. The owner may claim the
    market's protocol reward and skim interest the market earned above total principal.

    Every mutating operation is all-or-nothing: on any exception the ledger, the event log and
    all `Journaled` collaborators are put back as they were. Within an operation the ledger is
    updated before any external call, and the asset transfer out is always the last effect.
    """

    def __init__(
        self,
        *,
        address: str,
        owner: str,
        reward_token: RewardToken,
        lending_market: LendingMarketAdapter,
        asset: BaseAsset,
        annual_rate_bp: int | None = None,
        min_stake: int | None = None,
        price_oracle: PriceOracle | None = None,
        clock: Callable[[], int] | None = None,
        state: GlobalVaultState | None = None,
        accounts: dict[str, AccountState] | None = None,
    ) -> None:
        """
        A new vault takes `annual_rate_bp` and `min_stake` (defaulting to 1% and 2 ETH). A vault
        rebuilt from saved `state` carries both in the state, so passing them too is a ValueError.
        """
        if state is None:
            state = GlobalVaultState(
                total_staked=0,
                annual_rate_bp=DEFAULT_ANNUAL_RATE_BP if annual_rate_bp is None else annual_rate_bp,
                min_stake=DEFAULT_MIN_STAKE_WEI if min_stake is None else min_stake,
            )
        elif annual_rate_bp is not None or min_stake is not None:
            raise ValueError("annual_rate_bp and min_stake come from `state` when it is given")
        if state.annual_rate_bp < 0:
            raise ValueError(f"annual_rate_bp must be >= 0, got {state.annual_rate_bp}")
        if state.min_stake < 0:
            raise ValueError(f"min_stake must be >= 0, got {state.min_stake}")

        self.address = normalize_address(address)
        self.access = AccessControl(owner)
        self.lending_market = lending_market
        self.asset = asset
        self.price_oracle = price_oracle
        self.clock = clock or (lambda: int(time.time()))
        self.events: list[VaultEvent] = []
        self._reward_token = reward_token
        self._state = state
        self._accounts: dict[str, AccountState] = {normalize_address(k): v for k, v in (accounts or {}).items()}
        self._entered = False

    # -- read-only surface ------------------------------------------------------------------

    @property
    def owner(self) -> str:
        return self.access.owner

    @property
    def reward_token(self) -> RewardToken:
        return self._reward_token

    @property
    def annual_rate_bp(self) -> int:
        return self._state.annual_rate_bp

    @property
    def min_stake(self) -> int:
        return self._state.min_stake

    @property
    def priced(self) -> bool:
        """True when interest is converted through the price oracle before settlement."""
        return self.price_oracle is not None

    def total_staked(self) -> int:
        return self._state.total_staked

    def staked_balance(self, account: str) -> int:
        acct = self._accounts.get(normalize_address(account))
        return acct.staked_balance if acct else 0

    def account(self, account: str) -> AccountState:
        """Copy of the account's ledger entry (all zero if it never deposited)."""
        acct = self._accounts.get(normalize_address(account))
        return copy.copy(acct) if acct else AccountState()

    def accounts(self) -> dict[str, AccountState]:
        return copy.deepcopy(self._accounts)

    def global_state(self) -> GlobalVaultState:
        return copy.copy(self._state)

    def accrued_reward(self, account: str, now: int | None = None) -> int:
        """Settled reward plus the interval since the last checkpoint; what a withdrawal would pay now."""
        acct = self._accounts.get(normalize_address(account))
        if acct is None:
            return 0
        now = self._now(now)
        pending = accrual.pending_reward(acct, now, self._state.annual_rate_bp, self._quote_for(acct, now))
        return acct.settled_reward + pending

    # -- depositor operations ---------------------------------------------------------------

    def deposit(self, caller: str, amount: int, now: int | None = None) -> None:
        account = normalize_address(caller)
        _require_positive(amount)
        with self._atomic():
            now = self._now(now)
            acct = self._accounts.get(account) or AccountState(last_accrual_timestamp=now)
            new_balance = checked_add(acct.staked_balance, amount, what="staked balance")
            if new_balance < self._state.min_stake:
                raise BelowMinimumStake()
            total = checked_add(self._state.total_staked, amount, what="total staked")

            # Settling may read the price oracle; it must succeed before any funds move.
            self._settle(acct, now)

            self.asset.pull(account, amount)
            try:
                acct.staked_balance = new_balance
                self._state.total_staked = total
                self._accounts[account] = acct
                self.lending_market.supply(amount)
            except Exception:
                self._refund(account, amount)
                raise
            self.events.append(Deposit(account=account, amount=amount))

    def withdraw(self, caller: str, amount: int, now: int | None = None) -> int:
        """Withdraw principal and receive all settled reward. Returns the reward paid."""
        account = normalize_address(caller)
        _require_positive(amount)
        with self._atomic():
            now = self._now(now)
            acct = self._accounts.get(account)
            balance = acct.staked_balance if acct else 0
            if amount > balance:
                raise ExceedsBalance()
            remaining = balance - amount
            if 0 < remaining < self._state.min_stake:
                raise BelowMinimumStake()

            self._settle(acct, now)
            acct.staked_balance = remaining
            self._state.total_staked = checked_sub(self._state.total_staked, amount, what="total staked")
            reward = acct.settled_reward
            acct.settled_reward = 0
            if reward and self._reward_token.vault_authority != self.address:
                raise AccessDenied("!vault")

            self.lending_market.redeem(amount)
            if reward:
                self._reward_token.mint(self.address, account, reward)
            self.asset.push(account, amount)
            self.events.append(Withdrawal(account=account, amount=amount, reward_paid=reward))
        return reward

    # -- owner operations -------------------------------------------------------------------

    def claim_external_protocol_reward(self, caller: str, recipient: str) -> int:
        """Forward the market's accrued protocol reward to `recipient`. Returns the amount moved."""
        recipient = normalize_address(recipient)
        with self._atomic():
            self.access.require_owner(caller)
            amount = self.lending_market.claim_protocol_reward(recipient)
            if amount:
                self.events.append(ProtocolRewardClaimed(recipient=recipient, amount=amount))
        return amount

    def skim_external_interest(self, caller: str, recipient: str) -> int:
        """
        Send market interest earned above total principal to `recipient`.

        Only the surplus over `total_staked` is redeemed, so the market keeps covering every
        depositor. Returns the amount skimmed (0 when there is no surplus).
        """
        recipient = normalize_address(recipient)
        with self._atomic():
            self.access.require_owner(caller)
            underlying = self.lending_market.current_underlying_balance(self.address)
            surplus = underlying - self._state.total_staked
            if surplus <= 0:
                return 0
            self.lending_market.redeem(surplus)
            self.asset.push(recipient, surplus)
            self.events.append(InterestSkimmed(recipient=recipient, amount=surplus))
        return surplus

    def set_reward_token(self, caller: str, token: RewardToken) -> None:
        with self._atomic():
            self.access.require_owner(caller)
            self._reward_token = token

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        with self._atomic():
            self.access.transfer_ownership(caller, new_owner)

    # -- internals --------------------------------------------------------------------------

    def _now(self, now: int | None) -> int:
        return int(self.clock()) if now is None else int(now)

    def _quote_for(self, acct: AccountState, now: int) -> PriceQuote | None:
        # The oracle is only consulted when there is an interval to price.
        if self.price_oracle is None or acct.staked_balance == 0 or now <= acct.last_accrual_timestamp:
            return None
        return self.price_oracle.latest_price()

    def _settle(self, acct: AccountState, now: int) -> None:
        accrual.settle(acct, now, self._state.annual_rate_bp, self._quote_for(acct, now))

    def _refund(self, account: str, amount: int) -> None:
        # A journaled asset is rolled back with the rest; a real transfer has to be sent back.
        if not isinstance(self.asset, Journaled):
            self.asset.push(account, amount)

    def _journaled(self) -> list[Journaled]:
        out: list[Journaled] = []
        for c in (self._reward_token, self.lending_market, self.asset, self.price_oracle):
            if isinstance(c, Journaled) and all(c is not seen for seen in out):
                out.append(c)
        return out

    @contextmanager
    def _atomic(self) -> Iterator[None]:
        if self._entered:
            raise ReentrantCall("Reentrant call into the vault")
        self._entered = True
        ledger = copy.deepcopy((self._state, self._accounts))
        token = self._reward_token
        owner = self.access.owner
        n_events = len(self.events)
        journals = [(c, c.snapshot()) for c in self._journaled()]
        try:
            yield
        except Exception:
            self._state, self._accounts = ledger
            self._reward_token = token
            self.access = AccessControl(owner)
            del self.events[n_events:]
            for c, snap in journals:
                c.restore(snap)
            raise
        finally:
            self._entered = False


def _require_positive(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise InvalidAmount(f"Amount must be an integer number of base units, got {amount!r}")
    if amount <= 0:
        raise InvalidAmount("Amount must be greater than zero")
