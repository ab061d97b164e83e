"""In-memory collaborators and a scenario runner for offline what-if runs."""

import copy
import sys
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from tqdm import tqdm

from staking_vault.asset import BaseAsset
from staking_vault.constants import (
    DEFAULT_ANNUAL_RATE_BP,
    DEFAULT_MIN_STAKE_WEI,
    SECONDS_PER_YEAR,
    TOTAL_BASIS_POINTS,
)
from staking_vault.errors import ExternalCallFailure, VaultError
from staking_vault.formatters import normalize_address, to_base_units
from staking_vault.journal import Journaled
from staking_vault.lending import LendingMarketAdapter
from staking_vault.oracle import PriceOracle
from staking_vault.reward_token import RewardToken
from staking_vault.vault import Vault

SIM_VAULT_ADDRESS = "0x" + "5a" * 20
SIM_OWNER_ADDRESS = "0x" + "0e" * 20
SIM_TOKEN_ADDRESS = "0x" + "7d" * 20
SIM_MARKET_ADDRESS = "0x" + "c0" * 20


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: int = 0) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError(f"Cannot move the clock backwards by {seconds}s")
        self.now += seconds
        return self.now


class _FailureSwitch:
    """Named operations that should fail, for rehearsing outages."""

    def __init__(self) -> None:
        self.failing: set[str] = set()

    def _check(self, op: str) -> None:
        if op in self.failing:
            raise ExternalCallFailure(f"{type(self).__name__}.{op} is unavailable")


class InMemoryAsset(BaseAsset, Journaled, _FailureSwitch):
    """Balance ledger standing in for native ether."""

    def __init__(self, custody: str) -> None:
        super().__init__()
        self.custody = normalize_address(custody)
        self._balances: dict[str, int] = {}

    def balance_of(self, account: str) -> int:
        return self._balances.get(normalize_address(account), 0)

    def credit(self, account: str, amount: int) -> None:
        """Create `amount` out of thin air for `account` (funding a wallet)."""
        account = normalize_address(account)
        self._balances[account] = self._balances.get(account, 0) + amount

    def move(self, sender: str, recipient: str, amount: int) -> None:
        sender = normalize_address(sender)
        recipient = normalize_address(recipient)
        balance = self._balances.get(sender, 0)
        if amount > balance:
            raise ExternalCallFailure(f"Insufficient funds: {sender} holds {balance}, needs {amount}")
        self._balances[sender] = balance - amount
        self._balances[recipient] = self._balances.get(recipient, 0) + amount

    def pull(self, account: str, amount: int) -> None:
        self._check("pull")
        self.move(account, self.custody, amount)

    def push(self, recipient: str, amount: int) -> None:
        self._check("push")
        self.move(self.custody, recipient, amount)

    def snapshot(self) -> Any:
        return dict(self._balances)

    def restore(self, snap: Any) -> None:
        self._balances = dict(snap)


class SimulatedLendingMarket(LendingMarketAdapter, Journaled, _FailureSwitch):
    """
    Money market paying simple interest at `supply_rate_bp`, checkpointed on every call.

    Interest is credited to the market's own asset balance so redemptions can pay it out.
    Protocol reward accrues at `reward_per_second` base units while the vault has a balance.
    """

    def __init__(
        self,
        asset: InMemoryAsset,
        account: str,
        clock: ManualClock,
        *,
        supply_rate_bp: int = 0,
        reward_per_second: int = 0,
        address: str = SIM_MARKET_ADDRESS,
    ) -> None:
        super().__init__()
        self.asset = asset
        self.account = normalize_address(account)
        self.address = normalize_address(address)
        self.clock = clock
        self.supply_rate_bp = supply_rate_bp
        self.reward_per_second = reward_per_second
        self.protocol_reward_balances: dict[str, int] = {}
        self._balances: dict[str, int] = {}
        self._accrued_protocol_reward = 0
        self._last = clock()

    def _accrue(self) -> None:
        now = self.clock()
        elapsed = now - self._last
        if elapsed <= 0:
            return
        for owner, balance in self._balances.items():
            interest = balance * self.supply_rate_bp * elapsed // (TOTAL_BASIS_POINTS * SECONDS_PER_YEAR)
            if interest:
                self._balances[owner] = balance + interest
                self.asset.credit(self.address, interest)
        if self._balances.get(self.account, 0) > 0:
            self._accrued_protocol_reward += self.reward_per_second * elapsed
        self._last = now

    def supply(self, amount: int) -> None:
        self._check("supply")
        self._accrue()
        self.asset.move(self.account, self.address, amount)
        self._balances[self.account] = self._balances.get(self.account, 0) + amount

    def redeem(self, amount: int) -> None:
        self._check("redeem")
        self._accrue()
        balance = self._balances.get(self.account, 0)
        if amount > balance:
            raise ExternalCallFailure(f"Redeem of {amount} exceeds market balance {balance}")
        self._balances[self.account] = balance - amount
        self.asset.move(self.address, self.account, amount)

    def current_underlying_balance(self, owner: str) -> int:
        self._check("current_underlying_balance")
        self._accrue()
        return self._balances.get(normalize_address(owner), 0)

    def claim_protocol_reward(self, recipient: str) -> int:
        self._check("claim_protocol_reward")
        self._accrue()
        amount = self._accrued_protocol_reward
        if amount:
            recipient = normalize_address(recipient)
            self._accrued_protocol_reward = 0
            self.protocol_reward_balances[recipient] = self.protocol_reward_balances.get(recipient, 0) + amount
        return amount

    def snapshot(self) -> Any:
        return copy.deepcopy(
            (self._balances, self.protocol_reward_balances, self._accrued_protocol_reward, self._last)
        )

    def restore(self, snap: Any) -> None:
        balances, rewards, accrued, last = copy.deepcopy(snap)
        self._balances = balances
        self.protocol_reward_balances = rewards
        self._accrued_protocol_reward = accrued
        self._last = last


@dataclass(frozen=True)
class StepFailure:
    index: int
    op: str
    reason: str


@dataclass
class SimulationResult:
    vault: Vault
    asset: InMemoryAsset
    market: SimulatedLendingMarket
    clock: ManualClock
    applied: int = 0
    failures: list[StepFailure] = field(default_factory=list)


def build_simulated_vault(
    *,
    annual_rate_bp: int = DEFAULT_ANNUAL_RATE_BP,
    min_stake: int = DEFAULT_MIN_STAKE_WEI,
    market_rate_bp: int = 0,
    reward_per_second: int = 0,
    price: PriceOracle | None = None,
    start: int = 0,
) -> SimulationResult:
    """Wire a vault to in-memory collaborators, with the vault already holding mint authority."""
    clock = ManualClock(start)
    asset = InMemoryAsset(SIM_VAULT_ADDRESS)
    market = SimulatedLendingMarket(
        asset,
        SIM_VAULT_ADDRESS,
        clock,
        supply_rate_bp=market_rate_bp,
        reward_per_second=reward_per_second,
    )
    token = RewardToken(SIM_OWNER_ADDRESS, address=SIM_TOKEN_ADDRESS)
    vault = Vault(
        address=SIM_VAULT_ADDRESS,
        owner=SIM_OWNER_ADDRESS,
        reward_token=token,
        lending_market=market,
        asset=asset,
        annual_rate_bp=annual_rate_bp,
        min_stake=min_stake,
        price_oracle=price,
        clock=clock,
    )
    token.set_vault_authority(SIM_OWNER_ADDRESS, vault.address)
    return SimulationResult(vault=vault, asset=asset, market=market, clock=clock)


def _apply_step(sim: SimulationResult, step: dict[str, Any]) -> None:
    op = step.get("op")
    vault = sim.vault
    if op == "advance":
        seconds = int(step.get("seconds", 0)) + int(step.get("days", 0)) * 24 * 60 * 60
        sim.clock.advance(seconds)
    elif op == "deposit":
        amount = to_base_units(step["amount"])
        # Depositors bring their own funds.
        sim.asset.credit(step["account"], amount)
        vault.deposit(step["account"], amount)
    elif op == "withdraw":
        vault.withdraw(step["account"], to_base_units(step["amount"]))
    elif op == "skim":
        vault.skim_external_interest(step.get("caller", vault.owner), step["recipient"])
    elif op == "claim":
        vault.claim_external_protocol_reward(step.get("caller", vault.owner), step["recipient"])
    else:
        raise ValueError(f"Unknown scenario op: {op!r}")


def run_scenario(steps: Iterable[dict[str, Any]], *, progress: bool = False, **kwargs: Any) -> SimulationResult:
    """
    Replay scenario steps against a fresh simulated vault.

    Rejected operations (any VaultError) are recorded and the replay continues; a malformed
    step raises ValueError. Keyword arguments go to `build_simulated_vault`.
    """
    sim = build_simulated_vault(**kwargs)
    steps = list(steps)
    with tqdm(steps, desc="🧪 Replaying scenario", unit="step", file=sys.stderr, disable=not progress) as pbar:
        for i, step in enumerate(pbar):
            if not isinstance(step, dict):
                raise ValueError(f"Step {i} must be an object, got {step!r}")
            op = str(step.get("op"))
            try:
                _apply_step(sim, step)
            except KeyError as ex:
                raise ValueError(f"Step {i} ({op}) is missing field {ex}") from ex
            except VaultError as ex:
                sim.failures.append(StepFailure(index=i, op=op, reason=str(ex)))
                if progress:
                    tqdm.write(f"⚠️  Step {i} ({op}) rejected: {ex}", file=sys.stderr)
                continue
            sim.applied += 1
    return sim
