"""Reward token with a single vault mint authority."""

from typing import Any

from staking_vault.access import AccessControl
from staking_vault.accrual import checked_add, checked_sub
from staking_vault.constants import REWARD_TOKEN_DECIMALS, REWARD_TOKEN_NAME, REWARD_TOKEN_SYMBOL, ZERO_ADDRESS
from staking_vault.errors import AccessDenied, InvalidAmount
from staking_vault.formatters import normalize_address
from staking_vault.journal import Journaled
from staking_vault.models import ChangedAuthority, Transfer


class RewardToken(Journaled):
    """
    Fungible balance ledger whose `mint` is callable only by the vault authority.

    The authority starts unset (zero address) and is changed by the owner through
    `set_vault_authority`.
    """

    def __init__(
        self,
        owner: str,
        *,
        address: str,
        name: str = REWARD_TOKEN_NAME,
        symbol: str = REWARD_TOKEN_SYMBOL,
        decimals: int = REWARD_TOKEN_DECIMALS,
    ) -> None:
        self.access = AccessControl(owner)
        self.address = normalize_address(address)
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self._vault_authority = ZERO_ADDRESS
        self._balances: dict[str, int] = {}
        self._total_supply = 0
        self.events: list[Transfer | ChangedAuthority] = []

    @property
    def vault_authority(self) -> str:
        return self._vault_authority

    def set_vault_authority(self, caller: str, authority: str) -> None:
        self.access.require_owner(caller)
        self._vault_authority = normalize_address(authority)
        self.events.append(ChangedAuthority(new_authority=self._vault_authority))

    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, account: str) -> int:
        return self._balances.get(normalize_address(account), 0)

    def mint(self, caller: str, to: str, amount: int) -> None:
        if normalize_address(caller) != self._vault_authority or self._vault_authority == ZERO_ADDRESS:
            raise AccessDenied("!vault")
        if amount < 0:
            raise InvalidAmount(f"Mint amount must be >= 0, got {amount}")
        to = normalize_address(to)
        self._total_supply = checked_add(self._total_supply, amount, what="total supply")
        self._balances[to] = self._balances.get(to, 0) + amount
        self.events.append(Transfer(sender=ZERO_ADDRESS, recipient=to, amount=amount))

    def burn(self, caller: str, amount: int) -> None:
        caller = normalize_address(caller)
        self._debit(caller, amount)
        self._total_supply = checked_sub(self._total_supply, amount, what="total supply")
        self.events.append(Transfer(sender=caller, recipient=ZERO_ADDRESS, amount=amount))

    def transfer(self, caller: str, to: str, amount: int) -> None:
        caller = normalize_address(caller)
        to = normalize_address(to)
        if to == ZERO_ADDRESS:
            raise InvalidAmount("Transfer to the zero address")
        self._debit(caller, amount)
        self._balances[to] = self._balances.get(to, 0) + amount
        self.events.append(Transfer(sender=caller, recipient=to, amount=amount))

    def _debit(self, account: str, amount: int) -> None:
        if amount < 0:
            raise InvalidAmount(f"Amount must be >= 0, got {amount}")
        balance = self._balances.get(account, 0)
        if amount > balance:
            raise InvalidAmount("Amount exceeds balance")
        self._balances[account] = balance - amount

    def snapshot(self) -> Any:
        return (self._vault_authority, dict(self._balances), self._total_supply, len(self.events))

    def restore(self, snap: Any) -> None:
        self._vault_authority, balances, self._total_supply, n_events = snap
        self._balances = dict(balances)
        del self.events[n_events:]

    def to_dict(self) -> dict[str, Any]:
        """JSON-serializable state."""
        return {
            "address": self.address,
            "owner": self.access.owner,
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "vault_authority": self._vault_authority,
            "total_supply": self._total_supply,
            "balances": dict(self._balances),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RewardToken":
        token = cls(
            data["owner"],
            address=data["address"],
            name=data["name"],
            symbol=data["symbol"],
            decimals=int(data["decimals"]),
        )
        token._vault_authority = normalize_address(data["vault_authority"])
        token._total_supply = int(data["total_supply"])
        token._balances = {normalize_address(k): int(v) for k, v in data["balances"].items()}
        return token
