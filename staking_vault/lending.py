"""Lending-market boundary: where idle principal earns external yield."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from staking_vault.constants import (
    COMPOUND_CETHER_MIN_ABI,
    COMPOUND_COMPTROLLER_MIN_ABI,
    DEFAULT_TX_TIMEOUT,
    ERC20_MIN_ABI,
)
from staking_vault.contracts import call_view, send_and_wait
from staking_vault.errors import ExternalCallFailure
from staking_vault.formatters import as_int, normalize_address
from staking_vault.models import MarketContracts

if TYPE_CHECKING:
    from web3 import Web3  # pragma: no cover


class LendingMarketAdapter(ABC):
    """
    External money market holding the vault's principal.

    Every method may fail; failures are raised as ExternalCallFailure and the caller must not
    assume any partial effect. Balances are whatever the market currently reports, including
    its own rounding.
    """

    @abstractmethod
    def supply(self, amount: int) -> None:
        """Supply `amount` of the underlying asset from the vault."""

    @abstractmethod
    def redeem(self, amount: int) -> None:
        """Redeem exactly `amount` of the underlying asset back to the vault."""

    @abstractmethod
    def current_underlying_balance(self, owner: str) -> int:
        """Underlying asset currently attributable to `owner`, interest included."""

    @abstractmethod
    def claim_protocol_reward(self, recipient: str) -> int:
        """Claim accrued protocol reward tokens to `recipient`; returns the amount moved (0 is fine)."""


class CompoundEtherMarket(LendingMarketAdapter):
    """Compound v2 cEther market, transacting from the vault's custody account."""

    def __init__(
        self,
        w3: "Web3",
        contracts: MarketContracts,
        account: str,
        *,
        timeout: int = DEFAULT_TX_TIMEOUT,
    ) -> None:
        self.w3 = w3
        self.contracts = contracts
        self.account = normalize_address(account)
        self.timeout = timeout
        self.ctoken = w3.eth.contract(address=w3.to_checksum_address(contracts.ctoken), abi=COMPOUND_CETHER_MIN_ABI)
        self.comptroller = w3.eth.contract(
            address=w3.to_checksum_address(contracts.comptroller),
            abi=COMPOUND_COMPTROLLER_MIN_ABI,
        )
        self.comp = w3.eth.contract(address=w3.to_checksum_address(contracts.comp), abi=ERC20_MIN_ABI)

    def _tx(self, value: int = 0) -> dict:
        tx = {"from": self.w3.to_checksum_address(self.account)}
        if value:
            tx["value"] = value
        return tx

    def supply(self, amount: int) -> None:
        fn = self.ctoken.functions.mint()
        send_and_wait(self.w3, lambda: fn.transact(self._tx(amount)), "cEther.mint", timeout=self.timeout)

    def redeem(self, amount: int) -> None:
        fn = self.ctoken.functions.redeemUnderlying(amount)
        # Compound signals most failures with a non-zero error code instead of reverting.
        code = call_view(fn, "cEther.redeemUnderlying (static)", transaction=self._tx())
        if as_int(code) != 0:
            raise ExternalCallFailure(f"cEther.redeemUnderlying({amount}) returned error code {code}")
        send_and_wait(self.w3, lambda: fn.transact(self._tx()), "cEther.redeemUnderlying", timeout=self.timeout)

    def current_underlying_balance(self, owner: str) -> int:
        fn = self.ctoken.functions.balanceOfUnderlying(self.w3.to_checksum_address(normalize_address(owner)))
        return as_int(call_view(fn, "cEther.balanceOfUnderlying"))

    def claim_protocol_reward(self, recipient: str) -> int:
        holder = self.w3.to_checksum_address(self.account)
        claim = self.comptroller.functions.claimComp(holder)
        send_and_wait(self.w3, lambda: claim.transact(self._tx()), "Comptroller.claimComp", timeout=self.timeout)

        amount = as_int(call_view(self.comp.functions.balanceOf(holder), "COMP.balanceOf"))
        if amount == 0:
            return 0
        move = self.comp.functions.transfer(self.w3.to_checksum_address(normalize_address(recipient)), amount)
        send_and_wait(self.w3, lambda: move.transact(self._tx()), "COMP.transfer", timeout=self.timeout)
        return amount
