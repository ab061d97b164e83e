"""Base-asset custody boundary."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from staking_vault.constants import DEFAULT_TX_TIMEOUT
from staking_vault.contracts import send_and_wait
from staking_vault.formatters import normalize_address

if TYPE_CHECKING:
    from web3 import Web3  # pragma: no cover


class BaseAsset(ABC):
    """Moves the staked asset between depositors and the vault's custody account."""

    @abstractmethod
    def pull(self, account: str, amount: int) -> None:
        """Move `amount` from `account` into custody. Raises ExternalCallFailure."""

    @abstractmethod
    def push(self, recipient: str, amount: int) -> None:
        """Move `amount` from custody to `recipient`. Raises ExternalCallFailure."""


class NativeEtherAsset(BaseAsset):
    """
    Native ether moved with plain value transfers.

    Both sides must be accounts the node can sign for (unlocked dev-node accounts or a
    signing middleware).
    """

    def __init__(self, w3: "Web3", custody: str, *, timeout: int = DEFAULT_TX_TIMEOUT) -> None:
        self.w3 = w3
        self.custody = normalize_address(custody)
        self.timeout = timeout

    def _send(self, sender: str, to: str, amount: int, what: str) -> None:
        tx = {
            "from": self.w3.to_checksum_address(sender),
            "to": self.w3.to_checksum_address(to),
            "value": amount,
        }
        send_and_wait(self.w3, lambda: self.w3.eth.send_transaction(tx), what, timeout=self.timeout)

    def pull(self, account: str, amount: int) -> None:
        self._send(account, self.custody, amount, f"transfer of {amount} wei into custody")

    def push(self, recipient: str, amount: int) -> None:
        self._send(self.custody, recipient, amount, f"transfer of {amount} wei to {recipient}")
