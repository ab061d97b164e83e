"""Contract interaction functions."""

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from staking_vault.constants import (
    COMPOUND_CETHER_MIN_ABI,
    COMPOUND_COMPTROLLER_MIN_ABI,
    DEFAULT_NETWORK_ADDRESSES,
    DEFAULT_TX_TIMEOUT,
)
from staking_vault.errors import ExternalCallFailure
from staking_vault.formatters import as_int
from staking_vault.models import MarketContracts

if TYPE_CHECKING:
    from web3 import Web3  # pragma: no cover


def resolve_market_contracts(w3: "Web3", ctoken_address: str) -> MarketContracts:
    """
    Resolve the Comptroller and COMP addresses from a Compound v2 cToken.

    The cToken is the single entry point: it knows its Comptroller, which in turn knows COMP.
    """
    ctoken = w3.eth.contract(address=w3.to_checksum_address(ctoken_address), abi=COMPOUND_CETHER_MIN_ABI)
    comptroller_address = ctoken.functions.comptroller().call()
    comptroller = w3.eth.contract(
        address=w3.to_checksum_address(comptroller_address),
        abi=COMPOUND_COMPTROLLER_MIN_ABI,
    )
    comp_address = comptroller.functions.getCompAddress().call()
    return MarketContracts(ctoken=ctoken_address, comptroller=comptroller_address, comp=comp_address)


def default_network_addresses(chain_id: int) -> dict[str, str]:
    """Known market/feed addresses for a chain id (empty if none are known)."""
    return dict(DEFAULT_NETWORK_ADDRESSES.get(chain_id, {}))


def latest_block_timestamp(w3: "Web3") -> int:
    """Timestamp of the latest block; the vault's notion of `now` on a live chain."""
    return as_int(w3.eth.get_block("latest")["timestamp"])


def block_clock(w3: "Web3") -> Callable[[], int]:
    return lambda: latest_block_timestamp(w3)


def call_view(fn: Any, what: str, **kwargs: Any) -> Any:
    """Run a read-only contract call, surfacing any failure as ExternalCallFailure."""
    try:
        return fn.call(**kwargs)
    except Exception as ex:  # pylint: disable=broad-exception-caught
        raise ExternalCallFailure(f"{what} failed: {ex}") from ex


def send_and_wait(w3: "Web3", send: Callable[[], Any], what: str, *, timeout: int = DEFAULT_TX_TIMEOUT) -> Any:
    """
    Submit a transaction and wait for its receipt.

    `send` returns the transaction hash. Submission errors, timeouts and reverted receipts
    (status != 1) all raise ExternalCallFailure.
    """
    try:
        tx_hash = send()
        receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
    except Exception as ex:  # pylint: disable=broad-exception-caught
        raise ExternalCallFailure(f"{what} failed: {ex}") from ex
    if as_int(receipt["status"]) != 1:
        raise ExternalCallFailure(f"{what} reverted (status={receipt['status']})")
    return receipt
