"""Price oracles for converting staked-asset interest into reward units."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from staking_vault.constants import CHAINLINK_AGGREGATOR_MIN_ABI
from staking_vault.contracts import call_view
from staking_vault.errors import ExternalCallFailure
from staking_vault.formatters import as_int
from staking_vault.models import PriceQuote

if TYPE_CHECKING:
    from web3 import Web3  # pragma: no cover


class PriceOracle(ABC):
    @abstractmethod
    def latest_price(self) -> PriceQuote:
        """Latest price of one staked unit. Raises ExternalCallFailure."""


class FixedPriceOracle(PriceOracle):
    """Constant price; for simulations and for pinning a price in tests."""

    def __init__(self, value: int, decimals: int) -> None:
        if value <= 0 or decimals < 0:
            raise ValueError(f"Invalid fixed price: value={value}, decimals={decimals}")
        self.quote = PriceQuote(value=value, decimals=decimals)

    def latest_price(self) -> PriceQuote:
        return self.quote


class ChainlinkPriceFeed(PriceOracle):
    """Chainlink AggregatorV3 feed (e.g. ETH/USD)."""

    def __init__(self, w3: "Web3", address: str) -> None:
        self.feed = w3.eth.contract(address=w3.to_checksum_address(address), abi=CHAINLINK_AGGREGATOR_MIN_ABI)
        self._decimals: int | None = None

    def latest_price(self) -> PriceQuote:
        if self._decimals is None:
            self._decimals = as_int(call_view(self.feed.functions.decimals(), "PriceFeed.decimals"))
        _, answer, _, _, _ = call_view(self.feed.functions.latestRoundData(), "PriceFeed.latestRoundData")
        if as_int(answer) <= 0:
            raise ExternalCallFailure(f"Price feed returned a non-positive answer: {answer}")
        return PriceQuote(value=as_int(answer), decimals=self._decimals)
