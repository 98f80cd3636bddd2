from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Sequence

import requests

from paper_node.feeds.base import PriceProvider
from paper_node.feeds.contracts import PriceUnavailableError

_BINANCE_API = "https://api.binance.com"

_ASSET_TO_SYMBOL: dict[str, str] = {
    "BTC": "BTCUSDT",
    "ETH": "ETHUSDT",
}


@dataclass
class BinanceRestClient:
    base_url: str = _BINANCE_API
    timeout_seconds: float = 8.0
    session: Any = field(default_factory=requests.Session)

    def ticker_price(self, symbol: str) -> Decimal:
        response = self.session.get(
            f"{self.base_url}/api/v3/ticker/price",
            params={"symbol": symbol},
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        payload = response.json()
        # keep the exchange's decimal string, never round-trip through float
        return Decimal(str(payload["price"]))


class BinanceTickerProvider(PriceProvider):
    name = "binance"

    def __init__(self, client: BinanceRestClient | None = None, timeout_seconds: float = 8.0):
        self.client = client or BinanceRestClient(timeout_seconds=timeout_seconds)

    def fetch_prices(self, assets: Sequence[str]) -> dict[str, Decimal]:
        prices: dict[str, Decimal] = {}
        for asset in assets:
            symbol = _ASSET_TO_SYMBOL.get(asset)
            if symbol is None:
                raise PriceUnavailableError(f"no Binance symbol for {asset}")
            try:
                prices[asset] = self.client.ticker_price(symbol)
            except Exception as error:
                raise PriceUnavailableError(f"could not get last price for {asset}: {error}") from error
        return prices
