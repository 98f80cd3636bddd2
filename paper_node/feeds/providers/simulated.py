from __future__ import annotations

import random
from decimal import Decimal
from typing import Sequence

from paper_node.feeds.base import PriceProvider
from paper_node.feeds.contracts import PriceUnavailableError

# base price, full spread of the uniform jitter
_MOCK_MARKET: dict[str, tuple[Decimal, Decimal]] = {
    "BTC": (Decimal("43250"), Decimal("1000")),
    "ETH": (Decimal("2640"), Decimal("100")),
}


class SimulatedPriceProvider(PriceProvider):
    """Offline quote source: base price jittered uniformly on every fetch."""

    name = "simulated"

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    def fetch_prices(self, assets: Sequence[str]) -> dict[str, Decimal]:
        prices: dict[str, Decimal] = {}
        for asset in assets:
            market = _MOCK_MARKET.get(asset)
            if market is None:
                raise PriceUnavailableError(f"no simulated market for {asset}")
            base, spread = market
            jitter = Decimal(str(self.rng.random() - 0.5)) * spread
            prices[asset] = (base + jitter).quantize(Decimal("0.01"))
        return prices


class StaticPriceProvider(PriceProvider):
    """Fixed quotes. Mostly useful for demos and tests."""

    name = "static"

    def __init__(self, prices: dict[str, Decimal]):
        self.prices = dict(prices)

    def fetch_prices(self, assets: Sequence[str]) -> dict[str, Decimal]:
        missing = [asset for asset in assets if asset not in self.prices]
        if missing:
            raise PriceUnavailableError(f"no static price for {', '.join(missing)}")
        return {asset: self.prices[asset] for asset in assets}
