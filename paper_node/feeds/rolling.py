"""Rolling price feed: polls a provider, keeps a bounded history, never blocks on failure."""
from __future__ import annotations

import asyncio
import logging
import random
import threading
from collections import deque
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Sequence

from paper_node.errors import ValidationError
from paper_node.feeds.base import PriceProvider
from paper_node.feeds.contracts import PricePoint, PriceUnavailableError
from paper_node.services.interfaces.price_feed import PriceFeed

DEFAULT_PRICES: dict[str, Decimal] = {
    "BTC": Decimal("43250"),
    "ETH": Decimal("2640"),
}

# full spread of one fallback step, floor the walk never drops below
FALLBACK_WALK: dict[str, tuple[Decimal, Decimal]] = {
    "BTC": (Decimal("1000"), Decimal("30000")),
    "ETH": (Decimal("100"), Decimal("1500")),
}

# full spread of the synthetic points backfilled on startup
SEED_SPREAD: dict[str, Decimal] = {
    "BTC": Decimal("2000"),
    "ETH": Decimal("200"),
}

_CENT = Decimal("0.01")


class RollingPriceFeed(PriceFeed):
    def __init__(
        self,
        provider: PriceProvider,
        assets: Sequence[str] = ("BTC", "ETH"),
        history_size: int = 100,
        initial_prices: dict[str, Decimal] | None = None,
        rng: random.Random | None = None,
    ):
        self.provider = provider
        self.assets = tuple(assets)
        self.rng = rng or random.Random()

        self._lock = threading.Lock()
        self._prices: dict[str, Decimal] = {
            asset: (initial_prices or DEFAULT_PRICES).get(asset, DEFAULT_PRICES.get(asset, Decimal("0")))
            for asset in self.assets
        }
        self._history: deque[PricePoint] = deque(maxlen=history_size)

        self.logger = logging.getLogger(__name__)
        self.stop_event = asyncio.Event()

    # ── reads ──

    def current_price(self, asset: str) -> Decimal:
        with self._lock:
            price = self._prices.get(asset)
        if price is None:
            raise ValidationError(f"unsupported asset: {asset}")
        return price

    def current_prices(self) -> dict[str, Decimal]:
        with self._lock:
            return dict(self._prices)

    def recent_history(self) -> list[PricePoint]:
        with self._lock:
            return list(self._history)

    # ── updates ──

    def refresh(self, now: datetime | None = None) -> PricePoint:
        now = now or datetime.now(timezone.utc)
        try:
            fetched = self.provider.fetch_prices(self.assets)
            point = PricePoint(prices={asset: fetched[asset] for asset in self.assets}, timestamp=now)
        except (PriceUnavailableError, KeyError) as exc:
            self.logger.warning("price fetch from %s failed, using fallback: %s", self.provider.name, exc)
            point = PricePoint(prices=self._perturbed(self.current_prices()), timestamp=now, synthetic=True)

        with self._lock:
            self._prices.update(point.prices)
            self._history.append(point)
        return point

    def seed_history(self, points: int = 25, step: timedelta = timedelta(hours=1), now: datetime | None = None) -> None:
        """Backfill synthetic hourly points so charts have something to draw on first load."""
        now = now or datetime.now(timezone.utc)
        base = self.current_prices()
        seeded = [
            PricePoint(
                prices={
                    asset: self._jitter(price, SEED_SPREAD.get(asset, Decimal("0")))
                    for asset, price in base.items()
                },
                timestamp=now - step * offset,
                synthetic=True,
            )
            for offset in range(points - 1, -1, -1)
        ]
        with self._lock:
            self._history.extend(seeded)

    def _perturbed(self, prices: dict[str, Decimal]) -> dict[str, Decimal]:
        walked: dict[str, Decimal] = {}
        for asset, price in prices.items():
            spread, floor = FALLBACK_WALK.get(asset, (Decimal("0"), Decimal("0")))
            walked[asset] = max(floor, self._jitter(price, spread))
        return walked

    def _jitter(self, price: Decimal, spread: Decimal) -> Decimal:
        step = Decimal(str(self.rng.random() - 0.5)) * spread
        return (price + step).quantize(_CENT)

    # ── background polling ──

    async def run(self, interval_seconds: float) -> None:
        self.logger.info("price feed polling %s every %ss", self.provider.name, interval_seconds)
        while not self.stop_event.is_set():
            try:
                await asyncio.to_thread(self.refresh)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self.logger.exception("price refresh error: %s", exc)
            try:
                await asyncio.wait_for(self.stop_event.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                pass

    async def shutdown(self) -> None:
        self.stop_event.set()
