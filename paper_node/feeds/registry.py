from __future__ import annotations

from typing import Callable

from paper_node.feeds.base import PriceProvider
from paper_node.feeds.providers import BinanceTickerProvider, SimulatedPriceProvider

ProviderFactory = Callable[[float], PriceProvider]

_PROVIDERS: dict[str, ProviderFactory] = {
    "binance": lambda timeout_seconds: BinanceTickerProvider(timeout_seconds=timeout_seconds),
    "simulated": lambda timeout_seconds: SimulatedPriceProvider(),
}


def register_provider(name: str, factory: ProviderFactory) -> None:
    _PROVIDERS[name.strip().lower()] = factory


def create_provider(name: str, timeout_seconds: float = 8.0) -> PriceProvider:
    key = (name or "").strip().lower()
    factory = _PROVIDERS.get(key)
    if factory is None:
        raise ValueError(f"Unknown price feed provider '{name}'. Known: {sorted(_PROVIDERS)}")
    return factory(timeout_seconds)
