from .binance import BinanceRestClient, BinanceTickerProvider
from .simulated import SimulatedPriceProvider, StaticPriceProvider

__all__ = [
    "BinanceRestClient",
    "BinanceTickerProvider",
    "SimulatedPriceProvider",
    "StaticPriceProvider",
]
