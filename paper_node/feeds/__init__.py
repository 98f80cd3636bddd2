from .base import PriceProvider
from .contracts import PricePoint, PriceUnavailableError
from .registry import create_provider, register_provider
from .rolling import DEFAULT_PRICES, RollingPriceFeed

__all__ = [
    "DEFAULT_PRICES",
    "PricePoint",
    "PriceProvider",
    "PriceUnavailableError",
    "RollingPriceFeed",
    "create_provider",
    "register_provider",
]
