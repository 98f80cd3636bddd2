from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal


class PriceUnavailableError(ValueError):
    """
    Raised when a price provider cannot fetch the price for an asset.
    """


@dataclass(frozen=True)
class PricePoint:
    prices: dict[str, Decimal]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    synthetic: bool = False
