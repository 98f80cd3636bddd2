from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from paper_node.feeds.contracts import PricePoint


class PriceFeed(ABC):

    @abstractmethod
    def current_price(self, asset: str) -> Decimal:
        pass

    @abstractmethod
    def current_prices(self) -> dict[str, Decimal]:
        pass

    @abstractmethod
    def recent_history(self) -> list[PricePoint]:
        """Oldest first, bounded."""
        pass
