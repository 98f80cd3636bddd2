from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Sequence


class PriceProvider(ABC):
    """A remote quote source. Raises ``PriceUnavailableError`` on any failure."""

    name: str = "provider"

    @abstractmethod
    def fetch_prices(self, assets: Sequence[str]) -> dict[str, Decimal]:
        raise NotImplementedError
