from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import StrEnum

from paper_node.entities.prediction import Asset, generate_record_id


class TradeSide(StrEnum):
    BUY = "BUY"
    SELL = "SELL"


class TradeStatus(StrEnum):
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass
class Trade:
    """Executed simulated order. Immutable once COMPLETED."""
    id: str
    account_id: str
    asset: Asset
    side: TradeSide
    amount: Decimal
    price: Decimal
    total_shm: Decimal                    # amount * price
    status: TradeStatus = TradeStatus.COMPLETED
    tx_hash: str | None = None
    request_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @staticmethod
    def create(
        account_id: str,
        asset: Asset,
        side: TradeSide,
        amount: Decimal,
        price: Decimal,
        created_at: datetime,
        tx_hash: str | None = None,
        request_id: str | None = None,
    ) -> "Trade":
        return Trade(
            id=generate_record_id("TRD"),
            account_id=account_id,
            asset=asset,
            side=side,
            amount=amount,
            price=price,
            total_shm=amount * price,
            status=TradeStatus.COMPLETED,
            tx_hash=tx_hash,
            request_id=request_id,
            created_at=created_at,
        )

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.side == TradeSide.BUY else -self.amount

    @property
    def balance_delta(self) -> Decimal:
        """SHM movement on the owning account: cost leaves on BUY, proceeds arrive on SELL."""
        return -self.total_shm if self.side == TradeSide.BUY else self.total_shm
