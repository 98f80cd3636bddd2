from __future__ import annotations

import base64
import secrets
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import StrEnum

from paper_node.errors import ValidationError

HOUR = 60 * 60
DAY = 24 * HOUR


class Asset(StrEnum):
    BTC = "BTC"
    ETH = "ETH"


class Direction(StrEnum):
    UP = "UP"
    DOWN = "DOWN"


class Timeframe(StrEnum):
    ONE_HOUR = "1H"
    FOUR_HOURS = "4H"
    ONE_DAY = "1D"
    ONE_WEEK = "1W"

    @property
    def seconds(self) -> int:
        return _TIMEFRAME_SECONDS[self]


_TIMEFRAME_SECONDS: dict[Timeframe, int] = {
    Timeframe.ONE_HOUR: 1 * HOUR,
    Timeframe.FOUR_HOURS: 4 * HOUR,
    Timeframe.ONE_DAY: 1 * DAY,
    Timeframe.ONE_WEEK: 7 * DAY,
}


class PredictionStatus(StrEnum):
    PENDING = "PENDING"
    WON = "WON"
    LOST = "LOST"


def compute_reward_tokens(confidence: int) -> int:
    """floor(confidence / 10) + 5, i.e. 10..15 SHM over the 50..100 confidence range."""
    return confidence // 10 + 5


def generate_record_id(prefix: str) -> str:
    raw = secrets.token_bytes(10)  # 80 bits randomness
    code = base64.b32encode(raw).decode("ascii").rstrip("=")
    return f"{prefix}_{code}"


@dataclass
class Prediction:
    """A directional bet on an asset. PENDING → WON | LOST, exactly once."""
    id: str
    account_id: str
    asset: Asset
    direction: Direction
    confidence: int
    entry_price: Decimal                  # snapshot at creation, immutable
    timeframe: Timeframe
    reward_tokens: int                    # computed at creation, credited only on WON
    status: PredictionStatus = PredictionStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    resolvable_at: datetime | None = None
    resolved_at: datetime | None = None
    target_price: Decimal | None = None
    request_id: str | None = None

    @staticmethod
    def create(
        account_id: str,
        asset: Asset,
        direction: Direction,
        confidence: int,
        entry_price: Decimal,
        timeframe: Timeframe,
        maturity_seconds: int,
        created_at: datetime,
        target_price: Decimal | None = None,
        request_id: str | None = None,
    ) -> "Prediction":
        return Prediction(
            id=generate_record_id("PRD"),
            account_id=account_id,
            asset=asset,
            direction=direction,
            confidence=confidence,
            entry_price=entry_price,
            timeframe=timeframe,
            reward_tokens=compute_reward_tokens(confidence),
            created_at=created_at,
            resolvable_at=created_at + timedelta(seconds=maturity_seconds),
            target_price=target_price,
            request_id=request_id,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status != PredictionStatus.PENDING

    def resolved(self, won: bool, resolved_at: datetime) -> "Prediction":
        status = PredictionStatus.WON if won else PredictionStatus.LOST
        return replace(self, status=status, resolved_at=resolved_at)


def parse_label(enum_cls: type[StrEnum], value, field: str) -> StrEnum:
    """Map a user-supplied label onto an enum member, case-insensitively."""
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be one of {[m.value for m in enum_cls]}, got {value!r}")
    try:
        return enum_cls(value.strip().upper())
    except ValueError as exc:
        raise ValidationError(f"{field} must be one of {[m.value for m in enum_cls]}, got {value!r}") from exc
