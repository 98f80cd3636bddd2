from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import Column, Index, Numeric, String, UniqueConstraint
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExactDecimal(TypeDecorator):
    """Decimal column that never passes through binary floats.

    Postgres gets an unconstrained NUMERIC, so products such as `amount * price`
    keep every digit. SQLite has no exact numeric storage and gets the decimal
    string instead.
    """

    impl = Numeric
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String())
        return dialect.type_descriptor(Numeric(asdecimal=True))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = Decimal(value)
        if dialect.name == "sqlite":
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, Decimal):
            return value
        return Decimal(str(value))


def _amount_column(nullable: bool = False) -> Column:
    return Column(ExactDecimal(), nullable=nullable)


class AccountRow(SQLModel, table=True):
    __tablename__ = "accounts"

    id: str = Field(primary_key=True)
    wallet_address: str = Field(index=True, unique=True)

    shm_tokens: Decimal = Field(sa_column=_amount_column())
    prediction_streak: int = 0
    total_predictions: int = 0
    correct_predictions: int = 0
    version: int = 0

    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)


class PredictionRow(SQLModel, table=True):
    __tablename__ = "predictions"

    id: str = Field(primary_key=True)
    account_id: str = Field(index=True, foreign_key="accounts.id")

    asset: str
    direction: str
    confidence: int
    entry_price: Decimal = Field(sa_column=_amount_column())
    target_price: Optional[Decimal] = Field(default=None, sa_column=_amount_column(nullable=True))
    timeframe: str
    reward_tokens: int

    status: str = Field(index=True)
    request_id: Optional[str] = None

    created_at: datetime = Field(default_factory=utc_now, index=True)
    resolvable_at: datetime = Field(index=True)
    resolved_at: Optional[datetime] = None

    __table_args__ = (
        UniqueConstraint("account_id", "request_id", name="uq_predictions_account_request"),
        Index("idx_predictions_pending", "status", "resolvable_at"),
    )


class TradeRow(SQLModel, table=True):
    __tablename__ = "trades"

    id: str = Field(primary_key=True)
    account_id: str = Field(index=True, foreign_key="accounts.id")

    asset: str
    side: str
    amount: Decimal = Field(sa_column=_amount_column())
    price: Decimal = Field(sa_column=_amount_column())
    total_shm: Decimal = Field(sa_column=_amount_column())

    status: str = Field(index=True)
    tx_hash: Optional[str] = None
    request_id: Optional[str] = None

    created_at: datetime = Field(default_factory=utc_now, index=True)

    __table_args__ = (
        UniqueConstraint("account_id", "request_id", name="uq_trades_account_request"),
    )
