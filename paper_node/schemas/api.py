from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from paper_node.entities.account import UserAccount
from paper_node.entities.numeric import quantize
from paper_node.entities.prediction import Prediction
from paper_node.entities.trade import Trade
from paper_node.feeds.contracts import PricePoint
from paper_node.services.portfolio import PortfolioSnapshot


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class ConnectAccountRequest(BaseModel):
    wallet_address: str = Field(min_length=1)

    model_config = ConfigDict(extra="forbid")


class CreatePredictionRequest(BaseModel):
    """Entry price is always taken from the node's price feed, never from the client."""

    asset: str
    direction: str
    confidence: int
    timeframe: str = "1H"
    target_price: Decimal | None = None
    request_id: str | None = Field(default=None, max_length=128)

    model_config = ConfigDict(extra="forbid")


class ResolvePredictionRequest(BaseModel):
    won: bool

    model_config = ConfigDict(extra="forbid")


class ExecuteTradeRequest(BaseModel):
    asset: str
    side: str
    amount: Decimal
    tx_hash: str | None = None
    request_id: str | None = Field(default=None, max_length=128)

    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class AccountEnvelope(BaseModel):
    id: str
    wallet_address: str
    shm_tokens: Decimal
    prediction_streak: int
    total_predictions: int
    correct_predictions: int
    accuracy: float
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, account: UserAccount, decimals: int) -> "AccountEnvelope":
        return cls(
            id=account.id,
            wallet_address=account.wallet_address,
            shm_tokens=quantize(account.shm_tokens, decimals),
            prediction_streak=account.prediction_streak,
            total_predictions=account.total_predictions,
            correct_predictions=account.correct_predictions,
            accuracy=round(account.accuracy, 2),
            created_at=account.created_at,
            updated_at=account.updated_at,
        )


class PredictionEnvelope(BaseModel):
    id: str
    account_id: str
    asset: str
    direction: str
    confidence: int
    entry_price: Decimal
    target_price: Decimal | None = None
    timeframe: str
    status: str
    reward_tokens: int
    created_at: datetime
    resolvable_at: datetime | None = None
    resolved_at: datetime | None = None
    request_id: str | None = None

    @classmethod
    def from_domain(cls, prediction: Prediction) -> "PredictionEnvelope":
        return cls(
            id=prediction.id,
            account_id=prediction.account_id,
            asset=str(prediction.asset),
            direction=str(prediction.direction),
            confidence=prediction.confidence,
            entry_price=prediction.entry_price,
            target_price=prediction.target_price,
            timeframe=str(prediction.timeframe),
            status=str(prediction.status),
            reward_tokens=prediction.reward_tokens,
            created_at=prediction.created_at,
            resolvable_at=prediction.resolvable_at,
            resolved_at=prediction.resolved_at,
            request_id=prediction.request_id,
        )


class ResolutionEnvelope(BaseModel):
    prediction: PredictionEnvelope
    already_resolved: bool = False


class TradeEnvelope(BaseModel):
    id: str
    account_id: str
    asset: str
    side: str
    amount: Decimal
    price: Decimal
    total_shm: Decimal
    status: str
    tx_hash: str | None = None
    request_id: str | None = None
    created_at: datetime

    @classmethod
    def from_domain(cls, trade: Trade) -> "TradeEnvelope":
        return cls(
            id=trade.id,
            account_id=trade.account_id,
            asset=str(trade.asset),
            side=str(trade.side),
            amount=trade.amount,
            price=trade.price,
            total_shm=trade.total_shm,
            status=str(trade.status),
            tx_hash=trade.tx_hash,
            request_id=trade.request_id,
            created_at=trade.created_at,
        )


class PortfolioEnvelope(BaseModel):
    wallet_address: str
    shm_tokens: Decimal
    holdings: dict[str, Decimal]
    prices: dict[str, Decimal]
    portfolio_value: Decimal
    total_invested: Decimal
    pnl: Decimal
    pnl_percent: Decimal

    @classmethod
    def from_domain(
        cls,
        account: UserAccount,
        snapshot: PortfolioSnapshot,
        prices: dict[str, Decimal],
        decimals: int,
    ) -> "PortfolioEnvelope":
        return cls(
            wallet_address=account.wallet_address,
            shm_tokens=quantize(account.shm_tokens, decimals),
            holdings={asset: quantize(amount, decimals) for asset, amount in snapshot.holdings.items()},
            prices=prices,
            portfolio_value=quantize(snapshot.portfolio_value, decimals),
            total_invested=quantize(snapshot.total_invested, decimals),
            pnl=quantize(snapshot.pnl, decimals),
            pnl_percent=quantize(snapshot.pnl_percent, 2),
        )


class PricePointEnvelope(BaseModel):
    timestamp: datetime
    prices: dict[str, Decimal]
    synthetic: bool = False

    @classmethod
    def from_domain(cls, point: PricePoint) -> "PricePointEnvelope":
        return cls(timestamp=point.timestamp, prices=dict(point.prices), synthetic=point.synthetic)


class ErrorEnvelope(BaseModel):
    error: str
    detail: str
    retryable: bool = False
