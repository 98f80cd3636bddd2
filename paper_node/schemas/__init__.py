from paper_node.schemas.api import (
    AccountEnvelope,
    ConnectAccountRequest,
    CreatePredictionRequest,
    ErrorEnvelope,
    ExecuteTradeRequest,
    PortfolioEnvelope,
    PredictionEnvelope,
    PricePointEnvelope,
    ResolutionEnvelope,
    ResolvePredictionRequest,
    TradeEnvelope,
)

__all__ = [
    "AccountEnvelope",
    "ConnectAccountRequest",
    "CreatePredictionRequest",
    "ErrorEnvelope",
    "ExecuteTradeRequest",
    "PortfolioEnvelope",
    "PredictionEnvelope",
    "PricePointEnvelope",
    "ResolutionEnvelope",
    "ResolvePredictionRequest",
    "TradeEnvelope",
]
