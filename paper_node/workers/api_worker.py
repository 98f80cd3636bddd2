from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Annotated, Any, AsyncIterator, Generator

import uvicorn
from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from paper_node.entities.prediction import Asset
from paper_node.errors import (
    AlreadyResolvedError,
    CollaboratorUnavailableError,
    ConcurrencyConflictError,
    InsufficientFundsError,
    InsufficientHoldingsError,
    NotFoundError,
    PaperTradingError,
    ValidationError,
)
from paper_node.feeds import RollingPriceFeed
from paper_node.node import PaperNode, build_node
from paper_node.schemas import (
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
from paper_node.services.interfaces.ledger_store import LedgerStore

logger = logging.getLogger(__name__)

# first match wins, so subclasses go before their bases
_ERROR_STATUS: list[tuple[type[PaperTradingError], int]] = [
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InsufficientFundsError, status.HTTP_400_BAD_REQUEST),
    (InsufficientHoldingsError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConcurrencyConflictError, status.HTTP_409_CONFLICT),
    (CollaboratorUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
]

HISTORY_SEED_POINTS = 25


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        force=True,
    )


def get_node(request: Request) -> PaperNode:
    return request.app.state.node


def get_ledger_store(node: Annotated[PaperNode, Depends(get_node)]) -> Generator[LedgerStore, None, None]:
    store = node.open_ledger_store()
    try:
        yield store
    finally:
        store.close()


NodeDep = Annotated[PaperNode, Depends(get_node)]
StoreDep = Annotated[LedgerStore, Depends(get_ledger_store)]


def _error_response(exc: PaperTradingError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in _ERROR_STATUS if isinstance(exc, error_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    body = ErrorEnvelope(error=type(exc).__name__, detail=str(exc), retryable=exc.retryable)
    return JSONResponse(status_code=status_code, content=body.model_dump())


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    node: PaperNode = app.state.node
    feed = node.price_feed
    refresher: asyncio.Task | None = None

    if isinstance(feed, RollingPriceFeed):
        if not feed.recent_history():
            feed.seed_history(points=HISTORY_SEED_POINTS)
        refresher = asyncio.create_task(feed.run(node.settings.price_poll_interval_seconds))

    try:
        yield
    finally:
        if refresher is not None:
            await feed.shutdown()
            refresher.cancel()
            try:
                await refresher
            except asyncio.CancelledError:
                pass


def create_app(node: PaperNode | None = None) -> FastAPI:
    app = FastAPI(title="SHM Paper Trading Node", lifespan=_lifespan)
    app.state.node = node or build_node()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PaperTradingError)
    async def _handle_paper_trading_error(request: Request, exc: PaperTradingError) -> JSONResponse:
        if exc.retryable:
            logger.warning("%s %s failed (retryable): %s", request.method, request.url.path, exc)
        return _error_response(exc)

    @app.get("/healthz")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/info")
    def get_node_info(node: NodeDep) -> dict[str, Any]:
        settings = node.settings
        return {
            "node_name": settings.node_name,
            "assets": [asset.value for asset in Asset],
            "starting_balance": str(settings.starting_balance),
            "confidence_range": [settings.min_confidence, settings.max_confidence],
            "prediction_maturity_seconds": settings.prediction_maturity_seconds,
            "maturity_from_timeframe": settings.maturity_from_timeframe,
            "outcome_oracle": type(node.outcome_oracle).__name__,
        }

    # ── accounts ──

    @app.post("/accounts")
    def connect_account(body: ConnectAccountRequest, node: NodeDep, store: StoreDep) -> AccountEnvelope:
        account = node.account_service(store).connect(body.wallet_address)
        return AccountEnvelope.from_domain(account, node.settings.display_decimals)

    @app.get("/accounts/{address}")
    def get_account(address: str, node: NodeDep, store: StoreDep) -> AccountEnvelope:
        account = node.account_service(store).get(address)
        return AccountEnvelope.from_domain(account, node.settings.display_decimals)

    @app.get("/accounts/{address}/portfolio")
    def get_portfolio(address: str, node: NodeDep, store: StoreDep) -> PortfolioEnvelope:
        account = node.account_service(store).get(address)
        prices = node.price_feed.current_prices()
        snapshot = node.trade_service(store).portfolio(address, prices)
        return PortfolioEnvelope.from_domain(account, snapshot, prices, node.settings.display_decimals)

    # ── predictions ──

    @app.get("/accounts/{address}/predictions")
    def list_predictions(
        address: str,
        node: NodeDep,
        store: StoreDep,
        limit: int | None = Query(default=None, ge=1, le=500),
    ) -> list[PredictionEnvelope]:
        predictions = node.prediction_service(store).list_for(address, limit=limit)
        return [PredictionEnvelope.from_domain(p) for p in predictions]

    @app.post("/accounts/{address}/predictions", status_code=status.HTTP_201_CREATED)
    def create_prediction(
        address: str,
        body: CreatePredictionRequest,
        node: NodeDep,
        store: StoreDep,
    ) -> PredictionEnvelope:
        prediction = node.prediction_service(store).create(
            wallet_address=address,
            asset=body.asset,
            direction=body.direction,
            confidence=body.confidence,
            timeframe=body.timeframe,
            target_price=body.target_price,
            request_id=body.request_id,
        )
        return PredictionEnvelope.from_domain(prediction)

    @app.post("/predictions/{prediction_id}/resolve")
    def resolve_prediction(
        prediction_id: str,
        body: ResolvePredictionRequest,
        node: NodeDep,
        store: StoreDep,
    ) -> ResolutionEnvelope:
        try:
            prediction = node.prediction_service(store).resolve(prediction_id, body.won)
        except AlreadyResolvedError as exc:
            return ResolutionEnvelope(
                prediction=PredictionEnvelope.from_domain(exc.prediction),
                already_resolved=True,
            )
        return ResolutionEnvelope(prediction=PredictionEnvelope.from_domain(prediction))

    # ── trades ──

    @app.get("/accounts/{address}/trades")
    def list_trades(
        address: str,
        node: NodeDep,
        store: StoreDep,
        limit: int | None = Query(default=None, ge=1, le=500),
    ) -> list[TradeEnvelope]:
        trades = node.trade_service(store).list_for(address, limit=limit)
        return [TradeEnvelope.from_domain(t) for t in trades]

    @app.post("/accounts/{address}/trades", status_code=status.HTTP_201_CREATED)
    def execute_trade(
        address: str,
        body: ExecuteTradeRequest,
        node: NodeDep,
        store: StoreDep,
    ) -> TradeEnvelope:
        trade = node.trade_service(store).execute(
            wallet_address=address,
            asset=body.asset,
            side=body.side,
            amount=body.amount,
            tx_hash=body.tx_hash,
            request_id=body.request_id,
        )
        return TradeEnvelope.from_domain(trade)

    # ── prices ──

    @app.get("/prices")
    def get_prices(node: NodeDep) -> dict[str, Any]:
        return {"prices": {asset: str(price) for asset, price in node.price_feed.current_prices().items()}}

    @app.get("/prices/history")
    def get_price_history(node: NodeDep) -> list[PricePointEnvelope]:
        return [PricePointEnvelope.from_domain(point) for point in node.price_feed.recent_history()]

    return app


def main() -> None:
    configure_logging()
    logger.info("paper node api worker bootstrap")
    uvicorn.run("paper_node.workers.api_worker:create_app", factory=True, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
