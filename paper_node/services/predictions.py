"""Prediction lifecycle: create → PENDING → WON | LOST, with reward crediting and the maturity sweep."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from paper_node.entities.numeric import ZERO, check_places, to_decimal
from paper_node.entities.prediction import (
    Asset, Direction, Prediction, PredictionStatus, Timeframe, parse_label,
)
from paper_node.errors import AlreadyResolvedError, NotFoundError, ValidationError
from paper_node.services.accounts import AccountService
from paper_node.services.interfaces.ledger_store import LedgerStore
from paper_node.services.interfaces.outcome_oracle import OutcomeOracle
from paper_node.services.interfaces.price_feed import PriceFeed


class PredictionLifecycleService:
    def __init__(
        self,
        ledger_store: LedgerStore,
        account_service: AccountService,
        price_feed: PriceFeed | None = None,
        outcome_oracle: OutcomeOracle | None = None,
        min_confidence: int = 50,
        max_confidence: int = 100,
        maturity_seconds: int = 360,
        maturity_from_timeframe: bool = False,
        sweep_interval_seconds: int = 30,
        sweep_batch_size: int | None = None,
        **kwargs: Any,
    ):
        if min_confidence > max_confidence:
            raise ValueError(f"min_confidence {min_confidence} exceeds max_confidence {max_confidence}")

        self.ledger_store = ledger_store
        self.account_service = account_service
        self.price_feed = price_feed
        self.outcome_oracle = outcome_oracle
        self.min_confidence = min_confidence
        self.max_confidence = max_confidence
        self.maturity_seconds = maturity_seconds
        self.maturity_from_timeframe = maturity_from_timeframe
        self.sweep_interval_seconds = sweep_interval_seconds
        self.sweep_batch_size = sweep_batch_size

        self.logger = logging.getLogger(__name__)
        self.stop_event = asyncio.Event()

    # ── create ──

    def create(
        self,
        wallet_address: str,
        asset: Asset | str,
        direction: Direction | str,
        confidence: int,
        timeframe: Timeframe | str,
        entry_price: Decimal | None = None,
        target_price: Decimal | None = None,
        request_id: str | None = None,
        now: datetime | None = None,
    ) -> Prediction:
        asset = parse_label(Asset, asset, "asset")
        direction = parse_label(Direction, direction, "direction")
        timeframe = parse_label(Timeframe, timeframe, "timeframe")
        confidence = self._validate_confidence(confidence)
        entry_price = self._entry_price(asset, entry_price)
        if target_price is not None:
            target_price = check_places(to_decimal(target_price, "target_price"), "target_price")
            if target_price <= ZERO:
                raise ValidationError(f"target_price must be positive, got {target_price}")

        # Surfaces NotFound before any write.
        self.account_service.get(wallet_address)
        maturity = timeframe.seconds if self.maturity_from_timeframe else self.maturity_seconds

        def attempt() -> Prediction:
            account = self.account_service.get(wallet_address)
            if request_id:
                existing = self.ledger_store.find_prediction_by_request(account.id, request_id)
                if existing is not None:
                    self.logger.info("prediction request %s replayed, returning %s", request_id, existing.id)
                    return existing

            created_at = now or datetime.now(timezone.utc)
            prediction = Prediction.create(
                account_id=account.id,
                asset=asset,
                direction=direction,
                confidence=confidence,
                entry_price=entry_price,
                timeframe=timeframe,
                maturity_seconds=maturity,
                created_at=created_at,
                target_price=target_price,
                request_id=request_id,
            )
            return self.ledger_store.append_prediction(
                prediction,
                account=account.with_prediction_recorded(created_at),
            )

        prediction = self.account_service.run_with_retries(attempt)
        self.logger.debug(
            "prediction %s %s %s conf=%d reward=%d",
            prediction.id, prediction.asset, prediction.direction, prediction.confidence, prediction.reward_tokens,
        )
        return prediction

    def _validate_confidence(self, confidence) -> int:
        if isinstance(confidence, bool) or not isinstance(confidence, int):
            raise ValidationError(f"confidence must be an integer, got {confidence!r}")
        if not self.min_confidence <= confidence <= self.max_confidence:
            raise ValidationError(
                f"confidence must be within [{self.min_confidence}, {self.max_confidence}], got {confidence}"
            )
        return confidence

    def _entry_price(self, asset: Asset, entry_price) -> Decimal:
        if entry_price is None:
            if self.price_feed is None:
                raise ValidationError("entry_price is required when no price feed is configured")
            entry_price = self.price_feed.current_price(asset)
        entry_price = check_places(to_decimal(entry_price, "entry_price"), "entry_price")
        if entry_price <= ZERO:
            raise ValidationError(f"entry_price must be positive, got {entry_price}")
        return entry_price

    # ── resolve ──

    def resolve(self, prediction_id: str, won: bool, now: datetime | None = None) -> Prediction:
        """Move a PENDING prediction to WON or LOST and settle the account in the same write.

        A terminal prediction raises ``AlreadyResolvedError`` carrying the stored
        record; nothing is mutated in that case.
        """
        if not isinstance(won, bool):
            raise ValidationError(f"outcome must be a boolean, got {won!r}")

        def attempt() -> Prediction:
            prediction = self.ledger_store.get_prediction(prediction_id)
            if prediction is None:
                raise NotFoundError(f"prediction {prediction_id} not found")
            if prediction.is_terminal:
                raise AlreadyResolvedError(prediction)

            account = self.account_service.get_by_id(prediction.account_id)
            resolved_at = now or datetime.now(timezone.utc)
            resolved = prediction.resolved(won, resolved_at)
            if won:
                account = account.with_prediction_won(prediction.reward_tokens, resolved_at)
            else:
                account = account.with_prediction_lost(resolved_at)

            return self.ledger_store.update_prediction(
                prediction.id,
                {"status": resolved.status, "resolved_at": resolved.resolved_at},
                expected_status=PredictionStatus.PENDING,
                account=account,
            )

        resolved = self.account_service.run_with_retries(attempt)
        self.logger.info(
            "prediction %s resolved %s (reward=%d)",
            resolved.id, resolved.status,
            resolved.reward_tokens if resolved.status == PredictionStatus.WON else 0,
        )
        return resolved

    # ── sweep ──

    async def run(self) -> None:
        self.logger.info(
            "resolution sweep started (interval=%ds, maturity=%s)",
            self.sweep_interval_seconds,
            "per-timeframe" if self.maturity_from_timeframe else f"{self.maturity_seconds}s",
        )
        while not self.stop_event.is_set():
            try:
                self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self.logger.exception("resolution loop error: %s", exc)
                self.ledger_store.rollback()
            try:
                await asyncio.wait_for(self.stop_event.wait(), timeout=self.sweep_interval_seconds)
            except asyncio.TimeoutError:
                pass

    def run_once(self, now: datetime | None = None) -> list[Prediction]:
        if self.outcome_oracle is None:
            raise RuntimeError("resolution sweep needs an outcome oracle")

        now = now or datetime.now(timezone.utc)
        matured = self.ledger_store.find_pending_predictions(resolvable_before=now, limit=self.sweep_batch_size)
        if not matured:
            return []

        resolved: list[Prediction] = []
        for prediction in matured:
            try:
                won = self.outcome_oracle.judge(prediction)
                resolved.append(self.resolve(prediction.id, won, now=now))
            except AlreadyResolvedError as exc:
                self.logger.info("skipping %s: %s", prediction.id, exc)
            except Exception as exc:
                self.logger.exception("failed to resolve prediction %s: %s", prediction.id, exc)
                self.ledger_store.rollback()

        self.logger.info("Resolved %d of %d matured predictions", len(resolved), len(matured))
        return resolved

    async def shutdown(self) -> None:
        self.stop_event.set()

    # ── reads ──

    def list_for(self, wallet_address: str, limit: int | None = None) -> list[Prediction]:
        account = self.account_service.get(wallet_address)
        return self.ledger_store.list_predictions(account.id, limit=limit)
