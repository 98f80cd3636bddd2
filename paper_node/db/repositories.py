from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterator

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from paper_node.db.tables import AccountRow, PredictionRow, TradeRow
from paper_node.entities.account import UserAccount
from paper_node.entities.prediction import Asset, Direction, Prediction, PredictionStatus, Timeframe
from paper_node.entities.trade import Trade, TradeSide, TradeStatus
from paper_node.errors import CollaboratorUnavailableError, ConcurrencyConflictError, NotFoundError
from paper_node.services.interfaces.ledger_store import LedgerStore

logger = logging.getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is written in UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class DBLedgerStore(LedgerStore):
    def __init__(self, session: Session):
        self._session = session

    def rollback(self) -> None:
        self._session.rollback()

    def close(self) -> None:
        self._session.close()

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[None]:
        try:
            yield
            self._session.commit()
        except (ConcurrencyConflictError, NotFoundError):
            self._session.rollback()
            raise
        except IntegrityError as exc:
            self._session.rollback()
            raise ConcurrencyConflictError(f"{operation} collided with an existing record: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.warning("ledger store %s failed: %s", operation, exc)
            raise CollaboratorUnavailableError(f"ledger store unavailable during {operation}") from exc

    @contextmanager
    def _read(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.warning("ledger store %s failed: %s", operation, exc)
            raise CollaboratorUnavailableError(f"ledger store unavailable during {operation}") from exc

    # ── accounts ──

    def get_account(self, wallet_address: str) -> UserAccount | None:
        with self._read("get_account"):
            row = self._session.exec(
                select(AccountRow)
                .where(AccountRow.wallet_address == wallet_address)
                .execution_options(populate_existing=True)
            ).first()
            return self._account_to_domain(row) if row else None

    def get_account_by_id(self, account_id: str) -> UserAccount | None:
        with self._read("get_account_by_id"):
            row = self._session.exec(
                select(AccountRow)
                .where(AccountRow.id == account_id)
                .execution_options(populate_existing=True)
            ).first()
            return self._account_to_domain(row) if row else None

    def create_account(self, wallet_address: str, starting_balance: Decimal) -> UserAccount:
        existing = self.get_account(wallet_address)
        if existing is not None:
            return existing

        account = UserAccount.create(wallet_address, starting_balance)
        try:
            with self._transaction("create_account"):
                self._session.add(self._account_to_row(account))
        except ConcurrencyConflictError:
            # Lost a race against another connect for the same address.
            existing = self.get_account(wallet_address)
            if existing is None:
                raise
            return existing

        return self.get_account(wallet_address)

    def update_account(self, account: UserAccount) -> UserAccount:
        with self._transaction("update_account"):
            self._write_account(account)
        return self.get_account_by_id(account.id)

    def _write_account(self, account: UserAccount) -> None:
        result = self._session.exec(
            update(AccountRow)
            .where(AccountRow.id == account.id)
            .where(AccountRow.version == account.version)
            .values(
                shm_tokens=account.shm_tokens,
                prediction_streak=account.prediction_streak,
                total_predictions=account.total_predictions,
                correct_predictions=account.correct_predictions,
                version=account.version + 1,
                updated_at=account.updated_at,
            )
        )
        if result.rowcount == 1:
            return

        exists = self._session.exec(select(AccountRow.id).where(AccountRow.id == account.id)).first()
        if exists is None:
            raise NotFoundError(f"account {account.id} not found")
        raise ConcurrencyConflictError(f"account {account.id} changed since version {account.version}")

    # ── predictions ──

    def append_prediction(self, prediction: Prediction, account: UserAccount | None = None) -> Prediction:
        with self._transaction("append_prediction"):
            self._session.add(self._prediction_to_row(prediction))
            self._session.flush()
            if account is not None:
                self._write_account(account)
        return self.get_prediction(prediction.id)

    def update_prediction(
        self,
        prediction_id: str,
        fields: dict[str, Any],
        *,
        expected_status: PredictionStatus | None = None,
        account: UserAccount | None = None,
    ) -> Prediction:
        with self._transaction("update_prediction"):
            stmt = update(PredictionRow).where(PredictionRow.id == prediction_id)
            if expected_status is not None:
                stmt = stmt.where(PredictionRow.status == str(expected_status))

            result = self._session.exec(stmt.values(**fields))
            if result.rowcount != 1:
                row = self._session.get(PredictionRow, prediction_id)
                if row is None:
                    raise NotFoundError(f"prediction {prediction_id} not found")
                raise ConcurrencyConflictError(
                    f"prediction {prediction_id} is {row.status}, expected {expected_status}"
                )

            if account is not None:
                self._write_account(account)
        return self.get_prediction(prediction_id)

    def get_prediction(self, prediction_id: str) -> Prediction | None:
        with self._read("get_prediction"):
            row = self._session.exec(
                select(PredictionRow)
                .where(PredictionRow.id == prediction_id)
                .execution_options(populate_existing=True)
            ).first()
            return self._prediction_to_domain(row) if row else None

    def find_pending_predictions(self, resolvable_before: datetime, limit: int | None = None) -> list[Prediction]:
        stmt = (
            select(PredictionRow)
            .where(PredictionRow.status == str(PredictionStatus.PENDING))
            .where(PredictionRow.resolvable_at <= resolvable_before)
            .order_by(PredictionRow.resolvable_at.asc())
            .execution_options(populate_existing=True)
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        with self._read("find_pending_predictions"):
            rows = self._session.exec(stmt).all()
            return [self._prediction_to_domain(row) for row in rows]

    def find_prediction_by_request(self, account_id: str, request_id: str) -> Prediction | None:
        with self._read("find_prediction_by_request"):
            row = self._session.exec(
                select(PredictionRow)
                .where(PredictionRow.account_id == account_id)
                .where(PredictionRow.request_id == request_id)
            ).first()
            return self._prediction_to_domain(row) if row else None

    def list_predictions(self, account_id: str, limit: int | None = None) -> list[Prediction]:
        stmt = (
            select(PredictionRow)
            .where(PredictionRow.account_id == account_id)
            .order_by(PredictionRow.created_at.desc())
            .execution_options(populate_existing=True)
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        with self._read("list_predictions"):
            return [self._prediction_to_domain(row) for row in self._session.exec(stmt).all()]

    # ── trades ──

    def append_trade(self, trade: Trade, account: UserAccount | None = None) -> Trade:
        with self._transaction("append_trade"):
            self._session.add(self._trade_to_row(trade))
            self._session.flush()
            if account is not None:
                self._write_account(account)
        return self._get_trade(trade.id)

    def _get_trade(self, trade_id: str) -> Trade:
        with self._read("get_trade"):
            row = self._session.exec(
                select(TradeRow)
                .where(TradeRow.id == trade_id)
                .execution_options(populate_existing=True)
            ).one()
            return self._trade_to_domain(row)

    def find_trade_by_request(self, account_id: str, request_id: str) -> Trade | None:
        with self._read("find_trade_by_request"):
            row = self._session.exec(
                select(TradeRow)
                .where(TradeRow.account_id == account_id)
                .where(TradeRow.request_id == request_id)
            ).first()
            return self._trade_to_domain(row) if row else None

    def list_trades(self, account_id: str, limit: int | None = None) -> list[Trade]:
        stmt = (
            select(TradeRow)
            .where(TradeRow.account_id == account_id)
            .order_by(TradeRow.created_at.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        with self._read("list_trades"):
            return [self._trade_to_domain(row) for row in self._session.exec(stmt).all()]

    # ── mapping ──

    @staticmethod
    def _account_to_row(account: UserAccount) -> AccountRow:
        return AccountRow(
            id=account.id,
            wallet_address=account.wallet_address,
            shm_tokens=account.shm_tokens,
            prediction_streak=account.prediction_streak,
            total_predictions=account.total_predictions,
            correct_predictions=account.correct_predictions,
            version=account.version,
            created_at=account.created_at,
            updated_at=account.updated_at,
        )

    @staticmethod
    def _account_to_domain(row: AccountRow) -> UserAccount:
        return UserAccount(
            id=row.id,
            wallet_address=row.wallet_address,
            shm_tokens=Decimal(row.shm_tokens),
            prediction_streak=row.prediction_streak,
            total_predictions=row.total_predictions,
            correct_predictions=row.correct_predictions,
            version=row.version,
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
        )

    @staticmethod
    def _prediction_to_row(prediction: Prediction) -> PredictionRow:
        return PredictionRow(
            id=prediction.id,
            account_id=prediction.account_id,
            asset=str(prediction.asset),
            direction=str(prediction.direction),
            confidence=prediction.confidence,
            entry_price=prediction.entry_price,
            target_price=prediction.target_price,
            timeframe=str(prediction.timeframe),
            reward_tokens=prediction.reward_tokens,
            status=str(prediction.status),
            request_id=prediction.request_id,
            created_at=prediction.created_at,
            resolvable_at=prediction.resolvable_at or prediction.created_at,
            resolved_at=prediction.resolved_at,
        )

    @staticmethod
    def _prediction_to_domain(row: PredictionRow) -> Prediction:
        return Prediction(
            id=row.id,
            account_id=row.account_id,
            asset=Asset(row.asset),
            direction=Direction(row.direction),
            confidence=row.confidence,
            entry_price=Decimal(row.entry_price),
            target_price=Decimal(row.target_price) if row.target_price is not None else None,
            timeframe=Timeframe(row.timeframe),
            reward_tokens=row.reward_tokens,
            status=PredictionStatus(row.status),
            request_id=row.request_id,
            created_at=_as_utc(row.created_at),
            resolvable_at=_as_utc(row.resolvable_at),
            resolved_at=_as_utc(row.resolved_at),
        )

    @staticmethod
    def _trade_to_row(trade: Trade) -> TradeRow:
        return TradeRow(
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

    @staticmethod
    def _trade_to_domain(row: TradeRow) -> Trade:
        return Trade(
            id=row.id,
            account_id=row.account_id,
            asset=Asset(row.asset),
            side=TradeSide(row.side),
            amount=Decimal(row.amount),
            price=Decimal(row.price),
            total_shm=Decimal(row.total_shm),
            status=TradeStatus(row.status),
            tx_hash=row.tx_hash,
            request_id=row.request_id,
            created_at=_as_utc(row.created_at),
        )
