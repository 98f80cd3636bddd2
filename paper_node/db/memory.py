from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any

from paper_node.entities.account import UserAccount
from paper_node.entities.prediction import Prediction, PredictionStatus
from paper_node.entities.trade import Trade
from paper_node.errors import ConcurrencyConflictError, NotFoundError
from paper_node.services.interfaces.ledger_store import LedgerStore


class InMemoryLedgerStore(LedgerStore):
    """Process-local ledger. Records are copied in and out so callers never alias stored state."""

    def __init__(self):
        self._lock = threading.Lock()
        self._accounts: dict[str, UserAccount] = {}
        self._predictions: dict[str, Prediction] = {}
        self._trades: dict[str, Trade] = {}

    # ── accounts ──

    def get_account(self, wallet_address: str) -> UserAccount | None:
        with self._lock:
            account = self._accounts.get(UserAccount.generate_id(wallet_address))
            return replace(account) if account else None

    def get_account_by_id(self, account_id: str) -> UserAccount | None:
        with self._lock:
            account = self._accounts.get(account_id)
            return replace(account) if account else None

    def create_account(self, wallet_address: str, starting_balance: Decimal) -> UserAccount:
        with self._lock:
            account_id = UserAccount.generate_id(wallet_address)
            existing = self._accounts.get(account_id)
            if existing is not None:
                return replace(existing)

            account = UserAccount.create(wallet_address, starting_balance)
            self._accounts[account_id] = account
            return replace(account)

    def update_account(self, account: UserAccount) -> UserAccount:
        with self._lock:
            return replace(self._write_account(account))

    def _write_account(self, account: UserAccount) -> UserAccount:
        stored = self._accounts.get(account.id)
        if stored is None:
            raise NotFoundError(f"account {account.id} not found")
        if stored.version != account.version:
            raise ConcurrencyConflictError(
                f"account {account.id} changed (expected version {account.version}, found {stored.version})"
            )
        written = replace(account, version=account.version + 1)
        self._accounts[account.id] = written
        return written

    def _check_account(self, account: UserAccount | None) -> None:
        if account is None:
            return
        stored = self._accounts.get(account.id)
        if stored is None:
            raise NotFoundError(f"account {account.id} not found")
        if stored.version != account.version:
            raise ConcurrencyConflictError(
                f"account {account.id} changed (expected version {account.version}, found {stored.version})"
            )

    # ── predictions ──

    def append_prediction(self, prediction: Prediction, account: UserAccount | None = None) -> Prediction:
        with self._lock:
            self._check_account(account)
            if prediction.id in self._predictions:
                raise ConcurrencyConflictError(f"prediction {prediction.id} already exists")

            self._predictions[prediction.id] = replace(prediction)
            if account is not None:
                self._write_account(account)
            return replace(prediction)

    def update_prediction(
        self,
        prediction_id: str,
        fields: dict[str, Any],
        *,
        expected_status: PredictionStatus | None = None,
        account: UserAccount | None = None,
    ) -> Prediction:
        with self._lock:
            stored = self._predictions.get(prediction_id)
            if stored is None:
                raise NotFoundError(f"prediction {prediction_id} not found")
            if expected_status is not None and stored.status != expected_status:
                raise ConcurrencyConflictError(
                    f"prediction {prediction_id} is {stored.status}, expected {expected_status}"
                )
            self._check_account(account)

            updated = replace(stored, **fields)
            self._predictions[prediction_id] = updated
            if account is not None:
                self._write_account(account)
            return replace(updated)

    def get_prediction(self, prediction_id: str) -> Prediction | None:
        with self._lock:
            prediction = self._predictions.get(prediction_id)
            return replace(prediction) if prediction else None

    def find_pending_predictions(self, resolvable_before: datetime, limit: int | None = None) -> list[Prediction]:
        with self._lock:
            pending = [
                replace(p) for p in self._predictions.values()
                if p.status == PredictionStatus.PENDING
                and (p.resolvable_at or p.created_at) <= resolvable_before
            ]
        pending.sort(key=lambda p: p.resolvable_at or p.created_at)
        return pending[:limit] if limit else pending

    def find_prediction_by_request(self, account_id: str, request_id: str) -> Prediction | None:
        with self._lock:
            for prediction in self._predictions.values():
                if prediction.account_id == account_id and prediction.request_id == request_id:
                    return replace(prediction)
        return None

    def list_predictions(self, account_id: str, limit: int | None = None) -> list[Prediction]:
        with self._lock:
            predictions = [replace(p) for p in self._predictions.values() if p.account_id == account_id]
        predictions.sort(key=lambda p: p.created_at, reverse=True)
        return predictions[:limit] if limit else predictions

    # ── trades ──

    def append_trade(self, trade: Trade, account: UserAccount | None = None) -> Trade:
        with self._lock:
            self._check_account(account)
            if trade.id in self._trades:
                raise ConcurrencyConflictError(f"trade {trade.id} already exists")

            self._trades[trade.id] = replace(trade)
            if account is not None:
                self._write_account(account)
            return replace(trade)

    def find_trade_by_request(self, account_id: str, request_id: str) -> Trade | None:
        with self._lock:
            for trade in self._trades.values():
                if trade.account_id == account_id and trade.request_id == request_id:
                    return replace(trade)
        return None

    def list_trades(self, account_id: str, limit: int | None = None) -> list[Trade]:
        with self._lock:
            trades = [replace(t) for t in self._trades.values() if t.account_id == account_id]
        trades.sort(key=lambda t: t.created_at, reverse=True)
        return trades[:limit] if limit else trades

    def clear(self) -> None:
        """Clear everything (only for testing)."""
        with self._lock:
            self._accounts.clear()
            self._predictions.clear()
            self._trades.clear()
