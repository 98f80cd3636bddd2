from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any

from paper_node.entities.account import UserAccount
from paper_node.entities.prediction import Prediction, PredictionStatus
from paper_node.entities.trade import Trade


class LedgerStore(ABC):
    """Durable store for accounts, predictions and trades.

    Every method that takes an ``account`` writes it in the same transaction as
    the record it appends or updates. Account writes are optimistic: the stored
    version must still equal ``account.version`` or ``ConcurrencyConflictError``
    is raised and nothing is applied. On success the stored version is bumped.
    """

    # ── accounts ──

    @abstractmethod
    def get_account(self, wallet_address: str) -> UserAccount | None:
        raise NotImplementedError

    @abstractmethod
    def get_account_by_id(self, account_id: str) -> UserAccount | None:
        raise NotImplementedError

    @abstractmethod
    def create_account(self, wallet_address: str, starting_balance: Decimal) -> UserAccount:
        """Idempotent: an existing address returns the stored record untouched."""
        raise NotImplementedError

    @abstractmethod
    def update_account(self, account: UserAccount) -> UserAccount:
        raise NotImplementedError

    # ── predictions ──

    @abstractmethod
    def append_prediction(self, prediction: Prediction, account: UserAccount | None = None) -> Prediction:
        raise NotImplementedError

    @abstractmethod
    def update_prediction(
        self,
        prediction_id: str,
        fields: dict[str, Any],
        *,
        expected_status: PredictionStatus | None = None,
        account: UserAccount | None = None,
    ) -> Prediction:
        """Apply ``fields``; with ``expected_status`` the update is conditional on it."""
        raise NotImplementedError

    @abstractmethod
    def get_prediction(self, prediction_id: str) -> Prediction | None:
        raise NotImplementedError

    @abstractmethod
    def find_pending_predictions(self, resolvable_before: datetime, limit: int | None = None) -> list[Prediction]:
        raise NotImplementedError

    @abstractmethod
    def find_prediction_by_request(self, account_id: str, request_id: str) -> Prediction | None:
        raise NotImplementedError

    @abstractmethod
    def list_predictions(self, account_id: str, limit: int | None = None) -> list[Prediction]:
        """Newest first."""
        raise NotImplementedError

    # ── trades ──

    @abstractmethod
    def append_trade(self, trade: Trade, account: UserAccount | None = None) -> Trade:
        raise NotImplementedError

    @abstractmethod
    def find_trade_by_request(self, account_id: str, request_id: str) -> Trade | None:
        raise NotImplementedError

    @abstractmethod
    def list_trades(self, account_id: str, limit: int | None = None) -> list[Trade]:
        """Newest first."""
        raise NotImplementedError

    def rollback(self) -> None:
        pass

    def close(self) -> None:
        pass
