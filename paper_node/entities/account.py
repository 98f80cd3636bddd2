from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal

from paper_node.errors import ValidationError

_WALLET_ADDRESS = re.compile(r"^0x[0-9a-f]{40}$")


def normalize_wallet_address(address: str) -> str:
    if not isinstance(address, str):
        raise ValidationError(f"wallet address must be a string, got {address!r}")

    normalized = address.strip().lower()
    if not _WALLET_ADDRESS.match(normalized):
        raise ValidationError(f"invalid wallet address: {address!r}")
    return normalized


@dataclass
class UserAccount:
    """Authoritative per-wallet record. `version` backs the optimistic write check."""
    id: str
    wallet_address: str
    shm_tokens: Decimal
    prediction_streak: int = 0
    total_predictions: int = 0
    correct_predictions: int = 0
    version: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @staticmethod
    def generate_id(wallet_address: str) -> str:
        return f"ACC_{wallet_address}"

    @staticmethod
    def create(wallet_address: str, starting_balance: Decimal, created_at: datetime | None = None) -> "UserAccount":
        created_at = created_at or datetime.now(timezone.utc)
        return UserAccount(
            id=UserAccount.generate_id(wallet_address),
            wallet_address=wallet_address,
            shm_tokens=starting_balance,
            created_at=created_at,
            updated_at=created_at,
        )

    @property
    def accuracy(self) -> float:
        if self.total_predictions <= 0:
            return 0.0
        return self.correct_predictions / self.total_predictions * 100

    def with_prediction_recorded(self, now: datetime) -> "UserAccount":
        return replace(self, total_predictions=self.total_predictions + 1, updated_at=now)

    def with_prediction_won(self, reward_tokens: int, now: datetime) -> "UserAccount":
        return replace(
            self,
            shm_tokens=self.shm_tokens + reward_tokens,
            correct_predictions=self.correct_predictions + 1,
            prediction_streak=self.prediction_streak + 1,
            updated_at=now,
        )

    def with_prediction_lost(self, now: datetime) -> "UserAccount":
        return replace(self, prediction_streak=0, updated_at=now)

    def with_balance_delta(self, delta: Decimal, now: datetime) -> "UserAccount":
        return replace(self, shm_tokens=self.shm_tokens + delta, updated_at=now)
