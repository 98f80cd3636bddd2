from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
import os


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_optional_int(name: str) -> int | None:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else None


@dataclass(frozen=True)
class RuntimeSettings:
    starting_balance: Decimal
    min_confidence: int
    max_confidence: int
    prediction_maturity_seconds: int
    maturity_from_timeframe: bool
    resolution_sweep_interval_seconds: int
    resolution_batch_size: int | None
    max_conflict_retries: int
    price_poll_interval_seconds: int
    price_history_size: int
    price_feed_provider: str
    price_feed_timeout_seconds: float
    display_decimals: int
    ledger_store: str
    node_name: str

    @classmethod
    def from_env(cls) -> "RuntimeSettings":
        return cls(
            starting_balance=Decimal(os.getenv("STARTING_BALANCE", "100")),
            min_confidence=int(os.getenv("MIN_CONFIDENCE", "50")),
            max_confidence=int(os.getenv("MAX_CONFIDENCE", "100")),
            prediction_maturity_seconds=int(os.getenv("PREDICTION_MATURITY_SECONDS", "360")),
            maturity_from_timeframe=_env_bool("MATURITY_FROM_TIMEFRAME", "false"),
            resolution_sweep_interval_seconds=int(os.getenv("RESOLUTION_SWEEP_INTERVAL_SECONDS", "30")),
            resolution_batch_size=_env_optional_int("RESOLUTION_BATCH_SIZE"),
            max_conflict_retries=int(os.getenv("MAX_CONFLICT_RETRIES", "3")),
            price_poll_interval_seconds=int(os.getenv("PRICE_POLL_INTERVAL_SECONDS", "30")),
            price_history_size=int(os.getenv("PRICE_HISTORY_SIZE", "100")),
            price_feed_provider=os.getenv("PRICE_FEED_PROVIDER", "binance"),
            price_feed_timeout_seconds=float(os.getenv("PRICE_FEED_TIMEOUT_SECONDS", "8")),
            display_decimals=int(os.getenv("DISPLAY_DECIMALS", "6")),
            ledger_store=os.getenv("LEDGER_STORE", "db"),
            node_name=os.getenv("NODE_NAME", "shm-paper-node"),
        )
