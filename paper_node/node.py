"""Wiring: settings → ledger store, price feed, oracle → services."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from paper_node.config.extensions import ExtensionSettings
from paper_node.config.runtime import RuntimeSettings
from paper_node.db import DBLedgerStore, InMemoryLedgerStore, create_session
from paper_node.extensions.callable_resolver import resolve_callable
from paper_node.feeds import RollingPriceFeed, create_provider
from paper_node.services.accounts import AccountService
from paper_node.services.interfaces.ledger_store import LedgerStore
from paper_node.services.interfaces.outcome_oracle import OutcomeOracle
from paper_node.services.interfaces.price_feed import PriceFeed
from paper_node.services.predictions import PredictionLifecycleService
from paper_node.services.trading import TradeExecutionService

logger = logging.getLogger(__name__)

LedgerStoreFactory = Callable[[], LedgerStore]


@dataclass
class PaperNode:
    settings: RuntimeSettings
    price_feed: PriceFeed
    outcome_oracle: OutcomeOracle
    ledger_store_factory: LedgerStoreFactory

    def open_ledger_store(self) -> LedgerStore:
        return self.ledger_store_factory()

    def account_service(self, ledger_store: LedgerStore) -> AccountService:
        return AccountService(
            ledger_store,
            starting_balance=self.settings.starting_balance,
            max_conflict_retries=self.settings.max_conflict_retries,
        )

    def prediction_service(self, ledger_store: LedgerStore) -> PredictionLifecycleService:
        return PredictionLifecycleService(
            ledger_store=ledger_store,
            account_service=self.account_service(ledger_store),
            price_feed=self.price_feed,
            outcome_oracle=self.outcome_oracle,
            min_confidence=self.settings.min_confidence,
            max_confidence=self.settings.max_confidence,
            maturity_seconds=self.settings.prediction_maturity_seconds,
            maturity_from_timeframe=self.settings.maturity_from_timeframe,
            sweep_interval_seconds=self.settings.resolution_sweep_interval_seconds,
            sweep_batch_size=self.settings.resolution_batch_size,
        )

    def trade_service(self, ledger_store: LedgerStore) -> TradeExecutionService:
        return TradeExecutionService(
            ledger_store=ledger_store,
            account_service=self.account_service(ledger_store),
            price_feed=self.price_feed,
        )


def _ledger_store_factory(kind: str) -> LedgerStoreFactory:
    kind = kind.strip().lower()
    if kind == "memory":
        shared = InMemoryLedgerStore()
        return lambda: shared
    if kind == "db":
        return lambda: DBLedgerStore(create_session())
    raise ValueError(f"Unknown LEDGER_STORE '{kind}'. Expected 'db' or 'memory'.")


def build_node(
    settings: RuntimeSettings | None = None,
    extension_settings: ExtensionSettings | None = None,
    ledger_store: LedgerStore | None = None,
    price_feed: PriceFeed | None = None,
    outcome_oracle: OutcomeOracle | None = None,
) -> PaperNode:
    settings = settings or RuntimeSettings.from_env()
    extension_settings = extension_settings or ExtensionSettings.from_env()

    if price_feed is None:
        price_feed = RollingPriceFeed(
            provider=create_provider(settings.price_feed_provider, timeout_seconds=settings.price_feed_timeout_seconds),
            history_size=settings.price_history_size,
        )

    if outcome_oracle is None:
        oracle_factory = resolve_callable(extension_settings.outcome_oracle, required_params=("price_feed",))
        outcome_oracle = oracle_factory(price_feed, extension_settings)

    if ledger_store is not None:
        factory: LedgerStoreFactory = lambda: ledger_store
    else:
        factory = _ledger_store_factory(settings.ledger_store)

    logger.info(
        "node %s wired (store=%s, oracle=%s)",
        settings.node_name,
        type(ledger_store).__name__ if ledger_store is not None else settings.ledger_store,
        type(outcome_oracle).__name__,
    )
    return PaperNode(
        settings=settings,
        price_feed=price_feed,
        outcome_oracle=outcome_oracle,
        ledger_store_factory=factory,
    )
