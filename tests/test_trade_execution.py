from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from paper_node.db import tables  # noqa: F401
from paper_node.db.memory import InMemoryLedgerStore
from paper_node.db.repositories import DBLedgerStore
from paper_node.entities.trade import TradeSide, TradeStatus
from paper_node.errors import (
    ConcurrencyConflictError, InsufficientFundsError, InsufficientHoldingsError, NotFoundError, ValidationError,
)
from paper_node.feeds import RollingPriceFeed
from paper_node.feeds.providers import StaticPriceProvider
from paper_node.services.accounts import AccountService
from paper_node.services.predictions import PredictionLifecycleService
from paper_node.services.trading import TradeExecutionService

WALLET = "0x" + "33" * 20
NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class RacingStore(InMemoryLedgerStore):
    """Lets another writer bump the account right before the first trade append."""

    def __init__(self):
        super().__init__()
        self.raced = False

    def append_trade(self, trade, account=None):
        if not self.raced and account is not None:
            self.raced = True
            stored = self.get_account_by_id(account.id)
            self.update_account(stored.with_balance_delta(Decimal("5"), NOW))
        return super().append_trade(trade, account=account)


def _build(store=None, starting_balance="100", price_feed=None):
    store = store or InMemoryLedgerStore()
    accounts = AccountService(store, starting_balance=Decimal(starting_balance), max_conflict_retries=3)
    accounts.connect(WALLET)
    return store, accounts, TradeExecutionService(store, accounts, price_feed=price_feed)


class TestTradeExecution(unittest.TestCase):
    def test_buy_then_sell_settles_balance_and_holdings(self):
        _, accounts, trading = _build()

        buy = trading.execute(WALLET, "BTC", "BUY", Decimal("0.001"), price=Decimal("40000"), now=NOW)
        self.assertEqual(buy.status, TradeStatus.COMPLETED)
        self.assertEqual(buy.total_shm, Decimal("40"))
        self.assertEqual(accounts.get(WALLET).shm_tokens, Decimal("60"))

        sell = trading.execute(
            WALLET, "BTC", "SELL", Decimal("0.0005"), price=Decimal("42000"), now=NOW + timedelta(minutes=1),
        )
        self.assertEqual(sell.total_shm, Decimal("21"))
        self.assertEqual(accounts.get(WALLET).shm_tokens, Decimal("81"))

        snapshot = trading.portfolio(WALLET, {"BTC": Decimal("42000"), "ETH": Decimal("2640")})
        self.assertEqual(snapshot.holdings["BTC"], Decimal("0.0005"))

    def test_buy_beyond_balance_is_rejected_without_mutation(self):
        store, accounts, trading = _build(starting_balance="10")

        with self.assertRaises(InsufficientFundsError) as ctx:
            trading.execute(WALLET, "ETH", "BUY", Decimal("0.02"), price=Decimal("2500"), now=NOW)

        self.assertEqual(ctx.exception.required, Decimal("50"))
        account = accounts.get(WALLET)
        self.assertEqual(account.shm_tokens, Decimal("10"))
        self.assertEqual(store.list_trades(account.id), [])

    def test_sell_beyond_holdings_is_rejected_without_mutation(self):
        store, accounts, trading = _build()
        trading.execute(WALLET, "BTC", "BUY", Decimal("0.001"), price=Decimal("40000"), now=NOW)

        with self.assertRaises(InsufficientHoldingsError):
            trading.execute(WALLET, "BTC", "SELL", Decimal("0.002"), price=Decimal("40000"), now=NOW)
        with self.assertRaises(InsufficientHoldingsError):
            trading.execute(WALLET, "ETH", "SELL", Decimal("0.1"), price=Decimal("2640"), now=NOW)

        account = accounts.get(WALLET)
        self.assertEqual(account.shm_tokens, Decimal("60"))
        self.assertEqual(len(store.list_trades(account.id)), 1)

    def test_invalid_inputs(self):
        _, _, trading = _build()
        cases = [
            ("BTC", "BUY", Decimal("0"), Decimal("1")),
            ("BTC", "BUY", Decimal("-1"), Decimal("1")),
            ("BTC", "BUY", Decimal("1"), Decimal("0")),
            ("DOGE", "BUY", Decimal("1"), Decimal("1")),
            ("BTC", "HOLD", Decimal("1"), Decimal("1")),
        ]
        for asset, side, amount, price in cases:
            with self.subTest(asset=asset, side=side, amount=amount, price=price):
                with self.assertRaises(ValidationError):
                    trading.execute(WALLET, asset, side, amount, price=price, now=NOW)

    def test_unknown_account(self):
        _, _, trading = _build()
        with self.assertRaises(NotFoundError):
            trading.execute("0x" + "44" * 20, "BTC", "BUY", Decimal("0.001"), price=Decimal("1"))

    def test_price_comes_from_feed_when_not_supplied(self):
        feed = RollingPriceFeed(StaticPriceProvider({"BTC": Decimal("50000"), "ETH": Decimal("2000")}))
        feed.refresh(now=NOW)
        _, accounts, trading = _build(price_feed=feed)

        trade = trading.execute(WALLET, "btc", "buy", "0.001", now=NOW)

        self.assertEqual(trade.price, Decimal("50000"))
        self.assertEqual(trade.side, TradeSide.BUY)
        self.assertEqual(accounts.get(WALLET).shm_tokens, Decimal("50"))
        self.assertEqual(trading.portfolio(WALLET).portfolio_value, Decimal("50"))

    def test_request_id_replay_does_not_double_charge(self):
        store, accounts, trading = _build()

        first = trading.execute(WALLET, "BTC", "BUY", Decimal("0.001"), price=Decimal("40000"), request_id="r1")
        again = trading.execute(WALLET, "BTC", "BUY", Decimal("0.001"), price=Decimal("40000"), request_id="r1")

        self.assertEqual(first.id, again.id)
        self.assertEqual(accounts.get(WALLET).shm_tokens, Decimal("60"))
        self.assertEqual(len(trading.list_for(WALLET)), 1)

    def test_concurrent_writer_is_retried_not_lost(self):
        store, accounts, trading = _build(store=RacingStore())

        trading.execute(WALLET, "BTC", "BUY", Decimal("0.001"), price=Decimal("40000"), now=NOW)

        # 100 + 5 from the racing writer - 40 for the trade
        self.assertEqual(accounts.get(WALLET).shm_tokens, Decimal("65"))
        self.assertEqual(len(trading.list_for(WALLET)), 1)

    def test_stale_account_write_is_a_conflict(self):
        store, accounts, _ = _build()
        stale = accounts.get(WALLET)
        store.update_account(stale.with_balance_delta(Decimal("1"), NOW))

        with self.assertRaises(ConcurrencyConflictError):
            store.update_account(stale.with_balance_delta(Decimal("2"), NOW))


class TestDatabaseTradeAmounts(unittest.TestCase):
    """Amounts go through SQLite and come back bit-for-bit."""

    def setUp(self):
        self.engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        SQLModel.metadata.create_all(self.engine)
        self.session = Session(self.engine)

    def tearDown(self):
        self.session.close()
        self.engine.dispose()

    def test_buy_then_sell_everything(self):
        store, accounts, trading = _build(store=DBLedgerStore(self.session))

        trading.execute(WALLET, "ETH", "BUY", Decimal("0.3"), price=Decimal("100"), now=NOW)
        sell = trading.execute(WALLET, "ETH", "SELL", Decimal("0.3"), price=Decimal("100"), now=NOW)

        self.assertEqual(sell.amount, Decimal("0.3"))
        self.assertEqual(accounts.get(WALLET).shm_tokens, Decimal("100"))
        snapshot = trading.portfolio(WALLET, {"BTC": Decimal("40000"), "ETH": Decimal("100")})
        self.assertEqual(snapshot.holdings.get("ETH", Decimal("0")), Decimal("0"))

    def test_eighteen_places_are_stored_exactly(self):
        store, accounts, trading = _build(store=DBLedgerStore(self.session), starting_balance="10000")
        amount = Decimal("0.123456789012345678")
        price = Decimal("43250.17")

        trade = trading.execute(WALLET, "BTC", "BUY", amount, price=price, now=NOW)

        self.assertEqual(trade.amount, amount)
        self.assertEqual(trade.total_shm, amount * price)
        stored = store.list_trades(trade.account_id)[0]
        self.assertEqual(stored.amount, amount)
        self.assertEqual(stored.total_shm, amount * price)
        self.assertEqual(accounts.get(WALLET).shm_tokens, Decimal("10000") - amount * price)

    def test_amount_finer_than_ledger_precision_is_rejected(self):
        store, accounts, trading = _build(store=DBLedgerStore(self.session))

        for amount in (Decimal("1E-20"), Decimal("0.0000000000000000001")):
            with self.subTest(amount=amount):
                with self.assertRaises(ValidationError):
                    trading.execute(WALLET, "BTC", "BUY", amount, price=Decimal("40000"), now=NOW)
        with self.assertRaises(ValidationError):
            trading.execute(WALLET, "BTC", "BUY", Decimal("1"), price=Decimal("1E-19"), now=NOW)

        account = accounts.get(WALLET)
        self.assertEqual(account.shm_tokens, Decimal("100"))
        self.assertEqual(store.list_trades(account.id), [])

    def test_in_memory_store_rejects_the_same_precision(self):
        _, _, trading = _build()
        with self.assertRaises(ValidationError):
            trading.execute(WALLET, "BTC", "BUY", Decimal("1E-20"), price=Decimal("40000"), now=NOW)


class TestConservation(unittest.TestCase):
    def test_balance_equals_start_minus_buys_plus_sells_plus_rewards(self):
        store = InMemoryLedgerStore()
        accounts = AccountService(store, starting_balance=Decimal("100"))
        accounts.connect(WALLET)
        trading = TradeExecutionService(store, accounts)
        predictions = PredictionLifecycleService(store, accounts)

        trading.execute(WALLET, "BTC", "BUY", Decimal("0.0011"), price=Decimal("43250.17"), now=NOW)
        trading.execute(WALLET, "ETH", "BUY", Decimal("0.0033"), price=Decimal("2640.33"), now=NOW)
        trading.execute(WALLET, "BTC", "SELL", Decimal("0.0004"), price=Decimal("44000.01"), now=NOW)
        won = predictions.create(WALLET, "ETH", "UP", 77, "1H", entry_price=Decimal("2640"), now=NOW)
        lost = predictions.create(WALLET, "BTC", "DOWN", 95, "1H", entry_price=Decimal("43250"), now=NOW)
        predictions.resolve(won.id, True, now=NOW)
        predictions.resolve(lost.id, False, now=NOW)

        account = accounts.get(WALLET)
        trades = store.list_trades(account.id)
        buys = sum(t.total_shm for t in trades if t.side == TradeSide.BUY)
        sells = sum(t.total_shm for t in trades if t.side == TradeSide.SELL)
        expected = Decimal("100") - buys + sells + won.reward_tokens

        self.assertEqual(account.shm_tokens, expected)
        self.assertGreaterEqual(account.shm_tokens, Decimal("0"))


if __name__ == "__main__":
    unittest.main()
