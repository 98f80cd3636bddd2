from __future__ import annotations

import unittest
from dataclasses import replace
from decimal import Decimal

from fastapi.testclient import TestClient

from paper_node.config.extensions import ExtensionSettings
from paper_node.config.runtime import RuntimeSettings
from paper_node.db.memory import InMemoryLedgerStore
from paper_node.errors import CollaboratorUnavailableError
from paper_node.extensions.oracles import RandomOutcomeOracle
from paper_node.feeds import RollingPriceFeed
from paper_node.feeds.providers import StaticPriceProvider
from paper_node.node import build_node
from paper_node.workers.api_worker import create_app

WALLET = "0x" + "9a" * 20


def _node():
    feed = RollingPriceFeed(StaticPriceProvider({"BTC": Decimal("40000"), "ETH": Decimal("2500")}))
    feed.refresh()
    settings = replace(RuntimeSettings.from_env(), ledger_store="memory", price_poll_interval_seconds=3600)
    return build_node(
        settings=settings,
        extension_settings=ExtensionSettings.from_env(),
        ledger_store=InMemoryLedgerStore(),
        price_feed=feed,
        outcome_oracle=RandomOutcomeOracle(win_probability=1.0),
    )


class TestApiWorker(unittest.TestCase):
    def setUp(self):
        self.node = _node()
        self.client = TestClient(create_app(self.node))
        response = self.client.post("/accounts", json={"wallet_address": WALLET.upper().replace("0X", "0x")})
        self.assertEqual(response.status_code, 200)
        self.account = response.json()

    def test_health_and_info(self):
        self.assertEqual(self.client.get("/healthz").json(), {"status": "ok"})
        info = self.client.get("/info").json()
        self.assertEqual(info["assets"], ["BTC", "ETH"])
        self.assertEqual(info["outcome_oracle"], "RandomOutcomeOracle")

    def test_connect_is_create_or_get(self):
        self.assertEqual(self.account["wallet_address"], WALLET)
        self.assertEqual(Decimal(self.account["shm_tokens"]), Decimal("100"))

        again = self.client.post("/accounts", json={"wallet_address": WALLET}).json()
        self.assertEqual(again["id"], self.account["id"])

    def test_bad_wallet_is_422(self):
        response = self.client.post("/accounts", json={"wallet_address": "not-a-wallet"})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"], "ValidationError")

    def test_unknown_account_is_404(self):
        response = self.client.get("/accounts/" + "0x" + "00" * 20)
        self.assertEqual(response.status_code, 404)
        self.assertFalse(response.json()["retryable"])

    def test_trade_flow_and_portfolio(self):
        buy = self.client.post(f"/accounts/{WALLET}/trades", json={"asset": "BTC", "side": "BUY", "amount": "0.001"})
        self.assertEqual(buy.status_code, 201)
        self.assertEqual(Decimal(buy.json()["price"]), Decimal("40000"))
        self.assertEqual(Decimal(buy.json()["total_shm"]), Decimal("40"))

        account = self.client.get(f"/accounts/{WALLET}").json()
        self.assertEqual(Decimal(account["shm_tokens"]), Decimal("60"))

        portfolio = self.client.get(f"/accounts/{WALLET}/portfolio").json()
        self.assertEqual(Decimal(portfolio["holdings"]["BTC"]), Decimal("0.001"))
        self.assertEqual(Decimal(portfolio["portfolio_value"]), Decimal("40"))
        self.assertEqual(Decimal(portfolio["pnl"]), Decimal("0"))

        trades = self.client.get(f"/accounts/{WALLET}/trades").json()
        self.assertEqual([t["id"] for t in trades], [buy.json()["id"]])

    def test_insufficient_funds_and_holdings_are_400(self):
        too_big = self.client.post(f"/accounts/{WALLET}/trades", json={"asset": "BTC", "side": "BUY", "amount": "1"})
        self.assertEqual(too_big.status_code, 400)
        self.assertEqual(too_big.json()["error"], "InsufficientFundsError")

        oversell = self.client.post(f"/accounts/{WALLET}/trades", json={"asset": "ETH", "side": "SELL", "amount": "1"})
        self.assertEqual(oversell.status_code, 400)
        self.assertEqual(oversell.json()["error"], "InsufficientHoldingsError")

        self.assertEqual(Decimal(self.client.get(f"/accounts/{WALLET}").json()["shm_tokens"]), Decimal("100"))

    def test_prediction_create_and_resolve_twice(self):
        created = self.client.post(
            f"/accounts/{WALLET}/predictions",
            json={"asset": "BTC", "direction": "UP", "confidence": 80, "timeframe": "1H"},
        )
        self.assertEqual(created.status_code, 201)
        prediction = created.json()
        self.assertEqual(prediction["status"], "PENDING")
        self.assertEqual(prediction["reward_tokens"], 13)
        self.assertEqual(Decimal(prediction["entry_price"]), Decimal("40000"))

        first = self.client.post(f"/predictions/{prediction['id']}/resolve", json={"won": True}).json()
        self.assertFalse(first["already_resolved"])
        self.assertEqual(first["prediction"]["status"], "WON")

        second = self.client.post(f"/predictions/{prediction['id']}/resolve", json={"won": False})
        self.assertEqual(second.status_code, 200)
        self.assertTrue(second.json()["already_resolved"])
        self.assertEqual(second.json()["prediction"]["status"], "WON")

        account = self.client.get(f"/accounts/{WALLET}").json()
        self.assertEqual(Decimal(account["shm_tokens"]), Decimal("113"))
        self.assertEqual(account["prediction_streak"], 1)
        self.assertEqual(account["accuracy"], 100.0)

        listed = self.client.get(f"/accounts/{WALLET}/predictions").json()
        self.assertEqual(len(listed), 1)

    def test_prediction_validation_is_422(self):
        response = self.client.post(
            f"/accounts/{WALLET}/predictions",
            json={"asset": "BTC", "direction": "UP", "confidence": 20},
        )
        self.assertEqual(response.status_code, 422)

        missing = self.client.post("/predictions/PRD_missing/resolve", json={"won": True})
        self.assertEqual(missing.status_code, 404)

    def test_prices(self):
        prices = self.client.get("/prices").json()["prices"]
        self.assertEqual(Decimal(prices["BTC"]), Decimal("40000"))

        history = self.client.get("/prices/history").json()
        self.assertEqual(len(history), 1)
        self.assertFalse(history[0]["synthetic"])


class UnreachableStore(InMemoryLedgerStore):
    """Answers normally until ``down`` is set, then fails every account read."""

    def __init__(self):
        super().__init__()
        self.down = False

    def get_account(self, wallet_address):
        if self.down:
            raise CollaboratorUnavailableError("ledger store unavailable during get_account")
        return super().get_account(wallet_address)


class TestApiStoreOutage(unittest.TestCase):
    def setUp(self):
        self.store = UnreachableStore()
        node = replace(_node(), ledger_store_factory=lambda: self.store)
        self.client = TestClient(create_app(node))
        self.assertEqual(self.client.post("/accounts", json={"wallet_address": WALLET}).status_code, 200)

    def test_store_outage_is_503_and_retryable(self):
        self.store.down = True

        response = self.client.get(f"/accounts/{WALLET}")
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()["error"], "CollaboratorUnavailableError")
        self.assertTrue(response.json()["retryable"])

        trade = self.client.post(f"/accounts/{WALLET}/trades", json={"asset": "BTC", "side": "BUY", "amount": "0.001"})
        self.assertEqual(trade.status_code, 503)

        self.store.down = False
        account = self.client.get(f"/accounts/{WALLET}").json()
        self.assertEqual(Decimal(account["shm_tokens"]), Decimal("100"))
        self.assertEqual(self.client.get(f"/accounts/{WALLET}/trades").json(), [])


class TestApiLifespan(unittest.TestCase):
    def test_startup_seeds_history_for_empty_feed(self):
        feed = RollingPriceFeed(StaticPriceProvider({"BTC": Decimal("40000"), "ETH": Decimal("2500")}))
        settings = replace(RuntimeSettings.from_env(), price_poll_interval_seconds=3600)
        node = build_node(
            settings=settings,
            extension_settings=ExtensionSettings.from_env(),
            ledger_store=InMemoryLedgerStore(),
            price_feed=feed,
            outcome_oracle=RandomOutcomeOracle(),
        )

        with TestClient(create_app(node)) as client:
            history = client.get("/prices/history").json()

        self.assertGreaterEqual(len(history), 25)
        self.assertTrue(history[0]["synthetic"])


if __name__ == "__main__":
    unittest.main()
