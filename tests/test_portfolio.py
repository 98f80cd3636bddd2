import unittest
from datetime import datetime, timezone
from decimal import Decimal

from paper_node.entities.prediction import Asset
from paper_node.entities.trade import Trade, TradeSide, TradeStatus
from paper_node.errors import ValidationError
from paper_node.services.portfolio import build_portfolio, compute_holdings, total_invested

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _trade(asset, side, amount, price, status=TradeStatus.COMPLETED):
    trade = Trade.create("ACC_x", asset, side, Decimal(amount), Decimal(price), NOW)
    trade.status = status
    return trade


class TestPortfolioCalculator(unittest.TestCase):
    def setUp(self):
        self.trades = [
            _trade(Asset.BTC, TradeSide.BUY, "0.001", "40000"),
            _trade(Asset.BTC, TradeSide.SELL, "0.0005", "42000"),
            _trade(Asset.ETH, TradeSide.BUY, "0.01", "2500"),
            _trade(Asset.ETH, TradeSide.BUY, "5", "2500", status=TradeStatus.FAILED),
        ]

    def test_holdings_sum_completed_trades_only(self):
        holdings = compute_holdings(self.trades)
        self.assertEqual(holdings["BTC"], Decimal("0.0005"))
        self.assertEqual(holdings["ETH"], Decimal("0.01"))

    def test_holdings_are_order_independent(self):
        self.assertEqual(compute_holdings(self.trades), compute_holdings(list(reversed(self.trades))))

    def test_empty_history_reports_every_asset_at_zero(self):
        self.assertEqual(compute_holdings([]), {"BTC": Decimal("0"), "ETH": Decimal("0")})

    def test_value_invested_and_pnl(self):
        snapshot = build_portfolio(self.trades, {"BTC": Decimal("50000"), "ETH": Decimal("3000")})

        self.assertEqual(snapshot.portfolio_value, Decimal("25") + Decimal("30"))
        self.assertEqual(snapshot.total_invested, Decimal("65"))
        self.assertEqual(snapshot.pnl, Decimal("-10"))
        self.assertEqual(snapshot.pnl_percent.quantize(Decimal("0.01")), Decimal("-15.38"))

    def test_pnl_percent_is_zero_without_investment(self):
        snapshot = build_portfolio([], {"BTC": Decimal("43250")})
        self.assertEqual(snapshot.total_invested, Decimal("0"))
        self.assertEqual(snapshot.pnl_percent, Decimal("0"))

    def test_missing_price_for_held_asset_is_rejected(self):
        with self.assertRaises(ValidationError):
            build_portfolio(self.trades, {"BTC": Decimal("50000")})

    def test_total_invested_ignores_sells(self):
        self.assertEqual(total_invested(self.trades[:2]), Decimal("40"))


if __name__ == "__main__":
    unittest.main()
