import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from paper_node.entities.account import UserAccount, normalize_wallet_address
from paper_node.entities.numeric import quantize, to_decimal
from paper_node.entities.prediction import (
    Asset, Direction, Prediction, PredictionStatus, Timeframe, compute_reward_tokens, parse_label,
)
from paper_node.entities.trade import Trade, TradeSide
from paper_node.errors import ValidationError

WALLET = "0x" + "ab" * 20
NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestRewardTokens(unittest.TestCase):
    def test_reward_is_floor_of_tenth_plus_five(self):
        self.assertEqual(compute_reward_tokens(80), 13)
        self.assertEqual(compute_reward_tokens(50), 10)
        self.assertEqual(compute_reward_tokens(59), 10)
        self.assertEqual(compute_reward_tokens(100), 15)


class TestWalletAddress(unittest.TestCase):
    def test_normalizes_case_and_whitespace(self):
        self.assertEqual(normalize_wallet_address("  0x" + "AB" * 20 + " "), WALLET)

    def test_rejects_malformed_addresses(self):
        for bad in ("", "0x123", "ab" * 21, None, "0x" + "zz" * 20):
            with self.subTest(address=bad):
                with self.assertRaises(ValidationError):
                    normalize_wallet_address(bad)


class TestNumeric(unittest.TestCase):
    def test_float_input_keeps_shortest_repr(self):
        self.assertEqual(to_decimal(0.1), Decimal("0.1"))

    def test_rejects_bool_nan_and_garbage(self):
        for bad in (True, float("nan"), "abc", Decimal("Infinity"), object()):
            with self.subTest(value=bad):
                with self.assertRaises(ValidationError):
                    to_decimal(bad)

    def test_quantize_rounds_half_up_for_display(self):
        self.assertEqual(quantize(Decimal("1.0000005"), 6), Decimal("1.000001"))


class TestAccount(unittest.TestCase):
    def test_create_uses_starting_balance_and_zero_counters(self):
        account = UserAccount.create(WALLET, Decimal("100"), created_at=NOW)
        self.assertEqual(account.id, f"ACC_{WALLET}")
        self.assertEqual(account.shm_tokens, Decimal("100"))
        self.assertEqual(account.total_predictions, 0)
        self.assertEqual(account.version, 0)
        self.assertEqual(account.accuracy, 0.0)

    def test_transitions_do_not_mutate_original(self):
        account = UserAccount.create(WALLET, Decimal("100"), created_at=NOW)
        recorded = account.with_prediction_recorded(NOW)
        won = recorded.with_prediction_won(13, NOW)
        lost = won.with_prediction_lost(NOW)

        self.assertEqual(account.total_predictions, 0)
        self.assertEqual(won.shm_tokens, Decimal("113"))
        self.assertEqual(won.prediction_streak, 1)
        self.assertEqual(won.accuracy, 100.0)
        self.assertEqual(lost.prediction_streak, 0)
        self.assertEqual(lost.correct_predictions, 1)


class TestPrediction(unittest.TestCase):
    def test_create_sets_pending_reward_and_maturity(self):
        prediction = Prediction.create(
            account_id="ACC_x",
            asset=Asset.BTC,
            direction=Direction.UP,
            confidence=80,
            entry_price=Decimal("43250"),
            timeframe=Timeframe.ONE_HOUR,
            maturity_seconds=360,
            created_at=NOW,
        )
        self.assertTrue(prediction.id.startswith("PRD_"))
        self.assertEqual(prediction.status, PredictionStatus.PENDING)
        self.assertEqual(prediction.reward_tokens, 13)
        self.assertEqual(prediction.resolvable_at, NOW + timedelta(seconds=360))
        self.assertFalse(prediction.is_terminal)

    def test_resolved_returns_terminal_copy(self):
        prediction = Prediction.create(
            "ACC_x", Asset.ETH, Direction.DOWN, 60, Decimal("2640"), Timeframe.ONE_DAY, 360, NOW,
        )
        lost = prediction.resolved(False, NOW)
        self.assertEqual(lost.status, PredictionStatus.LOST)
        self.assertEqual(lost.resolved_at, NOW)
        self.assertTrue(lost.is_terminal)
        self.assertEqual(prediction.status, PredictionStatus.PENDING)

    def test_timeframe_seconds(self):
        self.assertEqual(Timeframe.ONE_HOUR.seconds, 3600)
        self.assertEqual(Timeframe.ONE_WEEK.seconds, 7 * 24 * 3600)

    def test_parse_label_is_case_insensitive(self):
        self.assertIs(parse_label(Asset, "btc", "asset"), Asset.BTC)
        self.assertIs(parse_label(Timeframe, "4h", "timeframe"), Timeframe.FOUR_HOURS)
        with self.assertRaises(ValidationError):
            parse_label(Asset, "DOGE", "asset")


class TestTrade(unittest.TestCase):
    def test_total_and_balance_delta(self):
        buy = Trade.create("ACC_x", Asset.BTC, TradeSide.BUY, Decimal("0.001"), Decimal("40000"), NOW)
        sell = Trade.create("ACC_x", Asset.BTC, TradeSide.SELL, Decimal("0.0005"), Decimal("42000"), NOW)

        self.assertTrue(buy.id.startswith("TRD_"))
        self.assertEqual(buy.total_shm, Decimal("40"))
        self.assertEqual(buy.balance_delta, Decimal("-40"))
        self.assertEqual(sell.balance_delta, Decimal("21"))
        self.assertEqual(sell.signed_amount, Decimal("-0.0005"))


if __name__ == "__main__":
    unittest.main()
