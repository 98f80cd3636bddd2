from __future__ import annotations

import random

from paper_node.config.extensions import ExtensionSettings
from paper_node.entities.prediction import Direction, Prediction
from paper_node.services.interfaces.outcome_oracle import OutcomeOracle
from paper_node.services.interfaces.price_feed import PriceFeed


class RandomOutcomeOracle(OutcomeOracle):
    """Demo oracle: each matured prediction wins with a fixed probability."""

    def __init__(self, win_probability: float = 0.6, rng: random.Random | None = None):
        if not 0.0 <= win_probability <= 1.0:
            raise ValueError(f"win_probability must be within [0, 1], got {win_probability}")
        self.win_probability = win_probability
        self.rng = rng or random.Random()

    def judge(self, prediction: Prediction) -> bool:
        return self.rng.random() < self.win_probability


class PriceDirectionOracle(OutcomeOracle):
    """Compares the current quote with the entry snapshot. A flat market loses."""

    def __init__(self, price_feed: PriceFeed):
        self.price_feed = price_feed

    def judge(self, prediction: Prediction) -> bool:
        current = self.price_feed.current_price(prediction.asset)
        if prediction.direction == Direction.UP:
            return current > prediction.entry_price
        return current < prediction.entry_price


def random_outcome_oracle(price_feed: PriceFeed, settings: ExtensionSettings) -> OutcomeOracle:
    return RandomOutcomeOracle(win_probability=settings.oracle_win_probability)


def price_direction_oracle(price_feed: PriceFeed, settings: ExtensionSettings) -> OutcomeOracle:
    return PriceDirectionOracle(price_feed)
