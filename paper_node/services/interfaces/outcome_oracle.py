from __future__ import annotations

from abc import ABC, abstractmethod

from paper_node.entities.prediction import Prediction


class OutcomeOracle(ABC):
    """Decides whether a matured prediction is a win."""

    @abstractmethod
    def judge(self, prediction: Prediction) -> bool:
        pass
