from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from paper_node.entities.prediction import Prediction


class PaperTradingError(Exception):
    """Base class for every error raised by the accounting engine."""

    retryable: bool = False


class ValidationError(PaperTradingError, ValueError):
    """
    Raised when a request is malformed: non-positive amount, out-of-range
    confidence, unsupported asset, unknown label.
    """


class InsufficientFundsError(PaperTradingError):
    """Raised when a BUY costs more than the account's SHM balance."""

    def __init__(self, required, available):
        super().__init__(f"insufficient funds: need {required} SHM but only have {available}")
        self.required = required
        self.available = available


class InsufficientHoldingsError(PaperTradingError):
    """Raised when a SELL exceeds the derived holdings for an asset."""

    def __init__(self, asset: str, requested, available):
        super().__init__(f"insufficient holdings: requested {requested} {asset} but only have {available}")
        self.asset = asset
        self.requested = requested
        self.available = available


class NotFoundError(PaperTradingError, LookupError):
    """Raised when an account or prediction does not exist."""


class AlreadyResolvedError(PaperTradingError):
    """
    Raised when resolving a prediction that already left PENDING.

    Informational: nothing was mutated. The terminal prediction is attached.
    """

    def __init__(self, prediction: "Prediction"):
        super().__init__(f"prediction {prediction.id} is already {prediction.status}")
        self.prediction = prediction


class ConcurrencyConflictError(PaperTradingError):
    """Raised when an optimistic version check fails."""

    retryable = True


class CollaboratorUnavailableError(PaperTradingError):
    """Raised when the ledger store cannot be reached. No mutation was applied."""

    retryable = True
