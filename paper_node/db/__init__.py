from .memory import InMemoryLedgerStore
from .repositories import DBLedgerStore
from .session import create_session, database_url, get_engine
from .tables import AccountRow, PredictionRow, TradeRow

__all__ = [
    "AccountRow", "PredictionRow", "TradeRow",
    "DBLedgerStore", "InMemoryLedgerStore",
    "create_session", "database_url", "get_engine",
]
