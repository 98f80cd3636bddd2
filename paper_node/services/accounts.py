from __future__ import annotations

import logging
from decimal import Decimal
from typing import Callable, TypeVar

from paper_node.entities.account import UserAccount, normalize_wallet_address
from paper_node.errors import ConcurrencyConflictError, NotFoundError
from paper_node.services.interfaces.ledger_store import LedgerStore

T = TypeVar("T")


class AccountService:
    """Create-or-get for wallets, plus the bounded retry loop every account mutation runs in."""

    def __init__(self, ledger_store: LedgerStore, starting_balance: Decimal = Decimal("100"), max_conflict_retries: int = 3):
        self.ledger_store = ledger_store
        self.starting_balance = starting_balance
        self.max_conflict_retries = max_conflict_retries
        self.logger = logging.getLogger(__name__)

    def connect(self, wallet_address: str) -> UserAccount:
        address = normalize_wallet_address(wallet_address)
        existing = self.ledger_store.get_account(address)
        if existing is not None:
            return existing

        account = self.ledger_store.create_account(address, self.starting_balance)
        self.logger.info("account %s connected with %s SHM", account.id, account.shm_tokens)
        return account

    def get(self, wallet_address: str) -> UserAccount:
        address = normalize_wallet_address(wallet_address)
        account = self.ledger_store.get_account(address)
        if account is None:
            raise NotFoundError(f"no account for wallet {address}")
        return account

    def get_by_id(self, account_id: str) -> UserAccount:
        account = self.ledger_store.get_account_by_id(account_id)
        if account is None:
            raise NotFoundError(f"account {account_id} not found")
        return account

    def run_with_retries(self, operation: Callable[[], T]) -> T:
        """Run ``operation`` until it stops conflicting, re-reading state on each attempt.

        ``operation`` must load fresh account state itself. After
        ``max_conflict_retries`` extra attempts the last conflict propagates.
        """
        attempt = 0
        while True:
            try:
                return operation()
            except ConcurrencyConflictError as exc:
                self.ledger_store.rollback()
                if attempt >= self.max_conflict_retries:
                    self.logger.warning("giving up after %d conflicting attempts: %s", attempt + 1, exc)
                    raise
                attempt += 1
                self.logger.info("version conflict, retrying (%d/%d): %s", attempt, self.max_conflict_retries, exc)
