from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Mapping

from paper_node.entities.numeric import ZERO, check_places, to_decimal
from paper_node.entities.prediction import Asset, parse_label
from paper_node.entities.trade import Trade, TradeSide
from paper_node.errors import InsufficientFundsError, InsufficientHoldingsError, ValidationError
from paper_node.services.accounts import AccountService
from paper_node.services.interfaces.ledger_store import LedgerStore
from paper_node.services.interfaces.price_feed import PriceFeed
from paper_node.services.portfolio import PortfolioSnapshot, build_portfolio, compute_holdings


class TradeExecutionService:
    """Fill-or-fail simulated orders against the SHM balance and derived holdings."""

    def __init__(
        self,
        ledger_store: LedgerStore,
        account_service: AccountService,
        price_feed: PriceFeed | None = None,
    ):
        self.ledger_store = ledger_store
        self.account_service = account_service
        self.price_feed = price_feed
        self.logger = logging.getLogger(__name__)

    def execute(
        self,
        wallet_address: str,
        asset: Asset | str,
        side: TradeSide | str,
        amount,
        price: Decimal | None = None,
        tx_hash: str | None = None,
        request_id: str | None = None,
        now: datetime | None = None,
    ) -> Trade:
        asset = parse_label(Asset, asset, "asset")
        side = parse_label(TradeSide, side, "side")
        amount = check_places(to_decimal(amount, "amount"), "amount")
        if amount <= ZERO:
            raise ValidationError(f"amount must be positive, got {amount}")
        price = self._execution_price(asset, price)

        def attempt() -> Trade:
            account = self.account_service.get(wallet_address)
            if request_id:
                existing = self.ledger_store.find_trade_by_request(account.id, request_id)
                if existing is not None:
                    self.logger.info("trade request %s replayed, returning %s", request_id, existing.id)
                    return existing

            created_at = now or datetime.now(timezone.utc)
            trade = Trade.create(
                account_id=account.id,
                asset=asset,
                side=side,
                amount=amount,
                price=price,
                created_at=created_at,
                tx_hash=tx_hash,
                request_id=request_id,
            )

            if side == TradeSide.BUY:
                if trade.total_shm > account.shm_tokens:
                    raise InsufficientFundsError(required=trade.total_shm, available=account.shm_tokens)
            else:
                held = compute_holdings(self.ledger_store.list_trades(account.id)).get(asset.value, ZERO)
                if amount > held:
                    raise InsufficientHoldingsError(asset.value, requested=amount, available=held)

            return self.ledger_store.append_trade(
                trade,
                account=account.with_balance_delta(trade.balance_delta, created_at),
            )

        trade = self.account_service.run_with_retries(attempt)
        self.logger.info(
            "trade %s %s %s %s @ %s (total=%s SHM)",
            trade.id, trade.side, trade.amount, trade.asset, trade.price, trade.total_shm,
        )
        return trade

    def _execution_price(self, asset: Asset, price) -> Decimal:
        if price is None:
            if self.price_feed is None:
                raise ValidationError("price is required when no price feed is configured")
            price = self.price_feed.current_price(asset)
        price = check_places(to_decimal(price, "price"), "price")
        if price <= ZERO:
            raise ValidationError(f"price must be positive, got {price}")
        return price

    def list_for(self, wallet_address: str, limit: int | None = None) -> list[Trade]:
        account = self.account_service.get(wallet_address)
        return self.ledger_store.list_trades(account.id, limit=limit)

    def portfolio(self, wallet_address: str, prices: Mapping[str, Decimal] | None = None) -> PortfolioSnapshot:
        account = self.account_service.get(wallet_address)
        if prices is None:
            if self.price_feed is None:
                raise ValidationError("prices are required when no price feed is configured")
            prices = self.price_feed.current_prices()
        return build_portfolio(self.ledger_store.list_trades(account.id), prices)
