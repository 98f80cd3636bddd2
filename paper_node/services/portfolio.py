"""Holdings, value and P&L, re-derived from the trade ledger on every call."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Mapping

from paper_node.entities.numeric import ZERO
from paper_node.entities.prediction import Asset
from paper_node.entities.trade import Trade, TradeSide, TradeStatus
from paper_node.errors import ValidationError

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PortfolioSnapshot:
    holdings: dict[str, Decimal]
    portfolio_value: Decimal
    total_invested: Decimal
    pnl: Decimal
    pnl_percent: Decimal


def compute_holdings(trades: Iterable[Trade]) -> dict[str, Decimal]:
    holdings: dict[str, Decimal] = {asset.value: ZERO for asset in Asset}
    for trade in trades:
        if trade.status != TradeStatus.COMPLETED:
            continue
        asset = str(trade.asset)
        holdings[asset] = holdings.get(asset, ZERO) + trade.signed_amount
    return holdings


def portfolio_value(holdings: Mapping[str, Decimal], prices: Mapping[str, Decimal]) -> Decimal:
    value = ZERO
    for asset, amount in holdings.items():
        if amount == ZERO:
            continue
        price = prices.get(asset)
        if price is None:
            raise ValidationError(f"no price available for held asset {asset}")
        value += amount * price
    return value


def total_invested(trades: Iterable[Trade]) -> Decimal:
    return sum(
        (t.total_shm for t in trades if t.status == TradeStatus.COMPLETED and t.side == TradeSide.BUY),
        ZERO,
    )


def build_portfolio(trades: Iterable[Trade], prices: Mapping[str, Decimal]) -> PortfolioSnapshot:
    trades = list(trades)
    holdings = compute_holdings(trades)
    value = portfolio_value(holdings, prices)
    invested = total_invested(trades)
    pnl = value - invested
    pnl_percent = pnl / invested * HUNDRED if invested > ZERO else ZERO
    return PortfolioSnapshot(
        holdings=holdings,
        portfolio_value=value,
        total_invested=invested,
        pnl=pnl,
        pnl_percent=pnl_percent,
    )
