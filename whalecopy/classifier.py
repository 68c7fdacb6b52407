"""Wallet classification from trade history: informed, market maker or bot."""

from __future__ import annotations

import enum
from decimal import Decimal
from typing import Sequence

from whalecopy.models import WhaleTrade


class Classification(str, enum.Enum):
    """Wallet classification categories."""

    INFORMED = "informed"
    """High-conviction directional trader, worth copying."""
    MARKET_MAKER = "market_maker"
    """Dual-side liquidity provider, not to be copied."""
    BOT = "bot"
    """High-frequency algorithmic trader, not to be copied."""

    def __str__(self) -> str:
        return self.value


def classify_wallet(trades: Sequence[WhaleTrade]) -> Classification:
    """Classify a wallet by its trades.

    A wallet trading both sides in more than half of its markets is a market
    maker; one averaging more than 100 trades a month is a bot; any other
    wallet, including one with no trades, is informed.
    """
    if not trades:
        return Classification.INFORMED
    if _is_market_maker(trades):
        return Classification.MARKET_MAKER
    if _is_bot(trades):
        return Classification.BOT
    return Classification.INFORMED


def _is_market_maker(trades: Sequence[WhaleTrade]) -> bool:
    buy_markets = {t.market_id for t in trades if t.side.upper() == "BUY"}
    sell_markets = {t.market_id for t in trades if t.side.upper() == "SELL"}

    total_markets = len(buy_markets | sell_markets)
    if total_markets == 0:
        return False

    dual_ratio = Decimal(len(buy_markets & sell_markets)) / Decimal(total_markets)
    return dual_ratio > Decimal("0.50")


def _is_bot(trades: Sequence[WhaleTrade]) -> bool:
    if len(trades) < 10:
        return False

    times = [t.traded_at for t in trades]
    span_days = max((max(times) - min(times)).days, 1)
    months = Decimal(span_days) / Decimal(30)

    if months.is_zero():
        return len(trades) > 100

    trades_per_month = Decimal(len(trades)) / months
    return trades_per_month > Decimal(100)