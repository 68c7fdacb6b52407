"""Wallet scoring metrics: Sharpe ratio, Kelly fraction, win rate, decay, EV."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from whalecopy.models import TradeResult

_ZERO = Decimal(0)
_ONE = Decimal(1)


@dataclass
class WalletScore:
    """Aggregated scoring output for a wallet."""

    sharpe_ratio: Decimal
    win_rate: Decimal
    kelly_fraction: Decimal
    expected_value: Decimal
    total_trades: int
    total_pnl: Decimal
    is_decaying: bool


def score_wallet(trades: Sequence[TradeResult]) -> WalletScore:
    """Compute all scoring metrics for a wallet's trade history."""
    returns = [t.profit for t in trades]
    wr = win_rate(trades)
    return WalletScore(
        sharpe_ratio=sharpe_ratio(returns),
        win_rate=wr,
        kelly_fraction=kelly_fraction(wr, _avg_odds(trades)),
        expected_value=expected_value(trades),
        total_trades=len(trades),
        total_pnl=sum(returns, _ZERO),
        is_decaying=is_decaying(trades),
    )


def sharpe_ratio(returns: Sequence[Decimal]) -> Decimal:
    """mean(returns) / stddev(returns); zero with fewer than two returns or no spread."""
    if len(returns) < 2:
        return _ZERO
    n = Decimal(len(returns))
    mean = sum(returns, _ZERO) / n
    variance = sum(((r - mean) ** 2 for r in returns), _ZERO) / n
    std_dev = variance.sqrt()
    if std_dev.is_zero():
        return _ZERO
    return mean / std_dev


def kelly_fraction(win_rate: Decimal, avg_odds: Decimal) -> Decimal:
    """Optimal bet fraction (p*b - q) / b, clamped at zero."""
    if avg_odds.is_zero() or win_rate.is_zero():
        return _ZERO
    q = _ONE - win_rate
    f = (win_rate * avg_odds - q) / avg_odds
    return max(f, _ZERO)


def _avg_odds(trades: Sequence[TradeResult]) -> Decimal:
    wins = [t.profit for t in trades if t.profit > _ZERO]
    losses = [abs(t.profit) for t in trades if t.profit < _ZERO]
    if not wins or not losses:
        return _ONE
    avg_win = sum(wins, _ZERO) / Decimal(len(wins))
    avg_loss = sum(losses, _ZERO) / Decimal(len(losses))
    if avg_loss.is_zero():
        return _ONE
    return avg_win / avg_loss


def win_rate(trades: Sequence[TradeResult]) -> Decimal:
    """Overall fraction of profitable trades."""
    return rolling_win_rate(trades, len(trades))


def rolling_win_rate(trades: Sequence[TradeResult], window: int) -> Decimal:
    """Fraction of profitable trades among the last ``window`` trades."""
    if not trades:
        return _ZERO
    if window <= 0:
        raise ValueError("window must be positive")
    recent = trades[max(len(trades) - window, 0):]
    wins = sum(1 for t in recent if t.profit > _ZERO)
    return Decimal(wins) / Decimal(len(recent))


def is_decaying(trades: Sequence[TradeResult]) -> bool:
    """True when the last 30 trades win below 55% or below the relative threshold."""
    if len(trades) < 30:
        return False
    alltime_wr = rolling_win_rate(trades, len(trades))
    recent_wr = rolling_win_rate(trades, 30)
    threshold_absolute = Decimal("0.55")
    threshold_relative = alltime_wr * Decimal("0.80") / Decimal(100)
    return recent_wr < threshold_absolute or recent_wr < threshold_relative


def expected_value(trades: Sequence[TradeResult]) -> Decimal:
    """Average expected profit per trade."""
    if not trades:
        return _ZERO
    wins = [t.profit for t in trades if t.profit > _ZERO]
    losses = [abs(t.profit) for t in trades if t.profit <= _ZERO]
    if not wins:
        return sum((t.profit for t in trades), _ZERO) / Decimal(len(trades))
    wr = Decimal(len(wins)) / Decimal(len(trades))
    avg_win = sum(wins, _ZERO) / Decimal(len(wins))
    if not losses:
        return wr * avg_win
    avg_loss = sum(losses, _ZERO) / Decimal(len(losses))
    return wr * avg_win - (_ONE - wr) * avg_loss