from datetime import datetime, timezone
from decimal import Decimal

import pytest

from whalecopy.models import TradeResult
from whalecopy.scorer import (
    expected_value,
    is_decaying,
    kelly_fraction,
    rolling_win_rate,
    score_wallet,
    sharpe_ratio,
    win_rate,
)


def make_trades(profits):
    now = datetime.now(timezone.utc)
    return [TradeResult(profit=Decimal(p), traded_at=now) for p in profits]


def test_win_rate_basic():
    trades = make_trades([100, -50, 200, -30, 150])
    assert win_rate(trades) == Decimal("0.6")


def test_win_rate_empty():
    assert win_rate([]) == Decimal(0)


def test_rolling_win_rate_uses_last_trades():
    trades = make_trades([-10, -10, 5, 5])
    assert rolling_win_rate(trades, 2) == Decimal(1)
    assert rolling_win_rate(trades, 100) == win_rate(trades)


def test_rolling_win_rate_rejects_empty_window():
    with pytest.raises(ValueError):
        rolling_win_rate(make_trades([1, 2]), 0)


def test_sharpe_ratio_positive():
    returns = [Decimal(10), Decimal(20), Decimal(15), Decimal(25)]
    assert sharpe_ratio(returns) > Decimal(0)


def test_sharpe_ratio_insufficient_data():
    assert sharpe_ratio([Decimal(10)]) == Decimal(0)


def test_sharpe_ratio_no_spread():
    assert sharpe_ratio([Decimal(7), Decimal(7), Decimal(7)]) == Decimal(0)


def test_kelly_fraction_positive_edge():
    kf = kelly_fraction(Decimal("0.60"), Decimal("1.5"))
    assert Decimal(0) < kf < Decimal(1)


def test_kelly_fraction_no_edge():
    assert kelly_fraction(Decimal("0.40"), Decimal(1)) == Decimal(0)


def test_kelly_fraction_zero_inputs():
    assert kelly_fraction(Decimal(0), Decimal(2)) == Decimal(0)
    assert kelly_fraction(Decimal("0.7"), Decimal(0)) == Decimal(0)


def test_expected_value_positive():
    trades = make_trades([100, -50, 200, -30, 150])
    assert expected_value(trades) > Decimal(0)


def test_expected_value_empty():
    assert expected_value([]) == Decimal(0)


def test_expected_value_all_losses_is_negative():
    assert expected_value(make_trades([-10, -20, 0])) < Decimal(0)


def test_is_decaying_not_enough_data():
    assert not is_decaying(make_trades([100, -50, 200]))


def test_is_decaying_detected():
    trades = make_trades([100] * 50 + [-100] * 30)
    assert is_decaying(trades)


def test_is_decaying_steady_winner():
    assert not is_decaying(make_trades([100] * 40))


def test_score_wallet_integration():
    profits = [100, -50, 200, -30, 150, 80, -20, 300]
    score = score_wallet(make_trades(profits))
    assert score.sharpe_ratio != Decimal(0)
    assert score.win_rate > Decimal(0)
    assert score.total_trades == 8
    assert not score.is_decaying
    assert Decimal(0) <= score.kelly_fraction <= Decimal(1)


def test_score_wallet_empty():
    score = score_wallet([])
    assert score.total_trades == 0
    assert score.total_pnl == Decimal(0)
    assert score.win_rate == Decimal(0)
    assert score.kelly_fraction == Decimal(0)