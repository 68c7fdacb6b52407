from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from whalecopy.classifier import Classification
from whalecopy.pipeline import (
    PipelineConfig,
    SignalDeduplicator,
    blocked_reason,
    months_active,
    trade_profit,
)

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def make_config(**changes):
    base = dict(
        tracked_whale_min_notional=Decimal("500"),
        min_signal_win_rate=Decimal("0.6"),
        min_resolved_for_signal=5,
        min_total_trades_for_signal=20,
        signal_notional_liquidity_pct=Decimal("0.01"),
        signal_notional_floor=Decimal("1000"),
        max_signal_notional=Decimal("100000"),
        min_signal_ev=Decimal("10"),
        assumed_slippage_pct=Decimal("0.02"),
    )
    base.update(changes)
    return PipelineConfig(**base)


def passing_args(**changes):
    args = dict(
        classification=Classification.INFORMED,
        is_seeder_vetted=False,
        resolved_count=10,
        effective_total_trades=50,
        notional=Decimal("5000"),
        market_liquidity=None,
        expected_value=Decimal("50"),
    )
    args.update(changes)
    return args


# --- overrides ---


def test_overrides_apply_known_keys():
    cfg = make_config().with_overrides(
        {"min_signal_win_rate": "0.75", "min_total_trades_for_signal": "42"}
    )
    assert cfg.min_signal_win_rate == Decimal("0.75")
    assert cfg.min_total_trades_for_signal == 42


def test_overrides_accept_pairs_and_ignore_bad_values():
    base = make_config()
    cfg = base.with_overrides(
        [
            ("min_signal_ev", "abc"),
            ("min_total_trades_for_signal", "1.5"),
            ("unknown_key", "7"),
            ("max_signal_notional", "2500"),
        ]
    )
    assert cfg.min_signal_ev == base.min_signal_ev
    assert cfg.min_total_trades_for_signal == base.min_total_trades_for_signal
    assert cfg.max_signal_notional == Decimal("2500")


def test_overrides_leave_original_and_non_overridable_untouched():
    base = make_config()
    cfg = base.with_overrides({"min_resolved_for_signal": "99", "signal_notional_floor": "7"})
    assert cfg.min_resolved_for_signal == base.min_resolved_for_signal
    assert cfg.signal_notional_floor == Decimal("7")
    assert base.signal_notional_floor == Decimal("1000")


def test_default_dedup_window():
    assert make_config().signal_dedup_window_secs == 10


# --- trade profit ---


def test_profit_unresolved_is_zero():
    assert trade_profit("BUY", Decimal("100"), Decimal("0.4"), None) == 0
    assert trade_profit("SELL", Decimal("100"), Decimal("0.4"), "pending") == 0


def test_profit_losing_sides_lose_notional():
    assert trade_profit("BUY", Decimal("80"), Decimal("0.3"), "resolved_no") == Decimal("-80")
    assert trade_profit("SELL", Decimal("80"), Decimal("0.3"), "resolved_yes") == Decimal("-80")


def test_profit_even_odds_returns_notional():
    assert trade_profit("BUY", Decimal("100"), Decimal("0.5"), "resolved_yes") == Decimal("100")


@pytest.mark.parametrize("price", [Decimal("0.2"), Decimal("0.35"), Decimal("0.8")])
def test_profit_yes_buy_mirrors_no_sell(price):
    yes_buy = trade_profit("BUY", Decimal("100"), price, "resolved_yes")
    no_sell = trade_profit("SELL", Decimal("100"), 1 - price, "resolved_no")
    assert yes_buy == no_sell
    assert yes_buy > 0


def test_profit_zero_price_raises():
    with pytest.raises(ZeroDivisionError):
        trade_profit("BUY", Decimal("100"), Decimal("0"), "resolved_yes")


# --- months active ---


def test_months_active_no_trades_is_one():
    assert months_active([], NOW) == 1


def test_months_active_recent_and_future_is_one():
    assert months_active([NOW - timedelta(days=10)], NOW) == 1
    assert months_active([NOW + timedelta(days=90)], NOW) == 1


def test_months_active_uses_earliest():
    earliest = NOW - timedelta(days=120)
    times = [NOW - timedelta(days=5), earliest, NOW - timedelta(days=60)]
    assert months_active(times, NOW) == months_active([earliest], NOW)
    assert months_active(times, NOW) == 4


# --- dedup ---


def test_dedup_within_window():
    dedup = SignalDeduplicator(10)
    assert dedup.check_and_record("w:a:BUY", 0.0) is False
    assert dedup.check_and_record("w:a:BUY", 5.0) is True
    assert dedup.check_and_record("w:a:SELL", 5.0) is False


def test_dedup_expires_after_window():
    dedup = SignalDeduplicator(10)
    assert dedup.check_and_record("k", 0.0) is False
    assert dedup.check_and_record("k", 10.0) is False
    assert dedup.check_and_record("k", 19.0) is True


# --- gates ---


def test_all_gates_pass():
    assert blocked_reason(make_config(), **passing_args()) is None


@pytest.mark.parametrize("kind", [Classification.BOT, "market_maker"])
def test_blocked_by_classification(kind):
    reason = blocked_reason(make_config(), **passing_args(classification=kind))
    assert reason.startswith("classified as")


def test_blocked_by_resolved_count_unless_vetted():
    cfg = make_config()
    reason = blocked_reason(cfg, **passing_args(resolved_count=2))
    assert "resolved trades" in reason
    assert blocked_reason(cfg, **passing_args(resolved_count=2, is_seeder_vetted=True)) is None


def test_blocked_by_total_trades():
    reason = blocked_reason(make_config(), **passing_args(effective_total_trades=3))
    assert "total trades" in reason


def test_blocked_by_liquidity_scaled_minimum():
    cfg = make_config()
    deep = Decimal("1000000")
    reason = blocked_reason(cfg, **passing_args(market_liquidity=deep))
    assert "below dynamic minimum" in reason
    assert blocked_reason(cfg, **passing_args(market_liquidity=Decimal("10"))) is None


def test_blocked_below_floor():
    reason = blocked_reason(make_config(), **passing_args(notional=Decimal("999")))
    assert "below dynamic minimum" in reason


def test_blocked_above_maximum():
    reason = blocked_reason(make_config(), **passing_args(notional=Decimal("100001")))
    assert "maximum" in reason


def test_blocked_by_slippage_adjusted_ev():
    cfg = make_config(assumed_slippage_pct=Decimal("0.5"))
    reason = blocked_reason(cfg, **passing_args(expected_value=Decimal("15")))
    assert reason.startswith("EV_copy")
    assert blocked_reason(make_config(), **passing_args(expected_value=Decimal("15"))) is None


def test_gate_order_classification_first():
    reason = blocked_reason(
        make_config(),
        **passing_args(classification="bot", resolved_count=0, notional=Decimal("1")),
    )
    assert reason.startswith("classified as")