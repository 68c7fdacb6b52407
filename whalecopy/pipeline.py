"""Signal quality gates and helpers for the trade intelligence pipeline."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, fields, replace
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, Mapping, Optional, Tuple, Union

from whalecopy.classifier import Classification

WHALE_NOTIONAL_THRESHOLD = Decimal(10_000)
"""Minimum notional (USDC) for a trade from a wallet that is not tracked."""

SEEDER_TIERS = frozenset({"top_tier", "high_performer", "profitable"})
"""Classifications given by the leaderboard seeder; these are not re-classified."""

_ZERO = Decimal(0)
_ONE = Decimal(1)
_HUNDRED = Decimal(100)
_INTEGER = re.compile(r"[+-]?[0-9]+")
_I32_MIN = -(1 << 31)
_I32_MAX = (1 << 31) - 1

_OVERRIDABLE = frozenset(
    {
        "min_signal_win_rate",
        "min_total_trades_for_signal",
        "min_signal_ev",
        "assumed_slippage_pct",
        "signal_notional_liquidity_pct",
        "signal_notional_floor",
        "max_signal_notional",
        "tracked_whale_min_notional",
    }
)


def _parse_decimal(text: str) -> Optional[Decimal]:
    if text != text.strip():
        return None
    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def _parse_i32(text: str) -> Optional[int]:
    if not _INTEGER.fullmatch(text):
        return None
    value = int(text)
    return value if _I32_MIN <= value <= _I32_MAX else None


@dataclass(frozen=True)
class PipelineConfig:
    """Thresholds that decide whether a whale trade becomes a copy signal."""

    tracked_whale_min_notional: Decimal
    min_signal_win_rate: Decimal
    min_resolved_for_signal: int
    min_total_trades_for_signal: int
    signal_notional_liquidity_pct: Decimal
    signal_notional_floor: Decimal
    max_signal_notional: Decimal
    min_signal_ev: Decimal
    assumed_slippage_pct: Decimal
    signal_dedup_window_secs: int = 10

    def with_overrides(
        self, entries: Union[Mapping[str, str], Iterable[Tuple[str, str]]]
    ) -> "PipelineConfig":
        """A copy with runtime overrides applied.

        Unknown keys and values that do not parse are ignored.
        """
        pairs = entries.items() if isinstance(entries, Mapping) else entries
        types = {f.name: f.type for f in fields(self)}
        changes: Dict[str, object] = {}
        for key, value in pairs:
            if key not in _OVERRIDABLE:
                continue
            if key == "min_total_trades_for_signal":
                parsed: object = _parse_i32(value)
            else:
                parsed = _parse_decimal(value)
            if parsed is not None and key in types:
                changes[key] = parsed
        return replace(self, **changes)


def trade_profit(
    side: str, notional: Decimal, price: Decimal, outcome: Optional[str]
) -> Decimal:
    """Profit of a trade given its market's outcome; zero while unresolved.

    Raises ZeroDivisionError when the price leaves no room for a payout.
    """
    is_buy = str(side) == "BUY"
    if outcome == "resolved_yes":
        return notional * (_ONE - price) / price if is_buy else -notional
    if outcome == "resolved_no":
        return -notional if is_buy else notional * price / (_ONE - price)
    return _ZERO


def months_active(
    trade_times: Iterable[datetime], now: Optional[datetime] = None
) -> int:
    """Whole 30-day months since the earliest trade, at least one."""
    current = now if now is not None else datetime.now(timezone.utc)
    earliest = min(trade_times, default=current)
    return max((current - earliest).days // 30, 1)


class SignalDeduplicator:
    """Remembers recently emitted signal keys for a fixed window."""

    def __init__(self, window_secs: float = 10) -> None:
        self.window_secs = window_secs
        self._seen: Dict[str, float] = {}

    def check_and_record(self, key: str, now: Optional[float] = None) -> bool:
        """True if ``key`` was seen within the window; otherwise record it."""
        moment = time.monotonic() if now is None else now
        self._seen = {
            k: t for k, t in self._seen.items() if moment - t < self.window_secs
        }
        if key in self._seen:
            return True
        self._seen[key] = moment
        return False


def blocked_reason(
    config: PipelineConfig,
    classification: Union[Classification, str],
    is_seeder_vetted: bool,
    resolved_count: int,
    effective_total_trades: int,
    notional: Decimal,
    market_liquidity: Optional[Decimal],
    expected_value: Decimal,
) -> Optional[str]:
    """Why a signal would be blocked by the quality gates, or None if it passes."""
    kind = Classification(classification)
    if kind in (Classification.BOT, Classification.MARKET_MAKER):
        return f"classified as {kind.value}"

    if not is_seeder_vetted and resolved_count < config.min_resolved_for_signal:
        return (
            f"only {resolved_count} resolved trades "
            f"(need {config.min_resolved_for_signal})"
        )

    if effective_total_trades < config.min_total_trades_for_signal:
        return (
            f"only {effective_total_trades} total trades "
            f"(need {config.min_total_trades_for_signal})"
        )

    if market_liquidity is None:
        dynamic_min = config.signal_notional_floor
    else:
        dynamic_min = max(
            market_liquidity * config.signal_notional_liquidity_pct,
            config.signal_notional_floor,
        )
    if notional < dynamic_min:
        return f"notional ${notional} below dynamic minimum ${dynamic_min}"

    if notional > config.max_signal_notional:
        return f"notional ${notional} above ${config.max_signal_notional} maximum"

    ev_copy = expected_value * (_ONE - config.assumed_slippage_pct)
    if ev_copy < config.min_signal_ev:
        return (
            f"EV_copy ${ev_copy} below ${config.min_signal_ev} minimum "
            f"(EV=${expected_value}, "
            f"slippage={config.assumed_slippage_pct * _HUNDRED}%)"
        )

    return None