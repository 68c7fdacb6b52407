"""Domain records shared across ingestion, intelligence and execution."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID


class Side(str, enum.Enum):
    """Direction of a trade."""

    BUY = "BUY"
    SELL = "SELL"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_api_str(cls, s: str) -> Optional["Side"]:
        """Parse an API side string ("BUY"/"SELL" or "0"/"1"), case-insensitively."""
        normalized = s.upper()
        if normalized in ("BUY", "0"):
            return cls.BUY
        if normalized in ("SELL", "1"):
            return cls.SELL
        return None


@dataclass
class WhaleTradeEvent:
    """A trade observed on the market, flowing through the pipeline."""

    wallet: str
    market_id: str
    asset_id: str
    side: Side
    size: Decimal
    price: Decimal
    notional: Decimal
    timestamp: datetime

    def __str__(self) -> str:
        return (
            f"Trade: wallet={self.wallet[:8]} market={self.market_id[:8]} "
            f"side={self.side} size={self.size} price={self.price} "
            f"notional={self.notional}"
        )


class BasketCategory(str, enum.Enum):
    """Topic taxonomy for whale baskets."""

    POLITICS = "politics"
    CRYPTO = "crypto"
    SPORTS = "sports"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse_category(cls, s: str) -> Optional["BasketCategory"]:
        """Parse a category name case-insensitively; None when unknown."""
        try:
            return cls(s.lower())
        except ValueError:
            return None


@dataclass
class WhaleBasket:
    """A group of whales categorised by topic."""

    id: UUID
    name: str
    category: str
    consensus_threshold: Decimal
    time_window_hours: int
    min_wallets: int
    max_wallets: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


@dataclass
class BasketWallet:
    """Association between a basket and a whale."""

    id: UUID
    basket_id: UUID
    whale_id: UUID
    added_at: datetime


@dataclass
class ConsensusSignal:
    """A recorded consensus signal (audit log entry)."""

    id: UUID
    basket_id: UUID
    market_id: str
    direction: str
    consensus_pct: Decimal
    participating_whales: int
    total_whales: int
    triggered_at: datetime


@dataclass
class MarketOutcome:
    """Resolution state of a market."""

    id: UUID
    market_id: str
    outcome: str
    token_id: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderStatus(str, enum.Enum):
    """Lifecycle states of a copy order."""

    PENDING = "pending"
    SUBMITTED = "submitted"
    FILLED = "filled"
    PARTIAL = "partial"
    CANCELLED = "cancelled"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


@dataclass
class CopyOrder:
    """An order placed to copy a whale trade."""

    id: UUID
    market_id: str
    token_id: str
    side: str
    size: Decimal
    target_price: Decimal
    status: str
    strategy: str
    whale_trade_id: Optional[UUID] = None
    fill_price: Optional[Decimal] = None
    slippage: Optional[Decimal] = None
    error_message: Optional[str] = None
    placed_at: Optional[datetime] = None
    filled_at: Optional[datetime] = None
    clob_order_id: Optional[str] = None


@dataclass
class Position:
    """An open or closed position in an outcome token."""

    id: UUID
    market_id: str
    token_id: str
    outcome: str
    size: Decimal
    avg_entry_price: Decimal
    current_price: Optional[Decimal] = None
    unrealized_pnl: Optional[Decimal] = None
    status: Optional[str] = None
    opened_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    realized_pnl: Optional[Decimal] = None
    stop_loss_pct: Optional[Decimal] = None
    take_profit_pct: Optional[Decimal] = None
    last_price_update: Optional[datetime] = None
    exit_reason: Optional[str] = None
    exited_at: Optional[datetime] = None


@dataclass(frozen=True)
class CopySignal:
    """A validated copy-trade signal ready for execution."""

    whale_trade_id: UUID
    wallet: str
    market_id: str
    asset_id: str
    side: Side
    price: Decimal
    whale_win_rate: Decimal
    whale_kelly: Decimal
    whale_notional: Decimal


@dataclass
class WhaleTrade:
    """A stored trade made by a tracked whale."""

    id: UUID
    market_id: str
    token_id: str
    side: str
    size: Decimal
    price: Decimal
    notional: Decimal
    traded_at: datetime
    whale_id: Optional[UUID] = None
    tx_hash: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class TradeResult:
    """Profit outcome of a resolved trade, used for scoring."""

    profit: Decimal
    traded_at: datetime


@dataclass
class Whale:
    """A tracked wallet and its latest scores."""

    id: UUID
    address: str
    label: Optional[str] = None
    category: Optional[str] = None
    classification: Optional[str] = None
    sharpe_ratio: Optional[Decimal] = None
    win_rate: Optional[Decimal] = None
    total_trades: Optional[int] = None
    total_pnl: Optional[Decimal] = None
    kelly_fraction: Optional[Decimal] = None
    expected_value: Optional[Decimal] = None
    is_active: Optional[bool] = None
    last_trade_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None