"""Basket admission rules, consensus evaluation and market category inference."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence
from uuid import UUID

from whalecopy.models import BasketCategory

_ZERO = Decimal(0)
_ONE = Decimal(1)
_HUNDRED = Decimal(100)


@dataclass(frozen=True)
class AdmissionResult:
    """Outcome of a basket admission check; ``reason`` is set when rejected."""

    reason: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.reason is None

    @classmethod
    def accept(cls) -> "AdmissionResult":
        return cls()

    @classmethod
    def reject(cls, reason: str) -> "AdmissionResult":
        return cls(reason)


@dataclass(frozen=True)
class BasketTradeVote:
    """A whale's trade in a basket market, counted as a vote."""

    whale_id: UUID
    side: str
    traded_at: datetime


@dataclass(frozen=True)
class ConsensusCheck:
    """Result of evaluating basket votes for consensus."""

    reached: bool
    direction: str
    consensus_pct: Decimal
    participating: int
    total: int
    reason: str


def check_admission(
    win_rate: Decimal,
    classification: Optional[str],
    months_active: int,
    total_trades: int,
    avg_monthly_trades: Decimal,
) -> AdmissionResult:
    """Decide whether a whale qualifies for basket membership."""
    if win_rate < Decimal("0.60"):
        return AdmissionResult.reject("win rate below 60%")
    if months_active < 4:
        return AdmissionResult.reject("history shorter than 4 months")
    if classification == "bot":
        return AdmissionResult.reject("classified as bot")
    if classification == "market_maker":
        return AdmissionResult.reject("classified as market_maker")
    if avg_monthly_trades > _HUNDRED:
        return AdmissionResult.reject("average monthly trades > 100 (bot pattern)")
    if total_trades < 5 and months_active < 6:
        return AdmissionResult.reject(
            "suspected insider: too few trades with short history"
        )
    return AdmissionResult.accept()


def evaluate_consensus(
    votes: Sequence[BasketTradeVote],
    total_whales: int,
    threshold: Decimal,
    market_price: Decimal,
    min_spread: Decimal,
) -> ConsensusCheck:
    """Decide whether the votes of a basket reach consensus."""

    def no_consensus(reason: str) -> ConsensusCheck:
        return ConsensusCheck(
            reached=False,
            direction="",
            consensus_pct=_ZERO,
            participating=len(votes),
            total=total_whales,
            reason=reason,
        )

    if not votes:
        return no_consensus("no votes in window")
    if total_whales < 3:
        return no_consensus(
            f"basket too small ({total_whales} whales, need at least 3)"
        )
    if len({v.whale_id for v in votes}) < 2:
        return no_consensus("need at least 2 distinct whales voting")
    if market_price < min_spread or _ONE - market_price < min_spread:
        return no_consensus("market price too close to resolution")

    sides = [v.side.upper() for v in votes]
    buy_count = sides.count("BUY")
    sell_count = sides.count("SELL")
    if buy_count >= sell_count:
        direction, majority = "BUY", buy_count
    else:
        direction, majority = "SELL", sell_count

    consensus_pct = Decimal(majority) / Decimal(total_whales)

    if consensus_pct >= threshold:
        reason = (
            f"consensus reached: {majority}/{total_whales} whales vote {direction}"
        )
        reached = True
    else:
        reason = (
            f"consensus not reached: {consensus_pct * _HUNDRED:.1f}% < "
            f"{threshold * _HUNDRED:.1f}% threshold"
        )
        reached = False

    return ConsensusCheck(
        reached=reached,
        direction=direction,
        consensus_pct=consensus_pct,
        participating=len(votes),
        total=total_whales,
        reason=reason,
    )


_POLITICS_KEYWORDS = (
    "president", "election", "trump", "biden", "congress", "senate",
    "governor", "democrat", "republican", "vote", "ballot", "political",
    "party", "legislation", "minister", "parliament", "nato",
)
_CRYPTO_KEYWORDS = (
    "bitcoin", "btc", "ethereum", "eth", "crypto", "token", "blockchain",
    "solana", "sol", "dogecoin", "doge", "defi", "nft", "altcoin",
)
_SPORTS_KEYWORDS = (
    "nba", "nfl", "mlb", "nhl", "fifa", "world cup", "championship",
    "super bowl", "premier league", "playoffs", "mvp", "touchdown",
    "slam dunk", "goal", "match", "tennis", "ufc", "boxing",
)


def infer_market_category(question: str) -> Optional[BasketCategory]:
    """Guess a basket category from a market question by keyword matching."""
    q = question.lower()
    for category, keywords in (
        (BasketCategory.POLITICS, _POLITICS_KEYWORDS),
        (BasketCategory.CRYPTO, _CRYPTO_KEYWORDS),
        (BasketCategory.SPORTS, _SPORTS_KEYWORDS),
    ):
        if any(kw in q for kw in keywords):
            return category
    return None