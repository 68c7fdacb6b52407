"""Market websocket listener that turns trade messages into pipeline events.

Subscriptions follow a :class:`TokenWatch` that the market discovery service
updates. Trade messages become :class:`WhaleTradeEvent` records on a queue.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Mapping, Optional, Sequence

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from whalecopy.chain_listener import reconnect_delay
from whalecopy.models import Side, WhaleTradeEvent

logger = logging.getLogger(__name__)

PING_INTERVAL = 25.0
SUBSCRIBE_BATCH_SIZE = 100
"""Most asset IDs sent in one subscribe message, to keep frames small."""

ANONYMOUS_WALLET = "ws_anonymous"
"""Wallet placeholder for trade events that carry no address."""

_EVENT_FIELDS = ("event_type", "asset_id", "market", "side", "size", "price", "timestamp")
_TRADE_FIELDS = (
    "taker_address",
    "maker_address",
    "market",
    "asset_id",
    "side",
    "size",
    "price",
    "timestamp",
)

_INTEGER = re.compile(r"[+-]?[0-9]+")
_I64_MIN = -(1 << 63)
_I64_MAX = (1 << 63) - 1
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ZERO = Decimal(0)


class TokenWatch:
    """Latest list of token IDs to subscribe to, with change notification."""

    def __init__(self, tokens: Iterable[str] = ()) -> None:
        self._tokens: List[str] = list(tokens)
        self._version = 0
        self._seen = 0
        self._changed = asyncio.Event()

    def set(self, tokens: Iterable[str]) -> None:
        """Replace the token list and wake any waiter."""
        self._tokens = list(tokens)
        self._version += 1
        self._changed.set()

    def get(self) -> List[str]:
        """A copy of the current token list."""
        return list(self._tokens)

    async def wait_changed(self) -> List[str]:
        """Wait until the list changes after the last wait, then return it."""
        while self._version == self._seen:
            self._changed.clear()
            await self._changed.wait()
        self._seen = self._version
        return self.get()


def build_subscribe_messages(token_ids: Sequence[str]) -> List[str]:
    """Subscribe messages for the given token IDs, batched to limit frame size."""
    return [
        json.dumps(
            {
                "type": "market",
                "assets_ids": list(token_ids[start:start + SUBSCRIBE_BATCH_SIZE]),
            },
            separators=(",", ":"),
        )
        for start in range(0, len(token_ids), SUBSCRIBE_BATCH_SIZE)
    ]


def _is_record(value: Any, fields: Sequence[str]) -> bool:
    """True for an object whose known fields are all absent, null or strings."""
    if not isinstance(value, dict):
        return False
    return all(value.get(name) is None or isinstance(value[name], str) for name in fields)


def _text(record: Mapping[str, Any], name: str) -> Optional[str]:
    value = record.get(name)
    return value if isinstance(value, str) else None


def _decimal(text: Optional[str]) -> Decimal:
    if text is None or text != text.strip():
        return _ZERO
    try:
        value = Decimal(text)
    except InvalidOperation:
        return _ZERO
    return value if value.is_finite() else _ZERO


def _parse_i64(text: str) -> Optional[int]:
    if not _INTEGER.fullmatch(text):
        return None
    value = int(text)
    if not _I64_MIN <= value <= _I64_MAX:
        return None
    return value


def _from_epoch(seconds: int, micros: int = 0) -> Optional[datetime]:
    try:
        return _EPOCH + timedelta(seconds=seconds, microseconds=micros)
    except OverflowError:
        return None


def _from_millis(ms: int) -> Optional[datetime]:
    # A negative count that is not whole seconds has no valid sub-second part.
    if ms < 0 and ms % 1000 != 0:
        return None
    return _from_epoch(0, ms * 1000)


def _parse_rfc3339(text: str) -> Optional[datetime]:
    candidate = text[:-1] + "+00:00" if text[-1:] in ("Z", "z") else text
    if len(candidate) < 11 or candidate[10] not in "Tt ":
        return None
    try:
        parsed = datetime.fromisoformat(candidate[:10] + "T" + candidate[11:])
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return None
    return parsed.astimezone(timezone.utc)


def _timestamp(text: Optional[str], *, millis: bool) -> datetime:
    parsed: Optional[datetime] = None
    if text is not None:
        number = _parse_i64(text)
        if number is not None:
            parsed = _from_millis(number) if millis else _from_epoch(number)
        else:
            parsed = _parse_rfc3339(text)
    return parsed if parsed is not None else datetime.now(timezone.utc)


def convert_ws_trade_event(event: Mapping[str, Any]) -> Optional[WhaleTradeEvent]:
    """Turn a ``last_trade_price`` event into a trade; None without a valid side.

    These events carry no wallet, so the wallet is :data:`ANONYMOUS_WALLET`.
    Timestamps are epoch milliseconds or RFC 3339.
    """
    side_text = _text(event, "side")
    if side_text is None:
        return None
    side = Side.from_api_str(side_text)
    if side is None:
        return None
    size = _decimal(_text(event, "size"))
    price = _decimal(_text(event, "price"))
    return WhaleTradeEvent(
        wallet=ANONYMOUS_WALLET,
        market_id=_text(event, "market") or "unknown",
        asset_id=_text(event, "asset_id") or "unknown",
        side=side,
        size=size,
        price=price,
        notional=size * price,
        timestamp=_timestamp(_text(event, "timestamp"), millis=True),
    )


def parse_trades_legacy(text: str) -> List[dict]:
    """Trade records from a legacy message: an array, a ``data`` array or one object."""
    try:
        data = json.loads(text)
    except ValueError:
        return []
    if isinstance(data, list):
        if all(_is_record(item, _TRADE_FIELDS) for item in data):
            return data
        return []
    if isinstance(data, dict):
        inner = data.get("data")
        if isinstance(inner, list) and all(_is_record(i, _TRADE_FIELDS) for i in inner):
            return inner
        if _is_record(data, _TRADE_FIELDS):
            return [data]
    logger.debug("Non-trade message received: %s", text)
    return []


def convert_ws_trade(trade: Mapping[str, Any]) -> Optional[WhaleTradeEvent]:
    """Turn a legacy trade record into a trade; None without a wallet or valid side.

    The taker address is preferred over the maker's. Timestamps are epoch
    seconds or RFC 3339.
    """
    wallet = _text(trade, "taker_address")
    if wallet is None:
        wallet = _text(trade, "maker_address")
    if wallet is None:
        return None
    side_text = _text(trade, "side")
    if side_text is None:
        return None
    side = Side.from_api_str(side_text)
    if side is None:
        return None
    size = _decimal(_text(trade, "size"))
    price = _decimal(_text(trade, "price"))
    return WhaleTradeEvent(
        wallet=wallet,
        market_id=_text(trade, "market") or "unknown",
        asset_id=_text(trade, "asset_id") or "unknown",
        side=side,
        size=size,
        price=price,
        notional=size * price,
        timestamp=_timestamp(_text(trade, "timestamp"), millis=False),
    )


def decode_text_message(text: str) -> List[WhaleTradeEvent]:
    """All trades carried by one text message from the market websocket."""
    try:
        data = json.loads(text)
    except ValueError:
        data = None
    if _is_record(data, _EVENT_FIELDS):
        event_type = data.get("event_type")
        if event_type == "last_trade_price":
            event = convert_ws_trade_event(data)
            return [event] if event is not None else []
        if event_type is not None:
            return []

    events = []
    for trade in parse_trades_legacy(text):
        event = convert_ws_trade(trade)
        if event is None:
            logger.debug("Could not convert websocket trade: %s", text)
        else:
            events.append(event)
    return events


async def _subscribe(ws: Any, tokens: Sequence[str]) -> None:
    messages = build_subscribe_messages(tokens)
    for message in messages:
        await ws.send(message)
    logger.info("Subscribed to %d tokens in %d batches", len(tokens), len(messages))


async def _listen(
    ws: Any, token_watch: TokenWatch, trade_queue: "asyncio.Queue[WhaleTradeEvent]"
) -> None:
    recv_task = asyncio.ensure_future(ws.recv())
    change_task = asyncio.ensure_future(token_watch.wait_changed())
    try:
        while True:
            done, _ = await asyncio.wait(
                {recv_task, change_task}, return_when=asyncio.FIRST_COMPLETED
            )
            if change_task in done:
                tokens = change_task.result()
                logger.info("Received updated token list, resubscribing")
                await _subscribe(ws, tokens)
                change_task = asyncio.ensure_future(token_watch.wait_changed())
            if recv_task in done:
                message = recv_task.result()
                if isinstance(message, str):
                    for event in decode_text_message(message):
                        logger.info("Trade detected: %s", event)
                        await trade_queue.put(event)
                recv_task = asyncio.ensure_future(ws.recv())
    finally:
        for task in (recv_task, change_task):
            task.cancel()
        await asyncio.gather(recv_task, change_task, return_exceptions=True)


async def run_ws_listener(
    ws_url: str,
    token_watch: TokenWatch,
    trade_queue: "asyncio.Queue[WhaleTradeEvent]",
) -> None:
    """Listen to the market websocket forever, forwarding trades to the queue.

    Subscribes to the current tokens on each connection and again whenever
    the watch changes. Dropped connections are retried with backoff.
    """
    attempt = 0
    while True:
        logger.info("Connecting to market websocket %s", ws_url)
        try:
            async with websockets.connect(ws_url, ping_interval=PING_INTERVAL) as ws:
                logger.info("Websocket connected")
                attempt = 0
                await _subscribe(ws, token_watch.get())
                await _listen(ws, token_watch, trade_queue)
        except ConnectionClosed as exc:
            logger.warning("Websocket closed (%s)", exc)
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            logger.error("Websocket connection failed (%s)", exc)

        delay = reconnect_delay(attempt)
        attempt += 1
        logger.info("Reconnecting in %.0fs (attempt %d)", delay, attempt)
        await asyncio.sleep(delay)