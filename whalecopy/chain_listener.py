"""On-chain OrderFilled listener for the CTF exchanges on Polygon.

Subscribes to exchange logs over a JSON-RPC websocket and turns fills that
involve a tracked whale into :class:`WhaleTradeEvent` records.
"""

from __future__ import annotations

import asyncio
import json
import logging
import string
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Awaitable, Callable, Iterable, NamedTuple, Optional, Set

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from whalecopy.models import Side, WhaleTradeEvent

logger = logging.getLogger(__name__)

CTF_EXCHANGE = "0x4bfb41d5b3570defd03c39a9a4d8de6bd8b8982e"
"""CTF Exchange contract on Polygon."""

NEG_RISK_CTF_EXCHANGE = "0xc5d563a36ae78145c45a50134d48a1215220f80a"
"""NegRisk CTF Exchange contract on Polygon."""

ORDER_FILLED_TOPIC = (
    "0xd0a08e8c493f9c94f29311604c9de1b4e8c8d4c06bd0c789af57f2d65bfec0f6"
)
"""Keccak256 of the OrderFilled event signature."""

BASE_RECONNECT_DELAY = 2.0
MAX_RECONNECT_DELAY = 60.0
WHALE_REFRESH_INTERVAL = 300.0

USDC_DECIMALS = 6
"""USDC on Polygon has 6 decimals."""

_HEX_DIGITS = frozenset(string.hexdigits)
_U128_LIMIT = 1 << 128
_ZERO = Decimal(0)


class TradeParams(NamedTuple):
    """Trade details derived from an OrderFilled event for one whale."""

    wallet: str
    side: Side
    asset_id: str
    size: Decimal
    price: Decimal


def reconnect_delay(attempt: int) -> float:
    """Exponential backoff in seconds: 2s doubling per attempt, capped at 60s."""
    if attempt < 0:
        raise ValueError("attempt must not be negative")
    return min(BASE_RECONNECT_DELAY * 2 ** min(attempt, 6), MAX_RECONNECT_DELAY)


def _is_hex(text: str) -> bool:
    return all(ch in _HEX_DIGITS for ch in text)


def _strip_0x(text: str) -> str:
    return text[2:] if text.startswith("0x") else text


def extract_address(topic: str) -> str:
    """Extract the 20-byte address from a 32-byte zero-padded hex topic."""
    hex_part = _strip_0x(topic)
    if len(hex_part) < 40:
        return f"0x{hex_part}"
    return f"0x{hex_part[-40:]}".lower()


def parse_uint256_decimal(hex_str: str, decimals: int) -> Decimal:
    """Parse a hex uint256 into a Decimal scaled down by ``decimals`` places.

    Values that are empty, not hexadecimal, or do not fit in 128 bits give zero.
    """
    digits = hex_str.lstrip("0")
    value = 0
    if digits and _is_hex(digits):
        parsed = int(digits, 16)
        if parsed < _U128_LIMIT:
            value = parsed
    return Decimal(value) / Decimal(10**decimals)


def is_zero_asset(hex_str: str) -> bool:
    """True when a hex-encoded asset ID is zero (the USDC side of a fill)."""
    return not hex_str.lstrip("0")


def format_asset_id(hex_str: str) -> str:
    """Render a hex uint256 token ID as its full decimal string.

    Input that is not hexadecimal is returned with leading zeros removed.
    """
    digits = hex_str.lstrip("0")
    if not digits:
        return "0"
    if not _is_hex(digits):
        return digits
    return str(int(digits, 16))


def safe_divide(numerator: Decimal, denominator: Decimal) -> Decimal:
    """Divide, returning zero when the denominator is zero."""
    if denominator.is_zero():
        return _ZERO
    return numerator / denominator


def determine_trade_params(
    whale_addr: str,
    is_maker: bool,
    maker_asset_id_hex: str,
    taker_asset_id_hex: str,
    maker_amount: Decimal,
    taker_amount: Decimal,
) -> TradeParams:
    """Work out side, asset, size and price from the whale's role in a fill.

    The party whose given asset is zero pays USDC and so buys outcome tokens;
    otherwise it gives outcome tokens and sells.
    """
    if is_maker:
        if is_zero_asset(maker_asset_id_hex):
            return TradeParams(
                whale_addr,
                Side.BUY,
                format_asset_id(taker_asset_id_hex),
                taker_amount,
                safe_divide(maker_amount, taker_amount),
            )
        return TradeParams(
            whale_addr,
            Side.SELL,
            format_asset_id(maker_asset_id_hex),
            maker_amount,
            safe_divide(taker_amount, maker_amount),
        )
    if is_zero_asset(taker_asset_id_hex):
        return TradeParams(
            whale_addr,
            Side.BUY,
            format_asset_id(maker_asset_id_hex),
            maker_amount,
            safe_divide(taker_amount, maker_amount),
        )
    return TradeParams(
        whale_addr,
        Side.SELL,
        format_asset_id(taker_asset_id_hex),
        taker_amount,
        safe_divide(maker_amount, taker_amount),
    )


def subscribe_request() -> dict:
    """The eth_subscribe request for OrderFilled logs on both exchanges."""
    return {
        "jsonrpc": "2.0",
        "id": 1,
        "method": "eth_subscribe",
        "params": [
            "logs",
            {
                "address": [CTF_EXCHANGE, NEG_RISK_CTF_EXCHANGE],
                "topics": [[ORDER_FILLED_TOPIC]],
            },
        ],
    }


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def decode_rpc_message(
    text: str, whale_addresses: Set[str]
) -> Optional[WhaleTradeEvent]:
    """Decode a JSON-RPC message into a whale trade, or None if it is not one.

    ``whale_addresses`` holds lower-case addresses of tracked whales.
    """
    try:
        msg = json.loads(text)
    except ValueError:
        return None
    if not isinstance(msg, dict):
        return None

    if "id" in msg and "result" in msg:
        logger.debug("Chain listener: subscription confirmed (%s)", msg["result"])
        return None

    params = msg.get("params")
    if not isinstance(params, dict):
        return None
    result = params.get("result")
    if not isinstance(result, dict):
        return None
    topics = result.get("topics")
    if not isinstance(topics, list) or len(topics) < 4:
        return None
    if _as_str(topics[0]) != ORDER_FILLED_TOPIC:
        return None

    maker = extract_address(_as_str(topics[2]))
    taker = extract_address(_as_str(topics[3]))
    maker_is_whale = maker in whale_addresses
    taker_is_whale = taker in whale_addresses
    if not maker_is_whale and not taker_is_whale:
        return None

    data_hex = _strip_0x(_as_str(result.get("data")))
    if len(data_hex) < 320:
        logger.warning(
            "Chain event: data too short for OrderFilled (%d chars)", len(data_hex)
        )
        return None

    maker_asset_id = data_hex[0:64]
    taker_asset_id = data_hex[64:128]
    maker_amount = parse_uint256_decimal(data_hex[128:192], USDC_DECIMALS)
    taker_amount = parse_uint256_decimal(data_hex[192:256], USDC_DECIMALS)

    params_ = determine_trade_params(
        maker if maker_is_whale else taker,
        maker_is_whale,
        maker_asset_id,
        taker_asset_id,
        maker_amount,
        taker_amount,
    )

    return WhaleTradeEvent(
        wallet=params_.wallet,
        market_id=params_.asset_id,
        asset_id=params_.asset_id,
        side=params_.side,
        size=params_.size,
        price=params_.price,
        notional=params_.size * params_.price,
        timestamp=datetime.now(timezone.utc),
    )


async def _load_addresses(
    load_whale_addresses: Callable[[], Awaitable[Iterable[str]]],
) -> Set[str]:
    try:
        addresses = await load_whale_addresses()
    except Exception:
        logger.exception("Failed to load whale addresses")
        return set()
    return {address.lower() for address in addresses}


async def run_chain_listener(
    ws_url: str,
    load_whale_addresses: Callable[[], Awaitable[Iterable[str]]],
    trade_queue: "asyncio.Queue[WhaleTradeEvent]",
) -> None:
    """Listen for OrderFilled events forever, forwarding whale trades.

    ``load_whale_addresses`` is awaited at start and every five minutes to
    refresh the set of tracked wallets. Dropped connections are retried with
    exponential backoff.
    """
    attempt = 0
    whales = await _load_addresses(load_whale_addresses)
    logger.info("Chain listener loaded %d whale addresses", len(whales))
    last_refresh = time.monotonic()

    while True:
        logger.info("Chain listener connecting to %s", ws_url)
        try:
            async with websockets.connect(ws_url) as ws:
                logger.info("Chain listener connected")
                attempt = 0
                await ws.send(json.dumps(subscribe_request()))
                logger.info("Subscribed to OrderFilled events on 2 contracts")

                while True:
                    if time.monotonic() - last_refresh >= WHALE_REFRESH_INTERVAL:
                        whales = await _load_addresses(load_whale_addresses)
                        last_refresh = time.monotonic()
                        logger.debug("Refreshed whale address set (%d)", len(whales))
                    try:
                        message = await asyncio.wait_for(
                            ws.recv(), timeout=WHALE_REFRESH_INTERVAL
                        )
                    except asyncio.TimeoutError:
                        continue
                    if not isinstance(message, str):
                        continue
                    event = decode_rpc_message(message, whales)
                    if event is not None:
                        logger.info("Chain event: whale trade detected: %s", event)
                        await trade_queue.put(event)
        except ConnectionClosed as exc:
            logger.warning("Chain listener: connection closed (%s)", exc)
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            logger.error("Chain listener: connection failed (%s)", exc)

        delay = reconnect_delay(attempt)
        attempt += 1
        logger.info(
            "Chain listener reconnecting in %.0fs (attempt %d)", delay, attempt
        )
        await asyncio.sleep(delay)