# whalecopy

Building blocks for a prediction-market copy-trading bot. The package spots
large ("whale") trades on the market websocket and on chain, scores and
classifies the wallets behind them, judges whether a basket of whales agrees
on a market, and applies the quality gates that decide whether a trade should
become a copy signal.

All money, price and ratio values are `decimal.Decimal`.

## Installation

```
pip install whalecopy
```

To run the tests:

```
pip install "whalecopy[test]"
pytest
```

## Modules

### `whalecopy.models`

Shared data types:

- `Side` (`BUY`, `SELL`); `Side.from_api_str` accepts `"BUY"`/`"SELL"` or
  `"0"`/`"1"` in any case and returns `None` for anything else.
- `WhaleTradeEvent`, the record passed through ingestion. Its `str()` shows
  the first eight characters of the wallet and market.
- `CopySignal`, `TradeResult`, `Whale`, `WhaleTrade`, `WhaleBasket`,
  `BasketWallet`, `ConsensusSignal`, `MarketOutcome`, `CopyOrder`,
  `Position`.
- `BasketCategory` (`politics`, `crypto`, `sports`) with
  `BasketCategory.parse_category`, and `OrderStatus`.

### `whalecopy.scorer`

Wallet metrics from a sequence of `TradeResult`:

- `sharpe_ratio(returns)`: mean over population standard deviation. It is
  zero with fewer than two returns or no spread.
- `win_rate(trades)` and `rolling_win_rate(trades, window)`.
  `rolling_win_rate` raises `ValueError` for a non-positive window.
- `kelly_fraction(win_rate, avg_odds)`: `(p*b - q) / b`, clamped at zero.
- `expected_value(trades)`.
- `is_decaying(trades)`: with at least 30 trades, true when the last 30 win
  below 55% or below the relative threshold.
- `score_wallet(trades)` combines all of these into a `WalletScore`.

### `whalecopy.classifier`

`classify_wallet(trades)` returns a `Classification`. A wallet is
`MARKET_MAKER` when it trades both sides in more than half of its markets.
It is `BOT` when it has ten or more trades averaging over 100 a month. Any
other wallet is `INFORMED`, including one with no trades.

### `whalecopy.basket`

- `check_admission(...)` returns an `AdmissionResult`. `accepted` is true
  when the wallet qualifies; otherwise `reason` says why not. The reasons
  are: win rate below 60%, less than 4 months of history, classified as bot
  or market maker, more than 100 trades a month, or fewer than 5 trades with
  less than 6 months of history.
- `evaluate_consensus(votes, total_whales, threshold, market_price, min_spread)`
  judges `BasketTradeVote`s and returns a `ConsensusCheck`.
- `infer_market_category(question)` maps a market question to a
  `BasketCategory` by keyword, or returns `None`.

### `whalecopy.chain_listener`

This module reads `OrderFilled` logs from the two exchange contracts on
Polygon.

- `decode_rpc_message(text, whale_addresses)` turns one JSON-RPC
  notification into a `WhaleTradeEvent` when the maker or taker is in the
  given lower-case address set, and returns `None` otherwise.
- The helpers `extract_address`, `parse_uint256_decimal`, `is_zero_asset`,
  `format_asset_id`, `safe_divide`, `determine_trade_params`,
  `subscribe_request` and `reconnect_delay` are public as well.
  `reconnect_delay` starts at 2 s, doubles per attempt and is capped at
  60 s.
- `run_chain_listener(ws_url, load_whale_addresses, trade_queue)` runs
  forever. It reconnects with backoff and puts events on an
  `asyncio.Queue`. `load_whale_addresses` is an async callable returning
  addresses; it is awaited at start and every five minutes.

### `whalecopy.ws_listener`

This module reads the market websocket.

- `decode_text_message(text)` returns the trades in one message. It handles
  `last_trade_price` events (wallet `"ws_anonymous"`, millisecond
  timestamps) and legacy trade arrays, `data` wrappers and single trade
  objects (epoch-second or RFC 3339 timestamps). Other event types give no
  trades.
- `build_subscribe_messages(token_ids)` makes subscribe frames of at most
  100 asset IDs each.
- `convert_ws_trade_event`, `parse_trades_legacy` and `convert_ws_trade`
  are the individual steps.
- `TokenWatch` holds the current token list: `set`, `get`, and
  `await wait_changed()`.
- `run_ws_listener(ws_url, token_watch, trade_queue)` runs forever. It
  subscribes on each connection and again whenever the watch changes.

### `whalecopy.pipeline`

Signal quality gates:

- `PipelineConfig`, whose `with_overrides(entries)` returns a copy with
  runtime overrides from a mapping or key/value pairs. Unknown keys and
  values that do not parse are ignored.
- `trade_profit(side, notional, price, outcome)` gives the profit for
  `"resolved_yes"` and `"resolved_no"`, and zero otherwise.
- `months_active(trade_times, now=None)` counts whole 30-day months since
  the earliest trade, at least one.
- `SignalDeduplicator(window_secs).check_and_record(key, now=None)`.
- `blocked_reason(...)` returns the first gate a trade fails, or `None`
  when it may be emitted. The gates, in order, are classification, resolved
  trades (skipped when seeder-vetted), total trades, the dynamic notional
  minimum, the notional maximum, and slippage-adjusted EV.
  `WHALE_NOTIONAL_THRESHOLD` and `SEEDER_TIERS` are exported alongside.

## Example

```python
from datetime import datetime, timezone
from decimal import Decimal

from whalecopy.basket import check_admission
from whalecopy.models import TradeResult
from whalecopy.scorer import score_wallet

now = datetime.now(timezone.utc)
results = [TradeResult(profit=Decimal(p), traded_at=now) for p in (100, -50, 200)]
score = score_wallet(results)
print(score.win_rate, score.kelly_fraction, score.expected_value)

admission = check_admission(Decimal("0.70"), "informed", 6, 50, Decimal(10))
print(admission.accepted)  # True
```

```python
import asyncio
from whalecopy.ws_listener import TokenWatch, run_ws_listener

async def main(url):
    queue = asyncio.Queue()
    watch = TokenWatch(["123"])
    asyncio.create_task(run_ws_listener(url, watch, queue))
    while True:
        print(await queue.get())
```

## What the package does not do

The package has no storage and no command-line program. It does not place
or track orders, size positions, send notifications or serve an API. It
also does not wire the steps into a running pipeline. Persisting trades and
whales, re-scoring them, checking basket consensus against stored votes,
and emitting `CopySignal`s are left to the caller, who combines the
functions above.