from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from binarydesk.core.settings import Settings
from binarydesk.domain.entities.feed import (
    CandleTick,
    ConnectionChanged,
    ConnectionStatus,
    HistoryBootstrap,
)
from binarydesk.domain.exceptions import FeedError
from binarydesk.infrastructure.binance_feed import (
    BinanceFeed,
    parse_kline_message,
    parse_rest_rows,
    synthetic_candles,
)
from binarydesk.infrastructure.event_bus import FEED_TOPIC, EventBus
from binarydesk.infrastructure.retry_policy import RetryPolicy

NOW_S = 1_700_000_000


def _rest_row(open_ms: int, close: str = "101.5") -> list:
    return [open_ms, "100.0", "102.0", "99.0", close, "12.5", open_ms + 59_999,
            "0", 10, "0", "0", "0"]


def _kline(t_ms: int = 1_700_000_040_000, close: str = "101.0", closed: bool = False) -> dict:
    return {"t": t_ms, "T": t_ms + 59_999, "o": "100.0", "h": "102.0", "l": "99.5",
            "c": close, "v": "3.2", "x": closed}


class FakeStream:
    def __init__(self, messages: list[str]) -> None:
        self._messages = messages

    async def __aenter__(self) -> "FakeStream":
        return self

    async def __aexit__(self, *exc) -> bool:
        return False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self._messages:
            yield message


class FakeConnect:
    def __init__(self, messages: list[str] | None = None, error: Exception | None = None) -> None:
        self.messages = messages or []
        self.error = error
        self.urls: list[str] = []

    def __call__(self, url: str, **kwargs) -> FakeStream:
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return FakeStream(self.messages)


def _drain(queue: asyncio.Queue) -> list:
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


async def _run_once(transport: httpx.MockTransport, connect: FakeConnect) -> list:
    bus = EventBus()
    queue = await bus.subscribe(FEED_TOPIC, "test")
    feed = BinanceFeed(
        bus,
        Settings(fallback_seed=3),
        retry_policy=RetryPolicy(max_attempts=0),
        transport=transport,
        connect=connect,
        clock=lambda: NOW_S,
    )
    await feed.start("BTCUSDT")
    await asyncio.wait_for(feed._task, timeout=2)
    await feed.stop()
    return _drain(queue)


# ─── Parsing ───────────────────────────────────────────────────────────

def test_parse_rest_rows_maps_fields_and_skips_short_rows() -> None:
    candles = parse_rest_rows([_rest_row(1_700_000_000_000), [1, "2"]])

    assert len(candles) == 1
    candle = candles[0]
    assert candle.time == 1_700_000_000
    assert (candle.open, candle.high, candle.low, candle.close) == (100.0, 102.0, 99.0, 101.5)
    assert candle.volume == 12.5
    assert candle.is_closed


def test_parse_rest_rows_rejects_non_list() -> None:
    with pytest.raises(FeedError):
        parse_rest_rows({"code": -1121})


def test_parse_kline_message_plain_and_wrapped() -> None:
    plain = parse_kline_message(json.dumps({"e": "kline", "k": _kline(closed=True)}))
    wrapped = parse_kline_message(json.dumps({"stream": "x", "data": {"k": _kline()}}))

    assert plain.time == 1_700_000_040
    assert plain.close == 101.0
    assert plain.is_closed
    assert wrapped.time == 1_700_000_040
    assert not wrapped.is_closed


def test_parse_kline_message_ignores_other_shapes() -> None:
    assert parse_kline_message(json.dumps({"result": None, "id": 1})) is None
    assert parse_kline_message(json.dumps({"k": {**_kline(), "t": "oops"}})) is None
    assert parse_kline_message(json.dumps([1, 2, 3])) is None


@pytest.mark.parametrize("field", ["t", "T"])
def test_parse_kline_message_rejects_bool_timestamps(field) -> None:
    assert parse_kline_message(json.dumps({"k": {**_kline(), field: True}})) is None


def test_parse_kline_message_rejects_bad_json() -> None:
    with pytest.raises(FeedError):
        parse_kline_message("{not json")


def test_synthetic_candles_shape() -> None:
    import random

    candles = synthetic_candles(120, NOW_S, random.Random(1))

    assert len(candles) == 120
    assert candles[0].open == 50_000
    assert candles[1].open == 50_012
    assert candles[-1].time == NOW_S - 60
    assert all(b.time - a.time == 60 for a, b in zip(candles, candles[1:]))
    assert all(c.low <= min(c.open, c.close) and c.high >= max(c.open, c.close) for c in candles)


# ─── Ciclo de conexión ─────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_bootstrap_then_stream_events_in_order() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=[_rest_row(1_700_000_000_000), _rest_row(1_700_000_060_000)])

    connect = FakeConnect(
        messages=[json.dumps({"k": _kline()}), "garbage", json.dumps({"result": None})]
    )
    events = await _run_once(httpx.MockTransport(handler), connect)

    assert requests[0].url.params["symbol"] == "BTCUSDT"
    assert requests[0].url.params["interval"] == "1m"
    assert requests[0].url.params["limit"] == "500"
    assert connect.urls == ["wss://stream.binance.com:9443/ws/btcusdt@kline_1m"]

    kinds = [type(e).__name__ for e in events]
    assert kinds == [
        "ConnectionChanged", "HistoryBootstrap", "ConnectionChanged",
        "CandleTick", "ConnectionChanged",
    ]
    assert [e.status for e in events if isinstance(e, ConnectionChanged)] == [
        ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED, ConnectionStatus.DISCONNECTED,
    ]
    bootstrap = events[1]
    assert isinstance(bootstrap, HistoryBootstrap)
    assert not bootstrap.synthetic
    assert len(bootstrap.candles) == 2
    assert all(e.symbol == "BTCUSDT" for e in events)
    assert isinstance(events[3], CandleTick)


@pytest.mark.asyncio
async def test_bootstrap_failure_falls_back_to_synthetic_series() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    events = await _run_once(transport, FakeConnect(error=OSError("offline")))

    bootstraps = [e for e in events if isinstance(e, HistoryBootstrap)]
    assert len(bootstraps) == 1
    assert bootstraps[0].synthetic
    assert len(bootstraps[0].candles) == 120
    assert events[-1].status == ConnectionStatus.DISCONNECTED


@pytest.mark.asyncio
async def test_empty_history_counts_as_failure() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=[]))
    events = await _run_once(transport, FakeConnect())

    bootstrap = next(e for e in events if isinstance(e, HistoryBootstrap))
    assert bootstrap.synthetic


@pytest.mark.asyncio
async def test_switch_symbol_restarts_subscription() -> None:
    bus = EventBus()
    queue = await bus.subscribe(FEED_TOPIC, "test")
    connect = FakeConnect()
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json=[_rest_row(1_700_000_000_000)])
    )
    feed = BinanceFeed(
        bus, Settings(), retry_policy=RetryPolicy(max_attempts=0),
        transport=transport, connect=connect, clock=lambda: NOW_S,
    )

    await feed.start("BTCUSDT")
    await asyncio.wait_for(feed._task, timeout=2)
    await feed.switch_symbol("ETHUSDT")
    await asyncio.wait_for(feed._task, timeout=2)
    await feed.stop()

    events = _drain(queue)
    assert connect.urls[-1].endswith("/ethusdt@kline_1m")
    assert {e.symbol for e in events} == {"BTCUSDT", "ETHUSDT"}
    assert feed.stats["symbol"] == "ETHUSDT"
    assert feed.stats["running"] is False
