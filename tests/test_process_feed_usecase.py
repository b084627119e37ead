from __future__ import annotations

import asyncio

import pytest

from binarydesk.application.process_feed_usecase import ProcessFeedUseCase
from binarydesk.domain.entities.feed import (
    CandleTick,
    ConnectionChanged,
    ConnectionStatus,
    HistoryBootstrap,
)
from binarydesk.domain.entities.order import Direction
from binarydesk.infrastructure.event_bus import (
    FEED_TOPIC,
    HISTORY_CHANGED_TOPIC,
    STATE_CHANGED_TOPIC,
    EventBus,
)
from binarydesk.services.order_book import MS_PER_MINUTE
from tests.conftest import make_candle, make_series


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def usecase(bus, state, order_book, settings, clock) -> ProcessFeedUseCase:
    return ProcessFeedUseCase(bus, state, order_book, settings, clock=clock)


def _bootstrap(symbol: str = "BTCUSDT", closes=(100.0, 101.0)) -> HistoryBootstrap:
    return HistoryBootstrap(symbol=symbol, candles=tuple(make_series(closes, start=0)))


@pytest.mark.asyncio
async def test_bootstrap_replaces_ledger(usecase, state) -> None:
    assert await usecase.handle(_bootstrap())

    assert len(state.ledger) == 2
    assert state.price == 101.0


@pytest.mark.asyncio
async def test_tick_upserts_and_settles_due_orders(usecase, state, order_book, bus, clock) -> None:
    history_queue = await bus.subscribe(HISTORY_CHANGED_TOPIC, "test")
    await usecase.handle(_bootstrap())
    order_book.place_order(Direction.CALL, 100, 1, 0.85)

    clock.advance(MS_PER_MINUTE)
    await usecase.handle(CandleTick(symbol="BTCUSDT", candle=make_candle(60, 105.0)))

    assert state.price == 105.0
    assert state.active_orders == []
    assert state.trade_history[0].exit_price == 105.0
    assert state.trade_history[0].closed_at == clock.now
    assert history_queue.get_nowait() == state.trade_history


@pytest.mark.asyncio
async def test_connection_change_updates_status(usecase, state, bus) -> None:
    state_queue = await bus.subscribe(STATE_CHANGED_TOPIC, "test")

    await usecase.handle(ConnectionChanged(symbol="BTCUSDT", status=ConnectionStatus.CONNECTED))

    assert state.connection_status == ConnectionStatus.CONNECTED
    assert not state_queue.empty()


@pytest.mark.asyncio
async def test_events_for_previous_symbol_are_dropped(usecase, state) -> None:
    await usecase.handle(_bootstrap())
    state.select_symbol("ETHUSDT")

    accepted = await usecase.handle(
        CandleTick(symbol="BTCUSDT", candle=make_candle(120, 999.0))
    )

    assert accepted is False
    assert len(state.ledger) == 0
    assert state.price is None
    assert usecase.stats["stale_dropped"] == 1


@pytest.mark.asyncio
async def test_symbol_switch_resets_series_but_keeps_account(usecase, state, order_book) -> None:
    await usecase.handle(_bootstrap())
    order_book.place_order(Direction.PUT, 100, 5, 0.85)

    state.select_symbol("ETHUSDT")

    assert state.connection_status == ConnectionStatus.CONNECTING
    assert state.price is None
    assert len(state.active_orders) == 1
    assert state.balance == 9_900


@pytest.mark.asyncio
async def test_settle_due_uses_last_price(usecase, state, order_book, clock) -> None:
    await usecase.handle(_bootstrap())
    order_book.place_order(Direction.CALL, 100, 1, 0.85)

    assert await usecase.settle_due() == []
    clock.advance(MS_PER_MINUTE)
    settled = await usecase.settle_due()

    assert len(settled) == 1
    assert settled[0].exit_price == 101.0


@pytest.mark.asyncio
async def test_settle_due_without_price_is_noop(usecase, state) -> None:
    assert state.price is None
    assert await usecase.settle_due() == []


@pytest.mark.asyncio
async def test_running_loop_consumes_bus_and_polls(usecase, state, order_book, bus, clock) -> None:
    await usecase.start()
    try:
        await bus.publish(FEED_TOPIC, _bootstrap())
        for _ in range(50):
            if state.price is not None:
                break
            await asyncio.sleep(0.01)
        assert state.price == 101.0

        order_book.place_order(Direction.CALL, 100, 1, 0.85)
        clock.advance(MS_PER_MINUTE)
        for _ in range(50):
            if not state.active_orders:
                break
            await asyncio.sleep(0.02)
        assert state.active_orders == []
        assert len(state.trade_history) == 1
    finally:
        await usecase.stop()
    assert usecase.stats["running"] is False
