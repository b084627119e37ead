from __future__ import annotations

import pytest

from binarydesk.application.trading_commands import TradingCommands
from binarydesk.domain.entities.notification import NotificationVariant
from binarydesk.domain.entities.order import Direction
from binarydesk.domain.exceptions import ContractViolationError
from binarydesk.infrastructure.event_bus import HISTORY_CHANGED_TOPIC, EventBus
from binarydesk.services.order_book import MS_PER_MINUTE


class RecordingFeed:
    def __init__(self) -> None:
        self.switched: list[str] = []

    async def start(self, symbol: str) -> None:
        pass

    async def switch_symbol(self, symbol: str) -> None:
        self.switched.append(symbol)

    async def stop(self) -> None:
        pass

    @property
    def stats(self) -> dict:
        return {}


@pytest.fixture
def feed() -> RecordingFeed:
    return RecordingFeed()


@pytest.fixture
def commands(state, order_book, dispatcher, settings, feed, clock) -> TradingCommands:
    return TradingCommands(
        EventBus(), state, order_book, dispatcher, settings, feed=feed, clock=clock,
    )


@pytest.mark.asyncio
async def test_place_order_uses_default_payout(commands, priced_state) -> None:
    result = await commands.place_order("CALL", 50, 5)

    assert result.success
    assert result.order.payout == 0.85


@pytest.mark.asyncio
async def test_set_selected_symbol_resets_and_restarts_feed(commands, priced_state, feed) -> None:
    assert await commands.set_selected_symbol("ethusdt") is True

    assert priced_state.selected_symbol == "ETHUSDT"
    assert priced_state.price is None
    assert feed.switched == ["ETHUSDT"]


@pytest.mark.asyncio
async def test_set_same_symbol_is_noop(commands, priced_state, feed) -> None:
    assert await commands.set_selected_symbol("BTCUSDT") is False
    assert priced_state.price == 100.0
    assert feed.switched == []


@pytest.mark.asyncio
async def test_unknown_symbol_rejected(commands) -> None:
    with pytest.raises(ContractViolationError):
        await commands.set_selected_symbol("FOOBAR")


@pytest.mark.asyncio
async def test_clear_history_publishes_change(state, order_book, dispatcher, settings, clock) -> None:
    bus = EventBus()
    queue = await bus.subscribe(HISTORY_CHANGED_TOPIC, "test")
    commands = TradingCommands(bus, state, order_book, dispatcher, settings, clock=clock)
    await commands.clear_trade_history()

    assert queue.get_nowait() == []


@pytest.mark.asyncio
async def test_dismiss_notification(commands, dispatcher, state) -> None:
    notification_id = dispatcher.push("x", NotificationVariant.INFO)

    assert await commands.dismiss_notification(notification_id) is True
    assert await commands.dismiss_notification(notification_id) is False
    assert state.notifications == []


@pytest.mark.asyncio
async def test_snapshot_contains_full_read_model(commands, priced_state, order_book, clock) -> None:
    await commands.place_order(Direction.CALL, 100, 1)
    order_book.finalize_orders(101.0, clock.now + MS_PER_MINUTE)

    snapshot = commands.snapshot()

    assert snapshot["selected_symbol"] == "BTCUSDT"
    assert snapshot["connection_status"] == "connecting"
    assert snapshot["price"] == 100.0
    assert snapshot["balance"] == pytest.approx(10_085.0)
    assert snapshot["pnl"] == pytest.approx(85.0)
    assert snapshot["history"]["total"] == 1
    assert snapshot["active_orders"] == []
    assert snapshot["notifications"]["spotlight"][0]["title"] == "Trade won"
    assert snapshot["notifications"]["spotlight"][0]["style"]["tone"] == "emerald"
    assert {"label": "BTC / USDT", "value": "BTCUSDT"} in snapshot["symbols"]
    assert snapshot["rsi"] == [] and snapshot["macd"] == []
    assert snapshot["expiry_options"] == [1, 5, 15]
