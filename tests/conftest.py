from __future__ import annotations

from itertools import count
from typing import Iterable

import pytest

from binarydesk.core.settings import Settings
from binarydesk.domain.entities.candle import Candle
from binarydesk.services.notification_dispatcher import NotificationDispatcher
from binarydesk.services.order_book import OrderBook
from binarydesk.state.trading_state import TradingState


class FakeClock:
    """Reloj manual en epoch ms."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def make_candle(time: int, close: float, open_: float | None = None, volume: float = 1.0,
                is_closed: bool = True) -> Candle:
    open_ = close if open_ is None else open_
    return Candle(
        time=time,
        open=open_,
        high=max(open_, close) + 1,
        low=min(open_, close) - 1,
        close=close,
        volume=volume,
        is_closed=is_closed,
    )


def make_series(closes: Iterable[float], start: int = 1_700_000_000, step: int = 60) -> list[Candle]:
    return [make_candle(start + i * step, c) for i, c in enumerate(closes)]


@pytest.fixture
def settings() -> Settings:
    return Settings(persist_history=False, fallback_seed=7, settlement_poll_seconds=0.05)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def state(settings) -> TradingState:
    return TradingState(settings)


@pytest.fixture
def dispatcher(state, settings, clock) -> NotificationDispatcher:
    return NotificationDispatcher(state, capacity=settings.max_notifications, clock=clock)


@pytest.fixture
def order_book(state, dispatcher, settings, clock) -> OrderBook:
    ids = count(1)
    return OrderBook(
        state, dispatcher, settings, clock=clock, id_factory=lambda now: f"ord-{next(ids)}",
    )


@pytest.fixture
def priced_state(state):
    """Estado con una vela cargada: precio = 100."""
    state.ledger.replace_all([make_candle(1_700_000_000, 100.0)])
    return state
