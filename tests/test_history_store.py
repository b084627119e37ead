from __future__ import annotations

import asyncio

import pytest
import pytest_asyncio
from sqlalchemy import update

from binarydesk.domain.entities.order import Direction, TradeHistoryEntry, TradeOutcome
from binarydesk.domain.exceptions import PersistenceError
from binarydesk.infrastructure.event_bus import HISTORY_CHANGED_TOPIC, EventBus
from binarydesk.infrastructure.persistence import (
    DatabaseManager,
    HistorySnapshot,
    HistoryStore,
    PersistenceListener,
)
from binarydesk.infrastructure.persistence.models import HistorySnapshotModel


def _entry(id_: str, closed_at: int, outcome: TradeOutcome = TradeOutcome.WIN) -> TradeHistoryEntry:
    return TradeHistoryEntry(
        id=id_, symbol="BTCUSDT", direction=Direction.CALL, amount=100.0,
        entry_price=100.0, payout=0.85, expiry=closed_at, opened_at=closed_at - 60_000,
        closed_at=closed_at, exit_price=101.0, outcome=outcome,
        profit=85.0 if outcome == TradeOutcome.WIN else -100.0,
    )


@pytest_asyncio.fixture
async def db(tmp_path):
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'history.db'}")
    await manager.initialize()
    yield manager
    await manager.close()


@pytest.mark.asyncio
async def test_load_without_row_is_empty(db) -> None:
    assert await HistoryStore(db, "bo-trade-storage").load() == []


@pytest.mark.asyncio
async def test_save_then_load(db) -> None:
    store = HistoryStore(db, "bo-trade-storage")
    entries = [_entry("b", 2_000_000), _entry("a", 1_000_000, TradeOutcome.LOSS)]

    await store.save(entries)
    await store.save(entries[:1])

    assert await store.load() == entries[:1]


@pytest.mark.asyncio
async def test_namespaces_are_isolated(db) -> None:
    await HistoryStore(db, "one").save([_entry("a", 1)])

    assert await HistoryStore(db, "two").load() == []


@pytest.mark.asyncio
async def test_unknown_version_raises(db) -> None:
    store = HistoryStore(db, "bo-trade-storage")
    await store.save([_entry("a", 1)])
    async with db.session() as session:
        await session.execute(update(HistorySnapshotModel).values(version=2))
        await session.commit()

    with pytest.raises(PersistenceError):
        await store.load()


@pytest.mark.asyncio
async def test_corrupt_payload_raises(db) -> None:
    store = HistoryStore(db, "bo-trade-storage")
    await store.save([])
    async with db.session() as session:
        await session.execute(update(HistorySnapshotModel).values(payload="{oops"))
        await session.commit()

    with pytest.raises(PersistenceError):
        await store.load()


def test_snapshot_payload_shape() -> None:
    snapshot = HistorySnapshot.from_entries([_entry("a", 1)])
    data = snapshot.model_dump()

    assert data["version"] == 1
    assert data["trade_history"][0]["direction"] == "CALL"
    assert data["trade_history"][0]["outcome"] == "win"


@pytest.mark.asyncio
async def test_listener_saves_on_history_change(db) -> None:
    bus = EventBus()
    store = HistoryStore(db, "bo-trade-storage")
    listener = PersistenceListener(bus, store)
    await listener.start()

    await bus.publish(HISTORY_CHANGED_TOPIC, [_entry("a", 1)])
    await bus.publish(HISTORY_CHANGED_TOPIC, [_entry("b", 2), _entry("a", 1)])
    for _ in range(100):
        if listener.saved_count:
            break
        await asyncio.sleep(0.01)
    await listener.stop()

    assert [e.id for e in await store.load()] == ["b", "a"]


class _SlowStore:
    def __init__(self, delay: float) -> None:
        self.delay = delay
        self.saved: list[list] = []

    async def save(self, history) -> None:
        await asyncio.sleep(self.delay)
        self.saved.append(list(history))


@pytest.mark.asyncio
async def test_listener_stop_waits_for_save_in_progress() -> None:
    bus = EventBus()
    store = _SlowStore(delay=0.3)
    listener = PersistenceListener(bus, store)
    await listener.start()

    await bus.publish(HISTORY_CHANGED_TOPIC, ["last-history"])
    await asyncio.sleep(0.05)
    await listener.stop()

    assert store.saved == [["last-history"]]
    assert listener.saved_count == 1
    assert bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_listener_stop_flushes_history_queued_during_save() -> None:
    bus = EventBus()
    store = _SlowStore(delay=0.2)
    listener = PersistenceListener(bus, store)
    await listener.start()

    await bus.publish(HISTORY_CHANGED_TOPIC, ["first"])
    await asyncio.sleep(0.05)
    await bus.publish(HISTORY_CHANGED_TOPIC, ["second"])
    await listener.stop()

    assert store.saved[-1] == ["second"]
