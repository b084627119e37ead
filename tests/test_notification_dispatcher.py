from __future__ import annotations

from binarydesk.domain.entities.notification import Notification, NotificationVariant
from binarydesk.services.notification_dispatcher import merge_notifications


def _note(id_: str, created_at: int, spotlight: bool = False) -> Notification:
    return Notification(
        id=id_, title=id_, variant=NotificationVariant.INFO,
        created_at=created_at, spotlight=spotlight,
    )


def test_merge_orders_spotlight_first_newest_first() -> None:
    existing = [_note("a", 1), _note("s1", 2, spotlight=True)]
    incoming = [_note("b", 3), _note("s2", 4, spotlight=True)]

    merged = merge_notifications(existing, incoming, capacity=5)

    assert [n.id for n in merged] == ["s2", "s1", "b", "a"]


def test_merge_standard_lane_shrinks_with_spotlight() -> None:
    existing = [_note(f"n{i}", i) for i in range(4)]
    incoming = [_note("s1", 10, spotlight=True), _note("s2", 11, spotlight=True)]

    merged = merge_notifications(existing, incoming, capacity=5)

    assert [n.id for n in merged] == ["s2", "s1", "n3", "n2", "n1"]


def test_merge_spotlight_never_truncated() -> None:
    incoming = [_note(f"s{i}", i, spotlight=True) for i in range(7)]

    merged = merge_notifications([_note("x", 0)], incoming, capacity=5)

    assert len(merged) == 7
    assert all(n.spotlight for n in merged)


def test_merge_incoming_wins_on_duplicate_id() -> None:
    old = _note("dup", 1)
    new = Notification(id="dup", title="fresh", variant=NotificationVariant.SUCCESS, created_at=2)

    merged = merge_notifications([old], [new], capacity=5)

    assert len(merged) == 1
    assert merged[0].title == "fresh"


def test_merge_empty_incoming_is_identity() -> None:
    existing = [_note("a", 1)]
    assert merge_notifications(existing, [], capacity=5) == existing


def test_push_assigns_id_and_timestamp(dispatcher, state, clock) -> None:
    notification_id = dispatcher.push("Hello", NotificationVariant.INFO, description="world")

    notification = state.notifications[0]
    assert notification.id == notification_id
    assert notification.id.startswith(f"{clock.now}-")
    assert notification.created_at == clock.now
    assert notification.description == "world"


def test_push_respects_explicit_id(dispatcher, state) -> None:
    dispatcher.push("x", NotificationVariant.WARNING, notification_id="fixed")
    assert state.notifications[0].id == "fixed"


def test_standard_lane_capacity(dispatcher, state, clock) -> None:
    for i in range(8):
        clock.advance(1)
        dispatcher.push(f"n{i}", NotificationVariant.INFO)

    assert len(state.notifications) == 5
    assert state.notifications[0].title == "n7"


def test_dismiss_removes_from_either_lane(dispatcher, state) -> None:
    dispatcher.push("standard", NotificationVariant.INFO, notification_id="std")
    dispatcher.push("spot", NotificationVariant.SUCCESS, spotlight=True, notification_id="spot")

    assert dispatcher.dismiss("spot") is True
    assert dispatcher.spotlight == []
    assert [n.id for n in dispatcher.standard] == ["std"]


def test_dismiss_unknown_id_is_noop(dispatcher, state) -> None:
    dispatcher.push("standard", NotificationVariant.INFO)
    before = list(state.notifications)

    assert dispatcher.dismiss("missing") is False
    assert state.notifications == before
