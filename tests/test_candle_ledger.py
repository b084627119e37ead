from __future__ import annotations

import pytest

from binarydesk.state.candle_ledger import CandleLedger
from tests.conftest import make_candle, make_series


def test_replace_all_sorts_and_sets_price() -> None:
    ledger = CandleLedger(capacity=10)
    ledger.replace_all([make_candle(180, 3.0), make_candle(60, 1.0), make_candle(120, 2.0)])

    assert [c.time for c in ledger.candles] == [60, 120, 180]
    assert ledger.price == 3.0
    assert ledger.previous_price is None


def test_replace_all_keeps_most_recent_when_over_capacity() -> None:
    ledger = CandleLedger(capacity=3)
    ledger.replace_all(make_series(range(1, 8), start=0))

    assert len(ledger) == 3
    assert [c.close for c in ledger.candles] == [5, 6, 7]


def test_replace_all_duplicate_time_last_wins() -> None:
    ledger = CandleLedger(capacity=5)
    ledger.replace_all([make_candle(60, 1.0), make_candle(60, 9.0)])

    assert len(ledger) == 1
    assert ledger.last.close == 9.0


def test_replace_all_empty_keeps_price() -> None:
    ledger = CandleLedger(capacity=5)
    ledger.replace_all([make_candle(60, 4.0)])
    ledger.replace_all([])

    assert len(ledger) == 0
    assert ledger.price == 4.0
    assert ledger.previous_price == 4.0


def test_upsert_revises_bar_in_progress() -> None:
    ledger = CandleLedger(capacity=5)
    ledger.replace_all(make_series([1.0, 2.0], start=0))

    ledger.upsert(make_candle(60, 2.5, is_closed=False))

    assert len(ledger) == 2
    assert ledger.last.close == 2.5
    assert ledger.price == 2.5
    assert ledger.previous_price == 2.0


def test_upsert_inserts_out_of_order_bar_sorted() -> None:
    ledger = CandleLedger(capacity=5)
    ledger.replace_all([make_candle(0, 1.0), make_candle(120, 3.0)])

    ledger.upsert(make_candle(60, 2.0))

    assert [c.time for c in ledger.candles] == [0, 60, 120]
    # El precio sigue al último evento aplicado, no a la última vela
    assert ledger.price == 2.0


def test_upsert_trims_oldest_on_overflow() -> None:
    ledger = CandleLedger(capacity=3)
    ledger.replace_all(make_series([1.0, 2.0, 3.0], start=0))

    ledger.upsert(make_candle(180, 4.0))

    assert len(ledger) == 3
    assert [c.time for c in ledger.candles] == [60, 120, 180]


def test_reset_clears_series_and_prices() -> None:
    ledger = CandleLedger(capacity=3)
    ledger.replace_all(make_series([1.0, 2.0], start=0))

    ledger.reset()

    assert len(ledger) == 0
    assert ledger.price is None
    assert ledger.previous_price is None
    assert ledger.last is None


def test_candles_returns_copy() -> None:
    ledger = CandleLedger(capacity=3)
    ledger.replace_all(make_series([1.0], start=0))

    ledger.candles.clear()

    assert len(ledger) == 1


def test_invalid_capacity() -> None:
    with pytest.raises(ValueError):
        CandleLedger(capacity=0)
