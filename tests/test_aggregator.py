"""Tests for core/aggregator.py"""

from __future__ import annotations

from datetime import date, datetime

import pytest

from moodlens.core.aggregator import DailyAccumulator, aggregate_daily
from moodlens.core.models import ListeningEvent


def _event(ts: str, valence: float, energy: float, user_id: int = 1) -> ListeningEvent:
    return ListeningEvent(user_id=user_id, played_at=ts, valence=valence, energy=energy)


class TestAggregateDaily:
    def test_empty_input_produces_no_rows(self) -> None:
        assert aggregate_daily([]) == []

    def test_mean_and_count_per_day(self) -> None:
        events = [
            _event("2026-10-18T08:00:00", 0.2, 0.4),
            _event("2026-10-18T21:30:00", 0.4, 0.8),
            _event("2026-10-18T23:59:59", 0.6, 0.3),
            _event("2026-10-19T00:00:00", 0.9, 0.1),
        ]
        rows = aggregate_daily(events)

        assert [r.day for r in rows] == [date(2026, 10, 18), date(2026, 10, 19)]
        sunday, monday = rows
        assert sunday.events_count == 3
        assert sunday.avg_valence == pytest.approx((0.2 + 0.4 + 0.6) / 3)
        assert sunday.avg_energy == pytest.approx((0.4 + 0.8 + 0.3) / 3)
        assert monday.events_count == 1
        assert monday.avg_valence == 0.9
        assert monday.avg_energy == 0.1

    def test_days_without_events_are_absent(self) -> None:
        events = [
            _event("2026-10-01T10:00:00", 0.5, 0.5),
            _event("2026-10-05T10:00:00", 0.5, 0.5),
        ]
        days = [r.day for r in aggregate_daily(events)]
        assert days == [date(2026, 10, 1), date(2026, 10, 5)]

    def test_input_order_does_not_matter(self) -> None:
        events = [
            _event("2026-10-02T10:00:00", 0.1, 0.2),
            _event("2026-10-01T10:00:00", 0.3, 0.4),
            _event("2026-10-02T11:00:00", 0.5, 0.6),
        ]
        forward = aggregate_daily(events)
        backward = aggregate_daily(list(reversed(events)))
        assert [(r.day, r.events_count) for r in forward] == [(r.day, r.events_count) for r in backward]
        for a, b in zip(forward, backward):
            assert a.avg_valence == pytest.approx(b.avg_valence)
            assert a.avg_energy == pytest.approx(b.avg_energy)

    def test_user_id_taken_from_events(self) -> None:
        rows = aggregate_daily([_event("2026-10-01T10:00:00", 0.5, 0.5, user_id=42)])
        assert rows[0].user_id == 42

    def test_no_rounding_applied(self) -> None:
        events = [
            _event("2026-10-01T10:00:00", 0.1, 0.1),
            _event("2026-10-01T11:00:00", 0.2, 0.2),
            _event("2026-10-01T12:00:00", 0.2, 0.2),
        ]
        row = aggregate_daily(events)[0]
        assert row.avg_valence == (0.1 + 0.2 + 0.2) / 3


class TestDailyAccumulator:
    def test_len_counts_distinct_days(self) -> None:
        acc = DailyAccumulator()
        acc.add(_event("2026-10-01T10:00:00", 0.5, 0.5))
        acc.add(_event("2026-10-01T22:00:00", 0.5, 0.5))
        acc.add(_event("2026-10-03T09:00:00", 0.5, 0.5))
        assert len(acc) == 2

    def test_finalize_stamps_user(self) -> None:
        acc = DailyAccumulator()
        acc.add(ListeningEvent(user_id=1, played_at=datetime(2026, 10, 1, 9), valence=0.5, energy=0.5))
        assert acc.finalize(user_id=9)[0].user_id == 9
