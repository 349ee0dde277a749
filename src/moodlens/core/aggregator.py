"""
Daily aggregation.

Reduces a window of listening events to one mood-average record per
calendar day. Days without events never appear in the output.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

from .models import BucketStats, DailyAggregate, ListeningEvent


class DailyAccumulator:
    """Running valence/energy sums keyed by the date of ``played_at``."""

    def __init__(self):
        self._days: dict[date, BucketStats] = defaultdict(BucketStats)

    def add(self, event: ListeningEvent) -> None:
        self._days[event.played_at.date()].add(event.valence, event.energy)

    def __len__(self) -> int:
        return len(self._days)

    def finalize(self, user_id: int) -> list[DailyAggregate]:
        """Divide sums by counts. Results are ordered by day.

        No rounding happens here; that is left to whoever displays the values.
        """
        return [
            DailyAggregate(
                user_id=user_id,
                day=day,
                avg_valence=sums.avg_valence,
                avg_energy=sums.avg_energy,
                events_count=sums.count,
            )
            for day, sums in sorted(self._days.items())
        ]


def aggregate_daily(
    events: Iterable[ListeningEvent],
    user_id: Optional[int] = None,
) -> list[DailyAggregate]:
    """Aggregate events into per-day averages.

    Args:
        events: Events for a single user, in any order.
        user_id: Owner to stamp on the output. Defaults to the events' own
            user_id (irrelevant when there are no events).

    Returns:
        One DailyAggregate per distinct day, ordered by day.
    """
    acc = DailyAccumulator()
    for event in events:
        if user_id is None:
            user_id = event.user_id
        acc.add(event)
    if user_id is None:
        return []
    return acc.finalize(user_id)
