"""
Weekday x time-of-day bucketing.

Every event lands in exactly one (weekday, segment) bucket. The weekday
and hour come straight from ``played_at``; whatever timezone the caller
stored the timestamp in is the timezone the buckets are in.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from .models import BucketKey, BucketStats, ListeningEvent, TimeSegment, Weekday

AFTERNOON_START_HOUR = 12
EVENING_START_HOUR = 18


def time_segment_for_hour(hour: int) -> TimeSegment:
    """Map an hour of day (0-23) to its segment."""
    if not 0 <= hour <= 23:
        raise ValueError(f"hour must be within 0-23, got {hour}")
    if hour < AFTERNOON_START_HOUR:
        return TimeSegment.MORNING
    if hour < EVENING_START_HOUR:
        return TimeSegment.AFTERNOON
    return TimeSegment.EVENING


def bucket_key_for(played_at: datetime) -> BucketKey:
    return BucketKey(Weekday.from_datetime(played_at), time_segment_for_hour(played_at.hour))


class BucketAccumulator:
    """Running sums per (weekday, segment) bucket."""

    def __init__(self):
        self._buckets: dict[BucketKey, BucketStats] = {}

    def add(self, event: ListeningEvent) -> None:
        key = bucket_key_for(event.played_at)
        stats = self._buckets.get(key)
        if stats is None:
            stats = self._buckets[key] = BucketStats()
        stats.add(event.valence, event.energy)

    @property
    def buckets(self) -> dict[BucketKey, BucketStats]:
        return self._buckets


def bucket_events(events: Iterable[ListeningEvent]) -> dict[BucketKey, BucketStats]:
    """Group events into weekday/segment buckets."""
    acc = BucketAccumulator()
    for event in events:
        acc.add(event)
    return acc.buckets
