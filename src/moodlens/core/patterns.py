"""
Pattern Selection

Turns bucket statistics into a handful of explainable pattern records:

- the bucket with the highest average energy  -> "<day>_<segment>_high_energy"
- the bucket with the lowest average valence  -> "<day>_<segment>_low_valence"

Buckets with fewer than ``min_samples`` events are invisible to selection
(the noise guard). When nothing survives the guard, no patterns are emitted.
The same bucket may win both selections.

Ties on the selection metric go to the first bucket in canonical order
(Monday..Sunday, then morning, afternoon, evening), so repeated runs over
identical input always pick the same bucket.
"""

from __future__ import annotations

import logging
from typing import Callable, Mapping

from .config import DEFAULT_MIN_SAMPLES
from .models import BucketKey, BucketStats, Pattern, PatternKind

logger = logging.getLogger(__name__)


def pattern_key_for(key: BucketKey, kind: PatternKind) -> str:
    return f"{key.weekday.value}_{key.segment.value}_{kind.value}"


def build_pattern(
    user_id: int,
    kind: PatternKind,
    key: BucketKey,
    stats: BucketStats,
) -> Pattern:
    """Build the pattern record describing ``key`` for ``kind``."""
    day = key.weekday.value
    segment = key.segment.value
    return Pattern(
        user_id=user_id,
        pattern_key=pattern_key_for(key, kind),
        title=f"{day.capitalize()} {segment.capitalize()} {kind.label}",
        summary=(
            f"Detected a recurring {kind.label} trend during {day} {segment}s "
            f"based on your listening behavior."
        ),
        meta={
            "avg_energy": stats.avg_energy,
            "avg_valence": stats.avg_valence,
        },
    )


def eligible_buckets(
    buckets: Mapping[BucketKey, BucketStats],
    min_samples: int = DEFAULT_MIN_SAMPLES,
) -> list[tuple[BucketKey, BucketStats]]:
    """Buckets that pass the noise guard, in canonical order."""
    eligible = []
    for key in sorted(buckets, key=lambda k: k.sort_key):
        stats = buckets[key]
        if stats.count < min_samples or stats.count == 0:
            logger.debug(f"Bucket {key} below noise guard ({stats.count} < {min_samples})")
            continue
        eligible.append((key, stats))
    return eligible


def _pick(
    candidates: list[tuple[BucketKey, BucketStats]],
    metric: Callable[[BucketStats], float],
    highest: bool,
) -> tuple[BucketKey, BucketStats]:
    # Strict comparison keeps the earliest candidate on exact ties.
    best = candidates[0]
    best_value = metric(best[1])
    for key, stats in candidates[1:]:
        value = metric(stats)
        if (value > best_value) if highest else (value < best_value):
            best, best_value = (key, stats), value
    return best


def select_patterns(
    user_id: int,
    buckets: Mapping[BucketKey, BucketStats],
    min_samples: int = DEFAULT_MIN_SAMPLES,
) -> list[Pattern]:
    """Select the high-energy and low-valence patterns for a user.

    Args:
        user_id: Owner of the patterns.
        buckets: Output of the bucketer.
        min_samples: Noise guard threshold (inclusive lower bound).

    Returns:
        An empty list when no bucket qualifies, otherwise
        ``[high_energy, low_valence]``.
    """
    candidates = eligible_buckets(buckets, min_samples)
    if not candidates:
        logger.info(f"No bucket reached {min_samples} samples for user {user_id}; no patterns")
        return []

    top_key, top_stats = _pick(candidates, lambda s: s.avg_energy, highest=True)
    low_key, low_stats = _pick(candidates, lambda s: s.avg_valence, highest=False)

    return [
        build_pattern(user_id, PatternKind.HIGH_ENERGY, top_key, top_stats),
        build_pattern(user_id, PatternKind.LOW_VALENCE, low_key, low_stats),
    ]
