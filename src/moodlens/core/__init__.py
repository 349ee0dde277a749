"""
Core mood analytics.

- aggregator: listening events -> per-day mood averages
- bucketer: listening events -> weekday x time-of-day buckets
- patterns: buckets -> high-energy / low-valence pattern records
- store: idempotent upserts and the read side
- pipeline: the one-shot run tying them together
- summary: headline stats for dashboards
"""

from .aggregator import DailyAccumulator, aggregate_daily
from .bucketer import BucketAccumulator, bucket_events, bucket_key_for, time_segment_for_hour
from .config import DEFAULT_MIN_SAMPLES, DEFAULT_WINDOW_DAYS, AnalysisConfig, get_database_path
from .db_adapter import DBAdapter, get_connection, wrap_connection
from .errors import MoodAnalyticsError, StorageError
from .models import (
    AnalysisResult,
    BucketKey,
    BucketStats,
    DailyAggregate,
    ListeningEvent,
    Pattern,
    PatternKind,
    TimeSegment,
    Weekday,
)
from .patterns import build_pattern, eligible_buckets, pattern_key_for, select_patterns
from .pipeline import MoodAnalyzer, run_analysis
from .schema import MOOD_TABLES, create_mood_tables, get_mood_table_stats, init_mood_tables
from .store import MoodStore
from .summary import MoodSummary, load_daily_df, summarize_user

__all__ = [
    # Config
    "AnalysisConfig",
    "DEFAULT_MIN_SAMPLES",
    "DEFAULT_WINDOW_DAYS",
    "get_database_path",
    # Errors
    "MoodAnalyticsError",
    "StorageError",
    # Models
    "AnalysisResult",
    "BucketKey",
    "BucketStats",
    "DailyAggregate",
    "ListeningEvent",
    "Pattern",
    "PatternKind",
    "TimeSegment",
    "Weekday",
    # Aggregation / bucketing
    "DailyAccumulator",
    "aggregate_daily",
    "BucketAccumulator",
    "bucket_events",
    "bucket_key_for",
    "time_segment_for_hour",
    # Pattern selection
    "build_pattern",
    "eligible_buckets",
    "pattern_key_for",
    "select_patterns",
    # Pipeline
    "MoodAnalyzer",
    "run_analysis",
    # Storage
    "DBAdapter",
    "MoodStore",
    "get_connection",
    "wrap_connection",
    "MOOD_TABLES",
    "create_mood_tables",
    "get_mood_table_stats",
    "init_mood_tables",
    # Summary
    "MoodSummary",
    "load_daily_df",
    "summarize_user",
]
