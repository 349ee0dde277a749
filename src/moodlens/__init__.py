"""
MoodLens Analytics - explainable mood trends from listening history.

Listening events (valence + energy per play) are reduced into per-day mood
averages and a few recurring weekday/time-of-day patterns such as
"Sunday evenings trend low-valence".

Usage:
    # Direct Python imports (same-process integration)
    from moodlens import run_analysis, get_connection
    result = run_analysis(user_id=7, conn=get_connection("moodlens.db"))

    # HTTP client (cross-process integration)
    from moodlens import MoodClient
    client = MoodClient()
    client.run_analysis(7)
"""

__version__ = "1.0.0"

from .core import (
    AnalysisConfig,
    AnalysisResult,
    DailyAggregate,
    ListeningEvent,
    MoodAnalyzer,
    MoodStore,
    Pattern,
    StorageError,
    get_connection,
    init_mood_tables,
    run_analysis,
    summarize_user,
)
from .client import MoodClient

__all__ = [
    "__version__",
    "MoodClient",
    "AnalysisConfig",
    "AnalysisResult",
    "DailyAggregate",
    "ListeningEvent",
    "MoodAnalyzer",
    "MoodStore",
    "Pattern",
    "StorageError",
    "get_connection",
    "init_mood_tables",
    "run_analysis",
    "summarize_user",
]
