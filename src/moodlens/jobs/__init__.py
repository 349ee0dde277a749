"""Caller-side job runners for the analysis pipeline."""

from .scheduler import (
    AnalysisDispatcher,
    cloud_run_handler,
    get_user_lock,
    job_analyze_all_users,
    job_analyze_user,
)

__all__ = [
    "AnalysisDispatcher",
    "cloud_run_handler",
    "get_user_lock",
    "job_analyze_all_users",
    "job_analyze_user",
]
