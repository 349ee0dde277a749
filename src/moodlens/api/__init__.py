"""
FastAPI server for MoodLens Analytics.

Lets a dashboard or ingest service trigger analysis and read back daily
aggregates, patterns and summaries without importing the package.
"""

from .server import app, create_app

__all__ = ["app", "create_app"]
