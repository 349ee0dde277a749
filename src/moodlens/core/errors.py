"""
Error types raised by the mood analytics core.

"Not enough data" is never an error here: an empty listening window or a
bucket below the noise guard simply produces fewer records. The only real
failures are storage failures, which must reach the caller.
"""

from __future__ import annotations

from typing import Any, Optional


class MoodAnalyticsError(Exception):
    """Base exception for mood analytics errors."""

    def __init__(self, message: str, code: str = "UNKNOWN", details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class StorageError(MoodAnalyticsError):
    """Raised when reading events or writing results fails.

    The run that raised it committed nothing. Every write is an upsert,
    so the whole run can simply be retried.
    """

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, code="STORAGE_FAILURE", details=details)
