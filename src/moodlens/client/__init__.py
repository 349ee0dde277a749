"""
MoodLens Analytics Python Client

Clean interface for services that ingest listening events or render
dashboards without importing the analytics package directly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

import httpx


@dataclass
class MoodClientConfig:
    """Configuration for the MoodLens client."""

    base_url: str = field(
        default_factory=lambda: os.getenv("MOODLENS_API_URL", "http://localhost:8081")
    )
    api_key: Optional[str] = field(
        default_factory=lambda: os.getenv("MOODLENS_API_KEY")
    )
    timeout: float = 30.0


class MoodClientError(Exception):
    """Base exception for MoodLens client errors."""

    def __init__(self, message: str, code: str = "UNKNOWN", details: dict | None = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}


class MoodConnectionError(MoodClientError):
    """Raised when the MoodLens service cannot be reached."""
    pass


class MoodNotFoundError(MoodClientError):
    """Raised when the requested resource does not exist."""
    pass


class MoodStorageError(MoodClientError):
    """Raised when the service reports a storage failure (HTTP 503).

    Analysis runs are idempotent, so the call can be retried.
    """
    pass


class MoodClient:
    """
    Client for the MoodLens Analytics API.

    Example:
        >>> with MoodClient() as moods:
        ...     moods.ingest_events(7, events)
        ...     moods.run_analysis(7)
        ...     for p in moods.get_patterns(7):
        ...         print(p["title"])
    """

    def __init__(
        self,
        config: MoodClientConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Args:
            config: Optional configuration. Uses environment variables if not provided.
            transport: Optional httpx transport (e.g. for tests).
        """
        self.config = config or MoodClientConfig()
        self._transport = transport
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Lazy-initialize HTTP client."""
        if self._client is None:
            headers = {}
            if self.config.api_key:
                headers["X-API-Key"] = self.config.api_key

            self._client = httpx.Client(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "MoodClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = self.client.request(method, url, **kwargs)
        except httpx.ConnectError as e:
            raise MoodConnectionError(
                f"Unable to connect to MoodLens service at {self.config.base_url}",
                "CONNECTION_ERROR",
            ) from e
        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> Any:
        """Raise the matching client error for non-2xx responses."""
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            try:
                detail = response.json().get("detail", {})
            except ValueError:
                detail = {}
            if not isinstance(detail, dict):
                detail = {"message": str(detail)}

            code = detail.get("code", "HTTP_ERROR")
            message = detail.get("message", str(e))
            details = detail.get("details", {})

            if response.status_code == 404:
                raise MoodNotFoundError(message, code, details) from e
            if response.status_code == 503:
                raise MoodStorageError(message, code, details) from e
            raise MoodClientError(message, code, details) from e
        return response.json()

    # =========================================================================
    # Health
    # =========================================================================

    def health(self) -> dict:
        return self._request("GET", "/health")

    def is_available(self) -> bool:
        """True if the service answers and reports healthy."""
        try:
            return self.health().get("status") == "healthy"
        except MoodClientError:
            return False

    # =========================================================================
    # Events & analysis
    # =========================================================================

    def ingest_events(self, user_id: int, events: Iterable[Mapping[str, Any]]) -> int:
        """
        Append listening events for a user.

        Args:
            user_id: Owner of the events.
            events: Mappings with ``played_at`` (datetime or ISO string),
                ``valence``, ``energy`` and optional track/artist names.

        Returns:
            Number of events stored.
        """
        payload = []
        for event in events:
            item = dict(event)
            if isinstance(item.get("played_at"), datetime):
                item["played_at"] = item["played_at"].isoformat()
            payload.append(item)
        data = self._request("POST", f"/api/v1/users/{user_id}/events", json={"events": payload})
        return data["inserted"]

    def run_analysis(self, user_id: int, background: bool = False) -> dict:
        """
        Trigger an analysis run.

        With background=True the server schedules the run and answers with
        ``status == "queued"``; otherwise the response describes what was written.
        """
        return self._request(
            "POST",
            f"/api/v1/users/{user_id}/analysis",
            params={"background": str(background).lower()},
        )

    # =========================================================================
    # Read side
    # =========================================================================

    def get_daily(self, user_id: int) -> list[dict]:
        """Daily aggregates ordered by day."""
        return self._request("GET", f"/api/v1/users/{user_id}/daily")

    def get_patterns(self, user_id: int) -> list[dict]:
        return self._request("GET", f"/api/v1/users/{user_id}/patterns")

    def get_summary(self, user_id: int) -> dict:
        return self._request("GET", f"/api/v1/users/{user_id}/summary")


__all__ = [
    "MoodClient",
    "MoodClientConfig",
    "MoodClientError",
    "MoodConnectionError",
    "MoodNotFoundError",
    "MoodStorageError",
]
