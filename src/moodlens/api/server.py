"""
MoodLens Analytics REST API Server.

Thin HTTP layer over the analysis core. The core has no opinion on how it
is invoked; this server offers both styles: run inline and return the
result, or hand the run to a background task and return immediately.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .. import __version__
from ..core import (
    AnalysisConfig,
    ListeningEvent,
    MoodStore,
    StorageError,
    create_mood_tables,
    get_connection,
    get_database_path,
    run_analysis,
    summarize_user,
)
from ..jobs.scheduler import get_user_lock, job_analyze_user

logger = logging.getLogger(__name__)

# Database path - configurable via MOODLENS_DATABASE_PATH
DATABASE_PATH = get_database_path()


# =============================================================================
# Pydantic Models for API
# =============================================================================


class EventIn(BaseModel):
    """One listening event to ingest."""

    played_at: datetime = Field(..., description="When the track was played")
    valence: float = Field(..., ge=0.0, le=1.0, description="Emotional positivity 0-1")
    energy: float = Field(..., ge=0.0, le=1.0, description="Audio intensity 0-1")
    track_name: Optional[str] = Field(None)
    artist_name: Optional[str] = Field(None)


class EventsIngestRequest(BaseModel):
    events: list[EventIn]


class EventsIngestResponse(BaseModel):
    user_id: int
    inserted: int


class AnalysisResponse(BaseModel):
    """Result of an analysis run (or its scheduling)."""

    status: str
    user_id: int
    window_start: Optional[str] = None
    events_read: int = 0
    daily_written: int = 0
    patterns_written: int = 0
    pattern_keys: list[str] = Field(default_factory=list)
    pruned_patterns: int = 0


class DailyAggregateResponse(BaseModel):
    day: str
    avg_valence: float
    avg_energy: float
    events_count: int


class PatternMeta(BaseModel):
    avg_energy: float
    avg_valence: float


class PatternResponse(BaseModel):
    pattern_key: str
    title: str
    summary: str
    meta: PatternMeta


class SummaryResponse(BaseModel):
    user_id: int
    days_count: int
    events_count: int
    avg_valence: float
    avg_energy: float


class HealthResponse(BaseModel):
    status: str
    version: str
    database_connected: bool
    database_path: str


# =============================================================================
# Database Connection
# =============================================================================


def get_db_connection() -> sqlite3.Connection:
    # FastAPI runs sync endpoints in a thread pool; each request gets its own connection
    return get_connection(DATABASE_PATH, check_same_thread=False)


def get_db():
    """Dependency for database connection."""
    conn = get_db_connection()
    try:
        yield conn
    finally:
        conn.close()


def get_config(request: Request) -> AnalysisConfig:
    return request.app.state.analysis_config


def _storage_http_error(e: StorageError) -> HTTPException:
    return HTTPException(status_code=503, detail=e.to_dict())


# =============================================================================
# Application Factory
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"MoodLens API starting up with database: {DATABASE_PATH}")
    conn = get_db_connection()
    try:
        create_mood_tables(conn)
    finally:
        conn.close()
    logger.info("Database initialized")

    yield

    logger.info("MoodLens API shutting down")


def create_app(
    db_path: Optional[str] = None,
    config: Optional[AnalysisConfig] = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        db_path: Optional database path override.
        config: Analysis configuration used by every run this app triggers.
    """
    global DATABASE_PATH
    if db_path:
        DATABASE_PATH = db_path

    app = FastAPI(
        title="MoodLens Analytics API",
        description="Daily mood averages and recurring listening patterns",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.analysis_config = config or AnalysisConfig()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(users_router)

    return app


# =============================================================================
# Routers
# =============================================================================

health_router = APIRouter(tags=["health"])
users_router = APIRouter(prefix="/api/v1/users", tags=["mood"])


@health_router.get("/health", response_model=HealthResponse)
def health_check():
    db_ok = False
    try:
        conn = get_db_connection()
        try:
            conn.execute("SELECT 1")
            db_ok = True
        finally:
            conn.close()
    except sqlite3.Error as e:
        logger.warning(f"Health check database error: {e}")

    return HealthResponse(
        status="healthy" if db_ok else "degraded",
        version=__version__,
        database_connected=db_ok,
        database_path=DATABASE_PATH,
    )


@users_router.post("/{user_id}/events", response_model=EventsIngestResponse)
def ingest_events(
    user_id: int,
    request: EventsIngestRequest,
    conn: sqlite3.Connection = Depends(get_db),
):
    """Append listening events for a user. Does not trigger analysis."""
    events = [
        ListeningEvent(
            user_id=user_id,
            played_at=e.played_at,
            valence=e.valence,
            energy=e.energy,
            track_name=e.track_name,
            artist_name=e.artist_name,
        )
        for e in request.events
    ]
    try:
        inserted = MoodStore(conn).add_events(events)
    except StorageError as e:
        raise _storage_http_error(e)
    return EventsIngestResponse(user_id=user_id, inserted=inserted)


@users_router.post("/{user_id}/analysis", response_model=AnalysisResponse)
def analyze_user(
    user_id: int,
    background_tasks: BackgroundTasks,
    background: bool = Query(False, description="Schedule the run instead of waiting for it"),
    conn: sqlite3.Connection = Depends(get_db),
    config: AnalysisConfig = Depends(get_config),
):
    """Recompute daily aggregates and patterns for a user."""
    if background:
        background_tasks.add_task(job_analyze_user, user_id, db_path=DATABASE_PATH, config=config)
        return AnalysisResponse(status="queued", user_id=user_id)

    try:
        with get_user_lock(user_id):
            result = run_analysis(user_id, conn, config=config)
    except StorageError as e:
        raise _storage_http_error(e)

    return AnalysisResponse(status="success", **result.to_dict())


@users_router.get("/{user_id}/daily", response_model=list[DailyAggregateResponse])
def list_daily(user_id: int, conn: sqlite3.Connection = Depends(get_db)):
    try:
        rows = MoodStore(conn).list_daily(user_id)
    except StorageError as e:
        raise _storage_http_error(e)
    return [
        DailyAggregateResponse(
            day=r.day.isoformat(),
            avg_valence=r.avg_valence,
            avg_energy=r.avg_energy,
            events_count=r.events_count,
        )
        for r in rows
    ]


@users_router.get("/{user_id}/patterns", response_model=list[PatternResponse])
def list_patterns(user_id: int, conn: sqlite3.Connection = Depends(get_db)):
    try:
        patterns = MoodStore(conn).list_patterns(user_id)
    except StorageError as e:
        raise _storage_http_error(e)
    return [
        PatternResponse(
            pattern_key=p.pattern_key,
            title=p.title,
            summary=p.summary,
            meta=PatternMeta(**p.meta),
        )
        for p in patterns
    ]


@users_router.get("/{user_id}/summary", response_model=SummaryResponse)
def get_summary(user_id: int, conn: sqlite3.Connection = Depends(get_db)):
    try:
        summary = summarize_user(conn, user_id)
    except StorageError as e:
        raise _storage_http_error(e)
    return SummaryResponse(**summary.to_dict())


# =============================================================================
# Default Application Instance
# =============================================================================

app = create_app()


# =============================================================================
# CLI Entry Point
# =============================================================================

def main():
    """CLI entry point for the moodlens-server command."""
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="MoodLens Analytics API Server")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8081, help="Port to listen on")
    parser.add_argument("--db", default=None, help="Path to database file")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    args = parser.parse_args()

    if args.db:
        global DATABASE_PATH
        DATABASE_PATH = args.db

    uvicorn.run(
        "moodlens.api.server:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
