"""
Database engine, sessions and slow-statement reporting.

Request handlers get a session per request from get_db(). Background
writers (streamed answer persistence, usage logs) open their own sessions
from get_session_factory(), since they finish after the request is gone.
"""

import logging
import os
import time
from typing import Any, Dict

import sentry_sdk
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

SLOW_QUERY_THRESHOLD_MS = float(os.getenv("SLOW_QUERY_THRESHOLD_MS", "100"))
STATEMENT_PREVIEW_CHARS = 500
LOG_ALL_QUERIES = bool(os.getenv("DEBUG_QUERIES"))
if LOG_ALL_QUERIES:
    logger.setLevel(logging.DEBUG)


def normalize_database_url(url: str) -> str:
    """Hosted Postgres hands out postgres:// URLs; SQLAlchemy only accepts postgresql://."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def engine_options(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        # Background writers reach the same connection from worker threads
        return {"connect_args": {"check_same_thread": False}, "pool_pre_ping": True}
    return {
        "pool_pre_ping": True,
        "pool_recycle": 1800,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 30,
    }


def _statement_preview(statement: str) -> str:
    statement = " ".join(statement.split())
    if len(statement) > STATEMENT_PREVIEW_CHARS:
        return statement[:STATEMENT_PREVIEW_CHARS] + "..."
    return statement


def install_query_timing(target: Engine) -> None:
    """
    Time every statement run on `target`.

    Statements slower than SLOW_QUERY_THRESHOLD_MS are logged as warnings
    and left as a Sentry breadcrumb, so an error report from a slow request
    shows which query held it up. With DEBUG_QUERIES set every statement is
    logged at debug level.
    """

    @event.listens_for(target, "before_cursor_execute")
    def _start_timer(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("studymind_query_started", []).append(time.perf_counter())

    @event.listens_for(target, "after_cursor_execute")
    def _report_timing(conn, cursor, statement, parameters, context, executemany):
        started = conn.info.get("studymind_query_started")
        if not started:
            return
        elapsed_ms = (time.perf_counter() - started.pop()) * 1000

        if elapsed_ms > SLOW_QUERY_THRESHOLD_MS:
            preview = _statement_preview(statement)
            logger.warning(f"SLOW QUERY ({elapsed_ms:.2f}ms): {preview}")
            sentry_sdk.add_breadcrumb(
                category="db.slow_query",
                message=preview,
                level="warning",
                data={"duration_ms": round(elapsed_ms, 2)},
            )
        elif LOG_ALL_QUERIES:
            logger.debug(f"Query ({elapsed_ms:.2f}ms): {_statement_preview(statement)}")


# SQLite for local development, Postgres in production
DATABASE_URL = normalize_database_url(os.getenv("DATABASE_URL", "sqlite:///./studymind.db"))

engine = create_engine(DATABASE_URL, **engine_options(DATABASE_URL))
install_query_timing(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency for FastAPI routes"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    """Dependency returning the session factory used by background writers."""
    return SessionLocal
