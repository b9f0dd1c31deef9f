import logging
import time
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.exc import InvalidRequestError
from sqlalchemy.orm import Session, sessionmaker

from api.config import DATABASE_URL, SQL_SLOW_QUERY_MS

_engine = None
_SessionLocal = None
_query_logging_attached = False
_sql_logger = logging.getLogger("api.db.sql")


def _format_statement(statement: str, *, max_length: int = 120) -> str:
    condensed = " ".join(statement.strip().split())
    if len(condensed) <= max_length:
        return condensed
    return condensed[: max_length - 1] + "…"


def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    context._query_start_time = time.perf_counter()


def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    start = getattr(context, "_query_start_time", None)
    if start is None:
        return
    elapsed_ms = (time.perf_counter() - start) * 1000.0
    level = logging.INFO if elapsed_ms >= SQL_SLOW_QUERY_MS else logging.DEBUG
    if not _sql_logger.isEnabledFor(level):
        return
    summary = _format_statement(statement)
    prefix = summary.split(" ", 1)[0].upper() if summary else "SQL"
    _sql_logger.log(
        level,
        "%s query took %.1f ms | rows=%s | %s",
        prefix,
        elapsed_ms,
        cursor.rowcount if cursor.rowcount is not None else "?",
        summary,
    )


def _handle_error(context):
    statement = getattr(context, "statement", "") or ""
    _sql_logger.warning(
        "SQL error during '%s': %s",
        _format_statement(statement),
        context.original_exception,
    )


def _attach_sql_logging(engine):
    global _query_logging_attached
    if _query_logging_attached:
        return
    try:
        event.listen(engine, "before_cursor_execute", _before_cursor_execute)
        event.listen(engine, "after_cursor_execute", _after_cursor_execute)
        event.listen(engine, "handle_error", _handle_error)
    except InvalidRequestError:
        # Tests may stub create_engine with a simple placeholder; skip wiring in that case.
        return
    _query_logging_attached = True


def engine_options(db_url: str) -> Dict[str, Any]:
    """Keyword arguments for create_engine; SQLite (local runs) needs cross-thread access."""
    if db_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}, "future": True}
    return {"pool_pre_ping": True, "future": True}


def init_engine(db_url: Optional[str] = None):
    global _engine, _SessionLocal
    db_url = db_url or DATABASE_URL
    _engine = create_engine(db_url, **engine_options(db_url))
    _attach_sql_logging(_engine)
    _SessionLocal = sessionmaker(
        bind=_engine, autoflush=False, autocommit=False, future=True
    )


def get_engine():
    if _engine is None:
        init_engine()
    return _engine


def get_sessionmaker():
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


def get_db() -> Iterator[Session]:
    SessionLocal = get_sessionmaker()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
