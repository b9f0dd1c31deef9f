from __future__ import annotations

import logging
from types import SimpleNamespace

import pytest

from api.db import session as session_mod


def test_init_engine_uses_configured_url(monkeypatch):
    calls = {}

    def fake_create_engine(url, **kwargs):
        calls["create_engine"] = {"url": url, **kwargs}
        return "engine"

    def fake_sessionmaker(*args, **kwargs):
        calls["sessionmaker"] = kwargs
        return "SessionFactory"

    monkeypatch.setattr(session_mod, "create_engine", fake_create_engine)
    monkeypatch.setattr(session_mod, "sessionmaker", fake_sessionmaker)
    monkeypatch.setattr(session_mod, "DATABASE_URL", "postgresql+psycopg2://u:p@h/cinemood")
    monkeypatch.setattr(session_mod, "_engine", None, raising=False)
    monkeypatch.setattr(session_mod, "_SessionLocal", None, raising=False)

    session_mod.init_engine()

    assert session_mod._engine == "engine"
    assert session_mod._SessionLocal == "SessionFactory"
    assert calls["create_engine"]["url"] == "postgresql+psycopg2://u:p@h/cinemood"
    assert calls["create_engine"]["pool_pre_ping"] is True
    assert calls["sessionmaker"]["bind"] == "engine"
    assert calls["sessionmaker"]["autoflush"] is False


def test_sqlite_urls_allow_cross_thread_use():
    options = session_mod.engine_options("sqlite:///cinemood.db")
    assert options["connect_args"] == {"check_same_thread": False}
    assert "pool_pre_ping" not in options


def test_explicit_url_overrides_config(monkeypatch):
    seen = []
    monkeypatch.setattr(
        session_mod, "create_engine", lambda url, **kwargs: seen.append(url) or "engine"
    )
    monkeypatch.setattr(session_mod, "sessionmaker", lambda **kwargs: "factory")
    monkeypatch.setattr(session_mod, "_engine", None, raising=False)
    monkeypatch.setattr(session_mod, "_SessionLocal", None, raising=False)

    session_mod.init_engine("sqlite://")

    assert seen == ["sqlite://"]


def test_get_sessionmaker_lazy_initialises(monkeypatch):
    monkeypatch.setattr(session_mod, "_SessionLocal", None, raising=False)

    def fake_init():
        session_mod._SessionLocal = "lazy-session"

    monkeypatch.setattr(session_mod, "init_engine", fake_init)

    assert session_mod.get_sessionmaker() == "lazy-session"


def test_get_db_yields_and_closes(monkeypatch):
    class DummySession:
        def __init__(self):
            self.closed = False

        def close(self):
            self.closed = True

    dummy = DummySession()
    monkeypatch.setattr(session_mod, "get_sessionmaker", lambda: (lambda: dummy))

    gen = session_mod.get_db()
    assert next(gen) is dummy
    with pytest.raises(StopIteration):
        next(gen)
    assert dummy.closed is True


def test_slow_queries_log_at_info(monkeypatch, caplog):
    monkeypatch.setattr(session_mod, "SQL_SLOW_QUERY_MS", 0.0)
    context = SimpleNamespace()
    cursor = SimpleNamespace(rowcount=1)

    with caplog.at_level(logging.INFO, logger="api.db.sql"):
        session_mod._before_cursor_execute(None, cursor, "SELECT 1", None, context, False)
        session_mod._after_cursor_execute(None, cursor, "SELECT  1", None, context, False)

    assert "SELECT query took" in caplog.text
    assert "| SELECT 1" in caplog.text


def test_fast_queries_stay_quiet_at_info(monkeypatch, caplog):
    monkeypatch.setattr(session_mod, "SQL_SLOW_QUERY_MS", 10_000.0)
    context = SimpleNamespace()
    cursor = SimpleNamespace(rowcount=1)

    with caplog.at_level(logging.INFO, logger="api.db.sql"):
        session_mod._before_cursor_execute(None, cursor, "SELECT 1", None, context, False)
        session_mod._after_cursor_execute(None, cursor, "SELECT 1", None, context, False)

    assert caplog.text == ""
