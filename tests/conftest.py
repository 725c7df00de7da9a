"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio
import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of civica.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402

from civica.database.models import Base  # noqa: E402
from civica.engine.entities import AIClassification, Location  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent)."""
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


def run_async(coro):
    """Run *coro* to completion on a fresh event loop."""
    return asyncio.run(coro)


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all CIVICA tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


# ---------------------------------------------------------------------------
# Data factories
# ---------------------------------------------------------------------------
def make_user(engine, user_id: str = "u1", name: str = "Budi", persona: str = "resident"):
    from civica.services import user_service

    return user_service.create_user_profile(
        engine,
        user_id,
        email=f"{user_id}@example.com",
        display_name=name,
        persona=persona,
        location=Location(city="Bandung", district="Coblong"),
    )


def make_post(
    engine,
    author_id: str = "u1",
    content: str = "Jalan berlubang di Dago",
    category: str = "REPORT",
    severity: str | None = "high",
    **kwargs,
):
    from civica.database.models import PostType
    from civica.services import post_service

    classification = AIClassification(
        category=PostType(category), confidence=0.9, severity=severity,
    )
    return post_service.create_post(
        engine,
        author_id=author_id,
        author_name=kwargs.pop("author_name", "Budi"),
        content=content,
        classification=classification,
        **kwargs,
    )


def make_token(sub: str = "u1", name: str = "Budi") -> str:
    """Create a session JWT for API tests."""
    import jwt

    from civica.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": sub, "email": f"{sub}@example.com", "name": name},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


@pytest.fixture
def client(db_engine):
    """FastAPI TestClient bound to the in-memory engine.

    The AI client gets an empty key and a transport that always fails, so
    classification falls back to its default.
    """
    import httpx
    from fastapi.testclient import TestClient

    from civica.api import deps
    from civica.api.main import app
    from civica.config import CivicaConfig
    from civica.services.ai_service import AIClient

    def _offline(request):
        raise httpx.ConnectError("offline", request=request)

    app.dependency_overrides[deps.get_engine] = lambda: db_engine
    app.dependency_overrides[deps.get_config] = lambda: CivicaConfig(
        app_name="CIVICA", default_city="Bandung", feed_page_size=2
    )
    app.dependency_overrides[deps.get_ai_client] = lambda: AIClient(
        api_key="", transport=httpx.MockTransport(_offline)
    )
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
