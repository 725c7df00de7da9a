"""
civica.api.main — FastAPI application entry point
===================================================

Run with::

    uvicorn civica.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from civica import __version__  # noqa: E402
from civica.api.auth import router as auth_router  # noqa: E402
from civica.api.deps import get_engine  # noqa: E402
from civica.api.routes.assistant import router as assistant_router  # noqa: E402
from civica.api.routes.comments import router as comments_router  # noqa: E402
from civica.api.routes.media import router as media_router  # noqa: E402
from civica.api.routes.notifications import router as notifications_router  # noqa: E402
from civica.api.routes.posts import router as posts_router  # noqa: E402
from civica.api.routes.pulse import router as pulse_router  # noqa: E402
from civica.database.engine import init_db  # noqa: E402
from civica.engine.changefeed import feed_for  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from ``CORS_ALLOW_ORIGINS`` (comma-separated)."""
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]
    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the DB engine, start the change listener."""
    engine = get_engine()
    init_db(engine)
    feed = feed_for(engine)
    if engine.dialect.name == "postgresql":
        feed.start_listener()
    logger.info("CIVICA API started, engine ready (%s)", engine.url.database)
    yield
    feed.stop_listener()
    logger.info("CIVICA API shutting down")


app = FastAPI(
    title="CIVICA API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount routers
app.include_router(auth_router, prefix="/api")
app.include_router(posts_router, prefix="/api")
app.include_router(comments_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")
app.include_router(pulse_router, prefix="/api")
app.include_router(assistant_router, prefix="/api")
app.include_router(media_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
