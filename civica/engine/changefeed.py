"""
civica.engine.changefeed — Live Change Notifications
======================================================

Stands in for the document store's real-time subscriptions.  Gateway
writes publish a small ``{"collection", "op", "id", ...}`` payload after
commit; subscribers (the feed controller, the pulse dashboard, the
notification listener) are called with it and re-query what they show.

Two delivery paths:
  * in-process subscribers are called synchronously on :meth:`publish`;
  * on PostgreSQL the payload is also sent with NOTIFY so other processes
    running a :meth:`ChangeFeed.start_listener` thread receive it.  Each
    process tags its payloads with an origin token and ignores its own
    echoes.

There is exactly one feed per engine (see :func:`feed_for`).
"""

from __future__ import annotations

import json
import logging
import random
import select as _select
import threading
import uuid
import weakref
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from sqlalchemy import text

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

# The PG channel name used for collection changes
NOTIFY_CHANNEL = "civica_changes"

ALLOWED_COLLECTIONS: frozenset[str] = frozenset({
    "posts",
    "comments",
    "notifications",
    "users",
})

Callback = Callable[[dict[str, Any]], None]


class ChangeFeed:
    """Per-engine publish/subscribe hub for collection changes.

    Usage:
        feed = feed_for(engine)
        unsubscribe = feed.subscribe("posts", on_posts_changed)
        ...
        unsubscribe()
    """

    def __init__(self, engine: Engine) -> None:
        # Weak: the per-engine registry below is keyed on this engine
        self._engine_ref = weakref.ref(engine)
        self._lock = threading.Lock()
        self._subscribers: dict[str, list[Callback]] = {}
        self._origin = uuid.uuid4().hex

        self._listener_healthy: bool = False
        self._listener_failed: bool = False
        self._listener_thread: threading.Thread | None = None
        self._shutdown_event = threading.Event()

    # -------------------------------------------------------------------
    # Subscription
    # -------------------------------------------------------------------
    def subscribe(self, collection: str, callback: Callback) -> Callable[[], None]:
        """Register *callback* for *collection*; returns an unsubscribe handle."""
        _check_collection(collection)
        with self._lock:
            self._subscribers.setdefault(collection, []).append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(collection, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return _unsubscribe

    @property
    def _engine(self) -> Engine:
        engine = self._engine_ref()
        if engine is None:
            raise RuntimeError("Engine behind this change feed was disposed")
        return engine

    def subscriber_count(self, collection: str) -> int:
        with self._lock:
            return len(self._subscribers.get(collection, []))

    # -------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------
    def publish(self, collection: str, op: str, doc_id: str, **extra: Any) -> None:
        """Deliver a change locally and, on PostgreSQL, via NOTIFY."""
        _check_collection(collection)
        payload = {"collection": collection, "op": op, "id": doc_id, **extra}
        self._dispatch(payload)

        engine = self._engine_ref()
        if engine is not None and engine.dialect.name == "postgresql":
            try:
                self._send_notify(payload)
            except Exception:
                logger.exception("NOTIFY failed for %s/%s", collection, doc_id)

    def _send_notify(self, payload: dict[str, Any]) -> None:
        raw = json.dumps({**payload, "origin": self._origin}, default=str)
        with self._engine.connect() as conn:
            conn.execute(
                text("SELECT pg_notify(:channel, :payload)"),
                {"channel": NOTIFY_CHANNEL, "payload": raw},
            )
            conn.commit()

    def _dispatch(self, payload: dict[str, Any]) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(payload["collection"], []))
        for callback in callbacks:
            try:
                callback(payload)
            except Exception:
                logger.exception(
                    "Change subscriber failed for %s/%s",
                    payload["collection"], payload.get("id"),
                )

    def handle_notify(self, raw_payload: str) -> None:
        """Route a NOTIFY payload from another process to local subscribers."""
        try:
            payload = json.loads(raw_payload)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Invalid change payload (not JSON): %s", raw_payload)
            return
        if payload.pop("origin", None) == self._origin:
            return
        if payload.get("collection") not in ALLOWED_COLLECTIONS:
            logger.warning("Unknown collection in NOTIFY: %s (ignored)", payload.get("collection"))
            return
        self._dispatch(payload)

    # -------------------------------------------------------------------
    # Cross-process listener (PostgreSQL only)
    # -------------------------------------------------------------------
    @property
    def listener_healthy(self) -> bool:
        return self._listener_healthy and not self._listener_failed

    @property
    def listener_failed(self) -> bool:
        return self._listener_failed

    def stop_listener(self) -> None:
        """Signal the listener thread to stop and wait for it to exit."""
        self._shutdown_event.set()
        if self._listener_thread is not None and self._listener_thread.is_alive():
            self._listener_thread.join(timeout=5)
            logger.info("PG NOTIFY listener thread stopped")

    def start_listener(self) -> None:
        """Start a background thread that LISTENs on :data:`NOTIFY_CHANNEL`.

        Reconnects with exponential backoff + jitter, giving up after
        ``max_reconnect_attempts`` consecutive failures.
        """
        import psycopg2

        max_backoff = 60.0
        base_backoff = 1.0
        max_reconnect_attempts = 10

        def _listen_thread() -> None:
            raw_url = self._engine.url.render_as_string(hide_password=False)
            dsn = raw_url.replace("postgresql+psycopg2://", "postgresql://")
            attempt = 0

            while not self._shutdown_event.is_set():
                conn = None
                try:
                    conn = psycopg2.connect(dsn)
                    conn.set_isolation_level(0)  # autocommit
                    cur = conn.cursor()
                    cur.execute(f"LISTEN {NOTIFY_CHANNEL};")
                    logger.info("PG LISTEN started on channel '%s'", NOTIFY_CHANNEL)

                    attempt = 0
                    self._listener_healthy = True

                    while not self._shutdown_event.is_set():
                        if _select.select([conn], [], [], 5.0) == ([], [], []):
                            continue
                        conn.poll()
                        while conn.notifies:
                            notify = conn.notifies.pop(0)
                            self.handle_notify(notify.payload or "")

                except Exception:
                    self._listener_healthy = False
                    attempt += 1
                    if attempt >= max_reconnect_attempts:
                        logger.critical(
                            "PG LISTEN exhausted %d retries. Live updates disabled.",
                            max_reconnect_attempts,
                        )
                        self._listener_failed = True
                        break

                    backoff = min(base_backoff * (2 ** (attempt - 1)), max_backoff)
                    wait = backoff + random.uniform(0, backoff * 0.5)
                    logger.exception(
                        "PG LISTEN connection lost (attempt %d/%d). Reconnecting in %.1fs…",
                        attempt, max_reconnect_attempts, wait,
                    )
                    if self._shutdown_event.wait(timeout=wait):
                        break
                finally:
                    if conn is not None:
                        try:
                            conn.close()
                        except Exception:
                            logger.debug("Error closing LISTEN connection", exc_info=True)

        thread = threading.Thread(target=_listen_thread, daemon=True, name="pg-change-listener")
        self._listener_thread = thread
        thread.start()
        logger.info("PG NOTIFY listener thread started")


def _check_collection(collection: str) -> None:
    if collection not in ALLOWED_COLLECTIONS:
        raise ValueError(
            f"Unknown collection: '{collection}'. "
            f"Allowed: {sorted(ALLOWED_COLLECTIONS)}"
        )


# ---------------------------------------------------------------------------
# One feed per engine
# ---------------------------------------------------------------------------
_feeds: weakref.WeakKeyDictionary[Any, ChangeFeed] = weakref.WeakKeyDictionary()
_feeds_lock = threading.Lock()


def feed_for(engine: Engine) -> ChangeFeed:
    """Return (or create) the :class:`ChangeFeed` bound to *engine*."""
    with _feeds_lock:
        feed = _feeds.get(engine)
        if feed is None:
            feed = ChangeFeed(engine)
            _feeds[engine] = feed
        return feed
