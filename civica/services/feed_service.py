"""
civica.services.feed_service — Optimistic Feed Controller
===========================================================

Drives the two-phase upvote toggle for one viewer:

    pending = state.begin_upvote(post_id)        # local, immediate
    try:
        await run_db(post_service.toggle_upvote)  # remote, suspends
    except Exception:
        state.rollback(pending)                   # compensate
        raise

The sequence inside one toggle is totally ordered.  Two rapid toggles
of the same post are *not* serialised against each other; the server's
last write wins and the local counter may drift until the next reload.

With ``live=True`` the controller also listens for ``posts`` changes and
reloads the first page when one arrives.  Results that land after
:meth:`FeedController.close` are discarded.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from civica.database.engine import run_db
from civica.engine.changefeed import feed_for
from civica.engine.entities import Post
from civica.engine.optimistic import FeedState
from civica.services import post_service
from civica.services.post_service import POSTS_PER_PAGE, FeedFilters

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


class FeedController:
    """One viewer's feed: paging, live reloads and optimistic upvotes."""

    def __init__(
        self,
        engine: Engine,
        viewer_id: str,
        filters: FeedFilters | None = None,
        page_size: int = POSTS_PER_PAGE,
    ) -> None:
        self._engine = engine
        self.filters = filters or FeedFilters()
        self.page_size = page_size
        self.state = FeedState(viewer_id)
        self._cursor: str | None = None
        self._has_more = True
        self._closed = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._unsubscribe = None
        self._reloads: set[asyncio.Task] = set()

    @property
    def viewer_id(self) -> str:
        return self.state.viewer_id

    @property
    def posts(self) -> list[Post]:
        return self.state.posts

    @property
    def has_more(self) -> bool:
        return self._has_more

    # -------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------
    async def load(self) -> list[Post]:
        """(Re)load the first page, replacing the cached posts."""
        posts, cursor = await run_db(
            post_service.get_posts, self._engine, self.filters, None, self.page_size
        )
        if self._closed:
            return posts
        self._cursor = cursor
        self._has_more = len(posts) == self.page_size
        self.state.replace_all(posts)
        return posts

    async def load_more(self) -> list[Post]:
        """Append the next page.  Returns the newly fetched posts."""
        if not self._has_more or self._cursor is None:
            return []
        posts, cursor = await run_db(
            post_service.get_posts, self._engine, self.filters, self._cursor, self.page_size
        )
        if self._closed:
            return posts
        if cursor is not None:
            self._cursor = cursor
        self._has_more = len(posts) == self.page_size
        self.state.extend(posts)
        return posts

    # -------------------------------------------------------------------
    # Optimistic upvote
    # -------------------------------------------------------------------
    async def toggle_upvote(self, post_id: str) -> bool:
        """Toggle the viewer's upvote; returns True if now upvoted.

        The local state flips before the remote call.  If the remote call
        raises, local membership and counter are restored to their
        pre-toggle values and the error is re-raised for the caller to
        surface.
        """
        pending = self.state.begin_upvote(post_id)
        try:
            upvoted = await run_db(
                post_service.toggle_upvote, self._engine, post_id, self.viewer_id
            )
        except Exception:
            logger.exception("Upvote toggle failed for post %s, rolling back", post_id)
            if not self._closed:
                self.state.rollback(pending)
            raise
        return upvoted

    # -------------------------------------------------------------------
    # Live updates
    # -------------------------------------------------------------------
    def start_live(self) -> None:
        """Reload the first page whenever the ``posts`` collection changes.

        Must be called from the event loop that owns this controller.
        """
        if self._unsubscribe is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._unsubscribe = feed_for(self._engine).subscribe("posts", self._on_change)

    def _on_change(self, payload: dict[str, Any]) -> None:
        # Called from whichever thread committed the change
        loop = self._loop
        if self._closed or loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._spawn_reload)

    def _spawn_reload(self) -> None:
        if self._closed:
            return
        task = asyncio.ensure_future(self._reload())
        self._reloads.add(task)
        task.add_done_callback(self._reloads.discard)

    async def _reload(self) -> None:
        try:
            await self.load()
        except Exception:
            logger.exception("Live feed reload failed for viewer %s", self.viewer_id)

    async def wait_idle(self) -> None:
        """Wait for any scheduled live reloads to finish."""
        await asyncio.sleep(0)
        while self._reloads:
            await asyncio.gather(*list(self._reloads), return_exceptions=True)

    def close(self) -> None:
        """Stop live updates; results still in flight are discarded."""
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
