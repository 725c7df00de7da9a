"""
civica.engine.optimistic — Local Feed State with Rollback
===========================================================

The viewer-side half of the upvote toggle.  A toggle is a two-phase
local/remote pair:

  1. :meth:`FeedState.begin_upvote` reads the viewer's cached membership,
     flips it, adjusts the displayed counter by ±1 and returns a
     :class:`PendingToggle` holding the pre-toggle values.
  2. The caller issues the remote write.
  3. On failure the caller hands the pending toggle to
     :meth:`FeedState.rollback`, which restores membership and counter.

No I/O here; :mod:`civica.services.feed_service` drives the phases.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace

from civica.engine.entities import Post

__all__ = ["FeedState", "PendingToggle"]

Listener = Callable[[list[Post]], None]


@dataclass(frozen=True, slots=True)
class PendingToggle:
    """Snapshot needed to compensate a failed remote toggle."""

    post_id: str
    was_upvoted: bool
    previous_upvotes: int


class FeedState:
    """Cached posts plus the viewer's upvoted set.

    Listeners are called with the current post list after every change.
    """

    def __init__(self, viewer_id: str) -> None:
        self.viewer_id = viewer_id
        self._lock = threading.Lock()
        self._posts: dict[str, Post] = {}
        self._order: list[str] = []
        self._upvoted: set[str] = set()
        self._listeners: list[Listener] = []

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    @property
    def posts(self) -> list[Post]:
        with self._lock:
            return [self._posts[pid] for pid in self._order]

    def get(self, post_id: str) -> Post | None:
        with self._lock:
            return self._posts.get(post_id)

    def is_upvoted(self, post_id: str) -> bool:
        with self._lock:
            return post_id in self._upvoted

    def upvote_count(self, post_id: str) -> int:
        with self._lock:
            post = self._posts.get(post_id)
            return post.engagement.upvotes if post else 0

    # -------------------------------------------------------------------
    # Snapshot replacement (initial load / live update)
    # -------------------------------------------------------------------
    def replace_all(self, posts: Iterable[Post]) -> None:
        """Replace the cache with a fresh server snapshot."""
        with self._lock:
            self._posts = {p.id: p for p in posts}
            self._order = list(self._posts)
            self._upvoted = {
                pid for pid, p in self._posts.items() if self.viewer_id in p.upvoted_by
            }
        self._emit()

    def extend(self, posts: Iterable[Post]) -> None:
        """Append a further page, skipping posts already cached."""
        with self._lock:
            for p in posts:
                if p.id in self._posts:
                    continue
                self._posts[p.id] = p
                self._order.append(p.id)
                if self.viewer_id in p.upvoted_by:
                    self._upvoted.add(p.id)
        self._emit()

    # -------------------------------------------------------------------
    # Two-phase toggle
    # -------------------------------------------------------------------
    def begin_upvote(self, post_id: str) -> PendingToggle:
        """Apply the optimistic flip and return the compensation record.

        Raises KeyError if *post_id* is not cached.
        """
        with self._lock:
            post = self._posts[post_id]
            was_upvoted = post_id in self._upvoted
            pending = PendingToggle(
                post_id=post_id,
                was_upvoted=was_upvoted,
                previous_upvotes=post.engagement.upvotes,
            )
            members = set(post.upvoted_by)
            if was_upvoted:
                self._upvoted.discard(post_id)
                members.discard(self.viewer_id)
                delta = -1
            else:
                self._upvoted.add(post_id)
                members.add(self.viewer_id)
                delta = 1
            self._posts[post_id] = replace(
                post,
                upvoted_by=members,
                engagement=replace(post.engagement, upvotes=post.engagement.upvotes + delta),
            )
        self._emit()
        return pending

    def rollback(self, pending: PendingToggle) -> None:
        """Restore membership and counter to their pre-toggle values."""
        with self._lock:
            post = self._posts.get(pending.post_id)
            if pending.was_upvoted:
                self._upvoted.add(pending.post_id)
            else:
                self._upvoted.discard(pending.post_id)
            if post is not None:
                members = set(post.upvoted_by)
                if pending.was_upvoted:
                    members.add(self.viewer_id)
                else:
                    members.discard(self.viewer_id)
                self._posts[pending.post_id] = replace(
                    post,
                    upvoted_by=members,
                    engagement=replace(post.engagement, upvotes=pending.previous_upvotes),
                )
        self._emit()

    # -------------------------------------------------------------------
    # Subscription
    # -------------------------------------------------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        snapshot = self.posts
        for listener in listeners:
            listener(snapshot)

