"""
civica.stores.base — Reactive State Container
===============================================

Each store owns one immutable state object.  ``state`` is a synchronous
read; changes go through :meth:`Store._set`, which swaps in a new state
and calls every subscriber with it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

S = TypeVar("S")


class Store(Generic[S]):
    def __init__(self, initial: S) -> None:
        self._state = initial
        self._listeners: list[Callable[[S], Any]] = []

    @property
    def state(self) -> S:
        return self._state

    def subscribe(self, listener: Callable[[S], Any]) -> Callable[[], None]:
        """Register *listener*; returns the unsubscribe function."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _set(self, **changes: Any) -> S:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("%s listener failed", type(self).__name__)
        return self._state
