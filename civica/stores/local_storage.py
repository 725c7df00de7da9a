"""
civica.stores.local_storage — Persisted Key/Value Preferences
===============================================================

A small string key/value store backed by one JSON file, the service-side
counterpart of the device's local storage.  Reads and writes run on a
worker thread so they never block the event loop.

The directory comes from ``CIVICA_STORAGE_DIR`` (default ``.civica``).
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import threading
from pathlib import Path

logger = logging.getLogger(__name__)

STORAGE_FILE = "storage.json"


def default_storage_dir() -> Path:
    return Path(os.getenv("CIVICA_STORAGE_DIR", ".civica"))


class LocalStorage:
    def __init__(self, directory: str | Path | None = None) -> None:
        self.path = Path(directory or default_storage_dir()) / STORAGE_FILE
        self._lock = threading.Lock()

    # -------------------------------------------------------------------
    # Blocking helpers (run via asyncio.to_thread)
    # -------------------------------------------------------------------
    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Corrupt local storage file %s, starting empty", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self.path)

    def _get(self, key: str) -> str | None:
        with self._lock:
            return self._read_all().get(key)

    def _set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def _remove(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if data.pop(key, None) is not None:
                self._write_all(data)

    # -------------------------------------------------------------------
    # Async API
    # -------------------------------------------------------------------
    async def get_item(self, key: str) -> str | None:
        return await asyncio.to_thread(self._get, key)

    async def set_item(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set, key, value)

    async def remove_item(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)
