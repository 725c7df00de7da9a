"""
civica.stores.theme_store — Light / Dark / System theme
=========================================================
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from civica.stores.base import Store
from civica.stores.local_storage import LocalStorage

logger = logging.getLogger(__name__)

THEME_STORAGE_KEY = "civica_theme_mode"

ThemeMode = Literal["light", "dark", "system"]
ColorScheme = Literal["light", "dark"]

_MODES = ("light", "dark", "system")


@dataclass(frozen=True, slots=True)
class ThemeState:
    theme_mode: ThemeMode = "system"
    effective_color_scheme: ColorScheme = "light"
    is_initialized: bool = False


class ThemeStore(Store[ThemeState]):
    """*platform_scheme* reports the OS colour scheme (``None`` = unknown)."""

    def __init__(
        self,
        storage: LocalStorage,
        platform_scheme: Callable[[], ColorScheme | None] = lambda: None,
    ) -> None:
        self._storage = storage
        self._platform_scheme = platform_scheme
        super().__init__(ThemeState(effective_color_scheme=self._resolve("system")))

    def _resolve(self, mode: ThemeMode) -> ColorScheme:
        if mode == "system":
            return self._platform_scheme() or "light"
        return mode

    async def initialize(self) -> None:
        try:
            saved = await self._storage.get_item(THEME_STORAGE_KEY)
        except OSError:
            logger.exception("Error loading theme")
            saved = None
        if saved in _MODES:
            self._set(
                theme_mode=saved,
                effective_color_scheme=self._resolve(saved),
                is_initialized=True,
            )
        else:
            self._set(is_initialized=True)

    async def set_theme_mode(self, mode: ThemeMode) -> None:
        if mode not in _MODES:
            raise ValueError(f"Unknown theme mode: {mode!r}")
        try:
            await self._storage.set_item(THEME_STORAGE_KEY, mode)
        except OSError:
            logger.exception("Error saving theme")
            return
        self._set(theme_mode=mode, effective_color_scheme=self._resolve(mode))

    async def toggle_dark_mode(self) -> None:
        new_mode = "light" if self.state.effective_color_scheme == "dark" else "dark"
        await self.set_theme_mode(new_mode)

    def on_platform_change(self, scheme: ColorScheme | None) -> None:
        """Follow an OS scheme change while in ``system`` mode."""
        if self.state.theme_mode == "system":
            self._set(effective_color_scheme=scheme or "light")
