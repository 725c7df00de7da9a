"""
civica.stores.language_store — UI language (id / en)
======================================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from civica.stores.base import Store
from civica.stores.local_storage import LocalStorage

logger = logging.getLogger(__name__)

LANGUAGE_STORAGE_KEY = "civica_language"

Language = Literal["id", "en"]
LANGUAGES = ("id", "en")


@dataclass(frozen=True, slots=True)
class LanguageState:
    language: Language = "id"
    is_initialized: bool = False


class LanguageStore(Store[LanguageState]):
    def __init__(self, storage: LocalStorage) -> None:
        self._storage = storage
        super().__init__(LanguageState())

    async def initialize(self) -> None:
        try:
            saved = await self._storage.get_item(LANGUAGE_STORAGE_KEY)
        except OSError:
            logger.exception("Error loading language")
            saved = None
        if saved in LANGUAGES:
            self._set(language=saved, is_initialized=True)
        else:
            self._set(is_initialized=True)

    async def set_language(self, language: Language) -> None:
        if language not in LANGUAGES:
            raise ValueError(f"Unsupported language: {language!r}")
        try:
            await self._storage.set_item(LANGUAGE_STORAGE_KEY, language)
        except OSError:
            logger.exception("Error saving language")
            return
        self._set(language=language)
