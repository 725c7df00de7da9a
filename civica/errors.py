"""
civica.errors — Exception hierarchy
=====================================

Not-found reads never raise; they return ``None`` or an empty list.
These exceptions cover the failures a caller is expected to handle.
"""

from __future__ import annotations

from civica.constants import AUTH_ERROR_MESSAGES, GENERIC_ERROR_MESSAGE


class CivicaError(Exception):
    """Base class for all CIVICA errors."""


class NotFoundError(CivicaError):
    """A write targeted a document that does not exist."""


class OnboardingIncompleteError(CivicaError):
    """Onboarding was completed without the required location or persona."""


class StorageError(CivicaError):
    """The object storage service rejected an upload."""


class AuthError(CivicaError):
    """The identity service rejected a request.

    *code* is normalised to the short form used by the locale table
    (``wrong-password``, ``invalid-email``, ``user-not-found``,
    ``too-many-requests``); unknown provider codes pass through lowercased.
    """

    def __init__(self, code: str, message: str | None = None) -> None:
        self.code = code
        super().__init__(message or code)

    def localized(self, language: str = "id") -> str:
        """Return the user-facing message for *language*."""
        messages = AUTH_ERROR_MESSAGES.get(self.code)
        if messages is None:
            return GENERIC_ERROR_MESSAGE.get(language, GENERIC_ERROR_MESSAGE["en"])
        return messages.get(language, messages["en"])
