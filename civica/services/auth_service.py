"""
civica.services.auth_service — Identity API Client
====================================================

Email/password accounts against an Identity-Toolkit-style REST API
(``accounts:signUp``, ``accounts:signInWithPassword``,
``accounts:sendOobCode``, ``accounts:update``).

Provider error strings are normalised to short codes and raised as
:class:`~civica.errors.AuthError`; ``AuthError.localized()`` turns the
known ones into a user-facing message.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

import httpx

from civica.errors import AuthError

logger = logging.getLogger(__name__)

IDENTITY_API = "https://identitytoolkit.googleapis.com/v1"

_PROVIDER_CODES: dict[str, str] = {
    "EMAIL_NOT_FOUND": "user-not-found",
    "USER_NOT_FOUND": "user-not-found",
    "INVALID_PASSWORD": "wrong-password",
    "INVALID_LOGIN_CREDENTIALS": "wrong-password",
    "INVALID_EMAIL": "invalid-email",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "too-many-requests",
    "EMAIL_EXISTS": "email-already-in-use",
    "WEAK_PASSWORD": "weak-password",
    "USER_DISABLED": "user-disabled",
}


def normalize_error_code(provider_message: str) -> str:
    """``"WEAK_PASSWORD : Password should be…"`` → ``"weak-password"``."""
    key = provider_message.split(":", 1)[0].strip().upper()
    return _PROVIDER_CODES.get(key, key.lower().replace("_", "-") or "unknown")


@dataclass(frozen=True, slots=True)
class AuthSession:
    """An authenticated identity as returned by the provider."""

    uid: str
    email: str
    id_token: str
    refresh_token: str = ""
    display_name: str | None = None


class AuthClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = IDENTITY_API,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else os.getenv("IDENTITY_API_KEY", "")
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    async def _call(self, method: str, payload: dict) -> dict:
        transport = self._transport or httpx.AsyncHTTPTransport(retries=1)
        async with httpx.AsyncClient(timeout=10, transport=transport) as client:
            resp = await client.post(
                f"{self.base_url}/accounts:{method}",
                params={"key": self.api_key},
                json=payload,
            )
        if resp.status_code >= 400:
            try:
                message = resp.json().get("error", {}).get("message", "")
            except ValueError:
                message = ""
            code = normalize_error_code(message or f"HTTP_{resp.status_code}")
            logger.info("Identity %s rejected: %s", method, code)
            raise AuthError(code, message or None)
        return resp.json()

    @staticmethod
    def _session(body: dict, email: str) -> AuthSession:
        return AuthSession(
            uid=body["localId"],
            email=body.get("email", email),
            id_token=body.get("idToken", ""),
            refresh_token=body.get("refreshToken", ""),
            display_name=body.get("displayName") or None,
        )

    async def sign_up(self, email: str, password: str) -> AuthSession:
        body = await self._call(
            "signUp", {"email": email, "password": password, "returnSecureToken": True}
        )
        return self._session(body, email)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        body = await self._call(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return self._session(body, email)

    async def reset_password(self, email: str) -> None:
        await self._call("sendOobCode", {"requestType": "PASSWORD_RESET", "email": email})

    async def update_display_name(self, session: AuthSession, display_name: str) -> None:
        await self._call(
            "update", {"idToken": session.id_token, "displayName": display_name}
        )

    async def update_password(
        self, session: AuthSession, current_password: str, new_password: str
    ) -> AuthSession:
        """Re-authenticate with *current_password*, then set *new_password*."""
        fresh = await self.sign_in(session.email, current_password)
        body = await self._call(
            "update",
            {"idToken": fresh.id_token, "password": new_password, "returnSecureToken": True},
        )
        return self._session({"localId": fresh.uid, **body}, fresh.email)
