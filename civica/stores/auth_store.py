"""
civica.stores.auth_store — Session, Profile & Onboarding
==========================================================

Holds the signed-in identity, its profile and the onboarding
accumulator.  The identity session is persisted to local storage
*before* the in-memory state changes, so a restart restores it.

Onboarding data lives only in memory: the four setters fill it in step
by step and :meth:`AuthStore.complete_onboarding` commits it into a user
profile in one write, then clears it.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field, replace
from typing import TYPE_CHECKING, Any

from civica.database.engine import run_db
from civica.database.models import Persona
from civica.engine.entities import Location, OnboardingData, User
from civica.errors import AuthError, OnboardingIncompleteError
from civica.services import user_service
from civica.services.auth_service import AuthClient, AuthSession
from civica.stores.base import Store
from civica.stores.local_storage import LocalStorage

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from civica.stores.language_store import LanguageStore

logger = logging.getLogger(__name__)

SESSION_STORAGE_KEY = "civica_auth_session"


@dataclass(frozen=True, slots=True)
class AuthState:
    session: AuthSession | None = None
    user: User | None = None
    is_loading: bool = False
    is_initialized: bool = False
    error: str | None = None
    onboarding: OnboardingData = field(default_factory=OnboardingData)


class AuthStore(Store[AuthState]):
    def __init__(
        self,
        engine: Engine,
        auth: AuthClient,
        storage: LocalStorage,
        language: LanguageStore | None = None,
    ) -> None:
        self._engine = engine
        self._auth = auth
        self._storage = storage
        self._language = language
        super().__init__(AuthState())

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _message(self, exc: Exception, fallback: str) -> str:
        if isinstance(exc, AuthError):
            lang = self._language.state.language if self._language else "id"
            return exc.localized(lang)
        return str(exc) or fallback

    async def _persist_session(self, session: AuthSession | None) -> None:
        if session is None:
            await self._storage.remove_item(SESSION_STORAGE_KEY)
        else:
            await self._storage.set_item(SESSION_STORAGE_KEY, json.dumps(asdict(session)))

    async def _load_profile(self, uid: str) -> User | None:
        return await run_db(user_service.get_user_profile, self._engine, uid)

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    async def initialize(self) -> None:
        """Restore a persisted session and load its profile."""
        self._set(is_loading=True)
        raw = await self._storage.get_item(SESSION_STORAGE_KEY)
        session = None
        if raw:
            try:
                session = AuthSession(**json.loads(raw))
            except (json.JSONDecodeError, TypeError):
                logger.warning("Discarding unreadable persisted session")

        if session is None:
            self._set(is_loading=False, is_initialized=True)
            return

        try:
            profile = await self._load_profile(session.uid)
        except Exception:
            logger.exception("Error loading user profile for %s", session.uid)
            profile = None
        self._set(session=session, user=profile, is_loading=False, is_initialized=True)

    # -------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------
    async def sign_up(self, email: str, password: str) -> None:
        self._set(is_loading=True, error=None)
        try:
            session = await self._auth.sign_up(email, password)
            await self._persist_session(session)
        except Exception as exc:
            self._set(error=self._message(exc, "Failed to sign up"), is_loading=False)
            raise
        self._set(session=session, user=None, is_loading=False)

    async def sign_in(self, email: str, password: str) -> None:
        self._set(is_loading=True, error=None)
        try:
            session = await self._auth.sign_in(email, password)
            profile = await self._load_profile(session.uid)
            await self._persist_session(session)
        except Exception as exc:
            self._set(error=self._message(exc, "Failed to sign in"), is_loading=False)
            raise
        self._set(session=session, user=profile, is_loading=False)

    async def sign_out(self) -> None:
        self._set(is_loading=True, error=None)
        try:
            await self._persist_session(None)
        except Exception as exc:
            self._set(error=self._message(exc, "Failed to sign out"), is_loading=False)
            raise
        self._set(session=None, user=None, is_loading=False, onboarding=OnboardingData())

    async def reset_password(self, email: str) -> None:
        self._set(is_loading=True, error=None)
        try:
            await self._auth.reset_password(email)
        except Exception as exc:
            self._set(error=self._message(exc, "Failed to send reset email"), is_loading=False)
            raise
        self._set(is_loading=False)

    async def update_password(self, current_password: str, new_password: str) -> None:
        session = self.state.session
        if session is None:
            raise AuthError("no-current-user", "No user logged in")
        self._set(is_loading=True, error=None)
        try:
            fresh = await self._auth.update_password(session, current_password, new_password)
            await self._persist_session(fresh)
        except Exception as exc:
            self._set(error=self._message(exc, "Failed to update password"), is_loading=False)
            raise
        self._set(session=fresh, is_loading=False)

    # -------------------------------------------------------------------
    # Onboarding accumulator
    # -------------------------------------------------------------------
    def set_onboarding_location(self, location: Location) -> None:
        self._set(onboarding=replace(self.state.onboarding, location=location))

    def set_onboarding_interests(self, interests: list[str]) -> None:
        self._set(onboarding=replace(self.state.onboarding, interests=list(interests)))

    def set_onboarding_persona(self, persona: Persona | str) -> None:
        self._set(onboarding=replace(self.state.onboarding, persona=Persona(persona).value))

    def set_onboarding_preferences(self, preferences: list[str]) -> None:
        self._set(onboarding=replace(self.state.onboarding, preferences=list(preferences)))

    async def complete_onboarding(self, display_name: str) -> User:
        """Create the profile from the accumulated onboarding data.

        Raises AuthError without a signed-in user and
        OnboardingIncompleteError without a location or persona.
        """
        session = self.state.session
        data = self.state.onboarding
        if session is None:
            raise AuthError("no-current-user", "No authenticated user")
        if data.location is None or not data.persona:
            raise OnboardingIncompleteError(
                "Onboarding data incomplete: missing location or persona"
            )

        self._set(is_loading=True, error=None)
        try:
            await self._auth.update_display_name(session, display_name)
            profile = await run_db(
                user_service.create_user_profile,
                self._engine,
                session.uid,
                email=session.email,
                display_name=display_name,
                persona=data.persona,
                location=data.location,
                interests=data.interests or [],
            )
        except Exception as exc:
            logger.exception("Completing onboarding failed for %s", session.uid)
            self._set(error=self._message(exc, "Failed to complete onboarding"), is_loading=False)
            raise
        self._set(user=profile, is_loading=False, onboarding=OnboardingData())
        return profile

    # -------------------------------------------------------------------
    # Profile
    # -------------------------------------------------------------------
    async def refresh_profile(self) -> None:
        session = self.state.session
        if session is None:
            return
        try:
            profile = await self._load_profile(session.uid)
        except Exception:
            logger.exception("Failed to refresh profile")
            return
        self._set(user=profile)

    async def update_profile(self, updates: dict[str, Any]) -> None:
        session = self.state.session
        if session is None or self.state.user is None:
            return
        self._set(is_loading=True, error=None)
        try:
            profile = await run_db(
                user_service.update_user_profile, self._engine, session.uid, updates
            )
        except Exception as exc:
            self._set(error=self._message(exc, "Failed to update profile"), is_loading=False)
            raise
        self._set(user=profile, is_loading=False)

    def clear_error(self) -> None:
        self._set(error=None)
