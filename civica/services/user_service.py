"""
civica.services.user_service — User Profile Gateway
=====================================================

Profiles are created once, when onboarding completes, and updated
incrementally afterwards.  The row id is the identity provider's uid.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from civica.constants import DEFAULT_BADGES, default_preferences, default_stats
from civica.database.engine import get_session
from civica.database.models import Persona
from civica.database.models import User as UserRow
from civica.engine.changefeed import feed_for
from civica.engine.entities import Location, User, user_from_row
from civica.errors import NotFoundError

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

# Fields a caller may change through update_user_profile
_UPDATABLE = frozenset({
    "display_name",
    "avatar_url",
    "persona",
    "location",
    "interests",
    "preferences",
    "badges",
})


def create_user_profile(
    engine: Engine,
    user_id: str,
    *,
    email: str,
    display_name: str,
    persona: Persona | str,
    location: Location,
    interests: list[str] | None = None,
) -> User:
    """Insert the profile row with default preferences, stats and badges."""
    with get_session(engine) as session:
        row = UserRow(
            id=user_id,
            email=email,
            display_name=display_name,
            persona=Persona(persona).value,
            location=location.to_dict(),
            interests=list(interests or []),
            preferences=default_preferences(),
            stats=default_stats(),
            badges=list(DEFAULT_BADGES),
        )
        session.add(row)
        session.flush()
        user = user_from_row(row)

    logger.info("Created profile for user %s (%s)", user_id, user.persona)
    feed_for(engine).publish("users", "create", user_id)
    return user


def get_user_profile(engine: Engine, user_id: str) -> User | None:
    with get_session(engine) as session:
        row = session.get(UserRow, user_id)
        return user_from_row(row) if row is not None else None


def update_user_profile(engine: Engine, user_id: str, updates: dict[str, Any]) -> User:
    """Apply a partial update.  ``None`` values are ignored.

    Raises NotFoundError if the profile does not exist and ValueError for
    fields that cannot be changed here (stats go through the points
    transaction).
    """
    unknown = set(updates) - _UPDATABLE
    if unknown:
        raise ValueError(f"Cannot update user fields: {sorted(unknown)}")

    with get_session(engine) as session:
        row = session.get(UserRow, user_id)
        if row is None:
            raise NotFoundError(f"User {user_id} not found")
        for key, value in updates.items():
            if value is None:
                continue
            if key == "location" and isinstance(value, Location):
                value = value.to_dict()
            elif key == "persona":
                value = Persona(value).value
            elif key == "preferences":
                merged = dict(row.preferences or default_preferences())
                merged.update(value)
                value = merged
            setattr(row, key, value)
        session.flush()
        user = user_from_row(row)

    feed_for(engine).publish("users", "update", user_id)
    return user


def has_completed_onboarding(engine: Engine, user_id: str) -> bool:
    profile = get_user_profile(engine, user_id)
    return profile is not None and bool(profile.persona)
