"""
civica.api.deps — FastAPI dependency injection
================================================
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from civica.config import CivicaConfig, load_config
from civica.database.engine import create_db_engine
from civica.services.ai_service import AIClient
from civica.services.auth_service import AuthClient
from civica.services.storage_service import StorageClient

logger = logging.getLogger(__name__)

_WEAK_SECRETS = frozenset({
    "civica-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> CivicaConfig:
    try:
        return load_config(os.getenv("CIVICA_CONFIG", "config.yaml"))
    except FileNotFoundError:
        logger.warning("config.yaml not found, using built-in defaults")
        return CivicaConfig(app_name="CIVICA", default_city="Bandung")


@lru_cache(maxsize=1)
def get_ai_client() -> AIClient:
    cfg = get_config()
    return AIClient(model=cfg.ai_model, history_limit=cfg.chat_history_limit)


@lru_cache(maxsize=1)
def get_auth_client() -> AuthClient:
    return AuthClient()


@lru_cache(maxsize=1)
def get_storage_client() -> StorageClient:
    return StorageClient()


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
) -> dict:
    """Validate the session JWT and return its payload. Raises 401 if invalid."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    if not payload.get("sub"):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    return payload


CurrentUser = Annotated[dict, Depends(get_current_user)]
