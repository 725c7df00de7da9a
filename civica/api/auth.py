"""
civica.api.auth — Email/password login + JWT issuance
=======================================================

The identity provider authenticates; this API then issues its own
short-lived session JWT that every other route accepts.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

import jwt
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from civica.api.deps import (
    JWT_ALGORITHM,
    JWT_SECRET,
    CurrentUser,
    get_auth_client,
    get_engine,
)
from civica.database.engine import run_db
from civica.errors import AuthError
from civica.services import user_service
from civica.services.auth_service import AuthClient, AuthSession

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])

TOKEN_TTL = timedelta(hours=12)

# Provider codes that mean "bad credentials" rather than "bad request"
_UNAUTHORIZED_CODES = {"wrong-password", "user-not-found"}


class Credentials(BaseModel):
    email: str
    password: str
    language: str = "id"


class ResetPasswordBody(BaseModel):
    email: str
    language: str = "id"


def issue_token(session: AuthSession, display_name: str | None = None) -> str:
    payload = {
        "sub": session.uid,
        "email": session.email,
        "name": display_name or session.display_name or session.email,
        "exp": datetime.now(UTC) + TOKEN_TTL,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def _auth_http_error(exc: AuthError, language: str) -> HTTPException:
    status_code = 401 if exc.code in _UNAUTHORIZED_CODES else 400
    if exc.code == "too-many-requests":
        status_code = 429
    return HTTPException(
        status_code, detail={"code": exc.code, "message": exc.localized(language)}
    )


async def _session_response(engine, session: AuthSession) -> dict:
    profile = await run_db(user_service.get_user_profile, engine, session.uid)
    return {
        "token": issue_token(session, profile.display_name if profile else None),
        "user": profile.to_dict() if profile else None,
        "onboarded": profile is not None,
    }


@router.post("/login")
async def login(
    body: Credentials,
    auth: AuthClient = Depends(get_auth_client),
    engine=Depends(get_engine),
):
    try:
        session = await auth.sign_in(body.email, body.password)
    except AuthError as exc:
        raise _auth_http_error(exc, body.language)
    return await _session_response(engine, session)


@router.post("/register")
async def register(
    body: Credentials,
    auth: AuthClient = Depends(get_auth_client),
    engine=Depends(get_engine),
):
    try:
        session = await auth.sign_up(body.email, body.password)
    except AuthError as exc:
        raise _auth_http_error(exc, body.language)
    logger.info("Registered account %s", session.uid)
    return await _session_response(engine, session)


@router.post("/reset-password")
async def reset_password(body: ResetPasswordBody, auth: AuthClient = Depends(get_auth_client)):
    try:
        await auth.reset_password(body.email)
    except AuthError as exc:
        raise _auth_http_error(exc, body.language)
    return {"status": "sent"}


@router.get("/me")
async def me(user: CurrentUser, engine=Depends(get_engine)):
    """Return the caller's identity and profile (``None`` before onboarding)."""
    profile = await run_db(user_service.get_user_profile, engine, user["sub"])
    return {
        "id": user["sub"],
        "email": user.get("email"),
        "name": user.get("name"),
        "profile": profile.to_dict() if profile else None,
    }
