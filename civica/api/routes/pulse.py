"""
civica.api.routes.pulse — City pulse dashboard bundle
=======================================================
"""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Query

from civica.api.deps import CurrentUser, get_engine
from civica.database.engine import run_db
from civica.services.pulse_service import compute_pulse

router = APIRouter(prefix="/pulse", tags=["pulse"])


@router.get("")
async def get_pulse(
    user: CurrentUser,
    language: str = Query("id", pattern="^(id|en)$"),
    engine=Depends(get_engine),
):
    data = await run_db(compute_pulse, engine, datetime.now(UTC), language)
    return data.to_dict()
