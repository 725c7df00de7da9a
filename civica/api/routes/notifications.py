"""
civica.api.routes.notifications — The caller's inbox
======================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from civica.api.deps import CurrentUser, get_config, get_engine
from civica.config import CivicaConfig
from civica.database.engine import run_db
from civica.services import notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(
    user: CurrentUser,
    engine=Depends(get_engine),
    cfg: CivicaConfig = Depends(get_config),
):
    items = await run_db(
        notification_service.get_user_notifications, engine, user["sub"], cfg.notification_limit
    )
    unread = await run_db(notification_service.unread_count, engine, user["sub"])
    return {"notifications": [n.to_dict() for n in items], "unread": unread}


@router.post("/read-all")
async def mark_all_read(user: CurrentUser, engine=Depends(get_engine)):
    count = await run_db(notification_service.mark_all_as_read, engine, user["sub"])
    return {"updated": count}


@router.post("/{notification_id}/read")
async def mark_read(notification_id: str, user: CurrentUser, engine=Depends(get_engine)):
    item = await run_db(notification_service.get_notification, engine, notification_id)
    if item is None or item.user_id != user["sub"]:
        raise HTTPException(404, "Notification not found")
    await run_db(notification_service.mark_as_read, engine, notification_id)
    return {"status": "ok"}
