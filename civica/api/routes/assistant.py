"""
civica.api.routes.assistant — AI chat and post classification
===============================================================

The AI never blocks the caller: every endpoint answers 200 with either
the model's reply or the fixed default.
"""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from civica.api.deps import CurrentUser, get_ai_client, get_config, get_engine
from civica.config import CivicaConfig
from civica.database.engine import run_db
from civica.database.models import Persona
from civica.services import user_service
from civica.services.ai_service import (
    AIClient,
    ChatContext,
    ChatMessage,
    generate_quick_actions,
    get_time_of_day,
)

router = APIRouter(prefix="/assistant", tags=["assistant"])


class MessageBody(BaseModel):
    role: str = Field(pattern="^(user|assistant)$")
    content: str


class ChatBody(BaseModel):
    messages: list[MessageBody] = Field(min_length=1)
    image: str | None = None


class ClassifyBody(BaseModel):
    content: str
    images: list[str] = Field(default_factory=list)


class InterestsBody(BaseModel):
    text: str


async def _context(engine, cfg: CivicaConfig, user_id: str) -> ChatContext:
    profile = await run_db(user_service.get_user_profile, engine, user_id)
    if profile is None:
        return ChatContext(Persona.RESIDENT, cfg.default_city, "", get_time_of_day())
    return ChatContext(
        persona=Persona(profile.persona),
        city=profile.location.city or cfg.default_city,
        district=profile.location.district,
        time_of_day=get_time_of_day(),
    )


@router.post("/chat")
async def chat(
    body: ChatBody,
    user: CurrentUser,
    engine=Depends(get_engine),
    cfg: CivicaConfig = Depends(get_config),
    ai: AIClient = Depends(get_ai_client),
):
    context = await _context(engine, cfg, user["sub"])
    messages = [ChatMessage(m.role, m.content) for m in body.messages]
    reply = await ai.get_chat_response(messages, context, body.image)
    return {"reply": reply}


@router.get("/quick-actions")
async def quick_actions(
    user: CurrentUser,
    engine=Depends(get_engine),
    cfg: CivicaConfig = Depends(get_config),
):
    context = await _context(engine, cfg, user["sub"])
    return [asdict(a) for a in generate_quick_actions(context.persona, context.time_of_day)]


@router.post("/classify")
async def classify(body: ClassifyBody, user: CurrentUser, ai: AIClient = Depends(get_ai_client)):
    result = await ai.classify_post(body.content, body.images)
    return result.to_dict()


@router.post("/interests")
async def interests(body: InterestsBody, user: CurrentUser, ai: AIClient = Depends(get_ai_client)):
    return await ai.parse_interests(body.text)
