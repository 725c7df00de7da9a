"""
civica.services.ai_service — Hosted Completion API Client
===========================================================

Thin async client for the OpenRouter chat-completions endpoint plus the
four use cases built on it: post classification, image analysis,
interest extraction and the assistant chat.

The hosted model is treated as unreliable.  Every use case catches any
failure (network, HTTP status, malformed reply) and returns its fixed
default; see :mod:`civica.engine.classification` for the parse-or-default
adapter.  Nothing here ever raises to the caller.

Usage::

    client = AIClient()                       # OPENROUTER_API_KEY from env
    cls = await client.classify_post("Jalan berlubang di Dago", images=[])
"""

from __future__ import annotations

import base64
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

import httpx

from civica.config import DEFAULT_AI_MODEL
from civica.constants import CHAT_FALLBACK, PERSONAS
from civica.database.models import Persona
from civica.engine.classification import (
    default_classification,
    default_image_analysis,
    default_interests,
    parse_classification,
    parse_image_analysis,
    parse_interests,
)
from civica.engine.entities import AIClassification

logger = logging.getLogger(__name__)

OPENROUTER_API = "https://openrouter.ai/api/v1"

TimeOfDay = Literal["morning", "afternoon", "evening", "night"]


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ChatMessage:
    role: str  # "user" or "assistant"
    content: str


@dataclass(frozen=True, slots=True)
class ChatContext:
    persona: Persona
    city: str
    district: str
    time_of_day: TimeOfDay


@dataclass(frozen=True, slots=True)
class QuickAction:
    id: str
    icon: str
    label: str
    prompt: str


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------
CLASSIFY_PROMPT = """
Analyze this social media post for a civic engagement app in Indonesia.

Post Text: "{text}"

Based on the text{image_note}, classify this post into ONE of these main categories:

1. REPORT - Infrastructure issues (potholes, flooding, broken lights), safety concerns, public facility problems (requires severity assessment)
2. NEWS - Local news, official announcements, events, community information
3. GENERAL - Other content including:
   - PROMOTION: Business promotions, product offerings, services, local shops/restaurants
   - SPORTS: Sports-related content, activities, sports news
   - TECHNOLOGY: Technology discussions, gadgets, apps, tech news
   - ENTERTAINMENT: Entertainment, movies, music, games, hobbies
   - REAL_STORY: True stories, personal experiences, testimonials
   - FICTION: Fiction stories, creative writing, poetry
   - OTHER: Content that doesn't fit above sub-categories

Also analyze:
- Confidence score (0-1)
- Severity level if it's a REPORT (low/medium/high/critical)
- Relevant tags (max 5, in Indonesian)
- Key keywords extracted from the content

Respond in valid JSON format only:
{{
  "category": "REPORT" | "NEWS" | "GENERAL",
  "subCategory": "PROMOTION" | "SPORTS" | "TECHNOLOGY" | "ENTERTAINMENT" | "REAL_STORY" | "FICTION" | "OTHER" | null,
  "confidence": 0.0-1.0,
  "severity": "low" | "medium" | "high" | "critical" | null,
  "tags": ["tag1", "tag2"],
  "keywords": ["keyword1", "keyword2"],
  "sentiment": "positive" | "neutral" | "negative"
}}

Note: subCategory is only applicable when category is GENERAL. severity is only applicable for REPORT.
"""

IMAGE_PROMPT = """
Analyze this image from a civic engagement app in Indonesia.
Describe what you see briefly and suggest if this might be:
- REPORT: Infrastructure issue (pothole, damage, flooding, etc.)
- NEWS: News/event related content
- GENERAL: Other content (business/product, casual posts, etc.)

Respond in JSON:
{
  "description": "Brief description",
  "suggestedCategory": "REPORT" | "NEWS" | "GENERAL",
  "detectedObjects": ["object1", "object2"]
}
"""

INTERESTS_PROMPT = """
Given this user's description of their interests (in Indonesian context):
"{text}"

Extract the key interests and suggest relevant tags for a civic engagement app.

Respond in JSON:
{{
  "interests": ["interest1", "interest2", "interest3"],
  "suggestedTags": ["tag1", "tag2", "tag3", "tag4", "tag5"]
}}

Keep interests concise (1-2 words each). Maximum 5 interests and 5 tags.
"""

CHAT_SYSTEM_PROMPT = """
Kamu adalah asisten virtual CIVICA, aplikasi civic engagement di Indonesia.

Profil pengguna:
- Persona: {persona}
- Lokasi: {district}, {city}
- Waktu: {time_of_day}

Kemampuanmu:
- Membantu cari tempat terdekat (restoran, kafe, layanan)
- Cek laporan dan masalah lokal
- Bantu buat laporan baru
- Info bisnis lokal dan UMKM
- Info kota dan event
- Menganalisis gambar yang dikirim pengguna

ATURAN PENTING:
1. Tulis dengan gaya percakapan santai dan natural seperti teman
2. Gunakan emoji secukupnya untuk membuat chat lebih hidup
3. Jawab singkat dan to the point, tidak perlu terlalu formal
4. Gunakan bahasa Indonesia sehari-hari yang ramah
5. Jika merekomendasikan tempat, sebutkan perkiraan jarak dan harga dengan natural
6. Jika pengguna mengirim gambar, analisis dengan detail dan jelaskan apa yang kamu lihat
"""

CHAT_ACK = "Siap! Aku akan mengikuti semua aturan di atas. Ada yang bisa aku bantu? 😊"
IMAGE_QUESTION = "Apa yang ada di gambar ini?"


def image_data_url(content: bytes, content_type: str = "image/jpeg") -> str:
    """Encode raw image bytes as a ``data:`` URL for multimodal messages."""
    return f"data:{content_type};base64,{base64.b64encode(content).decode('ascii')}"


def _text_with_images(text: str, images: list[str]) -> list[dict[str, Any]]:
    parts: list[dict[str, Any]] = [{"type": "text", "text": text}]
    parts.extend({"type": "image_url", "image_url": {"url": url}} for url in images)
    return parts


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------
class AIClient:
    """OpenRouter client with parse-or-default use cases."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_AI_MODEL,
        base_url: str = OPENROUTER_API,
        history_limit: int = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else os.getenv("OPENROUTER_API_KEY", "")
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.history_limit = history_limit
        self._transport = transport

    async def complete(self, messages: list[dict[str, Any]]) -> str:
        """POST a chat completion and return the first choice's text.

        Raises httpx.HTTPError on transport/status failures and ValueError
        when the reply carries no text.
        """
        transport = self._transport or httpx.AsyncHTTPTransport(retries=1)
        async with httpx.AsyncClient(timeout=30, transport=transport) as client:
            resp = await client.post(
                f"{self.base_url}/chat/completions",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"model": self.model, "messages": messages},
            )
            resp.raise_for_status()
            body = resp.json()

        choices = body.get("choices") or []
        content = choices[0].get("message", {}).get("content") if choices else None
        if not isinstance(content, str):
            raise ValueError("Completion reply had no text content")
        return content

    # -------------------------------------------------------------------
    # Use cases
    # -------------------------------------------------------------------
    async def classify_post(self, text: str, images: list[str] | None = None) -> AIClassification:
        images = images or []
        prompt = CLASSIFY_PROMPT.format(
            text=text,
            image_note=" and attached image(s)" if images else "",
        )
        try:
            reply = await self.complete([
                {"role": "user", "content": _text_with_images(prompt, images)},
            ])
        except Exception:
            logger.exception("AI classification failed; using default")
            return default_classification()
        return parse_classification(reply)

    async def analyze_image(self, image: str) -> dict[str, Any]:
        try:
            reply = await self.complete([
                {"role": "user", "content": _text_with_images(IMAGE_PROMPT, [image])},
            ])
        except Exception:
            logger.exception("Image analysis failed; using default")
            return default_image_analysis()
        return parse_image_analysis(reply)

    async def parse_interests(self, text: str) -> dict[str, list[str]]:
        try:
            reply = await self.complete([
                {"role": "user", "content": INTERESTS_PROMPT.format(text=text)},
            ])
        except Exception:
            logger.exception("Interest parsing failed; using default")
            return default_interests()
        return parse_interests(reply)

    def build_chat_messages(
        self,
        messages: list[ChatMessage],
        context: ChatContext,
        image: str | None = None,
    ) -> list[dict[str, Any]]:
        """Instruction turn + acknowledgement + the last N messages.

        With an *image*, the final user message is sent multimodally.
        """
        persona = PERSONAS[Persona(context.persona)]
        system = CHAT_SYSTEM_PROMPT.format(
            persona=persona.name,
            district=context.district,
            city=context.city,
            time_of_day=context.time_of_day,
        )
        convo: list[dict[str, Any]] = [
            {
                "role": "user",
                "content": f"[INSTRUKSI SISTEM - Ikuti aturan ini untuk semua respons]\n{system}",
            },
            {"role": "assistant", "content": CHAT_ACK},
        ]

        limit = self.history_limit
        history = messages[-limit:-1] if image and messages else messages[-limit:]
        for m in history:
            convo.append({
                "role": "user" if m.role == "user" else "assistant",
                "content": m.content,
            })

        if image and messages:
            last = messages[-1]
            convo.append({
                "role": "user",
                "content": _text_with_images(last.content or IMAGE_QUESTION, [image]),
            })
        return convo

    async def get_chat_response(
        self,
        messages: list[ChatMessage],
        context: ChatContext,
        image: str | None = None,
    ) -> str:
        try:
            return await self.complete(self.build_chat_messages(messages, context, image))
        except Exception:
            logger.exception("Chat response failed; using fallback")
            return CHAT_FALLBACK


# ---------------------------------------------------------------------------
# Local helpers (no API call)
# ---------------------------------------------------------------------------
_MEAL = {
    "morning": ("Sarapan terdekat", "sarapan"),
    "afternoon": ("Makan siang terdekat", "makan siang"),
}
_DINNER = ("Makan malam terdekat", "makan malam")

_PERSONA_ACTIONS: dict[Persona, QuickAction] = {
    Persona.MERCHANT: QuickAction(
        "promote", "megaphone", "Promosikan bisnis",
        "Bantu saya membuat promosi untuk bisnis saya",
    ),
    Persona.OFFICE_WORKER: QuickAction(
        "coffee", "coffee", "Kopi terdekat",
        "Rekomendasikan cafe atau coffee shop terdekat",
    ),
    Persona.RESIDENT: QuickAction(
        "community", "users", "Info komunitas",
        "Ada info atau event komunitas terbaru?",
    ),
    Persona.STUDENT: QuickAction(
        "study", "book-open", "Tempat belajar",
        "Rekomendasikan tempat belajar yang nyaman",
    ),
}


def generate_quick_actions(persona: Persona | str, time_of_day: TimeOfDay) -> list[QuickAction]:
    """Four base suggestions plus one for the persona."""
    label, meal = _MEAL.get(time_of_day, _DINNER)
    actions = [
        QuickAction("nearby_food", "utensils", label, f"Rekomendasikan tempat {meal} terdekat"),
        QuickAction("traffic", "car", "Cek lalu lintas", "Bagaimana kondisi lalu lintas saat ini?"),
        QuickAction("create_report", "alert-triangle", "Buat laporan", "Saya ingin melaporkan masalah"),
        QuickAction("city_news", "newspaper", "Berita hari ini", "Apa berita terbaru di kota ini?"),
    ]
    extra = _PERSONA_ACTIONS.get(persona)
    if extra is not None:
        actions.append(extra)
    return actions


def get_time_of_day(now: datetime | None = None) -> TimeOfDay:
    hour = (now or datetime.now()).hour
    if 5 <= hour < 11:
        return "morning"
    if 11 <= hour < 15:
        return "afternoon"
    if 15 <= hour < 19:
        return "evening"
    return "night"
