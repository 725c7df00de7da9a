"""
civica.engine.classification — AI JSON-in-text adapter
========================================================

The hosted model answers in free text; the structured use cases expect
a JSON object somewhere inside it.  This module is the only place that
looks at that text.  Each ``parse_*`` function either returns a
well-formed value or the fixed default for its use case, so nothing
downstream ever sees malformed model output.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from civica.database.models import PostType, Severity
from civica.engine.entities import AIClassification

logger = logging.getLogger(__name__)

__all__ = [
    "default_classification",
    "default_image_analysis",
    "default_interests",
    "extract_json_object",
    "parse_classification",
    "parse_image_analysis",
    "parse_interests",
]

_SENTIMENTS = {"positive", "neutral", "negative"}
_SUB_CATEGORIES = {
    "PROMOTION", "SPORTS", "TECHNOLOGY", "ENTERTAINMENT",
    "REAL_STORY", "FICTION", "OTHER",
}


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------
def default_classification() -> AIClassification:
    return AIClassification(
        category=PostType.GENERAL,
        confidence=0.5,
        tags=[],
        keywords=[],
    )


def default_interests() -> dict[str, list[str]]:
    return {"interests": [], "suggested_tags": []}


def default_image_analysis() -> dict[str, Any]:
    return {
        "description": "Unable to analyze image",
        "suggested_category": PostType.GENERAL.value,
        "detected_objects": [],
    }


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------
def extract_json_object(text: str) -> dict | None:
    """Return the first balanced ``{...}`` in *text* parsed as JSON.

    Braces inside JSON string literals are ignored while scanning.
    Returns None when there is no balanced object or it fails to parse.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    candidate = text[start:i + 1]
                    try:
                        parsed = json.loads(candidate)
                    except json.JSONDecodeError:
                        break
                    return parsed if isinstance(parsed, dict) else None
        else:
            return None
        start = text.find("{", start + 1)
    return None


def _str_list(value: Any, limit: int | None = None) -> list[str]:
    if not isinstance(value, list):
        return []
    items = [str(v) for v in value if isinstance(v, (str, int, float))]
    return items[:limit] if limit else items


# ---------------------------------------------------------------------------
# Use-case parsers
# ---------------------------------------------------------------------------
def parse_classification(text: str) -> AIClassification:
    """Parse a classification reply, or return the default."""
    parsed = extract_json_object(text or "")
    if parsed is None:
        logger.warning("Classification reply had no usable JSON object")
        return default_classification()

    try:
        category = PostType(str(parsed.get("category", "")).upper())
        confidence = float(parsed.get("confidence", 0.5))
    except (ValueError, TypeError):
        logger.warning("Classification reply had an invalid category/confidence")
        return default_classification()

    severity = parsed.get("severity")
    if not isinstance(severity, str) or severity not in {s.value for s in Severity}:
        severity = None

    sentiment = parsed.get("sentiment")
    if not isinstance(sentiment, str) or sentiment not in _SENTIMENTS:
        sentiment = None

    sub_category = parsed.get("subCategory") or parsed.get("sub_category")
    if (
        category != PostType.GENERAL
        or not isinstance(sub_category, str)
        or sub_category not in _SUB_CATEGORIES
    ):
        sub_category = None

    return AIClassification(
        category=category,
        confidence=min(max(confidence, 0.0), 1.0),
        severity=severity,
        tags=_str_list(parsed.get("tags"), limit=5),
        keywords=_str_list(parsed.get("keywords")),
        sentiment=sentiment,
        sub_category=sub_category,
    )


def parse_interests(text: str) -> dict[str, list[str]]:
    """Parse an interest-extraction reply, or return empty lists."""
    parsed = extract_json_object(text or "")
    if parsed is None:
        logger.warning("Interest reply had no usable JSON object")
        return default_interests()
    return {
        "interests": _str_list(parsed.get("interests"), limit=5),
        "suggested_tags": _str_list(
            parsed.get("suggestedTags", parsed.get("suggested_tags")), limit=5
        ),
    }


def parse_image_analysis(text: str) -> dict[str, Any]:
    """Parse an image-analysis reply, or return the default."""
    parsed = extract_json_object(text or "")
    if parsed is None:
        return default_image_analysis()
    suggested = str(parsed.get("suggestedCategory", "")).upper()
    if suggested not in {t.value for t in PostType}:
        suggested = PostType.GENERAL.value
    return {
        "description": str(parsed.get("description") or ""),
        "suggested_category": suggested,
        "detected_objects": _str_list(parsed.get("detectedObjects")),
    }
