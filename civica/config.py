"""
civica.config — YAML Configuration Loader
===========================================

Reads ``config.yaml`` for soft settings (app identity, feed paging, AI
model).  Secrets and service URLs stay in the environment (``.env``).

Usage::

    from civica.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.app_name)          # "CIVICA"
    print(cfg.ai_model)          # "google/gemma-3-12b-it:free"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

DEFAULT_AI_MODEL = "google/gemma-3-12b-it:free"


@dataclass(frozen=True, slots=True)
class CivicaConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    app_name: str
    default_city: str

    # AI
    ai_model: str = DEFAULT_AI_MODEL

    # Paging / caps
    feed_page_size: int = 20
    notification_limit: int = 50
    chat_history_limit: int = 10

    # Dashboard
    api_port: int = 8000


def load_config(path: str | Path = "config.yaml") -> CivicaConfig:
    """Read *path* and return a :class:`CivicaConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return CivicaConfig(
        app_name=raw["app_name"],
        default_city=raw["default_city"],
        ai_model=raw.get("ai_model") or DEFAULT_AI_MODEL,
        feed_page_size=int(raw.get("feed_page_size", 20)),
        notification_limit=int(raw.get("notification_limit", 50)),
        chat_history_limit=int(raw.get("chat_history_limit", 10)),
        api_port=int(raw.get("api_port", 8000)),
    )
