"""
tests/test_config.py — YAML Configuration Loader
==================================================
"""

from __future__ import annotations

import pytest

from civica.config import DEFAULT_AI_MODEL, load_config


def test_loads_values(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        'app_name: "CIVICA"\ndefault_city: "Bandung"\nfeed_page_size: 10\n',
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg.app_name == "CIVICA"
    assert cfg.default_city == "Bandung"
    assert cfg.feed_page_size == 10
    assert cfg.ai_model == DEFAULT_AI_MODEL
    assert cfg.notification_limit == 50


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError, match="config.yaml.example"):
        load_config(tmp_path / "nope.yaml")


def test_missing_required_key(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text('app_name: "CIVICA"\n', encoding="utf-8")
    with pytest.raises(KeyError):
        load_config(path)


def test_config_is_frozen(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text('app_name: "A"\ndefault_city: "B"\n', encoding="utf-8")
    cfg = load_config(path)
    with pytest.raises(AttributeError):
        cfg.app_name = "C"
