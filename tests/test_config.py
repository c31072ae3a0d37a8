"""Tests for YAML configuration loading."""

from __future__ import annotations

from pathlib import Path

from syndication_junction.config import AppConfig, load_config


def test_load_config_without_path_returns_defaults():
    cfg = load_config(None)

    assert cfg == AppConfig()
    assert cfg.store.path == "db.json"
    assert cfg.media.directory == "media"


def test_load_config_merges_sections(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "fetch:\n"
        "  retries: 0\n"
        "  user_agent: test-agent\n"
        "store:\n"
        "  path: data/history.json\n"
        "logging:\n"
        "  level: DEBUG\n"
        "unknown_section:\n"
        "  ignored: true\n",
        encoding="utf-8",
    )

    cfg = load_config(str(path))

    assert cfg.fetch.retries == 0
    assert cfg.fetch.user_agent == "test-agent"
    assert cfg.fetch.timeout_seconds == 20.0
    assert cfg.store.path == "data/history.json"
    assert cfg.logging.level == "DEBUG"
    assert cfg.output.filename == "rss.xml"


def test_load_config_empty_file(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")

    assert load_config(str(path)) == AppConfig()
