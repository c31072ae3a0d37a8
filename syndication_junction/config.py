"""
Configuration management using YAML files and dataclasses.

This module defines the application configuration dataclasses and provides
loading from YAML files with defaults. Feed render settings (title, word
counts, toggles) are not part of it: they live in the history store itself.

Configuration sections:
- FetchConfig: HTTP fetching of source feeds and filter commands
- MediaConfig: Media download settings
- StoreConfig: Location of the history store
- OutputConfig: Default output file
- LoggingConfig: Logging behavior
- AppConfig: Root configuration container
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import yaml


@dataclass
class FetchConfig:
    """Configuration for fetching source feeds.

    Attributes:
        timeout_seconds: HTTP request timeout
        retries: Number of retry attempts for failed requests
        trust_env: Whether to respect system proxy settings
        user_agent: HTTP User-Agent header string
        filter_timeout_seconds: Time limit for a manipulate_input command
    """

    timeout_seconds: float = 20.0
    retries: int = 2
    trust_env: bool = True
    user_agent: str = "Mozilla/5.0 (compatible; SyndicationJunction/0.1)"
    filter_timeout_seconds: float = 60.0


@dataclass
class MediaConfig:
    """Configuration for media localization.

    Attributes:
        timeout_seconds: Download timeout per file
        retries: Number of retry attempts per file
        directory: Media directory name, created next to the output file
    """

    timeout_seconds: float = 60.0
    retries: int = 1
    directory: str = "media"


@dataclass
class StoreConfig:
    """Configuration for the history store.

    Attributes:
        path: Path of the JSON history store
    """

    path: str = "db.json"


@dataclass
class OutputConfig:
    """Configuration for RSS output.

    Attributes:
        filename: Default output file for output-rss
    """

    filename: str = "rss.xml"


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to file
        format: Log file format ("jsonl" or "plain")
        filename: Name of the log file
        directory: Directory the log file is written to
    """

    level: str = "INFO"
    console: bool = True
    file: bool = False
    format: str = "jsonl"
    filename: str = "syndication.jsonl"
    directory: str = "logs"


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    fetch: FetchConfig = field(default_factory=FetchConfig)
    media: MediaConfig = field(default_factory=MediaConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: str | None) -> AppConfig:
    """Load configuration from a YAML file with defaults."""
    if not path:
        return AppConfig()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return _merge_config(AppConfig(), raw)


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML config into base AppConfig."""
    data = _asdict(base)
    for key, value in raw.items():
        if key not in data:
            continue
        if isinstance(value, dict) and isinstance(data[key], dict):
            data[key].update(value)
        else:
            data[key] = value
    return _fromdict(data)


def _asdict(cfg: AppConfig) -> dict[str, Any]:
    """Convert AppConfig to nested dictionary."""
    return {
        "fetch": {
            "timeout_seconds": cfg.fetch.timeout_seconds,
            "retries": cfg.fetch.retries,
            "trust_env": cfg.fetch.trust_env,
            "user_agent": cfg.fetch.user_agent,
            "filter_timeout_seconds": cfg.fetch.filter_timeout_seconds,
        },
        "media": {
            "timeout_seconds": cfg.media.timeout_seconds,
            "retries": cfg.media.retries,
            "directory": cfg.media.directory,
        },
        "store": {
            "path": cfg.store.path,
        },
        "output": {
            "filename": cfg.output.filename,
        },
        "logging": {
            "level": cfg.logging.level,
            "console": cfg.logging.console,
            "file": cfg.logging.file,
            "format": cfg.logging.format,
            "filename": cfg.logging.filename,
            "directory": cfg.logging.directory,
        },
    }


def _fromdict(data: dict[str, Any]) -> AppConfig:
    """Reconstruct AppConfig from nested dictionary."""
    return AppConfig(
        fetch=FetchConfig(**data["fetch"]),
        media=MediaConfig(**data["media"]),
        store=StoreConfig(**data["store"]),
        output=OutputConfig(**data["output"]),
        logging=LoggingConfig(**data["logging"]),
    )
