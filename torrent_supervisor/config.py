"""Central configuration for torrent_supervisor."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import List

logger = logging.getLogger(__name__)


def _split_urls(s: str) -> List[str]:
    """Parse comma-separated string into a list of feed URLs.

    Example:
        >>> _split_urls("https://a/rss, ,https://b/rss")
        ['https://a/rss', 'https://b/rss']
    """
    return [p.strip() for p in (s or "").split(",") if p.strip()]


def _read_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, str(default)) or default)
    except Exception:
        return default


def _read_int(name: str, default: int) -> int:
    raw = (os.environ.get(name) or str(default)).strip()
    try:
        return int(raw) if raw else default
    except Exception:
        return default


def _read_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes"}


@dataclass
class Settings:
    """Configuration settings for torrent_supervisor.

    All settings are loaded from environment variables with sensible defaults.
    """

    WATCH_FOLDER: str
    UPLOAD_FOLDER: str
    DEFAULT_MOVE_FOLDER: str
    SEED_RATIO_STOP: float
    MAX_ACTIVE_TORRENTS: int
    UPLOAD_LIMIT_ENABLED: bool
    STATE_FILE: str
    QBT_HOST: str
    QBT_PORT: int
    QBT_USER: str
    QBT_PASS: str
    QBT_TIMEOUT_S: float
    WATCH_INTERVAL_S: float
    RECONCILE_INTERVAL_S: float
    FEED_INTERVAL_S: float
    RELOCATION_WORKERS: int
    FEED_TIMEOUT_S: float
    FEED_URLS: List[str]


def _read_settings() -> Settings:
    """Read all configuration from environment variables.

    Returns:
        Settings object with all configuration values.

    Note:
        Invalid numeric values fall back to sensible defaults.
        Boolean values accept: 1/true/yes (case-insensitive) as True.
    """
    # Folders
    watch_folder = os.environ.get("WATCH_FOLDER") or "/data/watch"
    upload_folder = os.environ.get("UPLOAD_FOLDER") or "/data/uploads"
    move_folder = os.environ.get("DEFAULT_MOVE_FOLDER") or "/data/completed"
    state_file = os.environ.get("STATE_FILE") or "/app/data/torrent_state.json"

    # Policies
    seed_ratio_stop = _read_float("SEED_RATIO_STOP", 1.5)
    max_active = _read_int("MAX_ACTIVE_TORRENTS", 5)
    upload_limit = _read_bool("UPLOAD_LIMIT_ENABLED", True)

    # qBittorrent
    qbt_host = os.environ.get("QBT_HOST") or "qbittorrent"
    qbt_port = _read_int("QBT_PORT", 8080)
    qbt_user = os.environ.get("QBT_USER") or "admin"
    qbt_pass = os.environ.get("QBT_PASS") or "adminadmin"
    qbt_timeout = _read_float("QBT_TIMEOUT_S", 8.0)

    # Job cadence
    watch_interval = _read_float("WATCH_INTERVAL_S", 5 * 60.0)
    reconcile_interval = _read_float("RECONCILE_INTERVAL_S", 30.0)
    feed_interval = _read_float("FEED_INTERVAL_S", 60 * 60.0)
    relocation_workers = _read_int("RELOCATION_WORKERS", 2)
    feed_timeout = _read_float("FEED_TIMEOUT_S", 15.0)
    feed_urls = _split_urls(os.environ.get("FEED_URLS", ""))

    return Settings(
        WATCH_FOLDER=watch_folder,
        UPLOAD_FOLDER=upload_folder,
        DEFAULT_MOVE_FOLDER=move_folder,
        SEED_RATIO_STOP=seed_ratio_stop,
        MAX_ACTIVE_TORRENTS=max_active,
        UPLOAD_LIMIT_ENABLED=upload_limit,
        STATE_FILE=state_file,
        QBT_HOST=qbt_host,
        QBT_PORT=qbt_port,
        QBT_USER=qbt_user,
        QBT_PASS=qbt_pass,
        QBT_TIMEOUT_S=qbt_timeout,
        WATCH_INTERVAL_S=watch_interval,
        RECONCILE_INTERVAL_S=reconcile_interval,
        FEED_INTERVAL_S=feed_interval,
        RELOCATION_WORKERS=relocation_workers,
        FEED_TIMEOUT_S=feed_timeout,
        FEED_URLS=feed_urls,
    )


settings = _read_settings()


def validate_settings(cfg: Settings | None = None) -> list[str]:
    """Validate configuration and log warnings for issues.

    Returns the list of problems found so callers (and tests) can inspect them.
    """
    cfg = cfg or settings
    problems: list[str] = []
    if cfg.MAX_ACTIVE_TORRENTS < 1:
        problems.append("MAX_ACTIVE_TORRENTS must be at least 1")
    if cfg.SEED_RATIO_STOP <= 0:
        problems.append("SEED_RATIO_STOP must be positive")
    if cfg.RELOCATION_WORKERS < 1:
        problems.append("RELOCATION_WORKERS must be at least 1")
    for label, path in (
        ("WATCH_FOLDER", cfg.WATCH_FOLDER),
        ("UPLOAD_FOLDER", cfg.UPLOAD_FOLDER),
        ("DEFAULT_MOVE_FOLDER", cfg.DEFAULT_MOVE_FOLDER),
    ):
        if not os.path.isdir(path):
            problems.append(f"{label} does not exist: {path}")
    for problem in problems:
        logger.warning(problem)
    return problems
