"""
Ingestion settings loader.

Loads defaults from config/ingestion.yml and applies environment variable
overrides on top. The YAML file is optional; built-in defaults are used
(with a warning) when it cannot be found.

Usage:
    from shopsync.config.settings import load_settings

    settings = load_settings()
    settings.shopify_page_size        # 250
    settings.sync_interval_seconds    # 21600
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

logger = logging.getLogger(__name__)

SHOPIFY_MAX_PAGE_SIZE = 250

_DEFAULTS: Dict[str, Any] = {
    "shopify": {
        "api_version": "2024-01",
        "page_size": SHOPIFY_MAX_PAGE_SIZE,
        "request_timeout_seconds": 30,
        "connect_timeout_seconds": 10,
    },
    "sync": {
        "interval_seconds": 6 * 60 * 60,
        "created_window_seconds": 60,
    },
    "cors": {
        "allowed_origins": ["http://localhost:5173", "http://localhost:3000"],
    },
}


@dataclass(frozen=True)
class IngestionSettings:
    """Resolved configuration for the ingestion pipeline and API."""

    database_url: Optional[str] = None
    encryption_key: Optional[str] = None
    shopify_api_version: str = "2024-01"
    shopify_page_size: int = SHOPIFY_MAX_PAGE_SIZE
    shopify_request_timeout_seconds: float = 30.0
    shopify_connect_timeout_seconds: float = 10.0
    sync_interval_seconds: int = 6 * 60 * 60
    created_window_seconds: int = 60
    allowed_origins: List[str] = field(default_factory=list)


def normalize_database_url(database_url: str) -> str:
    """Convert Render/Heroku style postgres:// URLs to postgresql://."""
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql://", 1)
    return database_url


def _resolve_config_path(config_path: Optional[str]) -> Optional[Path]:
    if config_path:
        return Path(config_path)

    candidates = [
        Path(__file__).parent / "ingestion.yml",
        Path(os.getcwd()) / "config" / "ingestion.yml",
    ]
    for p in candidates:
        resolved = p.resolve()
        if resolved.exists():
            return resolved
    return None


def _read_yaml(config_path: Optional[str]) -> Dict[str, Any]:
    path = _resolve_config_path(config_path)
    if path is None:
        logger.warning("ingestion.yml not found, using built-in defaults")
        return {}

    logger.info("Loading ingestion settings from %s", path)
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    merged = dict(_DEFAULTS[name])
    merged.update(raw.get(name) or {})
    return merged


def _int_value(env: Mapping[str, str], name: str, default: Any) -> int:
    value = env.get(name, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _float_value(env: Mapping[str, str], name: str, default: Any) -> float:
    value = env.get(name, default)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}")


def load_settings(
    config_path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> IngestionSettings:
    """
    Build IngestionSettings from YAML defaults and environment overrides.

    Args:
        config_path: Explicit YAML path (default: package config/ingestion.yml)
        environ: Environment mapping (default: os.environ)

    Returns:
        IngestionSettings

    Raises:
        ValueError: If a numeric override is malformed or out of range
    """
    env = os.environ if environ is None else environ
    raw = _read_yaml(config_path)

    shopify = _section(raw, "shopify")
    sync = _section(raw, "sync")
    cors = _section(raw, "cors")

    page_size = _int_value(env, "SHOPIFY_PAGE_SIZE", shopify["page_size"])
    if not 1 <= page_size <= SHOPIFY_MAX_PAGE_SIZE:
        raise ValueError(
            f"SHOPIFY_PAGE_SIZE must be between 1 and {SHOPIFY_MAX_PAGE_SIZE}, got {page_size}"
        )

    interval = _int_value(env, "SYNC_INTERVAL_SECONDS", sync["interval_seconds"])
    if interval <= 0:
        raise ValueError("SYNC_INTERVAL_SECONDS must be positive")

    origins = list(cors.get("allowed_origins") or [])
    frontend_url = env.get("FRONTEND_URL")
    if frontend_url:
        origins.extend(url.strip() for url in frontend_url.split(",") if url.strip())

    database_url = env.get("DATABASE_URL")

    return IngestionSettings(
        database_url=normalize_database_url(database_url) if database_url else None,
        encryption_key=env.get("ENCRYPTION_KEY"),
        shopify_api_version=env.get("SHOPIFY_API_VERSION", shopify["api_version"]),
        shopify_page_size=page_size,
        shopify_request_timeout_seconds=_float_value(
            env, "SHOPIFY_REQUEST_TIMEOUT_SECONDS", shopify["request_timeout_seconds"]
        ),
        shopify_connect_timeout_seconds=float(shopify["connect_timeout_seconds"]),
        sync_interval_seconds=interval,
        created_window_seconds=_int_value(
            env, "SYNC_CREATED_WINDOW_SECONDS", sync["created_window_seconds"]
        ),
        allowed_origins=origins,
    )
