"""
Environment variable loading for the scoring engine.

- GOLD_API_URL / SILVER_API_URL / PLATINUM_API_URL / STABLE_API_URL: platform base URLs
- GOLD_API_TOKEN / ...: bearer tokens sent to each platform (optional)
- MCS_*: timeouts, cache TTL, ledger page size, batch group size, timezone
- API_HOST / API_PORT: HTTP server bind address
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# config is backend_mcs/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEFAULT_PLATFORM_URLS = {
    "gold": "http://localhost:3001/api",
    "silver": "http://localhost:3002/api",
    "platinum": "http://localhost:3003/api",
    "stable": "http://localhost:3004/api",
}


def load_mcs_env() -> None:
    """Load .env from project root. Existing environment variables win."""
    if _ENV_PATH.is_file():
        load_dotenv(_ENV_PATH, override=False)


def get_platform_base_url(platform: str) -> str:
    """Return {PLATFORM}_API_URL from env, or the local default for that platform."""
    load_mcs_env()
    url = (os.getenv(f"{platform.upper()}_API_URL") or "").strip()
    return (url or DEFAULT_PLATFORM_URLS[platform]).rstrip("/")


def get_platform_token(platform: str) -> str | None:
    """Return {PLATFORM}_API_TOKEN from env; None when unset or blank."""
    load_mcs_env()
    token = (os.getenv(f"{platform.upper()}_API_TOKEN") or "").strip()
    return token or None


def get_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def get_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def get_list(name: str, default: list[str]) -> list[str]:
    """Comma-separated env value as a list; default when unset."""
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]
