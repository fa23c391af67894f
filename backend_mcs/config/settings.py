"""
Application settings.

Settings are built once at process start by get_settings() and passed
explicitly to the aggregator, analyzers and HTTP client. Tests construct
Settings directly instead of touching the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo

from backend_mcs.config.env import (
    get_float,
    get_int,
    get_list,
    get_platform_base_url,
    get_platform_token,
    load_mcs_env,
)
from backend_mcs.platforms.models import PLATFORM_NAMES, TOKEN_SYMBOLS, Platform

DEFAULT_HIGH_RISK_LOCATIONS = ["VPN-UNKNOWN", "TOR-EXIT", "SUSPICIOUS-REGION"]


@dataclass(frozen=True)
class PlatformConfig:
    """Connection details for one asset platform."""

    platform: Platform
    base_url: str
    token_symbol: str
    name: str
    api_token: str | None = None


def default_platforms() -> dict[Platform, PlatformConfig]:
    return {
        p: PlatformConfig(
            platform=p,
            base_url=get_platform_base_url(p.value),
            token_symbol=TOKEN_SYMBOLS[p],
            name=PLATFORM_NAMES[p],
            api_token=get_platform_token(p.value),
        )
        for p in Platform
    }


@dataclass
class Settings:
    platforms: dict[Platform, PlatformConfig] = field(default_factory=default_platforms)
    request_timeout_sec: float = 10.0
    """Per-platform holding/ledger fetch timeout."""
    health_timeout_sec: float = 5.0
    transaction_page_size: int = 100
    cache_ttl_sec: float = 300.0
    batch_group_size: int = 10
    timezone: str = "UTC"
    """Zone used for hour-of-day and calendar grouping of transactions."""
    high_risk_locations: list[str] = field(default_factory=lambda: list(DEFAULT_HIGH_RISK_LOCATIONS))
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def get_settings() -> Settings:
    """Build Settings from environment variables (after loading .env)."""
    load_mcs_env()
    return Settings(
        platforms=default_platforms(),
        request_timeout_sec=get_float("MCS_REQUEST_TIMEOUT_SEC", 10.0),
        health_timeout_sec=get_float("MCS_HEALTH_TIMEOUT_SEC", 5.0),
        transaction_page_size=get_int("MCS_TRANSACTION_PAGE_SIZE", 100),
        cache_ttl_sec=get_float("MCS_CACHE_TTL_SEC", 300.0),
        batch_group_size=get_int("MCS_BATCH_GROUP_SIZE", 10),
        timezone=(os.getenv("MCS_TIMEZONE") or "UTC").strip() or "UTC",
        high_risk_locations=get_list("MCS_HIGH_RISK_LOCATIONS", DEFAULT_HIGH_RISK_LOCATIONS),
        api_host=(os.getenv("API_HOST") or "0.0.0.0").strip(),
        api_port=get_int("API_PORT", 8000),
    )
