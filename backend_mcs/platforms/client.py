"""
Platform access capability.

PlatformClient is what the aggregator depends on: fetch one holding, fetch a
page of ledger entries, probe health. HttpPlatformClient talks to the four
platform REST APIs with one shared httpx.AsyncClient; every transport, status
or decode failure surfaces as PlatformRequestError. Nothing is retried here.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx

from backend_mcs.config.settings import PlatformConfig, Settings
from backend_mcs.core.exceptions import PlatformRequestError
from backend_mcs.mcs_logging import get_logger
from backend_mcs.platforms.models import AssetHolding, Platform, TransactionRecord

logger = get_logger(__name__)


class PlatformClient(Protocol):
    async def fetch_holding(self, platform: Platform, address: str) -> AssetHolding | None: ...

    async def fetch_transactions(self, platform: Platform, address: str, limit: int) -> list[TransactionRecord]: ...

    async def probe_health(self, platform: Platform) -> None: ...


def parse_transactions(platform: Platform, items: Any) -> list[TransactionRecord]:
    """Parse a /transactions body; malformed items are skipped and logged."""
    if not isinstance(items, list):
        logger.warning("platform_transactions_not_list", platform=platform.value, got=type(items).__name__)
        return []
    records: list[TransactionRecord] = []
    skipped = 0
    for item in items:
        try:
            records.append(TransactionRecord.from_api_item(item, platform))
        except ValueError as e:
            skipped += 1
            logger.debug("platform_transaction_skipped", platform=platform.value, error=str(e))
    if skipped:
        logger.warning("platform_transactions_malformed", platform=platform.value, skipped=skipped, kept=len(records))
    return records


class HttpPlatformClient:
    """REST client for the four asset platforms. Use as an async context manager or call aclose()."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._client = client or httpx.AsyncClient(timeout=settings.request_timeout_sec)
        self._owns_client = client is None

    async def __aenter__(self) -> "HttpPlatformClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _config(self, platform: Platform) -> PlatformConfig:
        return self._settings.platforms[platform]

    def _headers(self, config: PlatformConfig) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if config.api_token:
            headers["Authorization"] = f"Bearer {config.api_token}"
        return headers

    async def _get_json(self, platform: Platform, path: str, *, timeout: float, params: dict[str, Any] | None = None) -> Any:
        config = self._config(platform)
        url = f"{config.base_url}{path}"
        try:
            r = await self._client.get(url, params=params, headers=self._headers(config), timeout=timeout)
            r.raise_for_status()
            return r.json()
        except httpx.HTTPStatusError as e:
            raise PlatformRequestError(
                f"{platform.value} {path} returned {e.response.status_code}",
                platform=platform.value,
            ) from e
        except httpx.HTTPError as e:
            raise PlatformRequestError(f"{platform.value} {path} failed: {e}", platform=platform.value) from e
        except ValueError as e:
            raise PlatformRequestError(f"{platform.value} {path} returned invalid JSON", platform=platform.value) from e

    async def fetch_holding(self, platform: Platform, address: str) -> AssetHolding | None:
        data = await self._get_json(platform, f"/portfolio/{address}", timeout=self._settings.request_timeout_sec)
        if data is None:
            return None
        try:
            return AssetHolding.from_api_payload(platform, address, data)
        except ValueError as e:
            raise PlatformRequestError(f"{platform.value} portfolio payload invalid: {e}", platform=platform.value) from e

    async def fetch_transactions(self, platform: Platform, address: str, limit: int) -> list[TransactionRecord]:
        data = await self._get_json(
            platform,
            f"/transactions/{address}",
            timeout=self._settings.request_timeout_sec,
            params={"limit": limit},
        )
        return parse_transactions(platform, data)

    async def probe_health(self, platform: Platform) -> None:
        await self._get_json(platform, "/health", timeout=self._settings.health_timeout_sec)
