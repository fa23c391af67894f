"""
Portfolio aggregation across the gold, silver, platinum and stable platforms.

Holdings and ledgers are fetched concurrently, each call under its own
timeout. A platform that fails or times out contributes a None holding and no
transactions; only a failure while merging the ledger fails the whole fetch.
Results are cached per (user, address set).
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Mapping

from backend_mcs.config.settings import Settings
from backend_mcs.core.events import EventBus, EventType
from backend_mcs.core.exceptions import PortfolioFetchError
from backend_mcs.mcs_logging import get_logger
from backend_mcs.platforms.client import PlatformClient
from backend_mcs.platforms.models import AssetHolding, Platform, TransactionRecord
from backend_mcs.portfolio.cache import PortfolioCache, make_cache_key
from backend_mcs.portfolio.metrics import calculate_metrics
from backend_mcs.portfolio.models import PlatformHealth, Portfolio

logger = get_logger(__name__)


def normalize_addresses(user_id: str, addresses: Any) -> dict[str, str | None]:
    """Validate an address set and fill absent platforms with None."""
    if not isinstance(addresses, Mapping):
        raise PortfolioFetchError(
            f"address set must be a mapping of platform to address, got {type(addresses).__name__}",
            user_id=user_id,
        )
    known = {p.value for p in Platform}
    unknown = sorted(str(k) for k in addresses if k not in known)
    if unknown:
        raise PortfolioFetchError(f"unknown platform(s) in address set: {', '.join(unknown)}", user_id=user_id)
    out: dict[str, str | None] = {}
    for p in Platform:
        value = addresses.get(p.value)
        if value is None:
            out[p.value] = None
        elif isinstance(value, str):
            out[p.value] = value.strip() or None
        else:
            raise PortfolioFetchError(f"address for {p.value} must be a string", user_id=user_id)
    return out


class PortfolioAggregator:
    def __init__(
        self,
        client: PlatformClient,
        cache: PortfolioCache,
        settings: Settings | None = None,
        events: EventBus | None = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._settings = settings or Settings()
        self._events = events

    async def fetch_portfolio(self, user_id: str, addresses: Mapping[str, str | None]) -> Portfolio:
        """
        Return the user's holdings and merged ledger.

        Served from cache when the same (user, address set) was fetched
        within the TTL. Raises PortfolioFetchError for a malformed address
        set or a ledger that cannot be consolidated.
        """
        normalized = normalize_addresses(user_id, addresses)
        key = make_cache_key(user_id, normalized)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("portfolio_cache_hit", user_id=user_id)
            return cached

        logger.info("portfolio_fetch_start", user_id=user_id, platforms=[p for p, a in normalized.items() if a])
        platforms = list(Platform)
        holdings_list = await asyncio.gather(
            *(self._fetch_holding(user_id, p, normalized[p.value]) for p in platforms)
        )
        holdings = dict(zip(platforms, holdings_list))
        transactions = await self._fetch_ledger(user_id, normalized)

        portfolio = Portfolio(
            user_id=user_id,
            addresses=normalized,
            gold=holdings[Platform.GOLD],
            silver=holdings[Platform.SILVER],
            platinum=holdings[Platform.PLATINUM],
            stable=holdings[Platform.STABLE],
            transactions=transactions,
            metrics=calculate_metrics(holdings),
            fetched_at=datetime.now(timezone.utc),
        )
        self._cache.set(key, portfolio)
        logger.info(
            "portfolio_fetch_done",
            user_id=user_id,
            total_value=portfolio.metrics.total_value,
            holdings=sum(1 for h in holdings.values() if h is not None),
            transactions=len(transactions),
        )
        if self._events is not None:
            self._events.publish(
                EventType.PORTFOLIO_FETCHED,
                user_id,
                total_value=portfolio.metrics.total_value,
                transaction_count=len(transactions),
            )
        return portfolio

    async def _fetch_holding(self, user_id: str, platform: Platform, address: str | None) -> AssetHolding | None:
        if not address:
            return None
        try:
            return await asyncio.wait_for(
                self._client.fetch_holding(platform, address),
                timeout=self._settings.request_timeout_sec,
            )
        except asyncio.TimeoutError:
            logger.warning("portfolio_holding_timeout", user_id=user_id, platform=platform.value)
        except Exception as e:
            logger.warning("portfolio_holding_failed", user_id=user_id, platform=platform.value, error=str(e))
        return None

    async def _fetch_platform_ledger(self, user_id: str, platform: Platform, address: str) -> list[TransactionRecord]:
        try:
            return await asyncio.wait_for(
                self._client.fetch_transactions(platform, address, self._settings.transaction_page_size),
                timeout=self._settings.request_timeout_sec,
            )
        except asyncio.TimeoutError:
            logger.warning("portfolio_ledger_timeout", user_id=user_id, platform=platform.value)
        except Exception as e:
            logger.warning("portfolio_ledger_failed", user_id=user_id, platform=platform.value, error=str(e))
        return []

    async def _fetch_ledger(self, user_id: str, addresses: dict[str, str | None]) -> list[TransactionRecord]:
        """Fetch every platform's ledger concurrently; merge and sort newest first."""
        targets = [(p, addresses[p.value]) for p in Platform if addresses[p.value]]
        pages = await asyncio.gather(*(self._fetch_platform_ledger(user_id, p, a) for p, a in targets))
        try:
            merged = [tx for page in pages for tx in page]
            for tx in merged:
                if not isinstance(tx, TransactionRecord):
                    raise TypeError(f"ledger entry is {type(tx).__name__}, not TransactionRecord")
            merged.sort(key=lambda tx: tx.timestamp, reverse=True)
        except (TypeError, ValueError) as e:
            logger.error("portfolio_ledger_merge_failed", user_id=user_id, error=str(e))
            raise PortfolioFetchError(f"could not consolidate transactions: {e}", user_id=user_id) from e
        return merged

    def invalidate_user(self, user_id: str) -> int:
        """Drop every cached portfolio for the user; returns entries removed."""
        return self._cache.invalidate_user(user_id)

    async def platform_status(self) -> dict[str, PlatformHealth]:
        """Probe every platform's health endpoint concurrently. Never touches the cache."""
        platforms = list(Platform)
        results = await asyncio.gather(*(self._probe(p) for p in platforms))
        return {p.value: r for p, r in zip(platforms, results)}

    async def _probe(self, platform: Platform) -> PlatformHealth:
        started = time.perf_counter()
        try:
            await asyncio.wait_for(self._client.probe_health(platform), timeout=self._settings.health_timeout_sec)
        except asyncio.TimeoutError:
            return PlatformHealth(platform=platform, online=False, error="timeout")
        except Exception as e:
            return PlatformHealth(platform=platform, online=False, error=str(e))
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 1)
        return PlatformHealth(platform=platform, online=True, response_time_ms=elapsed_ms)

    async def aclose(self) -> None:
        """Close the platform client if it holds connections."""
        close = getattr(self._client, "aclose", None)
        if close is not None:
            await close()
