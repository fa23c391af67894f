"""
Process-wide portfolio cache.

key -> (portfolio, stored_at). Freshness is checked on read against the TTL
and stale entries are evicted then. Writes are last-writer-wins. The clock is
injectable so expiry can be tested without sleeping.
"""

from __future__ import annotations

import json
import time
from typing import Callable, Mapping

from backend_mcs.mcs_logging import get_logger
from backend_mcs.portfolio.models import Portfolio

logger = get_logger(__name__)

DEFAULT_TTL_SEC = 300.0


def make_cache_key(user_id: str, addresses: Mapping[str, str | None]) -> str:
    return f"{user_id}_{json.dumps(dict(addresses), sort_keys=True)}"


class PortfolioCache:
    def __init__(self, ttl_sec: float = DEFAULT_TTL_SEC, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_sec = ttl_sec
        self._clock = clock
        self._entries: dict[str, tuple[Portfolio, float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Portfolio | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        portfolio, stored_at = entry
        if self._clock() - stored_at >= self.ttl_sec:
            self._entries.pop(key, None)
            logger.debug("portfolio_cache_expired", key=key)
            return None
        return portfolio

    def set(self, key: str, portfolio: Portfolio) -> None:
        self._entries[key] = (portfolio, self._clock())

    def invalidate_user(self, user_id: str) -> int:
        """Drop every entry for user_id, whatever address set it was stored under."""
        prefix = f"{user_id}_{{"
        doomed = [k for k in self._entries if k.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        if doomed:
            logger.info("portfolio_cache_invalidated", user_id=user_id, removed=len(doomed))
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()
