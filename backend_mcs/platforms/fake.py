"""
Deterministic in-memory PlatformClient.

Serves canned holdings and ledgers per platform, can be told to fail or stall
a platform, and records every call so tests can assert on network traffic.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from backend_mcs.core.exceptions import PlatformRequestError
from backend_mcs.platforms.models import AssetHolding, Platform, TransactionRecord


@dataclass
class FakePlatformClient:
    holdings: dict[Platform, AssetHolding] = field(default_factory=dict)
    transactions: dict[Platform, list[TransactionRecord]] = field(default_factory=dict)
    failing: set[Platform] = field(default_factory=set)
    """Platforms whose every call raises PlatformRequestError."""
    delays: dict[Platform, float] = field(default_factory=dict)
    """Seconds to sleep before answering, per platform."""
    calls: list[tuple[str, Platform]] = field(default_factory=list)

    async def _enter(self, op: str, platform: Platform) -> None:
        self.calls.append((op, platform))
        delay = self.delays.get(platform)
        if delay:
            await asyncio.sleep(delay)
        if platform in self.failing:
            raise PlatformRequestError(f"{platform.value} {op} unavailable", platform=platform.value)

    async def fetch_holding(self, platform: Platform, address: str) -> AssetHolding | None:
        await self._enter("holding", platform)
        return self.holdings.get(platform)

    async def fetch_transactions(self, platform: Platform, address: str, limit: int) -> list[TransactionRecord]:
        await self._enter("transactions", platform)
        return list(self.transactions.get(platform, []))[:limit]

    async def probe_health(self, platform: Platform) -> None:
        await self._enter("health", platform)

    def calls_for(self, op: str) -> list[Platform]:
        return [p for o, p in self.calls if o == op]
