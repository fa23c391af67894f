"""Portfolio snapshot assembled from the four platforms."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from backend_mcs.platforms.models import AssetHolding, Platform, TransactionRecord


@dataclass
class PortfolioMetrics:
    total_value: float = 0.0
    total_tokens: float = 0.0
    asset_allocation: dict[str, float] = field(default_factory=dict)
    """Percent of total_value per platform; sums to 100 when total_value > 0."""
    diversification: int = 0
    """Inverted HHI in [0, 100]."""
    risk_level: str = "No Assets"
    last_activity: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_value": self.total_value,
            "total_tokens": self.total_tokens,
            "asset_allocation": {k: round(v, 2) for k, v in self.asset_allocation.items()},
            "diversification": self.diversification,
            "risk_level": self.risk_level,
            "last_activity": self.last_activity.isoformat() if self.last_activity else None,
        }


@dataclass
class Portfolio:
    """
    One user's holdings and merged ledger.

    A missing holding (None) means the platform had no address or its fetch
    failed. transactions are ordered by timestamp, newest first.
    """

    user_id: str
    addresses: dict[str, str | None]
    gold: AssetHolding | None = None
    silver: AssetHolding | None = None
    platinum: AssetHolding | None = None
    stable: AssetHolding | None = None
    transactions: list[TransactionRecord] = field(default_factory=list)
    metrics: PortfolioMetrics = field(default_factory=PortfolioMetrics)
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    user_income: float | None = None
    """Monthly income if the caller supplied one; otherwise estimated from location."""
    location: str | None = None

    def holding(self, platform: Platform) -> AssetHolding | None:
        return getattr(self, platform.value)

    def holdings(self) -> dict[Platform, AssetHolding | None]:
        return {p: self.holding(p) for p in Platform}

    @property
    def wallets(self) -> dict[str, str]:
        """Platform -> address for every holding that was actually fetched."""
        return {p.value: h.address for p, h in self.holdings().items() if h is not None and h.address}

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "addresses": dict(self.addresses),
            "holdings": {p.value: (h.to_dict() if h else None) for p, h in self.holdings().items()},
            "transactions": [tx.to_dict() for tx in self.transactions],
            "metrics": self.metrics.to_dict(),
            "fetched_at": self.fetched_at.isoformat(),
        }


@dataclass
class PlatformHealth:
    platform: Platform
    online: bool
    response_time_ms: float | None = None
    error: str | None = None
    last_check: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform.value,
            "online": self.online,
            "response_time_ms": self.response_time_ms,
            "error": self.error,
            "last_check": self.last_check.isoformat(),
        }
