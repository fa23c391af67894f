"""
Portfolio-level metrics: total value, allocation, diversification, risk level.

Diversification is the Herfindahl-Hirschman index over nonzero allocation
weights, inverted to 0-100: round((1 - sum(w^2)) * 100). A single asset is
reported as 50 and an empty portfolio as 0.
"""

from __future__ import annotations

from backend_mcs.platforms.models import AssetHolding, Platform
from backend_mcs.portfolio.models import PortfolioMetrics

SINGLE_ASSET_DIVERSIFICATION = 50

# Risk-level thresholds, percent of total value
STABLE_LOW_RISK_PCT = 50.0
GOLD_LOW_RISK_PCT = 60.0
METALS_MEDIUM_RISK_PCT = 80.0


def asset_allocation(holdings: dict[Platform, AssetHolding | None], total_value: float) -> dict[str, float]:
    alloc: dict[str, float] = {}
    for platform, holding in holdings.items():
        value = holding.asset_value if holding else 0.0
        alloc[platform.value] = (value / total_value * 100.0) if total_value > 0 else 0.0
    return alloc


def diversification_index(allocation: dict[str, float]) -> int:
    weights = [pct / 100.0 for pct in allocation.values() if pct > 0]
    if not weights:
        return 0
    if len(weights) == 1:
        return SINGLE_ASSET_DIVERSIFICATION
    hhi = sum(w * w for w in weights)
    return int(round((1.0 - hhi) * 100))


def portfolio_risk_level(allocation: dict[str, float], total_value: float) -> str:
    if total_value <= 0:
        return "No Assets"
    if allocation.get(Platform.STABLE.value, 0.0) >= STABLE_LOW_RISK_PCT:
        return "Low"
    if allocation.get(Platform.GOLD.value, 0.0) >= GOLD_LOW_RISK_PCT:
        return "Low"
    metals = sum(allocation.get(p.value, 0.0) for p in (Platform.GOLD, Platform.SILVER, Platform.PLATINUM))
    if metals >= METALS_MEDIUM_RISK_PCT:
        return "Medium"
    return "High"


def calculate_metrics(holdings: dict[Platform, AssetHolding | None]) -> PortfolioMetrics:
    present = [h for h in holdings.values() if h is not None]
    total_value = sum(h.asset_value for h in present)
    total_tokens = sum(h.tokens for h in present)
    allocation = asset_allocation(holdings, total_value)
    activity = [h.last_activity for h in present if h.last_activity is not None]
    return PortfolioMetrics(
        total_value=total_value,
        total_tokens=total_tokens,
        asset_allocation=allocation,
        diversification=diversification_index(allocation),
        risk_level=portfolio_risk_level(allocation, total_value),
        last_activity=max(activity) if activity else None,
    )
