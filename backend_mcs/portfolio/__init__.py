"""Cross-platform portfolio aggregation with a TTL cache."""

from backend_mcs.portfolio.aggregator import PortfolioAggregator
from backend_mcs.portfolio.cache import PortfolioCache
from backend_mcs.portfolio.models import PlatformHealth, Portfolio, PortfolioMetrics

__all__ = ["PlatformHealth", "Portfolio", "PortfolioAggregator", "PortfolioCache", "PortfolioMetrics"]
