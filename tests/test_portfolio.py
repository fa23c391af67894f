"""
Tests for portfolio aggregation, metrics and the TTL cache.

Platforms are served by FakePlatformClient; async calls run under asyncio.run.
"""

from __future__ import annotations

import asyncio

import pytest

ADDRESSES = {"gold": "g-1", "silver": "s-1", "platinum": "p-1", "stable": "b-1"}


def _aggregator(fake_client, settings, events=None, clock=None):
    from backend_mcs.portfolio.aggregator import PortfolioAggregator
    from backend_mcs.portfolio.cache import PortfolioCache

    cache = PortfolioCache(ttl_sec=300, clock=clock) if clock else PortfolioCache(ttl_sec=300)
    return PortfolioAggregator(fake_client, cache, settings=settings, events=events)


# --- Metrics ---


def test_diversification_index():
    from backend_mcs.portfolio.metrics import diversification_index

    assert diversification_index({}) == 0
    assert diversification_index({"gold": 0.0, "silver": 0.0}) == 0
    assert diversification_index({"gold": 100.0, "silver": 0.0}) == 50
    assert diversification_index({"gold": 50.0, "silver": 50.0}) == 50
    assert diversification_index({"gold": 25.0, "silver": 25.0, "platinum": 25.0, "stable": 25.0}) == 75


def test_portfolio_risk_level_bands():
    from backend_mcs.portfolio.metrics import portfolio_risk_level

    assert portfolio_risk_level({}, 0) == "No Assets"
    assert portfolio_risk_level({"stable": 50.0, "gold": 50.0}, 100) == "Low"
    assert portfolio_risk_level({"gold": 60.0, "platinum": 40.0}, 100) == "Low"
    assert portfolio_risk_level({"gold": 40.0, "silver": 40.0, "stable": 20.0}, 100) == "Medium"
    assert portfolio_risk_level({"gold": 20.0, "silver": 20.0, "platinum": 30.0, "stable": 30.0}, 100) == "High"


def test_calculate_metrics_allocation_sums_to_100(make_holding):
    from backend_mcs.platforms.models import Platform
    from backend_mcs.portfolio.metrics import calculate_metrics

    holdings = {
        Platform.GOLD: make_holding("gold", 30000),
        Platform.SILVER: make_holding("silver", 7000),
        Platform.PLATINUM: None,
        Platform.STABLE: make_holding("stable", 13000),
    }
    m = calculate_metrics(holdings)
    assert m.total_value == 50000
    assert sum(m.asset_allocation.values()) == pytest.approx(100.0)
    assert m.asset_allocation["platinum"] == 0.0
    assert m.asset_allocation["gold"] == pytest.approx(60.0)
    assert m.risk_level == "Low"
    assert 0 <= m.diversification <= 100


# --- Aggregator ---


def test_fetch_portfolio_merges_and_sorts_ledger(fake_client, settings, make_holding, make_tx):
    from backend_mcs.platforms.models import Platform

    fake_client.holdings = {
        Platform.GOLD: make_holding("gold", 20000, address="g-1"),
        Platform.STABLE: make_holding("stable", 5000, address="b-1"),
    }
    fake_client.transactions = {
        Platform.GOLD: [make_tx("gold", days_ago=10), make_tx("gold", days_ago=2)],
        Platform.SILVER: [make_tx("silver", days_ago=5)],
    }
    agg = _aggregator(fake_client, settings)
    p = asyncio.run(agg.fetch_portfolio("user-1", ADDRESSES))

    assert p.gold.value == 20000
    assert p.silver is None
    assert p.metrics.total_value == 25000
    stamps = [tx.timestamp for tx in p.transactions]
    assert stamps == sorted(stamps, reverse=True)
    assert len(p.transactions) == 3


def test_failing_platform_is_absorbed(fake_client, settings, make_holding, make_tx):
    from backend_mcs.platforms.models import Platform

    fake_client.holdings = {Platform.GOLD: make_holding("gold", 10000), Platform.SILVER: make_holding("silver", 3000)}
    fake_client.transactions = {Platform.GOLD: [make_tx("gold")], Platform.SILVER: [make_tx("silver")]}
    fake_client.failing = {Platform.SILVER}
    agg = _aggregator(fake_client, settings)
    p = asyncio.run(agg.fetch_portfolio("user-1", ADDRESSES))

    assert p.gold is not None
    assert p.silver is None
    assert [tx.platform for tx in p.transactions] == [Platform.GOLD]
    assert p.metrics.total_value == 10000


def test_slow_platform_times_out(fake_client, settings, make_holding):
    from backend_mcs.platforms.models import Platform

    settings.request_timeout_sec = 0.05
    fake_client.holdings = {Platform.GOLD: make_holding("gold", 10000), Platform.PLATINUM: make_holding("platinum", 9000)}
    fake_client.delays = {Platform.PLATINUM: 1.0}
    agg = _aggregator(fake_client, settings)
    p = asyncio.run(agg.fetch_portfolio("user-1", ADDRESSES))

    assert p.gold is not None
    assert p.platinum is None


def test_platform_without_address_is_not_called(fake_client, settings):
    from backend_mcs.platforms.models import Platform

    agg = _aggregator(fake_client, settings)
    p = asyncio.run(agg.fetch_portfolio("user-1", {"gold": "g-1"}))

    assert fake_client.calls_for("holding") == [Platform.GOLD]
    assert fake_client.calls_for("transactions") == [Platform.GOLD]
    assert p.metrics.risk_level == "No Assets"
    assert p.metrics.diversification == 0


@pytest.mark.parametrize("addresses", [["g-1"], {"copper": "c-1"}, {"gold": 42}, None])
def test_malformed_address_set_raises(fake_client, settings, addresses):
    from backend_mcs.core.exceptions import PortfolioFetchError

    agg = _aggregator(fake_client, settings)
    with pytest.raises(PortfolioFetchError) as exc_info:
        asyncio.run(agg.fetch_portfolio("user-9", addresses))
    assert exc_info.value.stage == "portfolio"
    assert exc_info.value.user_id == "user-9"
    assert fake_client.calls == []


def test_cache_hit_makes_no_network_calls(fake_client, settings, make_holding):
    from backend_mcs.platforms.models import Platform

    fake_client.holdings = {Platform.GOLD: make_holding("gold", 10000)}
    clock = [1000.0]
    agg = _aggregator(fake_client, settings, clock=lambda: clock[0])

    first = asyncio.run(agg.fetch_portfolio("user-1", ADDRESSES))
    calls_after_first = len(fake_client.calls)
    clock[0] += 299
    second = asyncio.run(agg.fetch_portfolio("user-1", ADDRESSES))

    assert second is first
    assert len(fake_client.calls) == calls_after_first


def test_cache_expires_after_ttl(fake_client, settings, make_holding):
    from backend_mcs.platforms.models import Platform

    fake_client.holdings = {Platform.GOLD: make_holding("gold", 10000)}
    clock = [1000.0]
    agg = _aggregator(fake_client, settings, clock=lambda: clock[0])

    first = asyncio.run(agg.fetch_portfolio("user-1", ADDRESSES))
    calls_after_first = len(fake_client.calls)
    clock[0] += 301
    second = asyncio.run(agg.fetch_portfolio("user-1", ADDRESSES))

    assert second is not first
    assert len(fake_client.calls) == 2 * calls_after_first


def test_different_address_set_is_a_different_entry(fake_client, settings):
    agg = _aggregator(fake_client, settings)
    asyncio.run(agg.fetch_portfolio("user-1", {"gold": "g-1"}))
    asyncio.run(agg.fetch_portfolio("user-1", {"gold": "g-2"}))
    assert len(fake_client.calls_for("holding")) == 2


def test_invalidate_user_removes_all_address_sets(fake_client, settings):
    agg = _aggregator(fake_client, settings)
    asyncio.run(agg.fetch_portfolio("user-1", {"gold": "g-1"}))
    asyncio.run(agg.fetch_portfolio("user-1", {"gold": "g-2"}))
    asyncio.run(agg.fetch_portfolio("user-10", {"gold": "g-3"}))

    assert agg.invalidate_user("user-1") == 2
    assert agg.invalidate_user("user-1") == 0

    before = len(fake_client.calls_for("holding"))
    asyncio.run(agg.fetch_portfolio("user-10", {"gold": "g-3"}))
    assert len(fake_client.calls_for("holding")) == before


def test_portfolio_fetched_event_published(fake_client, settings, events):
    from backend_mcs.core.events import EventType

    received = []
    events.subscribe(EventType.PORTFOLIO_FETCHED, received.append)
    agg = _aggregator(fake_client, settings, events=events)
    asyncio.run(agg.fetch_portfolio("user-1", {"gold": "g-1"}))

    assert len(received) == 1
    assert received[0].user_id == "user-1"
    assert received[0].data["total_value"] == 0


def test_platform_status_reports_each_platform(fake_client, settings):
    from backend_mcs.platforms.models import Platform

    fake_client.failing = {Platform.SILVER}
    agg = _aggregator(fake_client, settings)
    status = asyncio.run(agg.platform_status())

    assert set(status) == {"gold", "silver", "platinum", "stable"}
    assert status["gold"].online is True
    assert status["gold"].response_time_ms is not None
    assert status["silver"].online is False
    assert "unavailable" in status["silver"].error
    assert fake_client.calls_for("holding") == []
