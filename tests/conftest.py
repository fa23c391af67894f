"""
Pytest fixtures for the scoring engine.

Every test gets a fresh event bus, cache, fake platform client and pipeline,
and a fixed "now" so time-dependent analysis is reproducible.
"""

from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone

import pytest

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_tx():
    """Factory for TransactionRecord; timestamp defaults to NOW minus days_ago."""
    from backend_mcs.platforms.models import Platform, TransactionRecord, TransactionType

    ids = itertools.count(1)

    def _make(
        platform="gold",
        type="purchase",
        amount=1000.0,
        days_ago=0.0,
        timestamp=None,
        sip=False,
        from_wallet=None,
        to_wallet=None,
    ):
        ts = timestamp or (NOW - timedelta(days=days_ago))
        return TransactionRecord(
            id=f"tx-{next(ids)}",
            platform=Platform(platform),
            type=TransactionType(type),
            amount=float(amount),
            timestamp=ts,
            sip_contribution=sip,
            from_wallet=from_wallet,
            to_wallet=to_wallet,
        )

    return _make


@pytest.fixture
def make_holding():
    from backend_mcs.platforms.models import AssetHolding, Platform

    def _make(platform="gold", value=0.0, address=None, **kwargs):
        p = Platform(platform)
        if p is Platform.STABLE:
            kwargs.setdefault("balance", value)
        else:
            kwargs.setdefault("value", value)
        return AssetHolding(platform=p, address=address or f"{platform}-addr", **kwargs)

    return _make


@pytest.fixture
def make_portfolio():
    """Build a Portfolio with metrics computed from the given holdings."""
    from backend_mcs.platforms.models import Platform
    from backend_mcs.portfolio.metrics import calculate_metrics
    from backend_mcs.portfolio.models import Portfolio

    def _make(user_id="user-1", holdings=None, transactions=None, addresses=None, **kwargs):
        holdings = holdings or {}
        by_platform = {p: holdings.get(p.value) for p in Platform}
        if addresses is None:
            addresses = {p.value: (h.address if h else None) for p, h in by_platform.items()}
        return Portfolio(
            user_id=user_id,
            addresses=addresses,
            gold=by_platform[Platform.GOLD],
            silver=by_platform[Platform.SILVER],
            platinum=by_platform[Platform.PLATINUM],
            stable=by_platform[Platform.STABLE],
            transactions=sorted(transactions or [], key=lambda t: t.timestamp, reverse=True),
            metrics=calculate_metrics(by_platform),
            fetched_at=NOW,
            **kwargs,
        )

    return _make


@pytest.fixture
def events():
    from backend_mcs.core.events import EventBus

    return EventBus()


@pytest.fixture
def settings():
    from backend_mcs.config.settings import Settings

    return Settings(request_timeout_sec=0.5, health_timeout_sec=0.5)


@pytest.fixture
def fake_client():
    from backend_mcs.platforms.fake import FakePlatformClient

    return FakePlatformClient()


@pytest.fixture
def pipeline(settings, fake_client, events):
    from backend_mcs.pipeline import build_pipeline

    return build_pipeline(settings, client=fake_client, events=events)


@pytest.fixture
def client(pipeline):
    """FastAPI TestClient over the fake-backed pipeline."""
    from fastapi.testclient import TestClient

    from backend_mcs.api_server.server import create_app

    return TestClient(create_app(pipeline))
