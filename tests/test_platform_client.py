"""
Tests for platform wire models and HttpPlatformClient.

HTTP is served by httpx.MockTransport so no platform needs to run.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import httpx
import pytest


def _client(handler, settings):
    from backend_mcs.platforms.client import HttpPlatformClient

    transport = httpx.MockTransport(handler)
    return HttpPlatformClient(settings, client=httpx.AsyncClient(transport=transport))


# --- Models ---


def test_transaction_from_api_item_parses_fields():
    from backend_mcs.platforms.models import Platform, TransactionRecord, TransactionType

    tx = TransactionRecord.from_api_item(
        {"id": "t1", "type": "Purchase", "amount": "1500.5", "timestamp": "2025-01-02T03:04:05Z", "sipContribution": True},
        Platform.SILVER,
    )
    assert tx.id == "t1"
    assert tx.platform is Platform.SILVER
    assert tx.type is TransactionType.PURCHASE
    assert tx.amount == 1500.5
    assert tx.timestamp == datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert tx.sip_contribution is True


def test_transaction_from_api_item_accepts_epoch_millis():
    from backend_mcs.platforms.models import Platform, TransactionRecord

    tx = TransactionRecord.from_api_item({"type": "sale", "amount": 10, "timestamp": 1735689600000}, Platform.GOLD)
    assert tx.timestamp == datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert tx.id.startswith("gold-")


@pytest.mark.parametrize(
    "item",
    [
        {"amount": 10, "timestamp": "2025-01-01T00:00:00Z"},
        {"type": "purchase", "timestamp": "2025-01-01T00:00:00Z"},
        {"type": "purchase", "amount": 10},
        {"type": "gift", "amount": 10, "timestamp": "2025-01-01T00:00:00Z"},
        {"type": "purchase", "amount": -5, "timestamp": "2025-01-01T00:00:00Z"},
        {"type": "purchase", "amount": 10, "timestamp": "not a date"},
    ],
)
def test_transaction_from_api_item_rejects_malformed(item):
    from backend_mcs.platforms.models import Platform, TransactionRecord

    with pytest.raises(ValueError):
        TransactionRecord.from_api_item(item, Platform.GOLD)


def test_stable_holding_is_valued_by_balance():
    from backend_mcs.platforms.models import AssetHolding, Platform

    h = AssetHolding.from_api_payload(
        Platform.STABLE,
        "addr",
        {"balance": 12000, "totalDeposits": 20000, "walletType": "savings", "lastTransactionDate": "2025-05-01"},
    )
    assert h.asset_value == 12000
    assert h.token_symbol == "BINR"
    assert h.wallet_type == "savings"
    assert h.last_activity == datetime(2025, 5, 1, tzinfo=timezone.utc)


def test_metal_holding_uses_inr_value():
    from backend_mcs.platforms.models import AssetHolding, Platform

    h = AssetHolding.from_api_payload(Platform.GOLD, "addr", {"balance": 2, "tokens": 2, "inrValue": 14000, "sipActive": True})
    assert h.asset_value == 14000
    assert h.sip_active is True
    assert h.token_symbol == "BGT"


# --- HTTP client ---


def test_fetch_holding_sends_bearer_token(settings):
    from dataclasses import replace

    from backend_mcs.platforms.models import Platform

    settings.platforms[Platform.GOLD] = replace(
        settings.platforms[Platform.GOLD], base_url="http://gold.test/api", api_token="secret"
    )
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"inrValue": 5000, "tokens": 1})

    async def run():
        async with _client(handler, settings) as c:
            return await c.fetch_holding(Platform.GOLD, "g-1")

    holding = asyncio.run(run())
    assert seen["url"] == "http://gold.test/api/portfolio/g-1"
    assert seen["auth"] == "Bearer secret"
    assert holding.value == 5000
    assert holding.address == "g-1"


def test_fetch_transactions_passes_limit_and_skips_bad_items(settings):
    from backend_mcs.platforms.models import Platform

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["limit"] == "100"
        return httpx.Response(
            200,
            json=[
                {"id": "a", "type": "purchase", "amount": 100, "timestamp": "2025-01-01T00:00:00Z"},
                {"id": "b", "type": "purchase"},
                {"id": "c", "type": "withdrawal", "amount": 50, "timestamp": "2025-01-03T00:00:00Z"},
            ],
        )

    async def run():
        async with _client(handler, settings) as c:
            return await c.fetch_transactions(Platform.SILVER, "s-1", 100)

    txs = asyncio.run(run())
    assert [t.id for t in txs] == ["a", "c"]
    assert all(t.platform is Platform.SILVER for t in txs)


def test_fetch_holding_error_status_raises_platform_error(settings):
    from backend_mcs.core.exceptions import PlatformRequestError
    from backend_mcs.platforms.models import Platform

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"error": "down"})

    async def run():
        async with _client(handler, settings) as c:
            await c.fetch_holding(Platform.PLATINUM, "p-1")

    with pytest.raises(PlatformRequestError) as exc_info:
        asyncio.run(run())
    assert exc_info.value.platform == "platinum"
    assert "503" in str(exc_info.value)


def test_transport_error_raises_platform_error(settings):
    from backend_mcs.core.exceptions import PlatformRequestError
    from backend_mcs.platforms.models import Platform

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def run():
        async with _client(handler, settings) as c:
            await c.probe_health(Platform.STABLE)

    with pytest.raises(PlatformRequestError):
        asyncio.run(run())
