"""
Pytest tests for the FastAPI server over a fake-backed pipeline.
"""

from __future__ import annotations


def _seed(fake_client, make_holding):
    from backend_mcs.platforms.models import Platform

    fake_client.holdings = {Platform.GOLD: make_holding("gold", 20000, address="g-1")}


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_score_user(client, fake_client, make_holding):
    _seed(fake_client, make_holding)
    r = client.get("/score/user-1", params={"gold": "g-1"})
    assert r.status_code == 200
    data = r.json()
    assert data["user_id"] == "user-1"
    assert data["score"] == 400
    assert data["category"] == "Very Poor"
    assert data["recommendation"]["max_amount"] == 8000


def test_score_user_requires_an_address(client):
    r = client.get("/score/user-1")
    assert r.status_code == 400


def test_batch_score(client, fake_client, make_holding):
    _seed(fake_client, make_holding)
    body = {
        "users": [
            {"user_id": "a", "addresses": {"gold": "g-1"}},
            {"user_id": "b", "addresses": {"gold": "g-1"}, "location": "Mumbai"},
        ]
    }
    r = client.post("/score/batch", json=body)
    assert r.status_code == 200
    data = r.json()
    assert data["total_processed"] == 2
    assert data["successful"] == 2
    assert data["results"][1]["breakdown"]["asset_score"] == 160


def test_batch_rejects_empty_list(client):
    r = client.post("/score/batch", json={"users": []})
    assert r.status_code == 422


def test_portfolio_and_cache_invalidation(client, fake_client, make_holding):
    _seed(fake_client, make_holding)
    r = client.get("/portfolio/user-1", params={"gold": "g-1"})
    assert r.status_code == 200
    data = r.json()
    assert data["metrics"]["total_value"] == 20000
    assert data["holdings"]["gold"]["token_symbol"] == "BGT"
    assert data["holdings"]["silver"] is None

    r = client.delete("/portfolio/user-1/cache")
    assert r.json()["removed"] == 1


def test_platform_status(client, fake_client):
    from backend_mcs.platforms.models import Platform

    fake_client.failing = {Platform.STABLE}
    r = client.get("/platforms/status")
    assert r.status_code == 200
    data = r.json()
    assert data["gold"]["online"] is True
    assert data["stable"]["online"] is False


def test_loan_eligibility(client):
    r = client.post("/loan-eligibility", json={"score": 760, "portfolio_value": 50000})
    assert r.status_code == 200
    data = r.json()
    assert data["eligibility"] == "Eligible"
    assert data["max_amount"] == 35000
    assert data["interest_rate"] == "14-16%"

    assert client.post("/loan-eligibility", json={"score": 100, "portfolio_value": 1}).status_code == 422


def test_portfolio_error_maps_to_502(client, pipeline, monkeypatch):
    from backend_mcs.core.exceptions import PortfolioFetchError

    async def boom(user_id, addresses):
        raise PortfolioFetchError("ledger unavailable", user_id=user_id)

    monkeypatch.setattr(pipeline.aggregator, "fetch_portfolio", boom)
    r = client.get("/score/user-1", params={"gold": "g-1"})
    assert r.status_code == 502
    assert r.json() == {"detail": "ledger unavailable", "stage": "portfolio", "user_id": "user-1"}
