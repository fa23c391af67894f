"""
Pytest tests for the end-to-end ScoringPipeline and the event bus.
"""

from __future__ import annotations

import asyncio

import pytest


def _seed(fake_client, make_holding, make_tx):
    from backend_mcs.platforms.models import Platform

    fake_client.holdings = {Platform.GOLD: make_holding("gold", 20000, address="g-1")}
    fake_client.transactions = {}


def test_score_user_end_to_end(pipeline, fake_client, make_holding, make_tx, now):
    _seed(fake_client, make_holding, make_tx)
    result = asyncio.run(pipeline.score_user("user-1", {"gold": "g-1"}, now=now))

    assert result.user_id == "user-1"
    assert result.score == 400
    assert result.category == "Very Poor"
    assert result.recommendation.max_amount == 8000


def test_profile_income_and_location_applied_to_copy(pipeline, fake_client, make_holding, make_tx, now):
    from backend_mcs.analysis_engine.models import UserProfile

    _seed(fake_client, make_holding, make_tx)
    profile = UserProfile(user_id="user-1", location="Delhi NCR")
    metro = asyncio.run(pipeline.score_user("user-1", {"gold": "g-1"}, profile, now=now))
    urban = asyncio.run(pipeline.score_user("user-1", {"gold": "g-1"}, now=now))

    # 20000 / 25000 * 200 under the metro estimate
    assert metro.breakdown.asset_score == 160
    assert urban.breakdown.asset_score == 200
    assert len(fake_client.calls_for("holding")) == 1


def test_events_published_in_stage_order(pipeline, fake_client, events, make_holding, make_tx, now):
    from backend_mcs.core.events import EventType

    _seed(fake_client, make_holding, make_tx)
    seen = []
    for event_type in EventType:
        events.subscribe(event_type, lambda e: seen.append(e.event_type))
    asyncio.run(pipeline.score_user("user-1", {"gold": "g-1"}, now=now))

    assert seen[0] is EventType.PORTFOLIO_FETCHED
    assert seen[-1] is EventType.SCORE_CALCULATED
    assert set(seen) == set(EventType)


def test_failing_subscriber_does_not_break_scoring(pipeline, fake_client, events, make_holding, make_tx, now):
    from backend_mcs.core.events import EventType

    def broken(event):
        raise RuntimeError("subscriber bug")

    _seed(fake_client, make_holding, make_tx)
    events.subscribe(EventType.SCORE_CALCULATED, broken)
    result = asyncio.run(pipeline.score_user("user-1", {"gold": "g-1"}, now=now))

    assert result.score == 400
    assert events.failed_count == 1


def test_unsubscribe_stops_delivery(events):
    from backend_mcs.core.events import EventType

    received = []
    unsubscribe = events.subscribe(EventType.SCORE_CALCULATED, received.append)
    events.publish(EventType.SCORE_CALCULATED, "u1", score=700)
    unsubscribe()
    events.publish(EventType.SCORE_CALCULATED, "u1", score=710)

    assert [e.data["score"] for e in received] == [700]
    assert events.published_count == 2


def test_score_user_propagates_portfolio_error(pipeline, now):
    from backend_mcs.core.exceptions import PortfolioFetchError

    with pytest.raises(PortfolioFetchError) as exc_info:
        asyncio.run(pipeline.score_user("user-1", {"copper": "c-1"}, now=now))
    assert exc_info.value.stage == "portfolio"


def test_batch_scoring_isolates_failures(pipeline, fake_client, make_holding, make_tx, now):
    from backend_mcs.pipeline import ScoreRequest

    _seed(fake_client, make_holding, make_tx)
    requests = [ScoreRequest(user_id=f"user-{i}", addresses={"gold": "g-1"}) for i in range(12)]
    requests[5] = ScoreRequest(user_id="user-5", addresses={"copper": "c-1"})
    report = asyncio.run(pipeline.score_users(requests, now=now))

    assert report.total_processed == 12
    assert report.successful == 11
    assert report.failed == 1
    assert [r.user_id for r in report.results] == [f"user-{i}" for i in range(12)]
    failed = report.results[5]
    assert failed.success is False
    assert failed.stage == "portfolio"

    data = report.to_dict()
    assert data["successful"] == 11
    assert data["results"][0]["score"] == 400


def test_batch_runs_in_groups(pipeline, fake_client, make_holding, make_tx, now, monkeypatch):
    from backend_mcs.pipeline import ScoreRequest

    _seed(fake_client, make_holding, make_tx)
    in_flight = {"now": 0, "max": 0}
    original = pipeline.score_user

    async def tracking(user_id, addresses, profile=None, now=None):
        in_flight["now"] += 1
        in_flight["max"] = max(in_flight["max"], in_flight["now"])
        await asyncio.sleep(0.01)
        try:
            return await original(user_id, addresses, profile, now=now)
        finally:
            in_flight["now"] -= 1

    monkeypatch.setattr(pipeline, "score_user", tracking)
    requests = [ScoreRequest(user_id=f"user-{i}", addresses={"gold": "g-1"}) for i in range(25)]
    report = asyncio.run(pipeline.score_users(requests, now=now))

    assert report.successful == 25
    assert in_flight["max"] == 10


def test_log_context_tracks_user_and_stage(pipeline, fake_client, events, make_holding, make_tx, now):
    """Log lines emitted mid-pipeline carry the scored user and current stage."""
    import structlog

    from backend_mcs.core.events import EventType

    _seed(fake_client, make_holding, make_tx)
    seen = {}
    events.subscribe(EventType.PORTFOLIO_FETCHED, lambda e: seen.setdefault("portfolio", structlog.contextvars.get_contextvars()))
    events.subscribe(EventType.RISK_ANALYSIS_COMPLETED, lambda e: seen.setdefault("risk", structlog.contextvars.get_contextvars()))
    events.subscribe(EventType.SCORE_CALCULATED, lambda e: seen.setdefault("score", structlog.contextvars.get_contextvars()))
    asyncio.run(pipeline.score_user("user-7", {"gold": "g-1"}, now=now))

    assert seen["portfolio"] == {"user_id": "user-7", "stage": "portfolio"}
    assert seen["risk"]["stage"] == "analysis"
    assert seen["score"]["stage"] == "scoring"
