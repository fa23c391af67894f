"""
Test that mcs_logging imports cleanly and the logger works.
"""

from __future__ import annotations


def test_logging_import():
    """Import get_logger from mcs_logging and use the logger."""
    from backend_mcs.mcs_logging import get_logger

    logger = get_logger("test")
    assert logger is not None
    assert hasattr(logger, "info")
    assert hasattr(logger, "debug")
    assert hasattr(logger, "warning")
    assert hasattr(logger, "error")
    logger.info("test_message", key="value")


def test_scoring_context_binds_and_restores():
    """user_id and stage ride along on contextvars and are gone after the block."""
    import structlog

    from backend_mcs.mcs_logging import scoring_context, set_stage

    structlog.contextvars.clear_contextvars()
    with scoring_context("user-42"):
        assert structlog.contextvars.get_contextvars() == {"user_id": "user-42", "stage": "portfolio"}
        set_stage("scoring")
        assert structlog.contextvars.get_contextvars()["stage"] == "scoring"
    assert structlog.contextvars.get_contextvars() == {}


def test_plain_values_flattens_decimals_and_enums():
    from decimal import Decimal

    from backend_mcs.analysis_engine.models import Severity
    from backend_mcs.mcs_logging.logger import _plain_values
    from backend_mcs.platforms.models import Platform

    out = _plain_values(None, "info", {"asset_score": Decimal("111.1111"), "platform": Platform.GOLD, "severity": Severity.HIGH})
    assert out == {"asset_score": 111.1111, "platform": "gold", "severity": "high"}


def test_normalize_event_renames_event_key():
    from backend_mcs.mcs_logging.logger import _normalize_event

    out = _normalize_event(None, "info", {"event": "score_calculated", "score": 700})
    assert out["event_type"] == "score_calculated"
    assert out["message"] == "score_calculated"
    assert "event" not in out
