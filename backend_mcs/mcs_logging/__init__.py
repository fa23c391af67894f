"""Structured logging for the scoring engine (structlog, JSON by default)."""

from backend_mcs.mcs_logging.logger import configure_structlog, get_logger, scoring_context, set_stage

__all__ = ["configure_structlog", "get_logger", "scoring_context", "set_stage"]
