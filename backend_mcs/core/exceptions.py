"""
Domain exceptions.

Every error carries the pipeline stage it came from and, where known, the
user being scored, so the HTTP layer and batch scoring can report
{user_id, stage, error} without parsing messages.
"""

from __future__ import annotations

from typing import Any


class McsError(Exception):
    """Base class for scoring-engine errors."""

    stage = "unknown"

    def __init__(self, message: str, *, user_id: str | None = None, stage: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        if stage is not None:
            self.stage = stage

    def to_dict(self) -> dict[str, Any]:
        return {"user_id": self.user_id, "stage": self.stage, "error": self.message}


class PlatformRequestError(McsError):
    """A single platform call failed (transport error, bad status, bad JSON)."""

    stage = "platform"

    def __init__(self, message: str, *, platform: str, user_id: str | None = None) -> None:
        super().__init__(message, user_id=user_id)
        self.platform = platform


class PortfolioFetchError(McsError):
    """Portfolio could not be assembled (bad address set or ledger consolidation failure)."""

    stage = "portfolio"


class AnalysisError(McsError):
    """Behavior or risk analysis rejected its input or failed mid-computation."""

    stage = "analysis"


class ScoringError(McsError):
    """Score synthesis failed."""

    stage = "scoring"
