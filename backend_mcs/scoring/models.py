"""Score results returned to callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

SCORE_VALIDITY_DAYS = 30


@dataclass(frozen=True)
class ScoreBreakdown:
    asset_score: int
    """0-400."""
    behavior_score: int
    """0-300."""
    risk_score: int
    """0-200, higher is safer."""

    def to_dict(self) -> dict[str, int]:
        return {
            "asset_score": self.asset_score,
            "behavior_score": self.behavior_score,
            "risk_score": self.risk_score,
        }


@dataclass(frozen=True)
class LoanRecommendation:
    max_amount: int
    max_percentage: int
    """Percent of total asset value that may be lent."""
    interest_rate: str
    tenure_months: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_amount": self.max_amount,
            "max_percentage": f"{self.max_percentage}%",
            "interest_rate": self.interest_rate,
            "tenure": f"{self.tenure_months} months",
        }


@dataclass
class ScoreResult:
    user_id: str
    score: int
    category: str
    breakdown: ScoreBreakdown
    recommendation: LoanRecommendation
    reasons: list[str]
    timestamp: datetime
    validity_days: int = SCORE_VALIDITY_DAYS

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "score": self.score,
            "category": self.category,
            "breakdown": self.breakdown.to_dict(),
            "recommendation": self.recommendation.to_dict(),
            "reasons": list(self.reasons),
            "timestamp": self.timestamp.isoformat(),
            "validity_days": self.validity_days,
        }


@dataclass
class BatchItemResult:
    user_id: str
    success: bool
    result: ScoreResult | None = None
    error: str | None = None
    stage: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.success and self.result is not None:
            return {"user_id": self.user_id, "success": True, **self.result.to_dict()}
        return {"user_id": self.user_id, "success": False, "error": self.error, "stage": self.stage}


@dataclass
class BatchReport:
    results: list[BatchItemResult] = field(default_factory=list)

    @property
    def total_processed(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return self.total_processed - self.successful

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_processed": self.total_processed,
            "successful": self.successful,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
        }
