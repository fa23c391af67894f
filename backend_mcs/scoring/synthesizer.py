"""
Score synthesis.

    score = clamp(asset (0-400) + behavior (0-300) + risk (0-200), 300, 900)

Asset points scale each class's value against a benchmark (gold and the
stable asset against the user's estimated monthly income). Behavior points
reward SIP regularity, monthly streaks, low withdrawal volatility, long
holding and no panic selling. Risk points start at 200 and lose penalties.
Ratios are computed with Decimal so the same inputs always give the same
score.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from backend_mcs.analysis_engine.models import BehaviorProfile, RiskProfile
from backend_mcs.core.events import EventBus, EventType
from backend_mcs.core.exceptions import McsError, ScoringError
from backend_mcs.mcs_logging import get_logger
from backend_mcs.platforms.models import Platform
from backend_mcs.portfolio.models import Portfolio
from backend_mcs.scoring.brackets import MAX_SCORE, MIN_SCORE, category_for, recommend_loan
from backend_mcs.scoring.models import BatchItemResult, ScoreBreakdown, ScoreResult

logger = get_logger(__name__)

ZERO = Decimal(0)
# Sub-scores are fixed to this scale so sums and differences are exact.
SCORE_SCALE = Decimal("0.0001")

ASSET_CLASS_MAX = {
    Platform.GOLD: Decimal(200),
    Platform.SILVER: Decimal(80),
    Platform.PLATINUM: Decimal(40),
    Platform.STABLE: Decimal(80),
}
SILVER_BENCHMARK = Decimal(5000)
PLATINUM_BENCHMARK = Decimal(20000)
STABLE_INCOME_SHARE = Decimal("0.5")

INCOME_BY_TIER = {
    "metro": Decimal(25000),
    "urban": Decimal(18000),
    "semi-urban": Decimal(12000),
    "rural": Decimal(8000),
}
METRO_MARKERS = ("metro", "mumbai", "delhi", "bangalore")

MAX_ASSET_SCORE = Decimal(400)
MAX_BEHAVIOR_SCORE = Decimal(300)
MAX_RISK_SCORE = Decimal(200)

LARGE_WITHDRAWAL_PENALTY = 15
LARGE_WITHDRAWAL_PENALTY_CAP = 60
FRAUD_PENALTY = 100
WALLET_PENALTY = 20
WALLET_PENALTY_ABOVE = 3
INACTIVITY_PENALTY = 20
INACTIVE_DAYS = 90
UNUSUAL_PENALTY = 5
UNUSUAL_PENALTY_CAP = 30


def _dec(value: float | int) -> Decimal:
    return Decimal(str(value))


def _clamp(value: Decimal, low: Decimal, high: Decimal) -> Decimal:
    return max(low, min(high, value))


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(SCORE_SCALE, rounding=ROUND_HALF_UP)


def _to_int(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def location_tier(location: str | None) -> str:
    """metro / urban / semi-urban / rural by substring match; urban when unknown."""
    if not location:
        return "urban"
    loc = location.lower()
    if any(marker in loc for marker in METRO_MARKERS):
        return "metro"
    if "rural" in loc:
        return "rural"
    if "semi" in loc or "tier 2" in loc:
        return "semi-urban"
    return "urban"


def estimate_income(portfolio: Portfolio) -> Decimal:
    if portfolio.user_income is not None and portfolio.user_income > 0:
        return _dec(portfolio.user_income)
    return INCOME_BY_TIER[location_tier(portfolio.location)]


@dataclass
class ScoringInput:
    user_id: str
    portfolio: Portfolio
    behavior: BehaviorProfile
    risk: RiskProfile


class ScoreSynthesizer:
    def __init__(self, events: EventBus | None = None) -> None:
        self._events = events

    def asset_score(self, portfolio: Portfolio) -> Decimal:
        income = estimate_income(portfolio)
        benchmarks = {
            Platform.GOLD: income,
            Platform.SILVER: SILVER_BENCHMARK,
            Platform.PLATINUM: PLATINUM_BENCHMARK,
            Platform.STABLE: income * STABLE_INCOME_SHARE,
        }
        points = ZERO
        for platform, holding in portfolio.holdings().items():
            if holding is None or holding.asset_value <= 0:
                continue
            class_max = ASSET_CLASS_MAX[platform]
            points += min(class_max, _dec(holding.asset_value) / benchmarks[platform] * class_max)
        return _quantize(_clamp(points, ZERO, MAX_ASSET_SCORE))

    def behavior_score(self, behavior: BehaviorProfile) -> Decimal:
        if behavior.transaction_count == 0:
            return ZERO
        points = ZERO
        if behavior.sip.active:
            points += _dec(behavior.sip.consistency) * 120
        points += min(Decimal(60), _dec(behavior.monthly_streak.current_streak) / 12 * 60)
        points += max(ZERO, 50 * (1 - _dec(behavior.withdrawal_volatility.volatility)))
        points += min(Decimal(70), _dec(behavior.holding_duration.average_days) / 365 * 70)
        panic = behavior.panic_selling.total_events
        points += Decimal(50) if panic == 0 else Decimal(50 - min(50, panic * 10))
        return _quantize(_clamp(points, ZERO, MAX_BEHAVIOR_SCORE))

    def risk_score(self, risk: RiskProfile) -> Decimal:
        points = MAX_RISK_SCORE
        points -= min(LARGE_WITHDRAWAL_PENALTY_CAP, risk.withdrawal_patterns.large_withdrawals * LARGE_WITHDRAWAL_PENALTY)
        if risk.fraud_indicators.suspicious_activity > 0:
            points -= FRAUD_PENALTY
        if risk.wallet_count.count > WALLET_PENALTY_ABOVE:
            points -= WALLET_PENALTY
        days_idle = risk.activity_level.days_since_last_activity
        if days_idle is not None and days_idle > INACTIVE_DAYS:
            points -= INACTIVITY_PENALTY
        points -= min(UNUSUAL_PENALTY_CAP, risk.unusual_transactions.count * UNUSUAL_PENALTY)
        return _quantize(_clamp(points, ZERO, MAX_RISK_SCORE))

    @staticmethod
    def reasons(asset: int, behavior: int, risk: int) -> list[str]:
        out: list[str] = []
        if asset >= 300:
            out.append("Strong asset portfolio with diversified holdings")
        elif asset >= 200:
            out.append("Good asset base with solid gold and stablecoin reserves")
        elif asset >= 100:
            out.append("Moderate asset accumulation showing investment discipline")

        if behavior >= 250:
            out.append("Excellent investment behavior with consistent SIP contributions")
        elif behavior >= 200:
            out.append("Good investment habits with regular contributions")
        elif behavior >= 150:
            out.append("Stable investment pattern with low volatility")

        if risk >= 180:
            out.append("Low risk profile with minimal suspicious activity")
        elif risk >= 150:
            out.append("Moderate risk with standard transaction patterns")
        elif risk < 100:
            out.append("Higher risk profile - requires additional monitoring")
        return out

    def calculate_score(
        self,
        portfolio: Portfolio,
        behavior: BehaviorProfile,
        risk: RiskProfile,
        now: datetime | None = None,
    ) -> ScoreResult:
        """Combine the three inputs into a ScoreResult; raises ScoringError on bad input."""
        user_id = getattr(portfolio, "user_id", None)
        if not isinstance(portfolio, Portfolio):
            raise ScoringError("portfolio must be a Portfolio", user_id=user_id)
        if not isinstance(behavior, BehaviorProfile):
            raise ScoringError("behavior must be a BehaviorProfile", user_id=user_id)
        if not isinstance(risk, RiskProfile):
            raise ScoringError("risk must be a RiskProfile", user_id=user_id)

        try:
            asset = self.asset_score(portfolio)
            behavior_pts = self.behavior_score(behavior)
            risk_pts = self.risk_score(risk)
            total = _clamp(asset + behavior_pts + risk_pts, Decimal(MIN_SCORE), Decimal(MAX_SCORE))
            score = _to_int(total)
            breakdown = ScoreBreakdown(
                asset_score=_to_int(asset),
                behavior_score=_to_int(behavior_pts),
                risk_score=_to_int(risk_pts),
            )
            recommendation = recommend_loan(score, _dec(portfolio.metrics.total_value))
        except (ArithmeticError, TypeError, ValueError, AttributeError, KeyError) as e:
            logger.error("score_calculation_failed", user_id=user_id, error=str(e))
            raise ScoringError(f"score calculation failed: {e}", user_id=user_id) from e

        result = ScoreResult(
            user_id=portfolio.user_id,
            score=score,
            category=category_for(score),
            breakdown=breakdown,
            recommendation=recommendation,
            reasons=self.reasons(breakdown.asset_score, breakdown.behavior_score, breakdown.risk_score),
            timestamp=now or datetime.now(timezone.utc),
        )
        logger.info(
            "score_calculated",
            user_id=result.user_id,
            score=result.score,
            category=result.category,
            asset_score=breakdown.asset_score,
            behavior_score=breakdown.behavior_score,
            risk_score=breakdown.risk_score,
        )
        if self._events is not None:
            self._events.publish(EventType.SCORE_CALCULATED, result.user_id, score=result.score, category=result.category)
        return result

    def batch_calculate_scores(self, items: Iterable[ScoringInput]) -> list[BatchItemResult]:
        """Score each item in order; a failing item is reported, not raised."""
        results: list[BatchItemResult] = []
        for item in items:
            try:
                score = self.calculate_score(item.portfolio, item.behavior, item.risk)
            except McsError as e:
                logger.warning("batch_score_item_failed", user_id=item.user_id, stage=e.stage, error=e.message)
                results.append(BatchItemResult(user_id=item.user_id, success=False, error=e.message, stage=e.stage))
                continue
            results.append(BatchItemResult(user_id=item.user_id, success=True, result=score))
        logger.info(
            "batch_score_done",
            total=len(results),
            successful=sum(1 for r in results if r.success),
        )
        return results
