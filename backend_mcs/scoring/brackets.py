"""
Score brackets: category labels and loan terms per score tier.

Seven tiers keyed by minimum score, evaluated top-down. Each tier maps to
the share of asset value that may be lent, a base amount cap, an interest
rate band and a tenure.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from typing import Any

from backend_mcs.scoring.models import LoanRecommendation

MIN_SCORE = 300
MAX_SCORE = 900
ELIGIBLE_SCORE = 550
LOW_RISK_SCORE = 700
MEDIUM_RISK_SCORE = 600


@dataclass(frozen=True)
class Bracket:
    min_score: int
    category: str
    max_percentage: int
    base_amount: int
    interest_rate: str
    tenure_months: int


BRACKETS: tuple[Bracket, ...] = (
    Bracket(800, "Excellent", 75, 50000, "12-14%", 36),
    Bracket(750, "Very Good", 70, 40000, "14-16%", 36),
    Bracket(700, "Good", 65, 35000, "16-18%", 24),
    Bracket(650, "Average", 60, 25000, "18-20%", 18),
    Bracket(600, "Fair", 55, 20000, "20-22%", 12),
    Bracket(550, "Poor", 50, 15000, "22-24%", 6),
    Bracket(0, "Very Poor", 40, 10000, "24-26%", 6),
)


def bracket_for(score: float) -> Bracket:
    for bracket in BRACKETS:
        if score >= bracket.min_score:
            return bracket
    return BRACKETS[-1]


def category_for(score: float) -> str:
    return bracket_for(score).category


def recommend_loan(score: float, total_asset_value: float | Decimal) -> LoanRecommendation:
    """min(total value x bracket percentage, bracket base amount), rounded down."""
    bracket = bracket_for(score)
    total = total_asset_value if isinstance(total_asset_value, Decimal) else Decimal(str(total_asset_value))
    by_value = max(Decimal(0), total) * Decimal(bracket.max_percentage) / Decimal(100)
    amount = min(by_value, Decimal(bracket.base_amount)).to_integral_value(rounding=ROUND_DOWN)
    return LoanRecommendation(
        max_amount=int(amount),
        max_percentage=bracket.max_percentage,
        interest_rate=bracket.interest_rate,
        tenure_months=bracket.tenure_months,
    )


def loan_eligibility(score: float, portfolio_value: float, monthly_income: float | None = None) -> dict[str, Any]:
    """Standalone calculator for a known score and portfolio value."""
    if not MIN_SCORE <= score <= MAX_SCORE:
        raise ValueError(f"score must be between {MIN_SCORE} and {MAX_SCORE}, got {score}")
    if portfolio_value < 0:
        raise ValueError("portfolio_value must not be negative")
    rec = recommend_loan(score, portfolio_value)
    if score >= LOW_RISK_SCORE:
        level = "Low"
    elif score >= MEDIUM_RISK_SCORE:
        level = "Medium"
    else:
        level = "High"
    return {
        "score": score,
        "portfolio_value": portfolio_value,
        "monthly_income": monthly_income,
        "category": category_for(score),
        "eligibility": "Eligible" if score >= ELIGIBLE_SCORE else "Not Eligible",
        "risk_level": level,
        **rec.to_dict(),
    }
