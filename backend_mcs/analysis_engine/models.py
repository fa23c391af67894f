"""
Result types for behavior and risk analysis.

Every result is a plain dataclass with to_dict() so the pipeline, the event
payloads and the HTTP layer share one JSON shape.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Severity(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def magnitude(self) -> int:
        """0 for none up to 3 for high; multiplies detector weights."""
        return _SEVERITY_MAGNITUDE[self]


_SEVERITY_MAGNITUDE = {Severity.NONE: 0, Severity.LOW: 1, Severity.MEDIUM: 2, Severity.HIGH: 3}


@dataclass
class UserProfile:
    """Caller-supplied profile data; every field is optional."""

    user_id: str
    location: str | None = None
    locations: list[str] = field(default_factory=list)
    """Locations seen for the user's sessions, oldest first."""
    income: float | None = None
    """Monthly income in currency units."""


# ---------------------------------------------------------------------------
# Behavior
# ---------------------------------------------------------------------------


@dataclass
class SipMetrics:
    active: bool = False
    consistency: float = 0.0
    """Fraction of inter-contribution intervals within 30% of the expected interval."""
    frequency: str = "irregular"
    streak: int = 0
    avg_amount: float = 0.0
    total_contributions: int = 0
    total_amount: float = 0.0
    last_contribution: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["last_contribution"] = self.last_contribution.isoformat() if self.last_contribution else None
        return out


@dataclass
class MonthlyStreak:
    current_streak: int = 0
    longest_streak: int = 0
    total_months: int = 0
    consistency: float = 0.0
    months: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class WithdrawalVolatility:
    volatility: float = 0.0
    pattern: str = "low"
    withdrawals: int = 0
    avg_withdrawal: float = 0.0
    max_withdrawal: float = 0.0
    total_withdrawn: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AssetHoldingDuration:
    avg_holding_days: int = 0
    min_holding_days: int = 0
    max_holding_days: int = 0
    total_transactions: int = 0
    long_term_percentage: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class HoldingDuration:
    average_days: int = 0
    overall_pattern: str = "short-term"
    asset_holdings: dict[str, AssetHoldingDuration] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "average_days": self.average_days,
            "overall_pattern": self.overall_pattern,
            "asset_holdings": {k: v.to_dict() for k, v in self.asset_holdings.items()},
        }


@dataclass
class PanicEvent:
    sale_date: datetime
    asset: str
    amount: float
    days_since_purchase: float
    purchase_dates: list[datetime] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sale_date": self.sale_date.isoformat(),
            "asset": self.asset,
            "amount": self.amount,
            "days_since_purchase": round(self.days_since_purchase, 2),
            "purchase_dates": [d.isoformat() for d in self.purchase_dates],
        }


@dataclass
class PanicSelling:
    total_events: int = 0
    severity: Severity = Severity.NONE
    events: list[PanicEvent] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_events": self.total_events,
            "severity": self.severity.value,
            "events": [e.to_dict() for e in self.events],
        }


@dataclass
class InvestmentPattern:
    pattern: str = "none"
    investment_style: str = "none"
    regularity: float = 0.0
    diversification: float = 0.0
    """Distinct platforms purchased on, divided by four."""
    avg_investment: float = 0.0
    total_investments: int = 0
    total_amount: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class RiskTolerance:
    level: str = "unknown"
    score: int = 0
    indicators: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class BehaviorProfile:
    user_id: str
    timestamp: datetime
    transaction_count: int
    sip: SipMetrics
    monthly_streak: MonthlyStreak
    withdrawal_volatility: WithdrawalVolatility
    holding_duration: HoldingDuration
    panic_selling: PanicSelling
    investment_pattern: InvestmentPattern
    consistency: float
    risk_tolerance: RiskTolerance
    overall_score: float
    """0-100 discipline score."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "timestamp": self.timestamp.isoformat(),
            "transaction_count": self.transaction_count,
            "sip": self.sip.to_dict(),
            "monthly_streak": self.monthly_streak.to_dict(),
            "withdrawal_volatility": self.withdrawal_volatility.to_dict(),
            "holding_duration": self.holding_duration.to_dict(),
            "panic_selling": self.panic_selling.to_dict(),
            "investment_pattern": self.investment_pattern.to_dict(),
            "consistency": self.consistency,
            "risk_tolerance": self.risk_tolerance.to_dict(),
            "overall_score": self.overall_score,
        }


# ---------------------------------------------------------------------------
# Risk
# ---------------------------------------------------------------------------


@dataclass
class WithdrawalPatternRisk:
    large_withdrawals: int = 0
    frequent_withdrawals: int = 0
    sudden_pattern: bool = False
    max_consecutive_large: int = 0
    max_withdrawal: float = 0.0
    total_withdrawn: float = 0.0
    withdrawal_frequency: float = 0.0
    """Withdrawals per 30 days over the withdrawal history span."""
    avg_interval_days: float = 0.0
    risk_score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class FraudIndicators:
    suspicious_activity: int = 0
    """Number of individual indicators raised."""
    indicators: list[str] = field(default_factory=list)
    amount_outliers: int = 0
    suspicious_hours: int = 0
    rapid_transactions: int = 0
    circular_transactions: int = 0
    risk_score: float = 0.0
    severity: Severity = Severity.LOW

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["severity"] = self.severity.value
        return out


@dataclass
class WalletRisk:
    count: int = 0
    wallets: dict[str, str] = field(default_factory=dict)
    frequent_changes: bool = False
    indicators: list[str] = field(default_factory=list)
    risk_score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ActivityRisk:
    days_since_last_activity: int | None = None
    """None when the ledger is empty."""
    activity_frequency: float = 0.0
    """Transactions per day since the first transaction."""
    active_months: int = 0
    risk_score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class UnusualTransactions:
    count: int = 0
    patterns: list[str] = field(default_factory=list)
    outlier_ids: list[str] = field(default_factory=list)
    """At most ten outlier transaction ids."""
    risk_score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class VelocityBucket:
    average: float = 0.0
    max: int = 0
    min: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class VelocityRisk:
    daily: VelocityBucket = field(default_factory=VelocityBucket)
    weekly: VelocityBucket = field(default_factory=VelocityBucket)
    monthly: VelocityBucket = field(default_factory=VelocityBucket)
    risk_score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class GeographicRisk:
    location: str | None = None
    indicators: list[str] = field(default_factory=list)
    risk_score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class BehavioralAnomalies:
    anomalies: list[str] = field(default_factory=list)
    risk_score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class RiskProfile:
    user_id: str
    timestamp: datetime
    withdrawal_patterns: WithdrawalPatternRisk
    fraud_indicators: FraudIndicators
    wallet_count: WalletRisk
    activity_level: ActivityRisk
    unusual_transactions: UnusualTransactions
    velocity: VelocityRisk
    geographic: GeographicRisk
    behavioral_anomalies: BehavioralAnomalies
    overall_risk: float
    """0-100, higher is riskier."""
    risk_level: str
    risk_factors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "timestamp": self.timestamp.isoformat(),
            "withdrawal_patterns": self.withdrawal_patterns.to_dict(),
            "fraud_indicators": self.fraud_indicators.to_dict(),
            "wallet_count": self.wallet_count.to_dict(),
            "activity_level": self.activity_level.to_dict(),
            "unusual_transactions": self.unusual_transactions.to_dict(),
            "velocity": self.velocity.to_dict(),
            "geographic": self.geographic.to_dict(),
            "behavioral_anomalies": self.behavioral_anomalies.to_dict(),
            "overall_risk": self.overall_risk,
            "risk_level": self.risk_level,
            "risk_factors": list(self.risk_factors),
        }
