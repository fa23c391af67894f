"""
Risk and fraud heuristics over the merged ledger.

Scores withdrawal patterns, fraud indicators, wallet count, inactivity,
unusual transactions, velocity, geography and behavioral anomalies, then
combines them into a 0-100 risk score (higher is riskier) with a level and
human-readable risk factors. Detectors that need external data are
pluggable through RiskDetectors.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta, timezone
from statistics import StatisticsError, mean
from typing import Any, Hashable, Sequence

from backend_mcs.analysis_engine.detectors import RiskDetectors
from backend_mcs.analysis_engine.models import (
    ActivityRisk,
    BehavioralAnomalies,
    FraudIndicators,
    GeographicRisk,
    RiskProfile,
    Severity,
    UnusualTransactions,
    UserProfile,
    VelocityBucket,
    VelocityRisk,
    WalletRisk,
    WithdrawalPatternRisk,
)
from backend_mcs.analysis_engine.stats import clamp, days_between, gaps_in_days, local_date, mean_and_std, month_key
from backend_mcs.config.settings import Settings
from backend_mcs.core.events import EventBus, EventType
from backend_mcs.core.exceptions import AnalysisError
from backend_mcs.mcs_logging import get_logger
from backend_mcs.platforms.models import TransactionRecord
from backend_mcs.portfolio.models import Portfolio

logger = get_logger(__name__)

LARGE_WITHDRAWAL = 50000
SUDDEN_RUN_LENGTH = 3
FREQUENT_WITHDRAWAL_INTERVAL_DAYS = 7
INACTIVE_DAYS = 90
DORMANT_DAYS = 30
SUSPICIOUS_DAILY_COUNT = 10
SUSPICIOUS_HOURS = range(2, 6)
RAPID_GAP_SECONDS = 60
OUTLIER_SIGMA = 3
TIMING_SIGMA = 2
UNUSUAL_MIN_TRANSACTIONS = 5
UNUSUAL_MAX_REPORTED = 10
UNUSUAL_LARGE_AMOUNT = 100000
UNUSUAL_TIMING_SHARE = 0.3
EARLY_HOUR = 6
MAX_WALLETS = 4

WEIGHTS = {
    "withdrawal": 0.30,
    "fraud": 0.40,
    "wallet": 0.15,
    "activity": 0.10,
    "unusual": 0.05,
}


def fraud_severity(score: float) -> Severity:
    if score >= 70:
        return Severity.HIGH
    if score >= 40:
        return Severity.MEDIUM
    return Severity.LOW


def risk_level(score: float) -> str:
    if score < 20:
        return "minimal"
    if score < 40:
        return "low"
    if score < 70:
        return "medium"
    return "high"


def _bucket(counts: Counter[Hashable]) -> VelocityBucket:
    if not counts:
        return VelocityBucket()
    values = list(counts.values())
    return VelocityBucket(average=round(mean(values), 2), max=max(values), min=min(values))


class RiskAnalyzer:
    def __init__(
        self,
        events: EventBus | None = None,
        detectors: RiskDetectors | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._events = events
        self._detectors = detectors or RiskDetectors()
        settings = settings or Settings()
        self._tz = settings.tzinfo
        self._high_risk_locations = {loc.strip().upper() for loc in settings.high_risk_locations}

    def perform_risk_analysis(
        self,
        user_id: str,
        transactions: Sequence[TransactionRecord],
        portfolio: Portfolio | None = None,
        profile: UserProfile | None = None,
        now: datetime | None = None,
    ) -> RiskProfile:
        """Build the RiskProfile; raises AnalysisError on malformed input."""
        now = now or datetime.now(timezone.utc)
        txs = self._validate(user_id, transactions, now)
        try:
            result = self._analyze(user_id, txs, portfolio, profile, now)
        except (TypeError, ValueError, AttributeError, ZeroDivisionError, StatisticsError) as e:
            logger.error("risk_analysis_failed", user_id=user_id, error=str(e))
            raise AnalysisError(f"risk analysis failed: {e}", user_id=user_id, stage="risk") from e

        logger.info(
            "risk_analysis_completed",
            user_id=user_id,
            overall_risk=result.overall_risk,
            risk_level=result.risk_level,
            risk_factors=result.risk_factors,
        )
        if self._events is not None:
            self._events.publish(
                EventType.RISK_ANALYSIS_COMPLETED,
                user_id,
                overall_risk=result.overall_risk,
                risk_level=result.risk_level,
            )
        return result

    @staticmethod
    def _validate(user_id: str, transactions: Any, now: datetime) -> list[TransactionRecord]:
        if isinstance(transactions, (str, bytes)) or not isinstance(transactions, Sequence):
            raise AnalysisError("transactions must be a sequence of TransactionRecord", user_id=user_id, stage="risk")
        bad = [i for i, tx in enumerate(transactions) if not isinstance(tx, TransactionRecord)]
        if bad:
            raise AnalysisError(f"transactions {bad[:5]} are not TransactionRecord", user_id=user_id, stage="risk")
        if now.tzinfo is None:
            raise AnalysisError("now must be timezone-aware", user_id=user_id, stage="risk")
        return list(transactions)

    def _analyze(
        self,
        user_id: str,
        txs: list[TransactionRecord],
        portfolio: Portfolio | None,
        profile: UserProfile | None,
        now: datetime,
    ) -> RiskProfile:
        withdrawal = self.withdrawal_patterns(txs)
        fraud = self.fraud_indicators(txs, profile)
        wallets = self.wallet_risk(user_id, portfolio)
        activity = self.activity_level(txs, now)
        unusual = self.unusual_transactions(txs)
        velocity = self.velocity(txs)
        geographic = self.geographic_risk(profile)
        anomalies = self.behavioral_anomalies(txs)

        weighted = (
            WEIGHTS["withdrawal"] * withdrawal.risk_score
            + WEIGHTS["fraud"] * fraud.risk_score
            + WEIGHTS["wallet"] * wallets.risk_score
            + WEIGHTS["activity"] * activity.risk_score
            + WEIGHTS["unusual"] * unusual.risk_score
            + geographic.risk_score
            + velocity.risk_score
            + anomalies.risk_score
        )
        overall = round(clamp(weighted, 0.0, 100.0), 2)

        factors: list[str] = []
        if withdrawal.risk_score > 20:
            factors.append("High withdrawal risk")
        if fraud.risk_score > 30:
            factors.append("Fraud indicators detected")
        if activity.days_since_last_activity is not None and activity.days_since_last_activity > INACTIVE_DAYS:
            factors.append("Inactive account")
        if unusual.count > 5:
            factors.append("Unusual transaction patterns")
        if geographic.risk_score > 10:
            factors.append("Geographical risk factors")

        return RiskProfile(
            user_id=user_id,
            timestamp=now,
            withdrawal_patterns=withdrawal,
            fraud_indicators=fraud,
            wallet_count=wallets,
            activity_level=activity,
            unusual_transactions=unusual,
            velocity=velocity,
            geographic=geographic,
            behavioral_anomalies=anomalies,
            overall_risk=overall,
            risk_level=risk_level(overall),
            risk_factors=factors,
        )

    def withdrawal_patterns(self, transactions: Sequence[TransactionRecord]) -> WithdrawalPatternRisk:
        sells = sorted((tx for tx in transactions if tx.is_sell_side), key=lambda t: t.timestamp)
        if not sells:
            return WithdrawalPatternRisk()
        amounts = [tx.amount for tx in sells]
        large = sum(1 for a in amounts if a >= LARGE_WITHDRAWAL)

        longest_run = run = 0
        for a in amounts:
            run = run + 1 if a >= LARGE_WITHDRAWAL else 0
            longest_run = max(longest_run, run)
        sudden = longest_run >= SUDDEN_RUN_LENGTH

        gaps = gaps_in_days(tx.timestamp for tx in sells)
        avg_interval = mean(gaps) if gaps else 0.0
        frequent = len(sells) if gaps and avg_interval < FREQUENT_WITHDRAWAL_INTERVAL_DAYS else 0
        span_days = days_between(sells[-1].timestamp, sells[0].timestamp)
        # withdrawals per 30 days over the observed span
        frequency = len(sells) / (span_days / 30.0) if span_days > 0 else 0.0

        score = min(30, large * 10) + min(20, frequent * 5) + (15 if sudden else 0)
        return WithdrawalPatternRisk(
            large_withdrawals=large,
            frequent_withdrawals=frequent,
            sudden_pattern=sudden,
            max_consecutive_large=longest_run,
            max_withdrawal=max(amounts),
            total_withdrawn=sum(amounts),
            withdrawal_frequency=round(frequency, 2),
            avg_interval_days=round(avg_interval, 2),
            risk_score=float(min(40, score)),
        )

    def fraud_indicators(
        self,
        transactions: Sequence[TransactionRecord],
        profile: UserProfile | None = None,
    ) -> FraudIndicators:
        if not transactions:
            return FraudIndicators()
        indicators: list[str] = []
        mu, sigma = mean_and_std([tx.amount for tx in transactions])

        outliers = [
            tx for tx in transactions
            if abs(tx.amount - mu) > OUTLIER_SIGMA * sigma and tx.amount > 2 * mu
        ]
        indicators.extend(f"amount_outlier:{tx.id}" for tx in outliers)

        night = [tx for tx in transactions if tx.timestamp.astimezone(self._tz).hour in SUSPICIOUS_HOURS]
        indicators.extend(f"suspicious_hour:{tx.id}" for tx in night)

        ordered = sorted(transactions, key=lambda t: t.timestamp)
        rapid = [
            (a, b) for a, b in zip(ordered, ordered[1:])
            if (b.timestamp - a.timestamp).total_seconds() < RAPID_GAP_SECONDS
        ]
        indicators.extend(f"rapid_transactions:{a.id}:{b.id}" for a, b in rapid)

        circular = [tx for tx in transactions if tx.from_wallet and tx.from_wallet == tx.to_wallet]
        indicators.extend(f"circular_transfer:{tx.id}" for tx in circular)

        score = 10.0 * len(outliers) + 5.0 * len(night) + 15.0 * len(rapid) + 20.0 * len(circular)

        hooks = []
        if profile is not None and profile.locations:
            hooks.append(self._detectors.location_consistency(transactions, profile.locations))
        hooks.append(self._detectors.device_consistency(transactions))
        for result in hooks:
            if result.flagged:
                score += result.score
                indicators.append(result.indicator or "detector_flag")

        return FraudIndicators(
            suspicious_activity=len(indicators),
            indicators=indicators,
            amount_outliers=len(outliers),
            suspicious_hours=len(night),
            rapid_transactions=len(rapid),
            circular_transactions=len(circular),
            risk_score=min(100.0, score),
            severity=fraud_severity(score),
        )

    def wallet_risk(self, user_id: str, portfolio: Portfolio | None) -> WalletRisk:
        wallets = portfolio.wallets if portfolio is not None else {}
        score = 0.0
        indicators: list[str] = []
        if len(wallets) > MAX_WALLETS:
            score += 15
            indicators.append("excessive-wallets")
        changes = bool(self._detectors.wallet_changes(user_id, wallets))
        if changes:
            score += 10
            indicators.append("frequent-wallet-changes")
        return WalletRisk(
            count=len(wallets),
            wallets=dict(wallets),
            frequent_changes=changes,
            indicators=indicators,
            risk_score=min(20.0, score),
        )

    def activity_level(self, transactions: Sequence[TransactionRecord], now: datetime) -> ActivityRisk:
        if not transactions:
            return ActivityRisk()
        latest = max(tx.timestamp for tx in transactions)
        first = min(tx.timestamp for tx in transactions)
        days_since = max(0, int(days_between(now, latest)))
        history_days = max(days_between(now, first), 1.0)
        score = 0.0
        if days_since > INACTIVE_DAYS:
            score = 20.0
        elif days_since > DORMANT_DAYS:
            score = 10.0
        return ActivityRisk(
            days_since_last_activity=days_since,
            activity_frequency=round(len(transactions) / history_days, 2),
            active_months=len({month_key(tx.timestamp, self._tz) for tx in transactions}),
            risk_score=score,
        )

    def unusual_transactions(self, transactions: Sequence[TransactionRecord]) -> UnusualTransactions:
        if len(transactions) < UNUSUAL_MIN_TRANSACTIONS:
            return UnusualTransactions()
        amounts = [tx.amount for tx in transactions]
        hours = [tx.timestamp.astimezone(self._tz).hour for tx in transactions]
        mu, sigma = mean_and_std(amounts)
        hour_mu, hour_sigma = mean_and_std([float(h) for h in hours])

        seen: set[str] = set()
        outliers: list[TransactionRecord] = []
        for tx, hour in zip(transactions, hours):
            amount_outlier = abs(tx.amount - mu) > OUTLIER_SIGMA * sigma
            timing_outlier = abs(hour - hour_mu) > TIMING_SIGMA * hour_sigma
            if (amount_outlier or timing_outlier) and tx.id not in seen:
                seen.add(tx.id)
                outliers.append(tx)

        patterns: list[str] = []
        if max(amounts) > UNUSUAL_LARGE_AMOUNT:
            patterns.append("large-amounts")
        if sum(1 for h in hours if h < EARLY_HOUR) / len(hours) > UNUSUAL_TIMING_SHARE:
            patterns.append("unusual-timing")

        return UnusualTransactions(
            count=len(outliers),
            patterns=patterns,
            outlier_ids=[tx.id for tx in outliers[:UNUSUAL_MAX_REPORTED]],
            risk_score=float(min(15, 3 * len(outliers))),
        )

    def velocity(self, transactions: Sequence[TransactionRecord]) -> VelocityRisk:
        if not transactions:
            return VelocityRisk()
        days = [local_date(tx.timestamp, self._tz) for tx in transactions]
        daily = _bucket(Counter(days))
        weekly = _bucket(Counter(d - timedelta(days=d.weekday()) for d in days))
        monthly = _bucket(Counter(month_key(tx.timestamp, self._tz) for tx in transactions))
        score = 20.0 if daily.average > SUSPICIOUS_DAILY_COUNT else 0.0
        return VelocityRisk(daily=daily, weekly=weekly, monthly=monthly, risk_score=min(25.0, score))

    def geographic_risk(self, profile: UserProfile | None) -> GeographicRisk:
        location = (profile.location or "").strip() if profile is not None else ""
        if not location:
            return GeographicRisk(location=None, indicators=["location-unknown"], risk_score=5.0)
        score = 0.0
        indicators: list[str] = []
        if location.upper() in self._high_risk_locations:
            score += 20
            indicators.append("high-risk-location")
        if not self._detectors.profile_location_consistent(profile):
            score += 10
            indicators.append("location-inconsistent")
        return GeographicRisk(location=location, indicators=indicators, risk_score=score)

    def behavioral_anomalies(self, transactions: Sequence[TransactionRecord]) -> BehavioralAnomalies:
        checks = (
            ("investment-pattern-shift", self._detectors.investment_pattern_shift, 5),
            ("portfolio-composition-shift", self._detectors.portfolio_composition_shift, 10),
            ("trading-behavior-shift", self._detectors.trading_behavior_shift, 8),
        )
        anomalies: list[str] = []
        score = 0.0
        for name, detector, weight in checks:
            result = detector(transactions)
            if result.flagged:
                anomalies.append(name)
                score += result.severity.magnitude * weight
        return BehavioralAnomalies(anomalies=anomalies, risk_score=min(20.0, score))
