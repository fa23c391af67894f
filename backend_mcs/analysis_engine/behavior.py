"""
Investment-behavior analysis from the merged ledger.

Derives SIP regularity, monthly investment streaks, withdrawal volatility,
holding duration, panic selling, investment pattern, consistency and risk
tolerance, then folds them into a 0-100 discipline score. Pure apart from
"now", which callers may pass for reproducible results.
"""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import datetime, timezone, tzinfo
from statistics import StatisticsError, mean, pstdev
from typing import Any, Sequence

from backend_mcs.analysis_engine.models import (
    AssetHoldingDuration,
    BehaviorProfile,
    HoldingDuration,
    InvestmentPattern,
    MonthlyStreak,
    PanicEvent,
    PanicSelling,
    RiskTolerance,
    Severity,
    SipMetrics,
    WithdrawalVolatility,
)
from backend_mcs.analysis_engine.stats import (
    clamp,
    coefficient_of_variation,
    days_between,
    gaps_in_days,
    local_date,
    month_index,
    month_key,
)
from backend_mcs.core.events import EventBus, EventType
from backend_mcs.core.exceptions import AnalysisError
from backend_mcs.mcs_logging import get_logger
from backend_mcs.platforms.models import Platform, TransactionRecord, TransactionType
from backend_mcs.portfolio.models import Portfolio

logger = get_logger(__name__)

# SIP frequency buckets: (max mean interval in days, label)
SIP_FREQUENCY_BANDS = ((3, "daily"), (10, "weekly"), (20, "bi-weekly"), (45, "monthly"))
SIP_EXPECTED_INTERVAL_DAYS = {"daily": 1, "weekly": 7, "bi-weekly": 14, "monthly": 30}
SIP_INTERVAL_TOLERANCE = 0.3
SIP_STREAK_MAX_GAP_DAYS = 8

VOLATILITY_MEDIUM = 0.25
VOLATILITY_HIGH = 0.5

LONG_TERM_HOLDING_DAYS = 180
MEDIUM_TERM_HOLDING_DAYS = 30

PANIC_WINDOW_DAYS = 7

HIGH_VALUE_PURCHASE = 50000
LARGE_PURCHASE = 10000
LARGE_PURCHASE_SHARE = 0.5
MULTI_PLATFORM_COUNT = 3
VOLATILE_PLATFORMS = (Platform.PLATINUM,)
SHORT_TERM_CYCLE_DAYS = 30
SHORT_TERM_CYCLE_LIMIT = 3

WELL_DIVERSIFIED = 0.75
MICRO_INVESTOR_AVG = 1000
LARGE_INVESTOR_AVG = 25000


def _validate(user_id: str, transactions: Any, now: datetime) -> list[TransactionRecord]:
    if isinstance(transactions, (str, bytes)) or not isinstance(transactions, Sequence):
        raise AnalysisError("transactions must be a sequence of TransactionRecord", user_id=user_id, stage="behavior")
    for i, tx in enumerate(transactions):
        if not isinstance(tx, TransactionRecord):
            raise AnalysisError(
                f"transaction {i} is {type(tx).__name__}, not TransactionRecord",
                user_id=user_id,
                stage="behavior",
            )
    if now.tzinfo is None:
        raise AnalysisError("now must be timezone-aware", user_id=user_id, stage="behavior")
    return list(transactions)


def sip_frequency(intervals: Sequence[float]) -> str:
    if not intervals:
        return "irregular"
    avg = mean(intervals)
    for limit, label in SIP_FREQUENCY_BANDS:
        if avg <= limit:
            return label
    return "irregular"


def sip_consistency(intervals: Sequence[float], frequency: str) -> float:
    expected = SIP_EXPECTED_INTERVAL_DAYS.get(frequency)
    if not intervals or expected is None:
        return 0.0
    ok = sum(1 for i in intervals if abs(i - expected) <= expected * SIP_INTERVAL_TOLERANCE)
    return ok / len(intervals)


def volatility_pattern(volatility: float) -> str:
    if volatility > VOLATILITY_HIGH:
        return "high"
    if volatility > VOLATILITY_MEDIUM:
        return "medium"
    return "low"


def holding_pattern(average_days: float) -> str:
    if average_days > LONG_TERM_HOLDING_DAYS:
        return "long-term"
    if average_days > MEDIUM_TERM_HOLDING_DAYS:
        return "medium-term"
    return "short-term"


def panic_severity(events: int) -> Severity:
    if events == 0:
        return Severity.NONE
    if events <= 2:
        return Severity.LOW
    if events <= 5:
        return Severity.MEDIUM
    return Severity.HIGH


def tolerance_level(score: int) -> str:
    if score < 30:
        return "conservative"
    if score < 50:
        return "balanced"
    if score < 70:
        return "moderate"
    return "aggressive"


def count_short_term_cycles(transactions: Sequence[TransactionRecord]) -> int:
    """
    Quick round trips on the same asset: a purchase followed by a sale or
    withdrawal, or a sale followed by a purchase, at most 30 days apart.
    """
    by_platform: dict[Platform, list[TransactionRecord]] = defaultdict(list)
    for tx in transactions:
        by_platform[tx.platform].append(tx)
    cycles = 0
    for txs in by_platform.values():
        txs.sort(key=lambda t: t.timestamp)
        for a, b in zip(txs, txs[1:]):
            round_trip = (a.type is TransactionType.PURCHASE and b.is_sell_side) or (
                a.type is TransactionType.SALE and b.type is TransactionType.PURCHASE
            )
            if round_trip and days_between(b.timestamp, a.timestamp) <= SHORT_TERM_CYCLE_DAYS:
                cycles += 1
    return cycles


class BehaviorAnalyzer:
    """Stateless apart from the optional event bus and the calendar timezone."""

    def __init__(self, events: EventBus | None = None, tz: tzinfo = timezone.utc) -> None:
        self._events = events
        self._tz = tz

    def analyze_behavior(
        self,
        user_id: str,
        transactions: Sequence[TransactionRecord],
        portfolio: Portfolio | None = None,
        now: datetime | None = None,
    ) -> BehaviorProfile:
        """Build the BehaviorProfile; raises AnalysisError on malformed input."""
        now = now or datetime.now(timezone.utc)
        txs = _validate(user_id, transactions, now)
        try:
            profile = self._analyze(user_id, txs, portfolio, now)
        except (TypeError, ValueError, AttributeError, ZeroDivisionError, StatisticsError) as e:
            logger.error("behavior_analysis_failed", user_id=user_id, error=str(e))
            raise AnalysisError(f"behavior analysis failed: {e}", user_id=user_id, stage="behavior") from e

        logger.info(
            "behavior_analyzed",
            user_id=user_id,
            transactions=profile.transaction_count,
            overall_score=profile.overall_score,
            sip_active=profile.sip.active,
            panic_events=profile.panic_selling.total_events,
        )
        if self._events is not None:
            self._events.publish(
                EventType.BEHAVIOR_ANALYZED,
                user_id,
                overall_score=profile.overall_score,
                risk_tolerance=profile.risk_tolerance.level,
            )
        return profile

    def _analyze(
        self,
        user_id: str,
        txs: list[TransactionRecord],
        portfolio: Portfolio | None,
        now: datetime,
    ) -> BehaviorProfile:
        purchases = [tx for tx in txs if tx.type is TransactionType.PURCHASE]
        sip = self.sip_metrics(purchases, portfolio)
        streak = self.monthly_streak(purchases, now)
        volatility = self.withdrawal_volatility(txs)
        holding = self.holding_duration(txs, now)
        panic = self.panic_selling(txs)
        pattern = self.investment_pattern(purchases)
        consistency = self.consistency_score(purchases)
        tolerance = self.risk_tolerance(txs, purchases)
        overall = self.overall_score(len(txs), sip, streak, volatility, holding, panic)
        return BehaviorProfile(
            user_id=user_id,
            timestamp=now,
            transaction_count=len(txs),
            sip=sip,
            monthly_streak=streak,
            withdrawal_volatility=volatility,
            holding_duration=holding,
            panic_selling=panic,
            investment_pattern=pattern,
            consistency=consistency,
            risk_tolerance=tolerance,
            overall_score=overall,
        )

    def sip_metrics(self, purchases: Sequence[TransactionRecord], portfolio: Portfolio | None = None) -> SipMetrics:
        sip = [tx for tx in purchases if tx.sip_contribution]
        holding_sip = portfolio is not None and any(h is not None and h.sip_active for h in portfolio.holdings().values())
        if not sip:
            return SipMetrics(active=holding_sip)
        dates = sorted({local_date(tx.timestamp, self._tz) for tx in sip})
        intervals = [float((b - a).days) for a, b in zip(dates, dates[1:])]
        frequency = sip_frequency(intervals)

        newest_first = dates[::-1]
        streak = 1
        for newer, older in zip(newest_first, newest_first[1:]):
            if (newer - older).days > SIP_STREAK_MAX_GAP_DAYS:
                break
            streak += 1

        amounts = [tx.amount for tx in sip]
        return SipMetrics(
            active=True,
            consistency=round(sip_consistency(intervals, frequency), 4),
            frequency=frequency,
            streak=streak,
            avg_amount=mean(amounts),
            total_contributions=len(sip),
            total_amount=sum(amounts),
            last_contribution=max(tx.timestamp for tx in sip),
        )

    def monthly_streak(self, purchases: Sequence[TransactionRecord], now: datetime) -> MonthlyStreak:
        keys = sorted({month_key(tx.timestamp, self._tz) for tx in purchases})
        if not keys:
            return MonthlyStreak()
        present = {month_index(k) for k in keys}
        ordered = sorted(present)

        longest = run = 1
        for prev, cur in zip(ordered, ordered[1:]):
            run = run + 1 if cur == prev + 1 else 1
            longest = max(longest, run)

        # The present month may not have its contribution yet; then count from last month.
        anchor = month_index(month_key(now, self._tz))
        if anchor not in present:
            anchor -= 1
        current = 0
        while anchor in present:
            current += 1
            anchor -= 1

        span = ordered[-1] - ordered[0] + 1
        return MonthlyStreak(
            current_streak=current,
            longest_streak=longest,
            total_months=len(keys),
            consistency=min(1.0, len(keys) / max(1, span)),
            months=keys,
        )

    def withdrawal_volatility(self, transactions: Sequence[TransactionRecord]) -> WithdrawalVolatility:
        amounts = [tx.amount for tx in transactions if tx.type is TransactionType.WITHDRAWAL]
        if not amounts:
            return WithdrawalVolatility()
        volatility = coefficient_of_variation(amounts)
        return WithdrawalVolatility(
            volatility=round(volatility, 4),
            pattern=volatility_pattern(volatility),
            withdrawals=len(amounts),
            avg_withdrawal=mean(amounts),
            max_withdrawal=max(amounts),
            total_withdrawn=sum(amounts),
        )

    def holding_duration(self, transactions: Sequence[TransactionRecord], now: datetime) -> HoldingDuration:
        """
        Days since each purchase, per asset class.

        Lots are not tracked, so every purchase counts as an open position.
        """
        per_asset: dict[str, AssetHoldingDuration] = {}
        for platform in Platform:
            txs = [tx for tx in transactions if tx.platform is platform]
            if not txs:
                continue
            days = [
                max(0.0, days_between(now, tx.timestamp))
                for tx in txs
                if tx.type is TransactionType.PURCHASE
            ]
            if not days:
                per_asset[platform.value] = AssetHoldingDuration(total_transactions=len(txs))
                continue
            long_term = sum(1 for d in days if d >= LONG_TERM_HOLDING_DAYS)
            per_asset[platform.value] = AssetHoldingDuration(
                avg_holding_days=int(round(mean(days))),
                min_holding_days=int(math.floor(min(days))),
                max_holding_days=int(math.floor(max(days))),
                total_transactions=len(txs),
                long_term_percentage=round(long_term / len(days) * 100.0, 2),
            )
        averages = [h.avg_holding_days for h in per_asset.values() if h.avg_holding_days > 0]
        average_days = int(round(mean(averages))) if averages else 0
        return HoldingDuration(
            average_days=average_days,
            overall_pattern=holding_pattern(average_days),
            asset_holdings=per_asset,
        )

    def panic_selling(self, transactions: Sequence[TransactionRecord]) -> PanicSelling:
        purchases: dict[Platform, list[TransactionRecord]] = defaultdict(list)
        for tx in transactions:
            if tx.type is TransactionType.PURCHASE:
                purchases[tx.platform].append(tx)
        sells = sorted((tx for tx in transactions if tx.is_sell_side), key=lambda t: t.timestamp)

        events: list[PanicEvent] = []
        for sale in sells:
            prior = [
                p for p in purchases.get(sale.platform, [])
                if 0 <= days_between(sale.timestamp, p.timestamp) <= PANIC_WINDOW_DAYS
            ]
            if not prior:
                continue
            events.append(
                PanicEvent(
                    sale_date=sale.timestamp,
                    asset=sale.platform.value,
                    amount=sale.amount,
                    days_since_purchase=min(days_between(sale.timestamp, p.timestamp) for p in prior),
                    purchase_dates=sorted(p.timestamp for p in prior),
                )
            )
        return PanicSelling(total_events=len(events), severity=panic_severity(len(events)), events=events)

    def investment_pattern(self, purchases: Sequence[TransactionRecord]) -> InvestmentPattern:
        if not purchases:
            return InvestmentPattern()
        amounts = [tx.amount for tx in purchases]
        avg = mean(amounts)
        large = sum(1 for a in amounts if a > avg * 2)
        small = sum(1 for a in amounts if a < avg * 0.5)
        if large > small * 2:
            pattern = "lump-sum"
        elif small > large * 2:
            pattern = "micro"
        else:
            pattern = "regular"

        diversification = len({tx.platform for tx in purchases}) / len(Platform)
        if diversification > WELL_DIVERSIFIED:
            style = "well-diversified"
        elif avg < MICRO_INVESTOR_AVG:
            style = "micro-investor"
        elif avg > LARGE_INVESTOR_AVG:
            style = "large-investor"
        else:
            style = "regular-investor"

        ordered = sorted(purchases, key=lambda t: t.timestamp)
        gaps = gaps_in_days(tx.timestamp for tx in ordered)
        regularity = 0.0
        if gaps and mean(gaps) > 0:
            regularity = max(0.0, 1.0 - coefficient_of_variation(gaps)) if len(gaps) > 1 else 1.0

        return InvestmentPattern(
            pattern=pattern,
            investment_style=style,
            regularity=round(regularity, 4),
            diversification=diversification,
            avg_investment=avg,
            total_investments=len(purchases),
            total_amount=sum(amounts),
        )

    def consistency_score(self, purchases: Sequence[TransactionRecord]) -> float:
        if not purchases:
            return 0.0
        if len(purchases) == 1:
            return 0.5
        ordered = sorted(purchases, key=lambda t: t.timestamp, reverse=True)
        intervals = [(a.timestamp - b.timestamp).total_seconds() for a, b in zip(ordered, ordered[1:])]
        avg = mean(intervals)
        if avg <= 0:
            return 0.0
        return round(clamp(1.0 - pstdev(intervals) / avg, 0.0, 1.0), 4)

    def risk_tolerance(
        self,
        transactions: Sequence[TransactionRecord],
        purchases: Sequence[TransactionRecord],
    ) -> RiskTolerance:
        if not purchases:
            return RiskTolerance()
        score = 0
        indicators: list[str] = []
        if any(tx.amount > HIGH_VALUE_PURCHASE for tx in purchases):
            score += 20
            indicators.append("high-value-purchases")
        if len({tx.platform for tx in purchases}) >= MULTI_PLATFORM_COUNT:
            score += 15
            indicators.append("multi-asset")
        if any(tx.platform in VOLATILE_PLATFORMS for tx in purchases):
            score += 25
            indicators.append("volatile-asset-class")
        large = sum(1 for tx in purchases if tx.amount > LARGE_PURCHASE)
        if large / len(purchases) > LARGE_PURCHASE_SHARE:
            score += 20
            indicators.append("large-purchases")
        if count_short_term_cycles(transactions) > SHORT_TERM_CYCLE_LIMIT:
            score += 30
            indicators.append("short-term-trading")
        score = min(score, 100)
        return RiskTolerance(level=tolerance_level(score), score=score, indicators=indicators)

    def overall_score(
        self,
        transaction_count: int,
        sip: SipMetrics,
        streak: MonthlyStreak,
        volatility: WithdrawalVolatility,
        holding: HoldingDuration,
        panic: PanicSelling,
    ) -> float:
        # No ledger, no evidence of discipline.
        if transaction_count == 0:
            return 0.0
        score = 0.0
        if sip.active:
            score += sip.consistency * 40
        score += streak.current_streak / 12 * 20
        score += (1 - volatility.volatility) * 15
        score += min(15.0, holding.average_days / 365 * 15)
        if panic.total_events == 0:
            score += 10
        else:
            score += max(0, 10 - 2 * panic.total_events)
        return round(clamp(score, 0.0, 100.0), 2)
