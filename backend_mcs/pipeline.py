"""
End-to-end scoring: portfolio -> behavior and risk -> score.

ScoringPipeline wires the four stages for one user (score_user) and for many
(score_users: groups of batch_group_size users run concurrently, groups run
one after another). build_pipeline() assembles the production wiring from
Settings; tests assemble their own with a fake platform client.
"""

from __future__ import annotations

import asyncio
import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping, Sequence

from backend_mcs.analysis_engine.behavior import BehaviorAnalyzer
from backend_mcs.analysis_engine.detectors import RiskDetectors
from backend_mcs.analysis_engine.models import UserProfile
from backend_mcs.analysis_engine.risk import RiskAnalyzer
from backend_mcs.config.settings import Settings
from backend_mcs.core.events import EventBus
from backend_mcs.core.exceptions import McsError
from backend_mcs.mcs_logging import get_logger, scoring_context, set_stage
from backend_mcs.platforms.client import HttpPlatformClient, PlatformClient
from backend_mcs.portfolio.aggregator import PortfolioAggregator
from backend_mcs.portfolio.cache import PortfolioCache
from backend_mcs.portfolio.models import Portfolio
from backend_mcs.scoring.models import BatchItemResult, BatchReport, ScoreResult
from backend_mcs.scoring.synthesizer import ScoreSynthesizer

logger = get_logger(__name__)


@dataclass
class ScoreRequest:
    user_id: str
    addresses: Mapping[str, str | None]
    profile: UserProfile | None = None


@dataclass
class ScoringPipeline:
    aggregator: PortfolioAggregator
    behavior_analyzer: BehaviorAnalyzer
    risk_analyzer: RiskAnalyzer
    synthesizer: ScoreSynthesizer
    settings: Settings = field(default_factory=Settings)

    async def fetch_portfolio(
        self,
        user_id: str,
        addresses: Mapping[str, str | None],
        profile: UserProfile | None = None,
    ) -> Portfolio:
        portfolio = await self.aggregator.fetch_portfolio(user_id, addresses)
        if profile is None:
            return portfolio
        # Cached portfolios are shared; attach profile data to a copy.
        return dataclasses.replace(portfolio, user_income=profile.income, location=profile.location)

    async def score_user(
        self,
        user_id: str,
        addresses: Mapping[str, str | None],
        profile: UserProfile | None = None,
        now: datetime | None = None,
    ) -> ScoreResult:
        """Score one user. Typed McsError subclasses propagate with their stage."""
        with scoring_context(user_id):
            logger.info("score_user_start")
            portfolio = await self.fetch_portfolio(user_id, addresses, profile)
            ledger = portfolio.transactions
            set_stage("analysis")
            behavior = self.behavior_analyzer.analyze_behavior(user_id, ledger, portfolio, now=now)
            risk = self.risk_analyzer.perform_risk_analysis(user_id, ledger, portfolio, profile, now=now)
            set_stage("scoring")
            result = self.synthesizer.calculate_score(portfolio, behavior, risk, now=now)
            logger.info("score_user_done", score=result.score, category=result.category)
        return result

    async def _score_one(self, request: ScoreRequest, now: datetime | None) -> BatchItemResult:
        try:
            result = await self.score_user(request.user_id, request.addresses, request.profile, now=now)
        except McsError as e:
            logger.warning("batch_user_failed", user_id=request.user_id, stage=e.stage, error=e.message)
            return BatchItemResult(user_id=request.user_id, success=False, error=e.message, stage=e.stage)
        except Exception as e:
            logger.error("batch_user_crashed", user_id=request.user_id, error=str(e), exc_info=True)
            return BatchItemResult(user_id=request.user_id, success=False, error=str(e), stage="unknown")
        return BatchItemResult(user_id=request.user_id, success=True, result=result)

    async def score_users(self, requests: Sequence[ScoreRequest], now: datetime | None = None) -> BatchReport:
        """Score many users; one user's failure never affects the others."""
        group_size = max(1, self.settings.batch_group_size)
        report = BatchReport()
        for start in range(0, len(requests), group_size):
            group = requests[start:start + group_size]
            report.results.extend(await asyncio.gather(*(self._score_one(r, now) for r in group)))
        logger.info(
            "batch_scoring_done",
            total=report.total_processed,
            successful=report.successful,
            failed=report.failed,
        )
        return report

    async def aclose(self) -> None:
        await self.aggregator.aclose()


def build_pipeline(
    settings: Settings,
    client: PlatformClient | None = None,
    events: EventBus | None = None,
    detectors: RiskDetectors | None = None,
) -> ScoringPipeline:
    """Wire the production pipeline; defaults to HttpPlatformClient. Close with pipeline.aclose()."""
    events = events or EventBus()
    client = client or HttpPlatformClient(settings)
    cache = PortfolioCache(ttl_sec=settings.cache_ttl_sec)
    return ScoringPipeline(
        aggregator=PortfolioAggregator(client, cache, settings=settings, events=events),
        behavior_analyzer=BehaviorAnalyzer(events=events, tz=settings.tzinfo),
        risk_analyzer=RiskAnalyzer(events=events, detectors=detectors, settings=settings),
        synthesizer=ScoreSynthesizer(events=events),
        settings=settings,
    )
