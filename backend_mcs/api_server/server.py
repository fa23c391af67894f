"""
FastAPI server over the scoring pipeline.

Unauthenticated and stateless apart from the portfolio cache: translates HTTP
into score_user / score_users / fetch_portfolio / platform_status and the
loan-eligibility calculator. Identity arrives already resolved.

Run: uvicorn backend_mcs.api_server.server:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from backend_mcs import __version__
from backend_mcs.analysis_engine.models import UserProfile
from backend_mcs.api_server.schemas import (
    BatchScoreRequest,
    ErrorResponse,
    HealthResponse,
    LoanEligibilityRequest,
)
from backend_mcs.config.settings import get_settings
from backend_mcs.core.exceptions import AnalysisError, McsError, PortfolioFetchError, ScoringError
from backend_mcs.mcs_logging import get_logger
from backend_mcs.pipeline import ScoringPipeline, build_pipeline
from backend_mcs.scoring.brackets import loan_eligibility

logger = get_logger(__name__)


def get_pipeline(request: Request) -> ScoringPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="scoring pipeline not ready")
    return pipeline


def _addresses(gold: str | None, silver: str | None, platinum: str | None, stable: str | None) -> dict[str, str | None]:
    addresses = {"gold": gold, "silver": silver, "platinum": platinum, "stable": stable}
    if not any(addresses.values()):
        raise HTTPException(status_code=400, detail="at least one platform address is required")
    return addresses


ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    502: {"model": ErrorResponse, "description": "Portfolio could not be assembled"},
    422: {"model": ErrorResponse, "description": "Analysis or scoring failed"},
}


def _status_for(exc: McsError) -> int:
    if isinstance(exc, PortfolioFetchError):
        return 502
    if isinstance(exc, (AnalysisError, ScoringError)):
        return 422
    return 500


def create_app(pipeline: ScoringPipeline | None = None) -> FastAPI:
    """Build the app. With no pipeline, one is wired from env settings at startup and closed at shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if getattr(app.state, "pipeline", None) is None:
            owned = build_pipeline(get_settings())
            app.state.pipeline = owned
            logger.info("api_pipeline_started")
        yield
        if owned is not None:
            await owned.aclose()
            app.state.pipeline = None
            logger.info("api_pipeline_stopped")

    app = FastAPI(
        title="Metal Credit Score API",
        description="Asset-backed credit scores from gold, silver, platinum and stablecoin holdings.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.pipeline = pipeline

    @app.exception_handler(McsError)
    def mcs_error_handler(request: Request, exc: McsError) -> JSONResponse:
        logger.warning("api_request_failed", path=request.url.path, stage=exc.stage, user_id=exc.user_id, error=exc.message)
        return JSONResponse(status_code=_status_for(exc), content={"detail": exc.message, "stage": exc.stage, "user_id": exc.user_id})

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok", version=__version__)

    @app.get("/score/{user_id}", responses=ERROR_RESPONSES)
    async def score_user(
        user_id: str,
        gold: str | None = Query(None),
        silver: str | None = Query(None),
        platinum: str | None = Query(None),
        stable: str | None = Query(None),
        location: str | None = Query(None),
        income: float | None = Query(None, gt=0),
        pipeline: ScoringPipeline = Depends(get_pipeline),
    ) -> dict[str, Any]:
        addresses = _addresses(gold, silver, platinum, stable)
        profile = UserProfile(user_id=user_id, location=location, income=income)
        result = await pipeline.score_user(user_id, addresses, profile)
        return result.to_dict()

    @app.post("/score/batch", responses=ERROR_RESPONSES)
    async def score_batch(body: BatchScoreRequest, pipeline: ScoringPipeline = Depends(get_pipeline)) -> dict[str, Any]:
        report = await pipeline.score_users([u.to_score_request() for u in body.users])
        return report.to_dict()

    @app.get("/portfolio/{user_id}", responses=ERROR_RESPONSES)
    async def portfolio(
        user_id: str,
        gold: str | None = Query(None),
        silver: str | None = Query(None),
        platinum: str | None = Query(None),
        stable: str | None = Query(None),
        pipeline: ScoringPipeline = Depends(get_pipeline),
    ) -> dict[str, Any]:
        result = await pipeline.fetch_portfolio(user_id, _addresses(gold, silver, platinum, stable))
        return result.to_dict()

    @app.delete("/portfolio/{user_id}/cache")
    def invalidate_portfolio(user_id: str, pipeline: ScoringPipeline = Depends(get_pipeline)) -> dict[str, Any]:
        return {"user_id": user_id, "removed": pipeline.aggregator.invalidate_user(user_id)}

    @app.get("/platforms/status")
    async def platforms_status(pipeline: ScoringPipeline = Depends(get_pipeline)) -> dict[str, Any]:
        status = await pipeline.aggregator.platform_status()
        return {name: health.to_dict() for name, health in status.items()}

    @app.post("/loan-eligibility")
    def loan_eligibility_calc(body: LoanEligibilityRequest) -> dict[str, Any]:
        try:
            return loan_eligibility(body.score, body.portfolio_value, body.monthly_income)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

    return app


app = create_app()
