"""Request and response models for the HTTP API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from backend_mcs.analysis_engine.models import UserProfile
from backend_mcs.pipeline import ScoreRequest


class AddressSet(BaseModel):
    gold: str | None = Field(None, description="Gold platform wallet address")
    silver: str | None = Field(None, description="Silver platform wallet address")
    platinum: str | None = Field(None, description="Platinum platform wallet address")
    stable: str | None = Field(None, description="Stablecoin platform wallet address")

    def to_mapping(self) -> dict[str, str | None]:
        return {"gold": self.gold, "silver": self.silver, "platinum": self.platinum, "stable": self.stable}


class UserScoreRequest(BaseModel):
    user_id: str = Field(..., min_length=1, description="Resolved user identifier")
    addresses: AddressSet
    location: str | None = Field(None, description="City or region; drives the income estimate")
    locations: list[str] = Field(default_factory=list, description="Session locations, oldest first")
    income: float | None = Field(None, gt=0, description="Monthly income, overrides the location estimate")

    def to_score_request(self) -> ScoreRequest:
        profile = UserProfile(
            user_id=self.user_id,
            location=self.location,
            locations=list(self.locations),
            income=self.income,
        )
        return ScoreRequest(user_id=self.user_id, addresses=self.addresses.to_mapping(), profile=profile)


class BatchScoreRequest(BaseModel):
    users: list[UserScoreRequest] = Field(..., min_length=1, max_length=100)


class LoanEligibilityRequest(BaseModel):
    score: float = Field(..., ge=300, le=900, description="Credit score")
    portfolio_value: float = Field(..., ge=0, description="Total asset value")
    monthly_income: float | None = Field(None, ge=0)


class HealthResponse(BaseModel):
    status: str = Field(..., description="ok when the service is up")
    version: str


class ErrorResponse(BaseModel):
    detail: Any
    stage: str | None = None
    user_id: str | None = None
