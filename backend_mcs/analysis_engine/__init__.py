"""Behavior and risk analysis over the merged transaction ledger."""

from backend_mcs.analysis_engine.behavior import BehaviorAnalyzer
from backend_mcs.analysis_engine.models import BehaviorProfile, RiskProfile, UserProfile
from backend_mcs.analysis_engine.risk import RiskAnalyzer

__all__ = ["BehaviorAnalyzer", "BehaviorProfile", "RiskAnalyzer", "RiskProfile", "UserProfile"]
