"""Score synthesis: asset, behavior and risk sub-scores into a 300-900 credit score."""

from backend_mcs.scoring.brackets import category_for, loan_eligibility
from backend_mcs.scoring.models import BatchItemResult, LoanRecommendation, ScoreBreakdown, ScoreResult
from backend_mcs.scoring.synthesizer import ScoreSynthesizer, ScoringInput

__all__ = [
    "BatchItemResult",
    "LoanRecommendation",
    "ScoreBreakdown",
    "ScoreResult",
    "ScoreSynthesizer",
    "ScoringInput",
    "category_for",
    "loan_eligibility",
]
