"""
Pluggable detectors consulted by the risk analyzer.

Location/device consistency, wallet churn and behavioral-shift detection
need data this service does not hold (session geo, device fingerprints,
historical baselines). Each is a callable slot on RiskDetectors; the defaults
report nothing so the corresponding risk terms stay at zero until a real
detector is plugged in.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

from backend_mcs.analysis_engine.models import Severity, UserProfile
from backend_mcs.platforms.models import TransactionRecord


@dataclass(frozen=True)
class DetectorResult:
    flagged: bool = False
    severity: Severity = Severity.LOW
    """Scales the anomaly weight when flagged by a behavioral-shift detector."""
    score: float = 0.0
    """Contribution to the fraud score when flagged."""
    indicator: str | None = None


NOT_FLAGGED = DetectorResult()

TransactionDetector = Callable[[Sequence[TransactionRecord]], DetectorResult]


def _no_transaction_anomaly(transactions: Sequence[TransactionRecord]) -> DetectorResult:
    return NOT_FLAGGED


def _no_location_anomaly(transactions: Sequence[TransactionRecord], locations: Sequence[str]) -> DetectorResult:
    return NOT_FLAGGED


def _no_wallet_churn(user_id: str, wallets: dict[str, str]) -> bool:
    return False


def _profile_location_consistent(profile: UserProfile) -> bool:
    return True


@dataclass
class RiskDetectors:
    location_consistency: Callable[[Sequence[TransactionRecord], Sequence[str]], DetectorResult] = _no_location_anomaly
    device_consistency: TransactionDetector = _no_transaction_anomaly
    wallet_changes: Callable[[str, dict[str, str]], bool] = _no_wallet_churn
    """True when the user has been switching wallets frequently."""
    profile_location_consistent: Callable[[UserProfile], bool] = _profile_location_consistent
    investment_pattern_shift: TransactionDetector = _no_transaction_anomaly
    portfolio_composition_shift: TransactionDetector = _no_transaction_anomaly
    trading_behavior_shift: TransactionDetector = _no_transaction_anomaly
