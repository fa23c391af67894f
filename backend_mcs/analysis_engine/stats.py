"""Small statistics helpers shared by the analyzers (population statistics)."""

from __future__ import annotations

from datetime import date, datetime, tzinfo
from statistics import mean, pstdev
from typing import Iterable, Sequence

SECONDS_PER_DAY = 86400


def coefficient_of_variation(values: Sequence[float]) -> float:
    """pstdev / mean; 0 for fewer than two values or a zero mean."""
    if len(values) <= 1:
        return 0.0
    m = mean(values)
    if m == 0:
        return 0.0
    return pstdev(values) / m


def mean_and_std(values: Sequence[float]) -> tuple[float, float]:
    if not values:
        return 0.0, 0.0
    return mean(values), pstdev(values)


def gaps_in_days(timestamps: Iterable[datetime]) -> list[float]:
    """Absolute gaps between consecutive timestamps (in the given order), in days."""
    ts = list(timestamps)
    return [abs((b - a).total_seconds()) / SECONDS_PER_DAY for a, b in zip(ts, ts[1:])]


def days_between(later: datetime, earlier: datetime) -> float:
    return (later - earlier).total_seconds() / SECONDS_PER_DAY


def local_date(ts: datetime, tz: tzinfo) -> date:
    return ts.astimezone(tz).date()


def month_key(ts: datetime, tz: tzinfo) -> str:
    local = ts.astimezone(tz)
    return f"{local.year:04d}-{local.month:02d}"


def month_index(key: str) -> int:
    """'YYYY-MM' -> months since year 0, so consecutive months differ by 1."""
    year, month = key.split("-")
    return int(year) * 12 + int(month) - 1


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
