"""Health scoring for analyzed files and whole runs."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from performanalyzer.errors import ConfigError

if TYPE_CHECKING:
    from performanalyzer.models import AnalysisResult, Issue

SEVERITIES = ("high", "medium", "low")
MAX_SCORE = 100


@dataclass(frozen=True, slots=True)
class ScoreWeights:
    """Points subtracted from a file score per issue of each severity."""

    high: float = 10
    medium: float = 5
    low: float = 2

    def __post_init__(self) -> None:
        for severity in SEVERITIES:
            value = getattr(self, severity)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(f"scoring.{severity} must be a number")
            if value < 0 or math.isnan(value):
                raise ConfigError(f"scoring.{severity} must be non-negative, got {value}")

    def penalty(self, severity: str) -> float:
        if severity not in SEVERITIES:
            raise ValueError(f"Unknown severity '{severity}'")
        return float(getattr(self, severity))

    def to_dict(self) -> dict[str, float]:
        return {"high": self.high, "medium": self.medium, "low": self.low}


DEFAULT_WEIGHTS = ScoreWeights()


@dataclass(frozen=True, slots=True)
class IssueSummary:
    """Issue counts bucketed by severity."""

    total_issues: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0

    def count(self, severity: str) -> int:
        return int(getattr(self, severity))

    def to_dict(self) -> dict[str, int]:
        return {
            "total_issues": self.total_issues,
            "high": self.high,
            "medium": self.medium,
            "low": self.low,
        }


@dataclass(frozen=True, slots=True)
class SnapshotSummary:
    """Aggregate health of a run."""

    score: int = MAX_SCORE
    total_issues: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    files_analyzed: int = 0

    def count(self, severity: str) -> int:
        return int(getattr(self, severity))

    def to_dict(self) -> dict[str, int]:
        return {
            "score": self.score,
            "total_issues": self.total_issues,
            "high": self.high,
            "medium": self.medium,
            "low": self.low,
            "files_analyzed": self.files_analyzed,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> SnapshotSummary:
        return cls(
            score=int(payload.get("score", MAX_SCORE)),
            total_issues=int(payload.get("total_issues", 0)),
            high=int(payload.get("high", 0)),
            medium=int(payload.get("medium", 0)),
            low=int(payload.get("low", 0)),
            files_analyzed=int(payload.get("files_analyzed", 0)),
        )


def score_issues(issues: Iterable[Issue], weights: ScoreWeights = DEFAULT_WEIGHTS) -> int:
    """Return a 0-100 health score: 100 minus the penalty of every issue."""
    total_penalty = 0.0
    for issue in issues:
        total_penalty += weights.penalty(issue.severity)
    return int(round(_clamp(MAX_SCORE - total_penalty)))


def summarize_issues(issues: Iterable[Issue]) -> IssueSummary:
    counts = {severity: 0 for severity in SEVERITIES}
    for issue in issues:
        counts[issue.severity] += 1
    return IssueSummary(total_issues=sum(counts.values()), **counts)


def summarize_results(results: Sequence[AnalysisResult]) -> SnapshotSummary:
    """Aggregate per-file results; the run score is the mean file score.

    An empty run scores 100.
    """
    if not results:
        return SnapshotSummary()

    counts = {severity: 0 for severity in SEVERITIES}
    score_total = 0
    for result in results:
        summary = result.summary
        for severity in SEVERITIES:
            counts[severity] += summary.count(severity)
        score_total += result.score

    mean_score = _round_half_up(score_total / len(results))
    return SnapshotSummary(
        score=int(_clamp(mean_score)),
        total_issues=sum(counts.values()),
        files_analyzed=len(results),
        **counts,
    )


def health_grade(score: int) -> tuple[str, str]:
    """Return a (label, color) pair describing a health score."""
    if score >= 90:
        return ("EXCELLENT", "green")
    if score >= 75:
        return ("GOOD", "green")
    if score >= 50:
        return ("FAIR", "yellow")
    return ("POOR", "red")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp(value: float, lower: float = 0, upper: float = MAX_SCORE) -> float:
    return max(lower, min(upper, value))
