"""Core data records: issues, per-file results, run snapshots and comparisons."""

from __future__ import annotations

import math
import secrets
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any, Literal

from performanalyzer.errors import ConfigError
from performanalyzer.scoring import (
    DEFAULT_WEIGHTS,
    SEVERITIES,
    IssueSummary,
    ScoreWeights,
    SnapshotSummary,
    score_issues,
    summarize_issues,
    summarize_results,
)

Severity = Literal["high", "medium", "low"]
Status = Literal["pass", "warn", "fail"]


@dataclass(frozen=True, slots=True)
class Issue:
    """One occurrence of a rule firing on a line of a file."""

    rule_id: str
    line: int
    severity: Severity
    message: str
    suggestion: str = ""
    column: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "line": self.line,
            "column": self.column,
            "severity": self.severity,
            "message": self.message,
            "suggestion": self.suggestion,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Issue:
        severity = str(payload["severity"])
        if severity not in SEVERITIES:
            raise ValueError(f"Unknown severity '{severity}'")
        return cls(
            rule_id=str(payload["rule_id"]),
            line=max(1, int(payload["line"])),
            severity=severity,  # type: ignore[arg-type]
            message=str(payload.get("message", "")),
            suggestion=str(payload.get("suggestion", "")),
            column=max(1, int(payload.get("column", 1))),
        )


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    """Analysis of one file. Score and summary are always derived from issues."""

    file_path: str
    issues: tuple[Issue, ...] = ()
    weights: ScoreWeights = DEFAULT_WEIGHTS
    lines_analyzed: int = 0
    truncated: bool = False

    @property
    def summary(self) -> IssueSummary:
        return summarize_issues(self.issues)

    @property
    def score(self) -> int:
        return score_issues(self.issues, self.weights)

    def issues_at_least(self, severity: Severity) -> list[Issue]:
        rank = SEVERITIES.index(severity)
        return [issue for issue in self.issues if SEVERITIES.index(issue.severity) <= rank]

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_path": self.file_path,
            "score": self.score,
            "summary": self.summary.to_dict(),
            "issues": [issue.to_dict() for issue in self.issues],
            "lines_analyzed": self.lines_analyzed,
            "truncated": self.truncated,
        }

    @classmethod
    def from_dict(
        cls, payload: dict[str, Any], *, weights: ScoreWeights = DEFAULT_WEIGHTS
    ) -> AnalysisResult:
        # Stored scores are ignored; the score is recomputed from the issues.
        return cls(
            file_path=str(payload["file_path"]),
            issues=tuple(Issue.from_dict(item) for item in payload.get("issues", [])),
            weights=weights,
            lines_analyzed=int(payload.get("lines_analyzed", 0)),
            truncated=bool(payload.get("truncated", False)),
        )


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Persisted, immutable record of one analysis run."""

    id: str
    timestamp: str
    results: tuple[AnalysisResult, ...] = ()
    branch: str | None = None
    commit: str | None = None

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for result in self.results:
            if result.file_path in seen:
                raise ValueError(f"Duplicate file path in snapshot: {result.file_path}")
            seen.add(result.file_path)

    @property
    def summary(self) -> SnapshotSummary:
        return summarize_results(self.results)

    def result_for(self, file_path: str) -> AnalysisResult | None:
        for result in self.results:
            if result.file_path == file_path:
                return result
        return None

    @classmethod
    def create(
        cls,
        results: Iterable[AnalysisResult],
        *,
        branch: str | None = None,
        commit: str | None = None,
        now: datetime | None = None,
    ) -> Snapshot:
        """Build a snapshot with a freshly minted id, results sorted by path."""
        created = (now or datetime.now(tz=UTC)).astimezone(UTC)
        ordered = tuple(sorted(results, key=lambda item: item.file_path))
        return cls(
            id=new_snapshot_id(created),
            timestamp=_isoformat(created),
            results=ordered,
            branch=branch,
            commit=commit,
        )

    def to_dict(self, *, version: str | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "branch": self.branch,
            "commit": self.commit,
            "timestamp": self.timestamp,
            "summary": self.summary.to_dict(),
            "results": [result.to_dict() for result in self.results],
        }
        if version is not None:
            payload["version"] = version
        return payload

    @classmethod
    def from_dict(
        cls, payload: dict[str, Any], *, weights: ScoreWeights = DEFAULT_WEIGHTS
    ) -> Snapshot:
        if not isinstance(payload, dict):
            raise ValueError("Snapshot payload must be an object")
        results = payload.get("results", [])
        if not isinstance(results, list):
            raise ValueError("Snapshot results must be a list")
        return cls(
            id=str(payload["id"]),
            timestamp=str(payload["timestamp"]),
            results=tuple(AnalysisResult.from_dict(item, weights=weights) for item in results),
            branch=_optional_str(payload.get("branch")),
            commit=_optional_str(payload.get("commit")),
        )


@dataclass(frozen=True, slots=True)
class Thresholds:
    """Regression gating tolerances."""

    max_score_regression: float = 5
    max_high_severity_increase: float = 2
    max_total_issues_increase: float = 10
    min_score_improvement: float = 2

    def __post_init__(self) -> None:
        for name, value in self.to_dict().items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(f"thresholds.{name} must be a number")
            if math.isnan(value) or value < 0:
                raise ConfigError(f"thresholds.{name} must be non-negative, got {value}")

    def to_dict(self) -> dict[str, float]:
        return {
            "max_score_regression": self.max_score_regression,
            "max_high_severity_increase": self.max_high_severity_increase,
            "max_total_issues_increase": self.max_total_issues_increase,
            "min_score_improvement": self.min_score_improvement,
        }


@dataclass(frozen=True, slots=True)
class MetricChange:
    """A metric that moved between baseline and current run."""

    metric: str
    baseline: float
    current: float
    delta: float
    threshold: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric": self.metric,
            "baseline": self.baseline,
            "current": self.current,
            "delta": self.delta,
            "threshold": self.threshold,
        }


@dataclass(frozen=True, slots=True)
class FileDelta:
    """Score change of a single file; ``None`` marks an added or removed file."""

    file_path: str
    baseline_score: int | None
    current_score: int | None

    @property
    def delta(self) -> int:
        return (self.current_score or 0) - (self.baseline_score or 0)

    @property
    def change(self) -> str:
        if self.baseline_score is None:
            return "added"
        if self.current_score is None:
            return "removed"
        return "changed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_path": self.file_path,
            "baseline_score": self.baseline_score,
            "current_score": self.current_score,
            "delta": self.delta,
            "change": self.change,
        }


@dataclass(frozen=True, slots=True)
class ComparisonReport:
    """Outcome of comparing a run against its baseline."""

    current: SnapshotSummary
    baseline: SnapshotSummary
    score_delta: int
    severity_deltas: Mapping[str, int]
    total_issues_delta: int
    status: Status
    has_regressions: bool
    regressions: tuple[MetricChange, ...] = ()
    improvements: tuple[MetricChange, ...] = ()
    file_deltas: tuple[FileDelta, ...] = ()
    current_id: str | None = None
    baseline_id: str | None = None

    def __post_init__(self) -> None:
        # Frozen fields still need read-only containers.
        object.__setattr__(self, "severity_deltas", MappingProxyType(dict(self.severity_deltas)))
        object.__setattr__(self, "regressions", tuple(self.regressions))
        object.__setattr__(self, "improvements", tuple(self.improvements))
        object.__setattr__(self, "file_deltas", tuple(self.file_deltas))

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_id": self.current_id,
            "baseline_id": self.baseline_id,
            "current": self.current.to_dict(),
            "baseline": self.baseline.to_dict(),
            "score_delta": self.score_delta,
            "severity_deltas": dict(self.severity_deltas),
            "total_issues_delta": self.total_issues_delta,
            "status": self.status,
            "has_regressions": self.has_regressions,
            "regressions": [item.to_dict() for item in self.regressions],
            "improvements": [item.to_dict() for item in self.improvements],
            "file_deltas": [item.to_dict() for item in self.file_deltas],
        }


def new_snapshot_id(created: datetime) -> str:
    """Mint a sortable, unique run id such as ``20260214T101500Z-3f9a1c``."""
    stamp = created.astimezone(UTC).strftime("%Y%m%dT%H%M%S%fZ")
    return f"{stamp}-{secrets.token_hex(3)}"


def _isoformat(value: datetime) -> str:
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)
