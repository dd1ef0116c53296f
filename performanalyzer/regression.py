"""Compare a run against its baseline and decide pass/warn/fail."""

from __future__ import annotations

from dataclasses import replace

from performanalyzer.models import ComparisonReport, FileDelta, MetricChange, Snapshot, Thresholds
from performanalyzer.scoring import SEVERITIES, SnapshotSummary


def compare(
    current: Snapshot,
    baseline: Snapshot,
    thresholds: Thresholds,
    *,
    fail_on_regression: bool = True,
) -> ComparisonReport:
    """Compare two snapshots, including per-file score changes."""
    report = compare_summaries(
        current.summary,
        baseline.summary,
        thresholds,
        fail_on_regression=fail_on_regression,
    )
    return replace(
        report,
        file_deltas=tuple(file_deltas(current, baseline)),
        current_id=current.id,
        baseline_id=baseline.id,
    )


def compare_summaries(
    current: SnapshotSummary,
    baseline: SnapshotSummary,
    thresholds: Thresholds,
    *,
    fail_on_regression: bool = True,
) -> ComparisonReport:
    """Apply the regression thresholds to two run summaries.

    A breach of any threshold is a regression. The status is ``fail`` when
    regressions exist and ``fail_on_regression`` is set, ``warn`` when they
    exist otherwise, and ``pass`` when there are none. Improvements are
    informational and never change the status.
    """
    score_delta = current.score - baseline.score
    severity_deltas = {
        severity: current.count(severity) - baseline.count(severity) for severity in SEVERITIES
    }
    total_delta = current.total_issues - baseline.total_issues

    regressions: list[MetricChange] = []
    if -score_delta > thresholds.max_score_regression:
        regressions.append(
            _change("score", baseline.score, current.score, thresholds.max_score_regression)
        )
    if severity_deltas["high"] > thresholds.max_high_severity_increase:
        regressions.append(
            _change("high", baseline.high, current.high, thresholds.max_high_severity_increase)
        )
    if total_delta > thresholds.max_total_issues_increase:
        regressions.append(
            _change(
                "total_issues",
                baseline.total_issues,
                current.total_issues,
                thresholds.max_total_issues_increase,
            )
        )

    improvements: list[MetricChange] = []
    if score_delta > 0 and score_delta >= thresholds.min_score_improvement:
        improvements.append(
            _change("score", baseline.score, current.score, thresholds.min_score_improvement)
        )
    for severity in SEVERITIES:
        if severity_deltas[severity] < 0:
            before, after = baseline.count(severity), current.count(severity)
            improvements.append(_change(severity, before, after))
    if total_delta < 0:
        improvements.append(_change("total_issues", baseline.total_issues, current.total_issues))

    has_regressions = bool(regressions)
    if has_regressions:
        status = "fail" if fail_on_regression else "warn"
    else:
        status = "pass"

    return ComparisonReport(
        current=current,
        baseline=baseline,
        score_delta=score_delta,
        severity_deltas=severity_deltas,
        total_issues_delta=total_delta,
        status=status,
        has_regressions=has_regressions,
        regressions=tuple(regressions),
        improvements=tuple(improvements),
    )


def file_deltas(current: Snapshot, baseline: Snapshot) -> list[FileDelta]:
    """Per-file score changes, plus files that appeared or disappeared."""
    current_scores = {result.file_path: result.score for result in current.results}
    baseline_scores = {result.file_path: result.score for result in baseline.results}
    deltas: list[FileDelta] = []
    for path in sorted(current_scores.keys() | baseline_scores.keys()):
        before = baseline_scores.get(path)
        after = current_scores.get(path)
        if before is not None and before == after:
            continue
        deltas.append(FileDelta(file_path=path, baseline_score=before, current_score=after))
    return deltas


def _change(
    metric: str, baseline: int, current: int, threshold: float | None = None
) -> MetricChange:
    return MetricChange(
        metric=metric,
        baseline=baseline,
        current=current,
        delta=current - baseline,
        threshold=threshold,
    )
