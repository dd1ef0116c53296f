"""Output rendering."""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

import click

from performanalyzer import __version__
from performanalyzer.bulk import BulkResult
from performanalyzer.models import AnalysisResult, ComparisonReport, Issue, MetricChange, Snapshot
from performanalyzer.rules import RuleInfo
from performanalyzer.scoring import SEVERITIES, SnapshotSummary, health_grade

_SEVERITY_COLORS = {"high": "red", "medium": "yellow", "low": "cyan"}
_STATUS_COLORS = {"pass": "green", "warn": "yellow", "fail": "red"}
_METRIC_LABELS = {
    "score": "Score",
    "high": "High severity issues",
    "medium": "Medium severity issues",
    "low": "Low severity issues",
    "total_issues": "Total issues",
}


def render_analysis(
    result: AnalysisResult,
    *,
    color: bool = True,
    detailed: bool = False,
    min_severity: str = "low",
    title: str | None = None,
) -> str:
    """Render one file's score and its issues at or above ``min_severity``."""
    label, grade_color = health_grade(result.score)
    lines: list[str] = []
    if title:
        lines.append(_style(title, color, bold=True))
    lines.append(
        _style(
            f"{result.file_path}: {result.score}/100 ({label})",
            color,
            fg=grade_color,
            bold=True,
        )
    )
    summary = result.summary
    lines.append(
        f"Issues: {summary.total_issues} "
        f"(high {summary.high}, medium {summary.medium}, low {summary.low})"
    )
    if result.truncated:
        lines.append(
            _style(
                f"Only the first {result.lines_analyzed} lines were analyzed.", color, fg="yellow"
            )
        )

    shown = result.issues_at_least(min_severity)  # type: ignore[arg-type]
    if not shown:
        lines.append(_style("No issues found.", color, fg="green"))
        return "\n".join(lines)

    for issue in shown:
        lines.append(_issue_line(issue, color=color))
        if issue.suggestion:
            lines.append(f"   suggestion: {issue.suggestion}")
        if detailed:
            lines.append(f"   rule: {issue.rule_id}, column {issue.column}")
    if detailed:
        lines.append(f"Lines analyzed: {result.lines_analyzed}")
    return "\n".join(lines)


def render_issue_table(result: AnalysisResult, *, color: bool = True) -> str:
    """Render one file's issues as aligned Line/Severity/Rule/Message columns."""
    label, grade_color = health_grade(result.score)
    lines = [
        _style(
            f"{result.file_path}: {result.score}/100 ({label})", color, fg=grade_color, bold=True
        )
    ]
    if not result.issues:
        lines.append(_style("No issues found.", color, fg="green"))
        return "\n".join(lines)

    headers = ("Line", "Severity", "Rule", "Message")
    rows = [
        (str(issue.line), issue.severity.upper(), issue.rule_id, issue.message)
        for issue in result.issues
    ]
    # Widths are measured on plain text; styling is applied after padding.
    widths = [max(len(row[index]) for row in (headers, *rows)) for index in range(3)]
    lines.append(
        _style(
            f"{headers[0]:<{widths[0]}}  {headers[1]:<{widths[1]}}  "
            f"{headers[2]:<{widths[2]}}  {headers[3]}",
            color,
            bold=True,
        )
    )
    lines.append("  ".join("-" * width for width in widths) + "  " + "-" * len(headers[3]))
    for issue, (line, severity, rule_id, message) in zip(result.issues, rows, strict=True):
        styled = _style(f"{severity:<{widths[1]}}", color, fg=_SEVERITY_COLORS[issue.severity])
        lines.append(f"{line:<{widths[0]}}  {styled}  {rule_id:<{widths[2]}}  {message}")
    return "\n".join(lines)


def render_fix_suggestions(result: AnalysisResult, *, color: bool = True) -> str:
    """List suggested fixes for high and medium issues. Nothing is rewritten."""
    fixable = [issue for issue in result.issues_at_least("medium") if issue.suggestion]
    if not fixable:
        return _style(f"No fixable issues found in {result.file_path}.", color, fg="green")

    lines = [_style(f"Fix suggestions for {result.file_path}:", color, bold=True)]
    for index, issue in enumerate(fixable, start=1):
        lines.append(f"{index}. Line {issue.line}: {issue.message}")
        lines.append(f"   fix: {issue.suggestion}")
    lines.append(f"{len(fixable)} suggestion(s). Files were not modified.")
    return "\n".join(lines)


def render_bulk(
    bulk: BulkResult,
    summary: SnapshotSummary,
    *,
    color: bool = True,
    summary_only: bool = False,
    limit: int = 10,
) -> str:
    """Render a directory run: totals first, then the lowest scoring files."""
    lines = [_summary_headline(summary, color=color), _summary_counts(summary)]
    if bulk.truncated:
        lines.append(
            _style("File limit reached; remaining files were not analyzed.", color, fg="yellow")
        )
    if bulk.skipped:
        lines.append(_style(f"Skipped {len(bulk.skipped)} file(s):", color, fg="yellow"))
        for skipped in bulk.skipped:
            lines.append(f"- {skipped.file_path}: {skipped.reason}")

    if summary_only:
        return "\n".join(lines)

    flagged = [result for result in _worst_results(bulk.results) if result.issues]
    if flagged:
        lines.append(_style("Files needing attention:", color, bold=True))
        for result in flagged[:limit]:
            summary_line = result.summary
            lines.append(
                f"- {result.file_path}: {result.score}/100, "
                f"{summary_line.total_issues} issues ({summary_line.high} high)"
            )
        if len(flagged) > limit:
            lines.append(f"... and {len(flagged) - limit} more")
    return "\n".join(lines)


def render_health(summary: SnapshotSummary, *, threshold: int, color: bool = True) -> str:
    label, grade_color = health_grade(summary.score)
    passed = summary.score >= threshold
    lines = [
        _style(f"Project health: {summary.score}/100 ({label})", color, fg=grade_color, bold=True),
        _summary_counts(summary),
    ]
    if passed:
        lines.append(_style(f"Health score meets the threshold of {threshold}.", color, fg="green"))
    else:
        lines.append(
            _style(f"Health score is below the threshold of {threshold}.", color, fg="red")
        )
    return "\n".join(lines)


def render_rules(infos: Sequence[RuleInfo], *, mode: str, color: bool = True) -> str:
    lines = [_style(f"Rules ({mode} mode):", color, bold=True)]
    for info in infos:
        marker = "x" if info.enabled else " "
        severity = _style(f"{info.severity:<6}", color, fg=_SEVERITY_COLORS[info.severity])
        lines.append(
            f"[{marker}] {info.rule_id:<34} {severity} {info.category:<9} {info.description}"
        )
    return "\n".join(lines)


def render_comparison(
    snapshot: Snapshot,
    comparison: ComparisonReport | None,
    *,
    notice: str | None = None,
    warn_on_regression: bool = True,
    color: bool = True,
) -> str:
    """Console rendering of a CI run."""
    summary = snapshot.summary
    status = comparison.status if comparison is not None else "pass"
    lines = [
        _style(f"Performance check: {status.upper()}", color, fg=_STATUS_COLORS[status], bold=True),
        _summary_headline(summary, color=color),
        _summary_counts(summary),
    ]
    if notice:
        lines.append(_style(notice, color, fg="yellow"))
    if comparison is None:
        return "\n".join(lines)

    lines.append(
        f"Baseline score: {comparison.baseline.score}/100 "
        f"(delta {_signed(comparison.score_delta)}, "
        f"issues {_signed(comparison.total_issues_delta)})"
    )
    if comparison.has_regressions:
        if warn_on_regression:
            lines.append(_style("Warning: performance regressed.", color, fg="yellow", bold=True))
        lines.append(_style("Regressions:", color, fg="red", bold=True))
        lines.extend(f"- {_describe_change(change)}" for change in comparison.regressions)
    if comparison.improvements:
        lines.append(_style("Improvements:", color, fg="green", bold=True))
        lines.extend(f"- {_describe_change(change)}" for change in comparison.improvements)
    return "\n".join(lines)


def render_json_result(result: AnalysisResult) -> str:
    return json.dumps(result.to_dict(), indent=2, sort_keys=True)


def render_snapshot_json(snapshot: Snapshot) -> str:
    return json.dumps(snapshot.to_dict(version=__version__), indent=2, sort_keys=True)


def build_report_payload(
    snapshot: Snapshot,
    comparison: ComparisonReport | None,
    *,
    notice: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Build the stable CI report consumed by workflow steps."""
    summary = snapshot.summary
    generated = (now or datetime.now(tz=UTC)).astimezone(UTC).replace(microsecond=0)
    return {
        "summary": {
            "status": comparison.status if comparison is not None else "pass",
            "score": summary.score,
            "baseline_score": comparison.baseline.score if comparison is not None else None,
            "total_issues": summary.total_issues,
            "high": summary.high,
            "medium": summary.medium,
            "low": summary.low,
            "files_analyzed": summary.files_analyzed,
        },
        "has_regressions": comparison.has_regressions if comparison is not None else False,
        "snapshot_id": snapshot.id,
        "baseline_id": comparison.baseline_id if comparison is not None else None,
        "branch": snapshot.branch,
        "commit": snapshot.commit,
        "notice": notice,
        "comparison": comparison.to_dict() if comparison is not None else None,
        "generated_at": generated.isoformat().replace("+00:00", "Z"),
        "version": __version__,
    }


def render_report_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, indent=2, sort_keys=True)


def render_pr_comment(
    snapshot: Snapshot,
    comparison: ComparisonReport | None,
    *,
    notice: str | None = None,
    warn_on_regression: bool = True,
    worst: int = 5,
) -> str:
    """Render a Markdown pull request comment."""
    summary = snapshot.summary
    status = comparison.status if comparison is not None else "pass"
    headline = {
        "pass": "Performance check passed",
        "warn": "Performance check passed with warnings",
        "fail": "Performance check failed",
    }[status]
    lines = [f"## {headline}", ""]
    if notice:
        lines.extend([f"> {notice}", ""])
    if comparison is not None and comparison.has_regressions and warn_on_regression:
        lines.extend(["> **Warning:** this change regresses performance.", ""])

    lines.extend(["| Metric | Current | Baseline | Change |", "| --- | ---: | ---: | ---: |"])
    lines.append(_metric_row("Score", summary.score, comparison, "score"))
    for severity in SEVERITIES:
        lines.append(
            _metric_row(_METRIC_LABELS[severity], summary.count(severity), comparison, severity)
        )
    lines.append(_metric_row("Total issues", summary.total_issues, comparison, "total_issues"))
    lines.append(f"| Files analyzed | {summary.files_analyzed} | | |")

    if comparison is not None and comparison.regressions:
        lines.extend(["", "### Regressions", ""])
        lines.extend(f"- {_describe_change(change)}" for change in comparison.regressions)
    if comparison is not None and comparison.improvements:
        lines.extend(["", "### Improvements", ""])
        lines.extend(f"- {_describe_change(change)}" for change in comparison.improvements)

    flagged = [result for result in _worst_results(snapshot.results) if result.issues][:worst]
    if flagged:
        lines.extend(["", "### Files needing attention", ""])
        for result in flagged:
            file_summary = result.summary
            lines.append(
                f"- `{result.file_path}`: {result.score}/100, "
                f"{file_summary.total_issues} issues ({file_summary.high} high)"
            )

    footer = f"Snapshot `{snapshot.id}`"
    if comparison is not None and comparison.baseline_id:
        footer += f" compared with baseline `{comparison.baseline_id}`"
    lines.extend(["", f"<sub>{footer}. performanalyzer {__version__}</sub>", ""])
    return "\n".join(lines)


def _metric_row(
    label: str, current: int, comparison: ComparisonReport | None, metric: str
) -> str:
    if comparison is None:
        return f"| {label} | {current} | | |"
    if metric == "score":
        baseline_value = comparison.baseline.score
    elif metric == "total_issues":
        baseline_value = comparison.baseline.total_issues
    else:
        baseline_value = comparison.baseline.count(metric)
    return f"| {label} | {current} | {baseline_value} | {_signed(current - baseline_value)} |"


def _describe_change(change: MetricChange) -> str:
    label = _METRIC_LABELS.get(change.metric, change.metric)
    text = (
        f"{label}: {_number(change.baseline)} -> {_number(change.current)} "
        f"({_signed(change.delta)})"
    )
    if change.threshold is not None:
        text += f", threshold {_number(change.threshold)}"
    return text


def _summary_headline(summary: SnapshotSummary, *, color: bool) -> str:
    label, grade_color = health_grade(summary.score)
    return _style(
        f"Overall score: {summary.score}/100 ({label}) across {summary.files_analyzed} files",
        color,
        fg=grade_color,
        bold=True,
    )


def _summary_counts(summary: SnapshotSummary) -> str:
    return (
        f"Issues: {summary.total_issues} "
        f"(high {summary.high}, medium {summary.medium}, low {summary.low})"
    )


def _issue_line(issue: Issue, *, color: bool) -> str:
    severity = _style(issue.severity.upper(), color, fg=_SEVERITY_COLORS[issue.severity])
    return f"{issue.line}: [{severity}] {issue.message}"


def _worst_results(results: Sequence[AnalysisResult]) -> list[AnalysisResult]:
    return sorted(results, key=lambda item: (item.score, item.file_path))


def _signed(value: float) -> str:
    return f"+{_number(value)}" if value > 0 else _number(value)


def _number(value: float) -> str:
    return f"{value:g}" if isinstance(value, float) else str(value)


def _style(text: str, color: bool, **styles: Any) -> str:
    if not color:
        return text
    return click.style(text, **styles)
