"""Tests for baseline comparison and the pass/warn/fail verdict."""

from __future__ import annotations

import dataclasses

import pytest

from performanalyzer.models import Thresholds
from performanalyzer.regression import compare, compare_summaries
from performanalyzer.scoring import SnapshotSummary
from tests.helpers_snapshots import make_result, make_snapshot

BASELINE = SnapshotSummary(score=90, total_issues=5, high=1, medium=2, low=2, files_analyzed=3)


def test_score_drop_beyond_tolerance_fails() -> None:
    current = SnapshotSummary(score=84, total_issues=12, high=3, medium=5, low=4, files_analyzed=3)
    report = compare_summaries(current, BASELINE, Thresholds())

    assert report.score_delta == -6
    assert report.severity_deltas == {"high": 2, "medium": 3, "low": 2}
    assert report.total_issues_delta == 7
    assert report.has_regressions is True
    assert report.status == "fail"
    assert [change.metric for change in report.regressions] == ["score"]
    assert report.regressions[0].threshold == 5


def test_small_changes_within_tolerance_pass() -> None:
    current = SnapshotSummary(score=88, total_issues=6, high=1, medium=3, low=2, files_analyzed=3)
    report = compare_summaries(current, BASELINE, Thresholds())

    assert report.score_delta == -2
    assert report.has_regressions is False
    assert report.status == "pass"
    assert report.regressions == ()
    assert report.improvements == ()


def test_every_threshold_is_checked_independently() -> None:
    current = SnapshotSummary(score=90, total_issues=20, high=4, medium=8, low=8, files_analyzed=3)
    report = compare_summaries(current, BASELINE, Thresholds())
    assert [change.metric for change in report.regressions] == ["high", "total_issues"]


def test_regressions_only_warn_when_failing_is_disabled() -> None:
    current = SnapshotSummary(score=70, total_issues=5, high=1, medium=2, low=2, files_analyzed=3)
    report = compare_summaries(current, BASELINE, Thresholds(), fail_on_regression=False)
    assert report.has_regressions is True
    assert report.status == "warn"


def test_improvements_are_reported_without_changing_status() -> None:
    current = SnapshotSummary(score=95, total_issues=3, high=0, medium=1, low=2, files_analyzed=3)
    report = compare_summaries(current, BASELINE, Thresholds())

    assert report.status == "pass"
    assert [change.metric for change in report.improvements] == [
        "score",
        "high",
        "medium",
        "total_issues",
    ]


def test_score_gain_below_minimum_is_not_an_improvement() -> None:
    current = SnapshotSummary(score=91, total_issues=5, high=1, medium=2, low=2, files_analyzed=3)
    report = compare_summaries(current, BASELINE, Thresholds(min_score_improvement=2))
    assert report.improvements == ()


def test_zero_tolerance_turns_any_increase_into_a_regression() -> None:
    thresholds = Thresholds(
        max_score_regression=0,
        max_high_severity_increase=0,
        max_total_issues_increase=0,
        min_score_improvement=0,
    )
    current = SnapshotSummary(score=89, total_issues=6, high=2, medium=2, low=2, files_analyzed=3)
    report = compare_summaries(current, BASELINE, thresholds)
    assert [change.metric for change in report.regressions] == ["score", "high", "total_issues"]


def test_comparing_a_snapshot_with_itself_is_a_fixed_point() -> None:
    snapshot = make_snapshot(make_result("a.ts", high=1, low=2), make_result("b.ts", medium=1))
    report = compare(snapshot, snapshot, Thresholds(min_score_improvement=0))

    assert report.score_delta == 0
    assert report.severity_deltas == {"high": 0, "medium": 0, "low": 0}
    assert report.total_issues_delta == 0
    assert report.status == "pass"
    assert report.has_regressions is False
    assert report.regressions == ()
    assert report.improvements == ()
    assert report.file_deltas == ()


def test_compare_reports_file_level_changes() -> None:
    baseline = make_snapshot(make_result("a.ts"), make_result("gone.ts"), minute=1)
    current = make_snapshot(make_result("a.ts", high=1), make_result("new.ts"), minute=2)
    report = compare(current, baseline, Thresholds())

    assert report.current_id == current.id
    assert report.baseline_id == baseline.id
    assert [(delta.file_path, delta.change, delta.delta) for delta in report.file_deltas] == [
        ("a.ts", "changed", -10),
        ("gone.ts", "removed", -100),
        ("new.ts", "added", 100),
    ]
    assert report.to_dict()["file_deltas"][0]["change"] == "changed"


def test_comparison_report_cannot_be_mutated() -> None:
    baseline = make_snapshot(make_result("a.ts"), minute=1)
    current = make_snapshot(make_result("a.ts", high=1), minute=2)
    report = compare(current, baseline, Thresholds())

    assert isinstance(report.regressions, tuple)
    assert isinstance(report.improvements, tuple)
    assert isinstance(report.file_deltas, tuple)
    with pytest.raises(TypeError):
        report.severity_deltas["high"] = 0  # type: ignore[index]
    with pytest.raises(dataclasses.FrozenInstanceError):
        report.status = "pass"  # type: ignore[misc]
    assert report.severity_deltas["high"] == 1
    assert report.to_dict()["severity_deltas"] == {"high": 1, "medium": 0, "low": 0}
