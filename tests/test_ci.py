"""End-to-end tests for the CI flow against a temporary project."""

from __future__ import annotations

import json
import threading
from datetime import UTC, datetime
from pathlib import Path

import pytest

from performanalyzer.ci import CiOptions, run_ci
from performanalyzer.detector import Detector
from performanalyzer.errors import AnalysisAborted, StorageError
from performanalyzer.snapshots import SnapshotStore

CLEAN = "export const answer = 42;\n"
LEAKY = "setInterval(a, 10);\nsetInterval(b, 10);\nsetInterval(c, 10);\n"


def _project(tmp_path: Path, *, leaky: bool = False) -> Path:
    src = tmp_path / "src"
    src.mkdir(exist_ok=True)
    (src / "clean.ts").write_text(CLEAN, encoding="utf-8")
    (src / "timer.ts").write_text(LEAKY if leaky else CLEAN, encoding="utf-8")
    return src


def _options(tmp_path: Path, **overrides: object) -> CiOptions:
    values: dict[str, object] = {
        "directory": tmp_path / "src",
        "snapshots_dir": tmp_path / ".performance-snapshots",
        "branch": "main",
        "commit": "abc123",
    }
    values.update(overrides)
    return CiOptions(**values)  # type: ignore[arg-type]


def _run(options: CiOptions, minute: int = 0, **kwargs: object):
    return run_ci(
        options,
        detector=Detector(),
        env={},
        now=datetime(2026, 3, 1, 9, minute, tzinfo=UTC),
        **kwargs,  # type: ignore[arg-type]
    )


def test_first_run_on_baseline_branch_becomes_the_baseline(tmp_path: Path) -> None:
    _project(tmp_path)
    outcome = _run(_options(tmp_path))

    assert outcome.resolution.bootstrap is True
    assert outcome.comparison is None
    assert outcome.status == "pass"
    assert outcome.exit_code == 0
    assert outcome.snapshot_path.is_file()
    assert outcome.baseline_path == tmp_path / ".performance-snapshots" / "baseline-main.json"
    assert outcome.snapshot.summary.score == 100
    assert outcome.snapshot.summary.files_analyzed == 2


def test_feature_branch_without_baseline_passes_with_notice(tmp_path: Path) -> None:
    _project(tmp_path, leaky=True)
    outcome = _run(_options(tmp_path, branch="feature/x"))

    assert outcome.comparison is None
    assert outcome.status == "pass"
    assert outcome.baseline_path is None
    assert "No baseline found for 'main'" in (outcome.resolution.notice or "")


def test_regression_against_baseline_fails_the_run(tmp_path: Path) -> None:
    _project(tmp_path)
    baseline = _run(_options(tmp_path), minute=0)

    _project(tmp_path, leaky=True)
    outcome = _run(_options(tmp_path, branch="feature/x"), minute=1)

    assert outcome.snapshot.result_for("timer.ts").score == 70  # type: ignore[union-attr]
    assert outcome.snapshot.summary.score == 85
    assert outcome.comparison is not None
    assert outcome.comparison.baseline_id == baseline.snapshot.id
    assert outcome.comparison.score_delta == -15
    assert outcome.comparison.has_regressions is True
    assert outcome.status == "fail"
    assert outcome.exit_code == 1
    assert [change.metric for change in outcome.comparison.regressions] == ["score", "high"]


def test_regression_only_warns_when_failing_is_disabled(tmp_path: Path) -> None:
    _project(tmp_path)
    _run(_options(tmp_path), minute=0)

    _project(tmp_path, leaky=True)
    outcome = _run(_options(tmp_path, branch="feature/x", fail_on_regression=False), minute=1)

    assert outcome.comparison is not None
    assert outcome.comparison.has_regressions is True
    assert outcome.status == "warn"
    assert outcome.exit_code == 0


def _pinned_id(store: SnapshotStore) -> str:
    return json.loads(store.baseline_path("main").read_text(encoding="utf-8"))["id"]


def test_baseline_is_not_promoted_without_request(tmp_path: Path) -> None:
    _project(tmp_path)
    first = _run(_options(tmp_path), minute=0)
    second = _run(_options(tmp_path), minute=1)

    store = SnapshotStore(tmp_path / ".performance-snapshots")
    assert second.baseline_path is None
    assert _pinned_id(store) == first.snapshot.id
    assert store.load_baseline("main") == second.snapshot

    third = _run(_options(tmp_path, update_baseline=True), minute=2)
    assert third.baseline_path is not None
    assert _pinned_id(store) == third.snapshot.id


def test_failing_run_never_rewrites_the_baseline_file(tmp_path: Path) -> None:
    _project(tmp_path)
    first = _run(_options(tmp_path), minute=0)

    _project(tmp_path, leaky=True)
    outcome = _run(_options(tmp_path, update_baseline=True), minute=1)

    assert outcome.status == "fail"
    assert outcome.baseline_path is None
    store = SnapshotStore(tmp_path / ".performance-snapshots")
    assert _pinned_id(store) == first.snapshot.id


def test_report_and_comment_artifacts_are_written_on_request(tmp_path: Path) -> None:
    _project(tmp_path)
    _run(_options(tmp_path), minute=0)
    _project(tmp_path, leaky=True)
    outcome = _run(
        _options(
            tmp_path,
            branch="feature/x",
            output_formats=("console", "json", "github-comment"),
        ),
        minute=1,
    )

    assert outcome.report_path is not None
    report = json.loads(outcome.report_path.read_text(encoding="utf-8"))
    assert report["summary"]["status"] == "fail"
    assert report["summary"]["score"] == 85
    assert report["summary"]["baseline_score"] == 100
    assert report["has_regressions"] is True
    assert report["snapshot_id"] == outcome.snapshot.id
    assert report["generated_at"] == "2026-03-01T09:01:00Z"

    assert outcome.comment_path is not None
    comment = outcome.comment_path.read_text(encoding="utf-8")
    assert comment.startswith("## Performance check failed")
    assert "### Regressions" in comment
    assert "`timer.ts`: 70/100" in comment


def test_console_only_run_writes_no_artifacts(tmp_path: Path) -> None:
    _project(tmp_path)
    outcome = _run(_options(tmp_path))
    assert outcome.report_path is None
    assert outcome.comment_path is None
    names = sorted(path.name for path in (tmp_path / ".performance-snapshots").iterdir())
    assert names == ["baseline-main.json", outcome.snapshot_path.name]


def test_cancelled_run_writes_nothing(tmp_path: Path) -> None:
    _project(tmp_path)
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(AnalysisAborted):
        _run(_options(tmp_path), cancel=cancel)
    snapshots_dir = tmp_path / ".performance-snapshots"
    assert list(snapshots_dir.glob("*.json")) == []


def test_unwritable_snapshot_directory_fails_before_analysis(tmp_path: Path) -> None:
    _project(tmp_path)
    blocker = tmp_path / "blocked"
    blocker.write_text("", encoding="utf-8")

    with pytest.raises(StorageError):
        _run(_options(tmp_path, snapshots_dir=blocker))
