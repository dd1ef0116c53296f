"""CI run: analyze, snapshot, compare against the baseline, write artifacts."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import structlog

from performanalyzer.bulk import BulkResult, analyze_directory
from performanalyzer.config import AnalysisConfig
from performanalyzer.detector import Detector
from performanalyzer.git import detect_branch, detect_commit
from performanalyzer.models import ComparisonReport, Snapshot, Status, Thresholds
from performanalyzer.output import build_report_payload, render_pr_comment, render_report_json
from performanalyzer.regression import compare
from performanalyzer.scoring import DEFAULT_WEIGHTS, ScoreWeights
from performanalyzer.snapshots import BaselineResolution, SnapshotStore

log = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CiOptions:
    """Options of one ci invocation after config and flags are merged."""

    directory: Path
    snapshots_dir: Path
    baseline_branch: str = "main"
    thresholds: Thresholds = field(default_factory=Thresholds)
    output_formats: tuple[str, ...] = ("console",)
    fail_on_regression: bool = True
    warn_on_regression: bool = True
    branch: str | None = None
    commit: str | None = None
    baseline_id: str | None = None
    update_baseline: bool = False


@dataclass(frozen=True, slots=True)
class CiOutcome:
    snapshot: Snapshot
    bulk: BulkResult
    resolution: BaselineResolution
    comparison: ComparisonReport | None
    snapshot_path: Path
    baseline_path: Path | None = None
    report_path: Path | None = None
    comment_path: Path | None = None

    @property
    def status(self) -> Status:
        # Without a baseline there is nothing to regress against.
        return self.comparison.status if self.comparison is not None else "pass"

    @property
    def exit_code(self) -> int:
        return 1 if self.status == "fail" else 0


def run_ci(
    options: CiOptions,
    *,
    detector: Detector,
    weights: ScoreWeights = DEFAULT_WEIGHTS,
    analysis: AnalysisConfig | None = None,
    cancel: threading.Event | None = None,
    env: Mapping[str, str] | None = None,
    now: datetime | None = None,
) -> CiOutcome:
    """Run the full CI flow.

    The snapshot store is checked before analysis starts and is not touched
    when the run is aborted.

    Raises:
        StorageError: the snapshot directory is unusable.
        AnalysisAborted: the bulk run was cancelled.
    """
    analysis = analysis or AnalysisConfig()
    store = SnapshotStore(options.snapshots_dir, weights=weights)
    store.ensure_writable()

    bulk = analyze_directory(
        options.directory,
        detector=detector,
        weights=weights,
        extensions=analysis.extensions,
        exclude=analysis.exclude,
        max_files=analysis.max_files,
        workers=analysis.workers,
        cancel=cancel,
    )

    branch = options.branch or detect_branch(options.directory, env)
    commit = options.commit or detect_commit(options.directory, env)
    snapshot = Snapshot.create(bulk.results, branch=branch, commit=commit, now=now)

    resolution = store.resolve_baseline(branch, options.baseline_branch, options.baseline_id)
    snapshot_path = store.save(snapshot)

    comparison = None
    if resolution.snapshot is not None:
        comparison = compare(
            snapshot,
            resolution.snapshot,
            options.thresholds,
            fail_on_regression=options.fail_on_regression,
        )

    baseline_path = None
    if resolution.bootstrap:
        baseline_path = store.save_baseline(snapshot, options.baseline_branch)
    elif (
        options.update_baseline
        and branch == options.baseline_branch
        and (comparison is None or comparison.status == "pass")
    ):
        baseline_path = store.save_baseline(snapshot, options.baseline_branch)

    report_path = None
    if "json" in options.output_formats:
        payload = build_report_payload(snapshot, comparison, notice=resolution.notice, now=now)
        report_path = store.write_text(
            store.report_path(snapshot.id), render_report_json(payload) + "\n"
        )

    comment_path = None
    if "github-comment" in options.output_formats:
        comment = render_pr_comment(
            snapshot,
            comparison,
            notice=resolution.notice,
            warn_on_regression=options.warn_on_regression,
        )
        comment_path = store.write_text(store.comment_path(snapshot.id), comment)

    outcome = CiOutcome(
        snapshot=snapshot,
        bulk=bulk,
        resolution=resolution,
        comparison=comparison,
        snapshot_path=snapshot_path,
        baseline_path=baseline_path,
        report_path=report_path,
        comment_path=comment_path,
    )
    log.info(
        "ci_completed",
        snapshot_id=snapshot.id,
        branch=branch,
        status=outcome.status,
        score=snapshot.summary.score,
    )
    return outcome
