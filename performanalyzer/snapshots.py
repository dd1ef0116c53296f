"""File-backed storage for run snapshots, baselines and CI artifacts.

Layout of the snapshot directory::

    snapshot-<id>.json       one per run, never overwritten
    baseline-<branch>.json   current baseline of a branch, replaced atomically
    report-<id>.json         CI report of a run
    comment-<id>.md          pull request comment of a run
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path

import structlog

from performanalyzer import __version__
from performanalyzer.errors import StorageError
from performanalyzer.models import Snapshot
from performanalyzer.scoring import DEFAULT_WEIGHTS, ScoreWeights

log = structlog.get_logger(__name__)

DEFAULT_SNAPSHOTS_DIR = ".performance-snapshots"

_SNAPSHOT_PREFIX = "snapshot-"
_BASELINE_PREFIX = "baseline-"
_SAFE_NAME = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True, slots=True)
class BaselineResolution:
    """Which snapshot a run is compared against.

    ``bootstrap`` is set when the run is on the baseline branch and no baseline
    exists yet; the run then becomes the first baseline.
    """

    snapshot: Snapshot | None
    bootstrap: bool = False
    notice: str | None = None


class SnapshotStore:
    """Read and write snapshots under one flat directory."""

    def __init__(self, directory: Path, *, weights: ScoreWeights = DEFAULT_WEIGHTS) -> None:
        self.directory = directory
        self.weights = weights

    def snapshot_path(self, snapshot_id: str) -> Path:
        return self.directory / f"{_SNAPSHOT_PREFIX}{_safe_name(snapshot_id)}.json"

    def baseline_path(self, branch: str) -> Path:
        return self.directory / f"{_BASELINE_PREFIX}{branch_slug(branch)}.json"

    def report_path(self, snapshot_id: str) -> Path:
        return self.directory / f"report-{_safe_name(snapshot_id)}.json"

    def comment_path(self, snapshot_id: str) -> Path:
        return self.directory / f"comment-{_safe_name(snapshot_id)}.md"

    def ensure_writable(self) -> None:
        """Create the directory and prove it accepts new files.

        Raises:
            StorageError: the directory cannot be created or written.
        """
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(dir=self.directory, prefix=".write-check-"):
                pass
        except OSError as exc:
            raise StorageError(
                f"Snapshot directory {self.directory} is not writable: {exc.strerror or exc}"
            ) from exc

    def save(self, snapshot: Snapshot) -> Path:
        """Persist a new snapshot. An existing file with the same id is never replaced.

        Raises:
            StorageError: the id already exists or the file cannot be written.
        """
        path = self.snapshot_path(snapshot.id)
        payload = _dump(snapshot)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with path.open("x", encoding="utf-8") as file_obj:
                file_obj.write(payload)
        except FileExistsError as exc:
            raise StorageError(f"Snapshot {snapshot.id} already exists at {path}") from exc
        except OSError as exc:
            raise StorageError(f"Cannot write snapshot {path}: {exc.strerror or exc}") from exc
        log.info("snapshot_saved", snapshot_id=snapshot.id, path=str(path))
        return path

    def save_baseline(self, snapshot: Snapshot, branch: str) -> Path:
        """Make ``snapshot`` the baseline of ``branch``."""
        path = self.baseline_path(branch)
        self.write_text(path, _dump(snapshot))
        log.info("baseline_promoted", snapshot_id=snapshot.id, branch=branch, path=str(path))
        return path

    def write_text(self, path: Path, text: str) -> Path:
        """Atomically replace ``path`` with ``text``."""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=path.parent,
                prefix=f".{path.name}.",
                suffix=".tmp",
                delete=False,
            ) as temp_file:
                temp_file.write(text)
                temp_path = Path(temp_file.name)
            os.replace(temp_path, path)
        except OSError as exc:
            raise StorageError(f"Cannot write {path}: {exc.strerror or exc}") from exc
        return path

    def load(self, snapshot_id: str) -> Snapshot | None:
        return self._read(self.snapshot_path(snapshot_id))

    def load_baseline(self, branch: str) -> Snapshot | None:
        """Return the baseline of ``branch``.

        The baseline file and the newest stored snapshot tagged with the
        branch are both considered; whichever run is more recent wins.
        """
        candidates = [
            snapshot
            for snapshot in (
                self._read(self.baseline_path(branch)),
                self.load_latest(branch=branch),
            )
            if snapshot is not None
        ]
        if not candidates:
            return None
        # Ids start with a UTC timestamp, so the larger id is the newer run.
        return max(candidates, key=lambda snapshot: snapshot.id)

    def load_latest(self, *, branch: str | None = None) -> Snapshot | None:
        # Snapshot ids start with a UTC timestamp, so name order is time order.
        for path in sorted(self._snapshot_files(), reverse=True):
            snapshot = self._read(path)
            if snapshot is None:
                continue
            if branch is None or snapshot.branch == branch:
                return snapshot
        return None

    def resolve_baseline(
        self,
        current_branch: str | None,
        baseline_branch: str,
        baseline_id: str | None = None,
    ) -> BaselineResolution:
        """Pick the snapshot a run on ``current_branch`` is compared against."""
        if baseline_id:
            snapshot = self.load(baseline_id)
            if snapshot is None:
                return BaselineResolution(
                    snapshot=None,
                    notice=f"Baseline snapshot '{baseline_id}' was not found; skipping comparison.",
                )
            return BaselineResolution(snapshot=snapshot)

        snapshot = self.load_baseline(baseline_branch)
        if snapshot is not None:
            return BaselineResolution(snapshot=snapshot)

        if current_branch == baseline_branch:
            return BaselineResolution(
                snapshot=None,
                bootstrap=True,
                notice=(
                    f"No baseline for '{baseline_branch}' yet; "
                    "this run becomes the baseline."
                ),
            )
        return BaselineResolution(
            snapshot=None,
            notice=(
                f"No baseline found for '{baseline_branch}'; "
                "run the ci command on that branch first."
            ),
        )

    def _snapshot_files(self) -> list[Path]:
        if not self.directory.is_dir():
            return []
        return list(self.directory.glob(f"{_SNAPSHOT_PREFIX}*.json"))

    def _read(self, path: Path) -> Snapshot | None:
        if not path.is_file():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            return Snapshot.from_dict(payload, weights=self.weights)
        except (OSError, ValueError, KeyError, TypeError) as exc:
            log.warning("baseline_unreadable", path=str(path), error=str(exc))
            return None


def branch_slug(branch: str) -> str:
    """File-name-safe form of a branch name (``feature/x`` -> ``feature-x``)."""
    slug = _SAFE_NAME.sub("-", branch.replace("/", "-")).strip("-.")
    return slug or "default"


def _safe_name(value: str) -> str:
    return _SAFE_NAME.sub("-", value)


def _dump(snapshot: Snapshot) -> str:
    return json.dumps(snapshot.to_dict(version=__version__), indent=2, sort_keys=True) + "\n"
