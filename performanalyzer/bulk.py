"""Directory discovery and parallel analysis of many files."""

from __future__ import annotations

import fnmatch
import os
import threading
from collections.abc import Iterable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path

import structlog

from performanalyzer.analysis import DEFAULT_EXTENSIONS, analyze_file, relative_display_path
from performanalyzer.detector import Detector
from performanalyzer.errors import AnalysisAborted, ConfigError, InputError
from performanalyzer.models import AnalysisResult
from performanalyzer.scoring import DEFAULT_WEIGHTS, ScoreWeights

log = structlog.get_logger(__name__)

DEFAULT_EXCLUDE = ("node_modules", ".git", "dist", "build")
DEFAULT_MAX_FILES = 1000
DEFAULT_WORKERS = 4


@dataclass(frozen=True, slots=True)
class SkippedFile:
    """A file that could not be analyzed and was left out of the run."""

    file_path: str
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {"file_path": self.file_path, "reason": self.reason}


@dataclass(frozen=True, slots=True)
class DiscoveredFiles:
    paths: tuple[Path, ...]
    truncated: bool = False


@dataclass(frozen=True, slots=True)
class BulkResult:
    """Per-file results of a run, sorted by path."""

    results: tuple[AnalysisResult, ...]
    skipped: tuple[SkippedFile, ...] = ()
    truncated: bool = False

    @property
    def files_discovered(self) -> int:
        return len(self.results) + len(self.skipped)


def discover_files(
    root: Path,
    *,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    exclude: Iterable[str] = DEFAULT_EXCLUDE,
    max_files: int = DEFAULT_MAX_FILES,
) -> DiscoveredFiles:
    """Walk ``root`` in sorted order and collect analyzable files.

    Exclude entries match either a single path component (``node_modules``) or
    a glob against the root-relative posix path (``src/**/*.test.tsx``).

    Raises:
        InputError: ``root`` is not a directory.
        ConfigError: ``max_files`` is not positive.
    """
    if max_files <= 0:
        raise ConfigError(f"max_files must be > 0, got {max_files}")
    if not root.is_dir():
        raise InputError(f"Not a directory: {root}", path=str(root))

    allowed = {ext.lower() for ext in extensions}
    patterns = [item.strip().strip("/") for item in exclude if item.strip()]
    found: list[Path] = []

    for current, dir_names, file_names in os.walk(root):
        current_path = Path(current)
        dir_names[:] = sorted(
            name
            for name in dir_names
            if not _is_excluded(_relative(current_path / name, root), name, patterns)
        )
        for name in sorted(file_names):
            path = current_path / name
            if path.suffix.lower() not in allowed:
                continue
            if _is_excluded(_relative(path, root), name, patterns):
                continue
            if len(found) >= max_files:
                log.warning("discovery_truncated", root=str(root), max_files=max_files)
                return DiscoveredFiles(paths=tuple(found), truncated=True)
            found.append(path)

    return DiscoveredFiles(paths=tuple(found))


def analyze_paths(
    paths: Sequence[Path],
    *,
    detector: Detector,
    weights: ScoreWeights = DEFAULT_WEIGHTS,
    root: Path | None = None,
    extensions: Iterable[str] | None = DEFAULT_EXTENSIONS,
    workers: int = DEFAULT_WORKERS,
    cancel: threading.Event | None = None,
    truncated: bool = False,
) -> BulkResult:
    """Analyze ``paths`` on a thread pool sharing one detector.

    Files that cannot be read are reported as skipped. Setting ``cancel`` (or
    interrupting the collecting thread) abandons the run.

    Raises:
        AnalysisAborted: the run was cancelled before results were collected.
    """
    if workers <= 0:
        raise ConfigError(f"workers must be > 0, got {workers}")
    cancel = cancel if cancel is not None else threading.Event()
    allowed = tuple(extensions) if extensions is not None else None
    unique = _unique_paths(paths)

    def _analyze_one(path: Path) -> AnalysisResult | None:
        if cancel.is_set():
            return None
        return analyze_file(
            path, detector=detector, weights=weights, root=root, extensions=allowed
        )

    results: list[AnalysisResult] = []
    skipped: list[SkippedFile] = []
    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="performanalyzer")
    try:
        futures: dict[Future[AnalysisResult | None], Path] = {
            executor.submit(_analyze_one, path): path for path in unique
        }
        for future in as_completed(futures):
            if cancel.is_set():
                break
            try:
                result = future.result()
            except InputError as exc:
                file_path = exc.path or relative_display_path(futures[future], root)
                log.info("file_skipped", file_path=file_path, reason=str(exc))
                skipped.append(SkippedFile(file_path=file_path, reason=str(exc)))
                continue
            if result is not None:
                results.append(result)
    except KeyboardInterrupt:
        cancel.set()
    finally:
        aborted = cancel.is_set()
        executor.shutdown(wait=not aborted, cancel_futures=aborted)

    if cancel.is_set():
        raise AnalysisAborted(
            f"Analysis aborted after {len(results)} of {len(unique)} files; no snapshot was written"
        )

    results.sort(key=lambda item: item.file_path)
    skipped.sort(key=lambda item: item.file_path)
    return BulkResult(results=tuple(results), skipped=tuple(skipped), truncated=truncated)


def analyze_directory(
    root: Path,
    *,
    detector: Detector,
    weights: ScoreWeights = DEFAULT_WEIGHTS,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    exclude: Iterable[str] = DEFAULT_EXCLUDE,
    max_files: int = DEFAULT_MAX_FILES,
    workers: int = DEFAULT_WORKERS,
    cancel: threading.Event | None = None,
) -> BulkResult:
    """Discover files under ``root`` and analyze them in parallel."""
    extensions = tuple(extensions)
    discovered = discover_files(root, extensions=extensions, exclude=exclude, max_files=max_files)
    return analyze_paths(
        discovered.paths,
        detector=detector,
        weights=weights,
        root=root,
        extensions=extensions,
        workers=workers,
        cancel=cancel,
        truncated=discovered.truncated,
    )


def _unique_paths(paths: Sequence[Path]) -> list[Path]:
    seen: set[Path] = set()
    unique: list[Path] = []
    for path in paths:
        key = path.resolve()
        if key in seen:
            continue
        seen.add(key)
        unique.append(path)
    return unique


def _relative(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def _is_excluded(relative_path: str, name: str, patterns: list[str]) -> bool:
    parts = relative_path.split("/")
    for pattern in patterns:
        if name == pattern or pattern in parts:
            return True
        if fnmatch.fnmatch(relative_path, pattern) or fnmatch.fnmatch(name, pattern):
            return True
    return False
