"""Build per-file analysis results from detector output."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from performanalyzer.detector import Detector, decode_source
from performanalyzer.errors import InputError
from performanalyzer.models import AnalysisResult
from performanalyzer.scoring import DEFAULT_WEIGHTS, ScoreWeights

DEFAULT_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx")


def analyze_source(
    source: str | bytes,
    file_path: str,
    *,
    detector: Detector,
    weights: ScoreWeights = DEFAULT_WEIGHTS,
) -> AnalysisResult:
    """Analyze in-memory source text."""
    text = decode_source(source, file_path)
    prepared, truncated = detector.prepare(text)
    issues = detector.detect_prepared(prepared, file_path)
    return AnalysisResult(
        file_path=file_path,
        issues=tuple(issues),
        weights=weights,
        lines_analyzed=prepared.line_count,
        truncated=truncated,
    )


def analyze_file(
    path: Path,
    *,
    detector: Detector,
    weights: ScoreWeights = DEFAULT_WEIGHTS,
    root: Path | None = None,
    extensions: Iterable[str] | None = DEFAULT_EXTENSIONS,
) -> AnalysisResult:
    """Read and analyze one file.

    Raises:
        InputError: the file is missing, unreadable or has an unsupported extension.
    """
    display_path = relative_display_path(path, root)
    if not path.exists():
        raise InputError(f"File not found: {display_path}", path=display_path)
    if not path.is_file():
        raise InputError(f"Not a file: {display_path}", path=display_path)
    if extensions is not None:
        allowed = {ext.lower() for ext in extensions}
        if path.suffix.lower() not in allowed:
            choices = ", ".join(sorted(allowed))
            raise InputError(
                f"Unsupported file extension '{path.suffix}' for {display_path} "
                f"(expected one of: {choices})",
                path=display_path,
            )
    try:
        raw = path.read_bytes()
    except OSError as exc:
        reason = exc.strerror or str(exc)
        raise InputError(f"Cannot read {display_path}: {reason}", path=display_path) from exc

    return analyze_source(raw, display_path, detector=detector, weights=weights)


def relative_display_path(path: Path, root: Path | None) -> str:
    if root is not None:
        try:
            return path.resolve().relative_to(root.resolve()).as_posix()
        except ValueError:
            pass
    return path.as_posix()

