"""Apply a RuleSet to one file's source text."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

import structlog

from performanalyzer.errors import ConfigError
from performanalyzer.models import Issue
from performanalyzer.rules import RuleSet, default_rule_set
from performanalyzer.rules.base import SourceText

log = structlog.get_logger(__name__)

DEFAULT_MAX_LINES = 10_000
DEFAULT_TIMEOUT_SECONDS = 10.0
TIMEOUT_RULE_ID = "analysis_timeout"


class Detector:
    """Run every rule of a RuleSet over a file and order the findings.

    The detector holds no per-file state, so one instance can be shared by
    worker threads.
    """

    def __init__(
        self,
        rule_set: RuleSet | None = None,
        *,
        max_lines: int = DEFAULT_MAX_LINES,
        timeout_seconds: float | None = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_lines <= 0:
            raise ConfigError(f"max_lines must be positive, got {max_lines}")
        if timeout_seconds is not None and timeout_seconds <= 0:
            raise ConfigError(f"timeout_seconds must be positive, got {timeout_seconds}")
        self.rule_set = rule_set if rule_set is not None else default_rule_set()
        self.max_lines = max_lines
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._rule_order = {rule.rule_id: index for index, rule in enumerate(self.rule_set)}

    def detect(self, source: str | bytes, file_path: str = "<source>") -> list[Issue]:
        """Return issues ordered by line, then rule declaration order.

        Never raises: undecodable input and failing rules produce no findings.
        """
        text = decode_source(source, file_path)
        if not text:
            return []
        prepared, _ = self.prepare(text)
        return self.detect_prepared(prepared, file_path)

    def prepare(self, text: str) -> tuple[SourceText, bool]:
        """Split text into lines, truncating to ``max_lines``."""
        lines = text.split("\n")
        truncated = len(lines) > self.max_lines
        if truncated:
            text = "\n".join(lines[: self.max_lines])
        return (SourceText.from_text(text), truncated)

    def detect_prepared(self, source: SourceText, file_path: str) -> list[Issue]:
        """Run the rules over already prepared text.

        With a timeout configured the rules run on a helper thread. When the
        wall-clock wait expires the file gets the single timeout issue and the
        helper is told to stop at its next checkpoint.
        """
        if not source.text:
            return []
        if self.timeout_seconds is None:
            issues = self._run_rules(source, file_path, None, threading.Event())
            return issues if issues is not None else [self._timeout_issue(file_path)]

        deadline = self._clock() + self.timeout_seconds
        abandoned = threading.Event()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="performanalyzer-detect")
        try:
            future = executor.submit(self._run_rules, source, file_path, deadline, abandoned)
            issues = future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError:
            abandoned.set()
            issues = None
        finally:
            # A rule stuck in C code cannot be interrupted; it is left to finish
            # in the background.
            executor.shutdown(wait=False, cancel_futures=True)

        if issues is None:
            return [self._timeout_issue(file_path)]
        return issues

    def _run_rules(
        self,
        source: SourceText,
        file_path: str,
        deadline: float | None,
        abandoned: threading.Event,
    ) -> list[Issue] | None:
        """Return ordered issues, or None when the deadline passed."""
        issues: list[Issue] = []
        for rule in self.rule_set:
            if abandoned.is_set() or self._expired(deadline):
                return None
            found: list[Issue] = []
            try:
                for issue in rule.iter_issues(source):
                    found.append(issue)
                    if abandoned.is_set() or self._expired(deadline):
                        return None
            except Exception as exc:
                log.warning(
                    "rule_failed",
                    rule_id=rule.rule_id,
                    file_path=file_path,
                    error=f"{exc.__class__.__name__}: {exc}",
                )
                continue
            issues.extend(found)

        # The last rule may have run past the deadline without yielding a match.
        if abandoned.is_set() or self._expired(deadline):
            return None
        issues.sort(key=self._sort_key)
        return issues

    def _sort_key(self, issue: Issue) -> tuple[int, int, int]:
        rule_index = self._rule_order.get(issue.rule_id, len(self._rule_order))
        return (issue.line, rule_index, issue.column)

    def _expired(self, deadline: float | None) -> bool:
        return deadline is not None and self._clock() > deadline

    def _timeout_issue(self, file_path: str) -> Issue:
        log.warning("analysis_timed_out", file_path=file_path, timeout=self.timeout_seconds)
        return Issue(
            rule_id=TIMEOUT_RULE_ID,
            line=1,
            severity="low",
            message=(
                f"Analysis timed out after {self.timeout_seconds:g}s; "
                "findings for this file were discarded."
            ),
            suggestion="Split the file or raise the per-file timeout.",
        )


def decode_source(source: str | bytes, file_path: str) -> str:
    if isinstance(source, str):
        return source
    try:
        return source.decode("utf-8-sig")
    except UnicodeDecodeError:
        log.info("undecodable_source", file_path=file_path)
        return ""
