"""Rule model and matcher builders."""

from __future__ import annotations

import bisect
import re
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field

from performanalyzer.models import Issue, Severity

_COMMENT_PREFIXES = ("//", "/*", "*")


@dataclass(frozen=True, slots=True)
class SourceText:
    """Source text with precomputed line offsets."""

    text: str
    lines: tuple[str, ...]
    line_starts: tuple[int, ...]

    @classmethod
    def from_text(cls, text: str) -> SourceText:
        lines = text.split("\n")
        starts: list[int] = []
        offset = 0
        for line in lines:
            starts.append(offset)
            offset += len(line) + 1
        return cls(text=text, lines=tuple(lines), line_starts=tuple(starts))

    @property
    def line_count(self) -> int:
        if not self.text:
            return 0
        return len(self.lines)

    def position(self, offset: int) -> tuple[int, int]:
        """Return the 1-based (line, column) of a character offset."""
        index = bisect.bisect_right(self.line_starts, max(0, offset)) - 1
        index = max(0, index)
        return (index + 1, offset - self.line_starts[index] + 1)


@dataclass(frozen=True, slots=True)
class RuleMatch:
    """Location of one matcher hit plus values for the rule's templates."""

    line: int
    column: int = 1
    context: Mapping[str, str] = field(default_factory=dict)


Matcher = Callable[[SourceText], Iterable[RuleMatch]]


@dataclass(frozen=True, slots=True)
class Rule:
    """A named detector for one anti-pattern with a fixed severity."""

    rule_id: str
    severity: Severity
    matcher: Matcher
    message: str
    suggestion: str = ""
    category: str = "performance"
    modes: tuple[str, ...] = ()
    description: str = ""

    def iter_issues(self, source: SourceText) -> Iterator[Issue]:
        last_line = max(1, source.line_count)
        for match in self.matcher(source):
            values = _TemplateValues(match.context)
            yield Issue(
                rule_id=self.rule_id,
                line=min(max(1, match.line), last_line),
                severity=self.severity,
                message=self.message.format_map(values),
                suggestion=self.suggestion.format_map(values),
                column=max(1, match.column),
            )

    def evaluate(self, source: SourceText) -> list[Issue]:
        return list(self.iter_issues(source))


@dataclass(frozen=True, slots=True)
class CallSite:
    """A call expression located in source text."""

    name: str
    offset: int
    arguments: tuple[tuple[str, int], ...]
    closed: bool

    def argument(self, index: int) -> str | None:
        if index >= len(self.arguments):
            return None
        return self.arguments[index][0].strip()

    def argument_offset(self, index: int) -> int:
        if index >= len(self.arguments):
            return self.offset
        text, start = self.arguments[index]
        return start + (len(text) - len(text.lstrip()))


def pattern_matcher(
    regex: str,
    *,
    flags: int = 0,
    when: str | None = None,
    unless: str | None = None,
    defaults: Mapping[str, str] | None = None,
) -> Matcher:
    """Match a regex against the whole text, one RuleMatch per occurrence.

    ``when``/``unless`` are whole-file guards: the rule only runs if ``when``
    is found and ``unless`` is not.
    """
    compiled = re.compile(regex, flags)
    guard = _file_guard(when, unless)

    def match(source: SourceText) -> Iterator[RuleMatch]:
        if not guard(source.text):
            return
        for found in compiled.finditer(source.text):
            line, column = source.position(found.start())
            yield RuleMatch(line=line, column=column, context=_match_context(found, defaults))

    return match


def line_matcher(
    regex: str,
    *,
    flags: int = 0,
    when: str | None = None,
    unless: str | None = None,
    defaults: Mapping[str, str] | None = None,
    skip_comments: bool = True,
) -> Matcher:
    """Match a regex line by line, one RuleMatch per occurrence."""
    compiled = re.compile(regex, flags)
    guard = _file_guard(when, unless)

    def match(source: SourceText) -> Iterator[RuleMatch]:
        if not guard(source.text):
            return
        for index, line in enumerate(source.lines):
            if skip_comments and line.lstrip().startswith(_COMMENT_PREFIXES):
                continue
            for found in compiled.finditer(line):
                yield RuleMatch(
                    line=index + 1,
                    column=found.start() + 1,
                    context=_match_context(found, defaults),
                )

    return match


def iter_calls(text: str, callee: str) -> Iterator[CallSite]:
    """Yield call sites whose callee matches the ``callee`` regex.

    The regex must end right before the opening parenthesis and may capture the
    callee name in a ``name`` group. Arguments are split on top-level commas;
    string literals and comments are skipped while balancing brackets.
    """
    compiled = re.compile(callee + r"\s*\(")
    for found in compiled.finditer(text):
        open_index = found.end() - 1
        arguments, closed = _split_arguments(text, open_index)
        name = found.groupdict().get("name") or found.group(0).rstrip("( \t\n")
        yield CallSite(name=name, offset=found.start(), arguments=arguments, closed=closed)


def _split_arguments(text: str, open_index: int) -> tuple[tuple[tuple[str, int], ...], bool]:
    depth = 0
    index = open_index + 1
    arg_start = index
    arguments: list[tuple[str, int]] = []
    length = len(text)

    while index < length:
        char = text[index]
        if char in "\"'`":
            index = _skip_string(text, index)
            continue
        if char == "/" and index + 1 < length and text[index + 1] in "/*":
            index = _skip_comment(text, index)
            continue
        if char in "([{":
            depth += 1
        elif char in ")]}":
            if depth == 0:
                if char == ")":
                    arguments.append((text[arg_start:index], arg_start))
                    return (_drop_trailing_empty(arguments), True)
                return (_drop_trailing_empty(arguments), False)
            depth -= 1
        elif char == "," and depth == 0:
            arguments.append((text[arg_start:index], arg_start))
            arg_start = index + 1
        index += 1

    arguments.append((text[arg_start:], arg_start))
    return (_drop_trailing_empty(arguments), False)


def _drop_trailing_empty(arguments: list[tuple[str, int]]) -> tuple[tuple[str, int], ...]:
    while arguments and not arguments[-1][0].strip():
        arguments.pop()
    return tuple(arguments)


def _skip_string(text: str, index: int) -> int:
    quote = text[index]
    index += 1
    while index < len(text):
        char = text[index]
        if char == "\\":
            index += 2
            continue
        if char == quote:
            return index + 1
        if char == "\n" and quote != "`":
            return index
        index += 1
    return index


def _skip_comment(text: str, index: int) -> int:
    if text[index + 1] == "/":
        end = text.find("\n", index)
        return len(text) if end == -1 else end
    end = text.find("*/", index + 2)
    return len(text) if end == -1 else end + 2


def _file_guard(when: str | None, unless: str | None) -> Callable[[str], bool]:
    when_re = re.compile(when) if when else None
    unless_re = re.compile(unless) if unless else None

    def guard(text: str) -> bool:
        if when_re is not None and when_re.search(text) is None:
            return False
        if unless_re is not None and unless_re.search(text) is not None:
            return False
        return True

    return guard


def _match_context(found: re.Match[str], defaults: Mapping[str, str] | None) -> dict[str, str]:
    context = dict(defaults or {})
    context.update({key: value for key, value in found.groupdict().items() if value is not None})
    context.setdefault("match", found.group(0).strip())
    return context


class _TemplateValues(dict[str, str]):
    def __missing__(self, key: str) -> str:
        return ""
