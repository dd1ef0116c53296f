"""Rules for React hook usage: effect dependencies and stale closures."""

from __future__ import annotations

import re
from collections.abc import Iterator

from performanalyzer.rules.base import Rule, RuleMatch, SourceText, iter_calls, pattern_matcher

_EFFECT_CALLEE = r"\b(?P<name>useEffect|useLayoutEffect)"
_DEPENDENCY_HOOK_CALLEE = r"\b(?P<name>useEffect|useLayoutEffect|useMemo|useCallback)"
_TIMER_RE = re.compile(r"\bset(?:Interval|Timeout)\s*\(")
_SETTER_UPDATE_RE = re.compile(
    r"\b(?P<setter>set[A-Z][\w$]*)\(\s*(?P<state>[a-z_$][\w$]*)\s*[-+*/]"
)


def _effects_without_dependencies(source: SourceText) -> Iterator[RuleMatch]:
    for call in iter_calls(source.text, _EFFECT_CALLEE):
        if not call.closed or len(call.arguments) != 1:
            continue
        line, column = source.position(call.offset)
        yield RuleMatch(line=line, column=column, context={"hook": call.name})


def _unstable_dependencies(source: SourceText) -> Iterator[RuleMatch]:
    for call in iter_calls(source.text, _DEPENDENCY_HOOK_CALLEE):
        deps = call.argument(1)
        if deps is None or not deps.startswith("[") or not deps.endswith("]"):
            continue
        kind = _inline_value_kind(deps[1:-1])
        if kind is None:
            continue
        line, column = source.position(call.argument_offset(1))
        yield RuleMatch(line=line, column=column, context={"hook": call.name, "kind": kind})


def _stale_timer_closures(source: SourceText) -> Iterator[RuleMatch]:
    for call in iter_calls(source.text, _EFFECT_CALLEE):
        deps = call.argument(1)
        if deps is None or deps.replace(" ", "") != "[]":
            continue
        body = call.arguments[0][0]
        if _TIMER_RE.search(body) is None:
            continue
        body_offset = call.arguments[0][1]
        for found in _SETTER_UPDATE_RE.finditer(body):
            setter = found.group("setter")
            state = found.group("state")
            if _state_name_for(setter) != state:
                continue
            line, column = source.position(body_offset + found.start())
            yield RuleMatch(
                line=line,
                column=column,
                context={"setter": setter, "state": state, "hook": call.name},
            )


def _inline_value_kind(dependencies: str) -> str | None:
    stripped = dependencies.strip()
    if not stripped:
        return None
    if "=>" in stripped or re.search(r"\bfunction\b", stripped):
        return "function"
    if re.search(r"(^|,)\s*\{", stripped):
        return "object"
    if re.search(r"(^|,)\s*\[", stripped):
        return "array"
    if re.search(r"\bnew\s+[A-Z]", stripped):
        return "instance"
    return None


def _state_name_for(setter: str) -> str:
    name = setter[3:]
    return name[:1].lower() + name[1:]


RULES = (
    Rule(
        rule_id="effect_missing_deps",
        severity="high",
        matcher=_effects_without_dependencies,
        message="{hook} has no dependency array and re-runs after every render.",
        suggestion=(
            "Pass a dependency array listing the values the effect reads, "
            "or [] to run it only on mount."
        ),
        category="hooks",
        modes=("quick",),
        description="Effects declared without a dependency array.",
    ),
    Rule(
        rule_id="async_effect_callback",
        severity="medium",
        matcher=pattern_matcher(r"\b(?P<hook>useEffect|useLayoutEffect)\s*\(\s*async\b"),
        message="{hook} callback is async, so its cleanup is a Promise and never runs.",
        suggestion="Declare an async function inside the effect and call it.",
        category="hooks",
        modes=("quick",),
        description="Async functions passed directly to effects.",
    ),
    Rule(
        rule_id="unstable_effect_deps",
        severity="medium",
        matcher=_unstable_dependencies,
        message="Dependency array of {hook} contains an inline {kind}, so it changes every render.",
        suggestion="Hoist the value, or memoize it with useMemo/useCallback before listing it.",
        category="hooks",
        modes=("quick",),
        description="Inline objects, arrays or functions inside hook dependency arrays.",
    ),
    Rule(
        rule_id="stale_closure_timer",
        severity="medium",
        matcher=_stale_timer_closures,
        message=(
            "{setter}({state} ...) runs in a timer inside an effect with empty "
            "dependencies and reads a stale '{state}'."
        ),
        suggestion=(
            "Use the functional form {setter}(prev => ...) or list '{state}' as a dependency."
        ),
        category="hooks",
        description="Timer callbacks that capture state from the first render.",
    ),
)
