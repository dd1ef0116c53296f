"""Render-path rules: per-render allocations, list keys and memoization."""

from __future__ import annotations

from performanalyzer.rules.base import Rule, line_matcher

_JSX = r"</|/>"
_VIRTUALIZATION = r"react-window|react-virtualized|react-virtuoso|@tanstack/react-virtual"

RULES = (
    Rule(
        rule_id="inline_function_prop",
        severity="medium",
        matcher=line_matcher(
            r"\b(?P<prop>[a-z][\w]*)=\{\s*(?:async\s+)?"
            r"(?:(?:\([^()]*\)|[A-Za-z_$][\w$]*)\s*=>|function\b)"
        ),
        message="Inline function passed to prop '{prop}' is re-created on every render.",
        suggestion="Define the handler with useCallback or outside the render path.",
        category="rendering",
        modes=("quick", "simple"),
        description="Arrow or function expressions written inline in JSX props.",
    ),
    Rule(
        rule_id="unstable_literal_prop",
        severity="medium",
        matcher=line_matcher(r"\b(?P<prop>[A-Za-z_][\w-]*)=\{\s*[\[{]"),
        message=(
            "Inline object or array literal passed to prop '{prop}' creates a new "
            "reference every render."
        ),
        suggestion="Hoist constant literals out of the component or memoize them with useMemo.",
        category="rendering",
        modes=("quick",),
        description="Object and array literals written inline in JSX props.",
    ),
    Rule(
        rule_id="bind_in_render",
        severity="medium",
        matcher=line_matcher(r"=\{\s*(?P<target>[\w$.]+)\.bind\s*\("),
        message="'{target}.bind' in JSX allocates a new function every render.",
        suggestion="Bind once in the constructor or use a class property arrow function.",
        category="rendering",
        description="Function.prototype.bind inside JSX props.",
    ),
    Rule(
        rule_id="index_as_key",
        severity="medium",
        matcher=line_matcher(r"\bkey=\{\s*(?P<index>index|idx|i)\s*\}"),
        message="Array index '{index}' used as key; reordering causes needless re-mounts.",
        suggestion="Use a stable identifier from the item as the key.",
        category="rendering",
        modes=("quick",),
        description="Array indexes used as React keys.",
    ),
    Rule(
        rule_id="unvirtualized_list",
        severity="low",
        matcher=line_matcher(
            r"\{\s*(?P<collection>[A-Za-z_$][\w$.?]*)\.map\s*\(",
            when=_JSX,
            unless=_VIRTUALIZATION,
        ),
        message="'{collection}.map' renders every item eagerly.",
        suggestion="Virtualize large lists (react-window, react-virtuoso) or paginate them.",
        category="rendering",
        description="Lists rendered with .map in JSX without a virtualization library.",
    ),
    Rule(
        rule_id="missing_memoization",
        severity="medium",
        matcher=line_matcher(
            r"^\s*(?:const|let)\s+(?P<name>[A-Za-z_$][\w$]*)\s*=\s*"
            r"[A-Za-z_$][\w$.?]*\.(?P<op>filter|sort|reduce|flatMap)\s*\(",
            when=_JSX,
        ),
        message="'{name}' is recomputed with .{op}() on every render.",
        suggestion="Wrap the computation in useMemo with its inputs as dependencies.",
        category="rendering",
        modes=("simple",),
        description="Expensive array derivations in component bodies without useMemo.",
    ),
)
