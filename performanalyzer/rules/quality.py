"""Code-quality rules with a performance angle."""

from __future__ import annotations

from performanalyzer.rules.base import Rule, line_matcher

RULES = (
    Rule(
        rule_id="chained_array_operations",
        severity="low",
        matcher=line_matcher(
            r"\.(?P<first>filter|map)\s*\([^;]*?\)\s*\.(?P<second>map|filter|reduce)\s*\("
        ),
        message="Array is traversed twice with .{first}().{second}().",
        suggestion="Combine the passes into a single reduce or loop for large collections.",
        category="quality",
        modes=("simple",),
        description="Chained array passes that could be a single traversal.",
    ),
    Rule(
        rule_id="json_deep_clone",
        severity="low",
        matcher=line_matcher(r"JSON\.parse\s*\(\s*JSON\.stringify\s*\("),
        message="Deep clone through JSON.parse(JSON.stringify(...)) is slow and lossy.",
        suggestion="Use structuredClone or copy only the fields that change.",
        category="quality",
        modes=("simple",),
        description="JSON round-trip deep clones.",
    ),
    Rule(
        rule_id="direct_state_mutation",
        severity="high",
        matcher=line_matcher(r"\bthis\.state\.(?P<field>[\w$]+)\s*(?:=(?!=)|\+\+|--|[-+*/]=)"),
        message="this.state.{field} is mutated directly and will not trigger a re-render.",
        suggestion="Use this.setState with a new value instead of mutating state.",
        category="quality",
        description="Direct writes to this.state.",
    ),
    Rule(
        rule_id="console_statement",
        severity="low",
        matcher=line_matcher(r"\bconsole\.(?P<method>log|debug|info|trace)\s*\("),
        message="console.{method} left in code runs on every call.",
        suggestion="Remove debug logging or guard it behind a development check.",
        category="quality",
        modes=("simple",),
        description="Leftover console logging.",
    ),
    Rule(
        rule_id="explicit_any",
        severity="low",
        matcher=line_matcher(r"(?::|\bas)\s*any\b(?![\w$])"),
        message="Explicit 'any' disables type checking here.",
        suggestion="Replace 'any' with a concrete type or 'unknown'.",
        category="quality",
        description="Explicit any annotations and casts.",
    ),
)
