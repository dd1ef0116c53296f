"""Rules package."""

from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from performanalyzer.errors import ConfigError
from performanalyzer.rules import hooks, memory, quality, rendering
from performanalyzer.rules.base import Rule

MODE_FULL = "full"
MODE_QUICK = "quick"
MODE_SIMPLE = "simple"
MODES = (MODE_FULL, MODE_QUICK, MODE_SIMPLE)


@dataclass(frozen=True, slots=True)
class RuleInfo:
    """Rule metadata for listing and selection."""

    rule_id: str
    severity: str
    category: str
    description: str
    modes: tuple[str, ...]
    enabled: bool


@dataclass(frozen=True, slots=True)
class RuleSet:
    """Immutable, ordered selection of rules.

    Declaration order is the tie-break when two issues share a line.
    """

    rules: tuple[Rule, ...]
    mode: str = MODE_FULL

    def __post_init__(self) -> None:
        ids = [rule.rule_id for rule in self.rules]
        duplicates = sorted({rule_id for rule_id in ids if ids.count(rule_id) > 1})
        if duplicates:
            raise ConfigError(f"Duplicate rule ids: {', '.join(duplicates)}")

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    @property
    def rule_ids(self) -> list[str]:
        return [rule.rule_id for rule in self.rules]

    def extend(self, extra: Sequence[Rule]) -> "RuleSet":
        """Return a new RuleSet with ``extra`` rules appended after the existing ones."""
        return RuleSet(rules=self.rules + tuple(extra), mode=self.mode)


def all_rules() -> tuple[Rule, ...]:
    """Return the full catalogue in declaration order."""
    return hooks.RULES + memory.RULES + rendering.RULES + quality.RULES


def default_rule_set() -> RuleSet:
    return build_rule_set(mode=MODE_FULL)


def build_rule_set(
    *,
    mode: str = MODE_FULL,
    enabled_rule_ids: list[str] | None = None,
    disabled_rule_ids: list[str] | None = None,
) -> RuleSet:
    """Select rules for a mode, then apply explicit enable/disable lists.

    ``enabled_rule_ids`` narrows the mode's selection; it never adds rules the
    mode does not include.
    """
    resolved_mode = _resolve_mode(mode)
    catalogue = all_rules()
    registry = {rule.rule_id: rule for rule in catalogue}

    requested_ids = set(enabled_rule_ids or []) | set(disabled_rule_ids or [])
    unknown = [rule_id for rule_id in requested_ids if rule_id not in registry]
    if unknown:
        joined = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown rule ids: {joined}")

    enabled_set = set(enabled_rule_ids) if enabled_rule_ids is not None else None
    disabled_set = set(disabled_rule_ids or [])
    selected = [
        rule
        for rule in catalogue
        if _in_mode(rule, resolved_mode)
        and (enabled_set is None or rule.rule_id in enabled_set)
        and rule.rule_id not in disabled_set
    ]
    return RuleSet(rules=tuple(selected), mode=resolved_mode)


def list_rule_info(
    *,
    mode: str = MODE_FULL,
    enabled_rule_ids: list[str] | None = None,
    disabled_rule_ids: list[str] | None = None,
) -> list[RuleInfo]:
    """Return metadata for every known rule with its active state for ``mode``."""
    active = set(
        build_rule_set(
            mode=mode,
            enabled_rule_ids=enabled_rule_ids,
            disabled_rule_ids=disabled_rule_ids,
        ).rule_ids
    )
    return [
        RuleInfo(
            rule_id=rule.rule_id,
            severity=rule.severity,
            category=rule.category,
            description=rule.description,
            modes=(MODE_FULL, *rule.modes),
            enabled=rule.rule_id in active,
        )
        for rule in all_rules()
    ]


def _in_mode(rule: Rule, mode: str) -> bool:
    return mode == MODE_FULL or mode in rule.modes


def _resolve_mode(name: str) -> str:
    mode = name.lower()
    if mode not in MODES:
        choices = ", ".join(MODES)
        raise ConfigError(f"Unknown mode '{name}'. Expected one of: {choices}")
    return mode

