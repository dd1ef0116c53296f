"""Memory-leak rules: timers, listeners and subscriptions that are never released."""

from __future__ import annotations

from performanalyzer.rules.base import Rule, line_matcher

RULES = (
    Rule(
        rule_id="interval_without_cleanup",
        severity="high",
        matcher=line_matcher(r"\bsetInterval\s*\(", unless=r"\bclearInterval\s*\("),
        message="setInterval is started but clearInterval is never called.",
        suggestion="Keep the interval id and clear it in the effect cleanup.",
        category="memory",
        modes=("quick", "simple"),
        description="Intervals without a matching clearInterval.",
    ),
    Rule(
        rule_id="event_listener_without_cleanup",
        severity="high",
        matcher=line_matcher(
            r"\.addEventListener\s*\(\s*(?:['\"`](?P<event>[\w:.-]+)['\"`])?",
            unless=r"\.removeEventListener\s*\(",
            defaults={"event": "listener"},
        ),
        message="'{event}' event listener is added but never removed.",
        suggestion="Call removeEventListener with the same handler in the effect cleanup.",
        category="memory",
        modes=("quick", "simple"),
        description="addEventListener calls without removeEventListener.",
    ),
    Rule(
        rule_id="subscription_without_unsubscribe",
        severity="medium",
        matcher=line_matcher(r"\.subscribe\s*\(", unless=r"\bunsubscribe\b"),
        message="Subscription is opened but never unsubscribed.",
        suggestion="Return a cleanup function from the effect that unsubscribes.",
        category="memory",
        modes=("quick",),
        description="Observable/store subscriptions without unsubscribe.",
    ),
    Rule(
        rule_id="timeout_without_cleanup",
        severity="low",
        matcher=line_matcher(
            r"\bsetTimeout\s*\(",
            when=r"\buse(?:Layout)?Effect\s*\(",
            unless=r"\bclearTimeout\s*\(",
        ),
        message="setTimeout inside a component with effects is never cleared.",
        suggestion="Clear pending timeouts in the effect cleanup to avoid updates after unmount.",
        category="memory",
        modes=("simple",),
        description="Timeouts in effectful components without clearTimeout.",
    ),
)
