"""Validation rule registry.

Holds the rule definitions per content category and hands out enabled
rules in dependency order. Every mutation re-validates the affected
category's dependency graph and rolls back if it became invalid, so
`validate` never sees a broken graph.

Rules must be explicitly registered at application startup:

    registry = RuleRegistry()
    registry.register(RuleDefinition(
        id="team.name-required",
        content_category="team",
        severity=Severity.CRITICAL,
        evaluate=name_required,
    ))
"""

import dataclasses
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from hookguard.exceptions import ConfigurationError
from hookguard.validation.ordering import check_graph, dependency_order
from hookguard.validation.types import RULE_SEVERITIES, RuleDefinition

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str], None]


@dataclass
class RuleStats:
    """Evaluation counters for one rule."""

    evaluations: int = 0
    failures: int = 0
    total_time_ms: float = 0.0

    @property
    def average_time_ms(self) -> float:
        return self.total_time_ms / self.evaluations if self.evaluations else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "evaluations": self.evaluations,
            "failures": self.failures,
            "averageTimeMs": self.average_time_ms,
        }


def _check_rule(rule: RuleDefinition) -> None:
    if not rule.id:
        raise ConfigurationError("Rule id must not be empty")
    if not rule.content_category:
        raise ConfigurationError(f"Rule '{rule.id}' has no content category")
    if rule.severity not in RULE_SEVERITIES:
        raise ConfigurationError(
            f"Rule '{rule.id}' severity must be critical or warning, got {rule.severity.value}"
        )
    if not callable(rule.evaluate):
        raise ConfigurationError(f"Rule '{rule.id}' evaluate must be callable")
    if rule.id in rule.depends_on:
        raise ConfigurationError(f"Rule '{rule.id}' cannot depend on itself")
    if rule.timeout_ms is not None and rule.timeout_ms <= 0:
        raise ConfigurationError(f"Rule '{rule.id}' timeout_ms must be positive")


def _id(rule: RuleDefinition) -> str:
    return rule.id


def _deps(rule: RuleDefinition) -> frozenset[str]:
    return rule.depends_on


def _priority(rule: RuleDefinition) -> int:
    return rule.priority


class RuleRegistry:
    """Registry of validation rules, keyed by rule id."""

    def __init__(self) -> None:
        self._rules: dict[str, RuleDefinition] = {}
        self._ordered: dict[str, tuple[RuleDefinition, ...]] = {}
        self._stats: dict[str, RuleStats] = {}
        self._listeners: list[ChangeListener] = []
        self._lock = threading.RLock()

    # =========================================================================
    # Mutations
    # =========================================================================

    def register(self, rule: RuleDefinition) -> None:
        """Register a rule, replacing any rule with the same id.

        Raises:
            ConfigurationError: If the rule is malformed
            RuleDependencyError: If the category's graph becomes invalid
        """
        self.register_many([rule])

    def register_many(self, rules: list[RuleDefinition]) -> None:
        """Register several rules as one change.

        Rules may reference each other in any order. If the resulting graph
        is invalid, none of them is registered.
        """
        for rule in rules:
            _check_rule(rule)

        with self._lock:
            previous = {rule.id: self._rules.get(rule.id) for rule in rules}
            categories = set()
            for rule in rules:
                old = self._rules.get(rule.id)
                if old is not None:
                    categories.add(old.content_category)
                self._rules[rule.id] = rule
                categories.add(rule.content_category)

            def rollback() -> None:
                for rule_id, old in previous.items():
                    self._restore(rule_id, old)

            self._commit(categories, rollback=rollback)
            for rule in rules:
                self._stats.setdefault(rule.id, RuleStats())
        for rule in rules:
            logger.debug("Registered rule '%s' for '%s'", rule.id, rule.content_category)
        self._notify(categories)

    def unregister(self, rule_id: str) -> bool:
        """Remove a rule. Fails if another rule still depends on it."""
        with self._lock:
            previous = self._rules.pop(rule_id, None)
            if previous is None:
                return False
            self._commit({previous.content_category}, rollback=lambda: self._restore(rule_id, previous))
            self._stats.pop(rule_id, None)
        self._notify({previous.content_category})
        return True

    def set_enabled(self, rule_id: str, enabled: bool) -> RuleDefinition:
        """Enable or disable a rule for subsequent validations."""
        return self.update_rule(rule_id, enabled=enabled)

    def update_rule(self, rule_id: str, **changes: Any) -> RuleDefinition:
        """Replace fields of a registered rule (enabled, priority, severity, ...).

        Raises:
            KeyError: If the rule is not registered
            ConfigurationError: If the change is invalid
        """
        with self._lock:
            current = self.get(rule_id)
            try:
                updated = dataclasses.replace(current, **changes)
            except TypeError as e:
                raise ConfigurationError(f"Invalid change for rule '{rule_id}': {e}") from e
            if updated.content_category != current.content_category:
                raise ConfigurationError(f"Rule '{rule_id}' cannot change content category")
            self.register(updated)
        logger.info("Rule '%s' updated: %s", rule_id, sorted(changes))
        return updated

    def clear(self) -> None:
        """Remove all rules. Primarily for testing."""
        with self._lock:
            categories = {r.content_category for r in self._rules.values()}
            self._rules.clear()
            self._ordered.clear()
            self._stats.clear()
        self._notify(categories)

    def _restore(self, rule_id: str, previous: RuleDefinition | None) -> None:
        if previous is None:
            self._rules.pop(rule_id, None)
        else:
            self._rules[rule_id] = previous

    def _commit(self, categories: set[str], rollback: Callable[[], None]) -> None:
        """Re-validate and re-order the given categories, or roll back."""
        try:
            ordered = {}
            for category in categories:
                rules = self._all_for(category)
                check_graph(rules, _id, _deps, content_category=category)
                enabled = [r for r in rules if r.enabled]
                ordered[category] = tuple(
                    dependency_order(enabled, _id, _deps, _priority, content_category=category)
                )
        except ConfigurationError:
            rollback()
            raise
        self._ordered.update(ordered)

    # =========================================================================
    # Lookup
    # =========================================================================

    def get(self, rule_id: str) -> RuleDefinition:
        with self._lock:
            if rule_id not in self._rules:
                raise KeyError(f"Rule '{rule_id}' is not registered")
            return self._rules[rule_id]

    def is_registered(self, rule_id: str) -> bool:
        return rule_id in self._rules

    def get_rules_for(self, content_category: str) -> list[RuleDefinition]:
        """Enabled rules for a category, in execution order.

        Returns a new list; later registry changes do not affect it.
        """
        with self._lock:
            return list(self._ordered.get(content_category, ()))

    def get_all_rules(self, content_category: str | None = None) -> list[RuleDefinition]:
        """All rules (enabled or not) in registration order."""
        with self._lock:
            if content_category is None:
                return list(self._rules.values())
            return self._all_for(content_category)

    def list_categories(self) -> list[str]:
        with self._lock:
            return sorted({r.content_category for r in self._rules.values()})

    def _all_for(self, content_category: str) -> list[RuleDefinition]:
        return [r for r in self._rules.values() if r.content_category == content_category]

    # =========================================================================
    # Statistics
    # =========================================================================

    def record_evaluation(self, rule_id: str, passed: bool, duration_ms: float) -> None:
        with self._lock:
            stats = self._stats.get(rule_id)
            if stats is None:
                return
            stats.evaluations += 1
            stats.total_time_ms += duration_ms
            if not passed:
                stats.failures += 1

    def get_stats(self) -> dict[str, Any]:
        """Registry statistics: totals, per-category counts and per-rule counters."""
        with self._lock:
            rules = list(self._rules.values())
            by_category: dict[str, dict[str, int]] = {}
            for rule in rules:
                counts = by_category.setdefault(
                    rule.content_category, {"total": 0, "enabled": 0, "critical": 0}
                )
                counts["total"] += 1
                counts["enabled"] += int(rule.enabled)
                counts["critical"] += int(rule.is_critical)
            return {
                "totalRules": len(rules),
                "enabledRules": sum(1 for r in rules if r.enabled),
                "criticalRules": sum(1 for r in rules if r.is_critical),
                "byCategory": by_category,
                "rules": {
                    r.id: {**r.to_dict(), **self._stats.get(r.id, RuleStats()).to_dict()}
                    for r in rules
                },
            }

    # =========================================================================
    # Change listeners
    # =========================================================================

    def add_change_listener(self, listener: ChangeListener) -> None:
        """Register a callback invoked with the category after every change."""
        self._listeners.append(listener)

    def remove_change_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, categories: set[str]) -> None:
        for category in sorted(categories):
            for listener in list(self._listeners):
                try:
                    listener(category)
                except Exception:
                    logger.exception("Rule change listener failed for '%s'", category)
