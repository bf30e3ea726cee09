"""Load rule manifests from YAML.

A manifest tunes rules that the application registered in code. It never
defines evaluators. Layout:

    team:
      team.name-required:
        enabled: true
        priority: 10
        severity: critical
      team.name-unique:
        dependsOn: [team.name-required]
        timeoutMs: 250
        config:
          caseSensitive: false
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from hookguard.exceptions import ConfigurationError, RuleDependencyError
from hookguard.hooks.types import Severity
from hookguard.validation.ordering import check_graph, dependency_order
from hookguard.validation.registry import RuleRegistry
from hookguard.validation.types import RULE_SEVERITIES

_ALLOWED_KEYS = {"enabled", "priority", "severity", "dependsOn", "config", "timeoutMs", "description"}


@dataclass
class RuleOverride:
    """Overrides for one registered rule. None means "leave as is"."""

    rule_id: str
    content_category: str
    enabled: bool | None = None
    priority: int | None = None
    severity: Severity | None = None
    depends_on: frozenset[str] | None = None
    config: dict[str, Any] | None = None
    timeout_ms: float | None = None
    description: str | None = None

    @classmethod
    def from_dict(cls, content_category: str, rule_id: str, data: dict[str, Any] | None) -> "RuleOverride":
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Rule '{rule_id}': expected a mapping")
        unknown = set(data) - _ALLOWED_KEYS
        if unknown:
            raise ConfigurationError(f"Rule '{rule_id}': unknown key(s): {', '.join(sorted(unknown))}")

        severity = None
        if "severity" in data:
            try:
                severity = Severity(data["severity"])
            except ValueError:
                raise ConfigurationError(f"Rule '{rule_id}': invalid severity '{data['severity']}'")
            if severity not in RULE_SEVERITIES:
                raise ConfigurationError(f"Rule '{rule_id}': severity must be critical or warning")

        enabled = data.get("enabled")
        if enabled is not None and not isinstance(enabled, bool):
            raise ConfigurationError(f"Rule '{rule_id}': enabled must be a boolean")
        priority = data.get("priority")
        if priority is not None and (isinstance(priority, bool) or not isinstance(priority, int)):
            raise ConfigurationError(f"Rule '{rule_id}': priority must be an integer")

        depends_on = data.get("dependsOn")
        if depends_on is not None:
            if isinstance(depends_on, str):
                depends_on = [depends_on]
            depends_on = frozenset(depends_on)

        return cls(
            rule_id=rule_id,
            content_category=content_category,
            enabled=enabled,
            priority=priority,
            severity=severity,
            depends_on=depends_on,
            config=data.get("config"),
            timeout_ms=data.get("timeoutMs"),
            description=data.get("description"),
        )

    def changes(self) -> dict[str, Any]:
        """Field changes to apply to the registered RuleDefinition."""
        values = {
            "enabled": self.enabled,
            "priority": self.priority,
            "severity": self.severity,
            "depends_on": self.depends_on,
            "config": self.config,
            "timeout_ms": self.timeout_ms,
            "description": self.description,
        }
        return {k: v for k, v in values.items() if v is not None}


@dataclass
class RuleManifest:
    """Parsed manifest: overrides grouped by content category."""

    categories: dict[str, list[RuleOverride]] = field(default_factory=dict)

    def all_overrides(self) -> list[RuleOverride]:
        return [o for overrides in self.categories.values() for o in overrides]


def parse_manifest(data: Any, source: str = "<manifest>") -> RuleManifest:
    """Parse a manifest mapping (already loaded from YAML)."""
    if data is None:
        return RuleManifest()
    if not isinstance(data, dict):
        raise ConfigurationError(f"{source}: expected a mapping of content categories")

    manifest = RuleManifest()
    seen: dict[str, str] = {}
    for category, rules in data.items():
        if not isinstance(rules, dict):
            raise ConfigurationError(f"{source}: category '{category}' must map rule ids to settings")
        overrides = []
        for rule_id, settings in rules.items():
            if rule_id in seen:
                raise ConfigurationError(
                    f"{source}: duplicate rule id '{rule_id}' in '{category}' and '{seen[rule_id]}'"
                )
            seen[rule_id] = category
            overrides.append(RuleOverride.from_dict(category, rule_id, settings))
        manifest.categories[category] = overrides
    return manifest


def load_manifest(path: Path) -> RuleManifest:
    """Load a rule manifest from a YAML file."""
    with open(path) as f:
        data = yaml.safe_load(f)
    return parse_manifest(data, source=str(path))


def apply_rule_overrides(registry: RuleRegistry, manifest: RuleManifest) -> list[str]:
    """Apply a manifest to registered rules.

    Overrides are applied one rule at a time; each application is validated
    by the registry, so a change that would break the dependency graph
    raises and leaves that rule unchanged.

    Returns:
        Ids of the rules that were updated

    Raises:
        ConfigurationError: If a rule is unknown, in another category, or
            an override is invalid
    """
    applied = []
    for override in manifest.all_overrides():
        if not registry.is_registered(override.rule_id):
            raise ConfigurationError(f"Manifest references unknown rule '{override.rule_id}'")
        rule = registry.get(override.rule_id)
        if rule.content_category != override.content_category:
            raise ConfigurationError(
                f"Rule '{override.rule_id}' belongs to '{rule.content_category}', "
                f"not '{override.content_category}'"
            )
        changes = override.changes()
        if changes:
            registry.update_rule(override.rule_id, **changes)
            applied.append(override.rule_id)
    return applied


@dataclass
class ManifestReport:
    """Result of checking a manifest on its own."""

    execution_order: dict[str, list[str]] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def check_manifest(manifest: RuleManifest) -> ManifestReport:
    """Check a manifest's dependency graphs and compute execution order.

    Every rule a manifest depends on must be listed in the same category.
    """
    report = ManifestReport()
    for category, overrides in manifest.categories.items():
        try:
            check_graph(overrides, _override_id, _override_deps, content_category=category)
            enabled = [o for o in overrides if o.enabled is not False]
            ordered = dependency_order(
                enabled, _override_id, _override_deps, _override_priority, content_category=category
            )
        except RuleDependencyError as e:
            report.errors.append(f"{category}: {e}")
            continue
        report.execution_order[category] = [o.rule_id for o in ordered]
    return report


def _override_id(override: RuleOverride) -> str:
    return override.rule_id


def _override_deps(override: RuleOverride) -> frozenset[str]:
    return override.depends_on or frozenset()


def _override_priority(override: RuleOverride) -> int:
    return override.priority if override.priority is not None else 100
