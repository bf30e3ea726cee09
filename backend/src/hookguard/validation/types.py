"""Core types for the hookguard validation rule engine.

- RuleDefinition: a registered rule with its evaluator and ordering metadata
- RuleOutcome: the result of evaluating one rule
- ValidationResult: the aggregated, ordered result of one validation run
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from hookguard.hooks.types import Severity

RULE_FAILED = "RULE_FAILED"
RULE_TIMEOUT = "RULE_TIMEOUT"
RULE_ERROR = "RULE_ERROR"

RULE_SEVERITIES = (Severity.CRITICAL, Severity.WARNING)


@dataclass(frozen=True)
class RuleOutcome:
    """Result of evaluating a single rule.

    Evaluators build outcomes with RuleOutcome.ok() / RuleOutcome.fail();
    the engine stamps rule_id, severity and execution_time_ms afterwards.

    Attributes:
        passed: True if the rule is satisfied
        severity: The rule's severity (CRITICAL or WARNING)
        message: Human-readable explanation (empty when passed)
        suggestion: Optional hint on how to fix the input
        rule_id: Id of the rule that produced this outcome
        code: Machine-readable code (e.g., "RULE_FAILED", "RULE_TIMEOUT")
        field: Payload field the outcome relates to, if any
        execution_time_ms: Time spent evaluating the rule
    """

    passed: bool
    severity: Severity = Severity.WARNING
    message: str = ""
    suggestion: str | None = None
    rule_id: str = ""
    code: str = ""
    field: str | None = None
    execution_time_ms: float = 0.0

    @classmethod
    def ok(cls, message: str = "") -> "RuleOutcome":
        return cls(passed=True, message=message)

    @classmethod
    def fail(
        cls,
        message: str,
        suggestion: str | None = None,
        code: str = RULE_FAILED,
        field: str | None = None,
    ) -> "RuleOutcome":
        return cls(passed=False, message=message, suggestion=suggestion, code=code, field=field)

    @property
    def is_critical(self) -> bool:
        return self.severity == Severity.CRITICAL

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "ruleId": self.rule_id,
            "passed": self.passed,
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
            "executionTimeMs": self.execution_time_ms,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.field:
            result["field"] = self.field
        return result


Evaluator = Callable[[dict[str, Any], dict[str, Any] | None], RuleOutcome | Awaitable[RuleOutcome]]


@dataclass(frozen=True)
class RuleDefinition:
    """A validation rule registered for one content category.

    Attributes:
        id: Unique rule id across the registry
        content_category: Content category the rule applies to
        severity: CRITICAL rules can block the event; WARNING rules never do
        evaluate: (payload, existing_data) -> RuleOutcome, sync or async.
            Must be stateless and safe to abandon on timeout.
        priority: Lower runs first among rules whose dependencies are met
        depends_on: Ids of rules (same category) that must run first
        enabled: Disabled rules are skipped and ignored for ordering
        config: Free-form rule configuration (exposed in stats and manifests)
        description: Human-readable description
        timeout_ms: Per-rule deadline; falls back to HookConfig
    """

    id: str
    content_category: str
    severity: Severity
    evaluate: Evaluator
    priority: int = 100
    depends_on: frozenset[str] = field(default_factory=frozenset)
    enabled: bool = True
    config: dict[str, Any] = field(default_factory=dict)
    description: str = ""
    timeout_ms: float | None = None

    def __post_init__(self) -> None:
        # Accept any iterable of ids for depends_on
        if not isinstance(self.depends_on, frozenset):
            object.__setattr__(self, "depends_on", frozenset(self.depends_on))

    @property
    def is_critical(self) -> bool:
        return self.severity == Severity.CRITICAL

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "contentCategory": self.content_category,
            "severity": self.severity.value,
            "priority": self.priority,
            "dependsOn": sorted(self.depends_on),
            "enabled": self.enabled,
            "config": self.config,
            "description": self.description,
            "timeoutMs": self.timeout_ms,
        }


@dataclass(frozen=True)
class ValidationResult:
    """Aggregated result of validating one payload.

    Attributes:
        content_category: Category that was validated
        operation: Operation name ("create", "update", ...)
        outcomes: One outcome per executed rule, in execution order
        passed: False iff an enabled critical rule failed
        can_proceed: False only when strict mode blocks a critical failure
        errors: Failed outcomes that block (strict mode critical failures)
        warnings: Every other failed outcome
        execution_time_ms: Time spent running the rules
        cache_key: Key the result is cached under
        timestamp: When the result was produced
    """

    content_category: str
    operation: str
    outcomes: tuple[RuleOutcome, ...] = ()
    passed: bool = True
    can_proceed: bool = True
    errors: tuple[RuleOutcome, ...] = ()
    warnings: tuple[RuleOutcome, ...] = ()
    execution_time_ms: float = 0.0
    cache_key: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def execution_order(self) -> list[str]:
        return [o.rule_id for o in self.outcomes]

    @property
    def rules_executed(self) -> int:
        return len(self.outcomes)

    def outcome_for(self, rule_id: str) -> RuleOutcome | None:
        for outcome in self.outcomes:
            if outcome.rule_id == rule_id:
                return outcome
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "contentCategory": self.content_category,
            "operation": self.operation,
            "passed": self.passed,
            "canProceed": self.can_proceed,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "executionOrder": self.execution_order,
            "executionTimeMs": self.execution_time_ms,
            "timestamp": self.timestamp.isoformat(),
        }
