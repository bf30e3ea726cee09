"""Exception hierarchy for hookguard.

Only configuration and programming errors (ConfigurationError and its
subclasses) are meant to propagate to callers, and only from registration
or configuration calls. Everything raised inside a wrapped hook operation
is caught by the hook core and turned into an ErrorRecord.
"""

from typing import Any


class HookGuardError(Exception):
    """Base class for all hookguard errors."""
    pass


class ConfigurationError(HookGuardError, ValueError):
    """Invalid configuration or rule registration."""
    pass


class RuleDependencyError(ConfigurationError):
    """A rule or calculation dependency graph is cyclic or references an unknown id."""

    def __init__(self, message: str, content_category: str | None = None, cycle: list[str] | None = None):
        super().__init__(message)
        self.content_category = content_category
        self.cycle = cycle or []


class PayloadError(HookGuardError, ValueError):
    """A required event field is missing or malformed."""

    def __init__(self, field: str, reason: str):
        super().__init__(f"Invalid payload field '{field}': {reason}")
        self.field = field
        self.reason = reason


class HookTimeoutError(HookGuardError, TimeoutError):
    """An operation did not settle before its deadline."""

    def __init__(self, deadline_ms: float):
        super().__init__(f"Hook operation timed out after {deadline_ms:g}ms")
        self.deadline_ms = deadline_ms


class ValidationError(HookGuardError):
    """A business validation failed."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class OverlapValidationError(ValidationError):
    """A record overlaps an existing one (e.g., date ranges)."""
    pass


class DuplicateValidationError(ValidationError):
    """A record duplicates an existing one."""
    pass


class RuleViolationError(ValidationError):
    """One or more critical validation rules failed.

    Carries the ValidationResult so callers can inspect every outcome.
    """

    def __init__(self, result: Any):
        failed = [o for o in result.outcomes if not o.passed and o.is_critical]
        summary = "; ".join(f"{o.rule_id}: {o.message}" for o in failed)
        super().__init__(f"Validation failed: {summary}" if summary else "Validation failed")
        self.result = result
