"""Hook system types for hookguard.

Defines the core data structures for the lifecycle hook system:
- HookKind: the lifecycle points a hook can run at
- HookEvent: the inbound event payload, with typed field accessors
- HookContext: identifies one hook invocation
- ErrorRecord: a classified, severity-tagged failure
- HookResult: the uniform result returned for every invocation
- OperationOutcome: optional rich return value for wrapped operations
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from hookguard.exceptions import PayloadError


class Operation(Enum):
    """The type of write a lifecycle event belongs to."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class HookKind(Enum):
    """Lifecycle point a hook runs at."""

    BEFORE_CREATE = "beforeCreate"
    BEFORE_UPDATE = "beforeUpdate"
    AFTER_CREATE = "afterCreate"
    AFTER_UPDATE = "afterUpdate"
    BEFORE_DELETE = "beforeDelete"
    AFTER_DELETE = "afterDelete"

    @property
    def operation(self) -> Operation:
        if self in (HookKind.BEFORE_CREATE, HookKind.AFTER_CREATE):
            return Operation.CREATE
        if self in (HookKind.BEFORE_UPDATE, HookKind.AFTER_UPDATE):
            return Operation.UPDATE
        return Operation.DELETE

    @property
    def is_before(self) -> bool:
        return self.value.startswith("before")

    @property
    def method_name(self) -> str:
        """Snake-case method name on a LifecycleHooks implementation."""
        return {
            HookKind.BEFORE_CREATE: "before_create",
            HookKind.BEFORE_UPDATE: "before_update",
            HookKind.AFTER_CREATE: "after_create",
            HookKind.AFTER_UPDATE: "after_update",
            HookKind.BEFORE_DELETE: "before_delete",
            HookKind.AFTER_DELETE: "after_delete",
        }[self]


class Severity(Enum):
    """Severity of a classified failure or rule outcome.

    CRITICAL: Blocks the event unless graceful degradation overrides
    WARNING: Logged, does not block
    INFO: Diagnostic only
    """

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


_MISSING = object()


@dataclass
class HookEvent:
    """Inbound lifecycle event from the content source.

    The core never interprets the event; it is passed through untouched to
    rule evaluators and calculations. The accessors below exist for hook
    implementations that need typed access to the payload.

    Attributes:
        params: Event parameters, usually {"data": {...}, "where": {...}}
        result: The persisted record (after* hooks only)
    """

    params: dict[str, Any] = field(default_factory=dict)
    result: Any = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "HookEvent":
        """Create a HookEvent from a raw event mapping."""
        if not isinstance(raw, dict):
            raise PayloadError("event", f"expected a mapping, got {type(raw).__name__}")
        params = raw.get("params", {})
        if not isinstance(params, dict):
            raise PayloadError("params", "expected a mapping")
        return cls(params=params, result=raw.get("result"))

    @property
    def data(self) -> dict[str, Any]:
        data = self.params.get("data")
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise PayloadError("params.data", "expected a mapping")
        return data

    @property
    def where(self) -> dict[str, Any] | None:
        where = self.params.get("where")
        if where is not None and not isinstance(where, dict):
            raise PayloadError("params.where", "expected a mapping")
        return where

    def get_field(self, name: str, expected_type: type | tuple[type, ...] | None = None, default: Any = _MISSING) -> Any:
        """Read a field from the event data.

        Raises:
            PayloadError: If the field is missing (and no default is given)
                or has the wrong type
        """
        data = self.data
        if name not in data or data[name] is None:
            if default is not _MISSING:
                return default
            raise PayloadError(name, "field is missing")
        value = data[name]
        if expected_type is not None and not isinstance(value, expected_type):
            raise PayloadError(name, f"expected {_type_name(expected_type)}, got {type(value).__name__}")
        return value

    def require_field(self, name: str, expected_type: type | tuple[type, ...] | None = None) -> Any:
        """Read a field that must be present and non-empty."""
        value = self.get_field(name, expected_type)
        if isinstance(value, str) and not value.strip():
            raise PayloadError(name, "field is empty")
        return value


def _type_name(expected: type | tuple[type, ...]) -> str:
    if isinstance(expected, tuple):
        return " or ".join(t.__name__ for t in expected)
    return expected.__name__


@dataclass(frozen=True)
class HookContext:
    """Identifies one hook invocation for logging and correlation.

    Attributes:
        content_category: Content category the event belongs to (e.g., "team")
        hook_kind: The lifecycle point being executed
        event: The inbound event (opaque to the core)
        operation_id: Unique identifier for this invocation
    """

    content_category: str
    hook_kind: HookKind
    event: Any
    operation_id: str

    @property
    def operation_name(self) -> str:
        """Metrics name for this invocation: <category>.<hookKind>."""
        return f"{self.content_category}.{self.hook_kind.value}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "contentCategory": self.content_category,
            "hookKind": self.hook_kind.value,
            "operationId": self.operation_id,
        }


@dataclass(frozen=True)
class ErrorRecord:
    """A single classified failure or warning."""

    severity: Severity
    code: str
    message: str
    context: HookContext | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
            "context": self.context.to_dict() if self.context else None,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class HookResult:
    """Result of one hook invocation.

    Attributes:
        success: True if the wrapped operation completed without failure
        can_proceed: False means the surrounding event must be rejected
        errors: Records produced by a failure of the wrapped operation
        warnings: Non-blocking warning/info records
        execution_time_ms: Wall-clock duration of the invocation
        modified_data: Value returned by the wrapped operation
    """

    success: bool
    can_proceed: bool
    errors: list[ErrorRecord] = field(default_factory=list)
    warnings: list[ErrorRecord] = field(default_factory=list)
    execution_time_ms: float = 0.0
    modified_data: Any = None

    @property
    def degraded(self) -> bool:
        """Proceeding despite a failure."""
        return self.can_proceed and bool(self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "canProceed": self.can_proceed,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "executionTimeMs": self.execution_time_ms,
        }


@dataclass(frozen=True)
class OperationWarning:
    """A non-blocking finding reported by a wrapped operation."""

    code: str
    message: str
    severity: Severity = Severity.WARNING

    def __post_init__(self) -> None:
        # HookResult.warnings never carries critical records
        if self.severity == Severity.CRITICAL:
            raise ValueError("OperationWarning severity must be WARNING or INFO")


@dataclass
class OperationOutcome:
    """Rich return value for operations wrapped by the hook core.

    Plain return values become HookResult.modified_data as-is; returning an
    OperationOutcome additionally surfaces warnings in HookResult.warnings.
    """

    data: Any = None
    warnings: list[OperationWarning] = field(default_factory=list)


@runtime_checkable
class LifecycleHooks(Protocol):
    """Capability interface implemented once per content category.

    Each method receives the HookEvent and returns the (optionally modified)
    data, an OperationOutcome, or None. Raising marks the hook as failed;
    the hook core converts the failure into an ErrorRecord.
    before_delete/after_delete are optional and looked up by name.
    """

    async def before_create(self, event: HookEvent) -> Any: ...

    async def before_update(self, event: HookEvent) -> Any: ...

    async def after_create(self, event: HookEvent) -> Any: ...

    async def after_update(self, event: HookEvent) -> Any: ...
