"""Lifecycle hook execution for hookguard.

Hooks run wrapped operations under a deadline, classify failures into
severity-tagged ErrorRecords, apply graceful degradation and record
per-operation metrics. Implementations are registered per content category
and dispatched by the LifecycleDispatcher.
"""

from hookguard.hooks.dispatcher import LifecycleDispatcher
from hookguard.hooks.errors import classify, error_code
from hookguard.hooks.executor import HookExecutor
from hookguard.hooks.metrics import MetricsRecorder, OperationMetrics, SlowOperation, Timer
from hookguard.hooks.registry import HookRegistry, lifecycle_hooks
from hookguard.hooks.retry import with_retry
from hookguard.hooks.timeout import run_with_deadline
from hookguard.hooks.types import (
    ErrorRecord,
    HookContext,
    HookEvent,
    HookKind,
    HookResult,
    LifecycleHooks,
    Operation,
    OperationOutcome,
    OperationWarning,
    Severity,
)

__all__ = [
    # Types
    "ErrorRecord",
    "HookContext",
    "HookEvent",
    "HookKind",
    "HookResult",
    "LifecycleHooks",
    "Operation",
    "OperationOutcome",
    "OperationWarning",
    "Severity",
    # Execution
    "HookExecutor",
    "LifecycleDispatcher",
    "HookRegistry",
    "lifecycle_hooks",
    "run_with_deadline",
    "with_retry",
    "classify",
    "error_code",
    # Metrics
    "MetricsRecorder",
    "OperationMetrics",
    "SlowOperation",
    "Timer",
]
