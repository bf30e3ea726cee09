"""Hook execution core.

HookExecutor wraps a caller-supplied operation with the deadline guard,
error classification and metrics. Whatever the operation does, the caller
gets back a HookResult: failures are never re-raised.

Per invocation:
    Idle -> TimerStarted -> OperationRunning -> {Succeeded | Failed | TimedOut}
         -> MetricsRecorded -> ResultReturned
"""

import logging
import uuid
from typing import Any

from hookguard.config import HookConfig, HookConfigManager
from hookguard.hooks.errors import (
    DUPLICATE_VALIDATION,
    HOOK_TIMEOUT,
    OVERLAP_VALIDATION,
    classify,
)
from hookguard.hooks.metrics import MetricsRecorder
from hookguard.hooks.timeout import Operation, run_with_deadline
from hookguard.hooks.types import (
    ErrorRecord,
    HookContext,
    HookKind,
    HookResult,
    OperationOutcome,
)

logger = logging.getLogger(__name__)

_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def new_operation_id(content_category: str, hook_kind: HookKind) -> str:
    return f"{content_category}-{hook_kind.value}-{uuid.uuid4().hex}"


class HookExecutor:
    """Runs hook operations for one content category.

    Configuration is read at the start of every call, so runtime changes
    (update_config, or the shared HookConfigManager) apply to the next
    invocation without affecting those already in flight.

    Example:
        executor = HookExecutor("team", metrics=recorder)
        result = await executor.execute(
            HookKind.BEFORE_CREATE, event, lambda: validate_team(event)
        )
        if not result.can_proceed:
            reject(result.errors)
    """

    def __init__(
        self,
        content_category: str,
        config: HookConfig | None = None,
        metrics: MetricsRecorder | None = None,
        config_manager: HookConfigManager | None = None,
    ):
        self.content_category = content_category
        self.metrics = metrics or MetricsRecorder()
        self.config_manager = config_manager
        self._config = config or HookConfig()

    @property
    def config(self) -> HookConfig:
        if self.config_manager is not None:
            return self.config_manager.get_config(self.content_category)
        return self._config

    def _metrics_enabled(self) -> bool:
        if self.config_manager is None:
            return True
        return self.config_manager.get_feature_flag("enableHookMetrics")

    def update_config(self, overrides: dict[str, Any]) -> HookConfig:
        """Apply configuration overrides to subsequent calls."""
        if self.config_manager is not None:
            return self.config_manager.update_category_config(self.content_category, overrides)
        self._config = self._config.with_overrides(overrides)
        self._log(self._config, "info", "Hook configuration updated: %s", overrides)
        return self._config

    async def execute(self, hook_kind: HookKind, event: Any, operation: Operation) -> HookResult:
        """Execute an operation as the given hook.

        Args:
            hook_kind: The lifecycle point being executed
            event: The inbound event (passed through untouched)
            operation: Zero-argument callable (sync or async)

        Returns:
            HookResult; success=False with can_proceed set by the graceful
            degradation policy if the operation failed or timed out
        """
        config = self.config
        context = HookContext(
            content_category=self.content_category,
            hook_kind=hook_kind,
            event=event,
            operation_id=new_operation_id(self.content_category, hook_kind),
        )
        timer = self.metrics.start_timer(context.operation_name)
        self._log(config, "debug", "Hook execution started: %s", context.operation_name, context=context)

        try:
            value = await run_with_deadline(operation, config.max_hook_execution_time_ms)
        except Exception as e:
            execution_time = timer.stop()
            if self._metrics_enabled():
                self.metrics.record_execution(context.operation_name, execution_time, success=False)
            return self._failure_result(e, context, config, execution_time)

        execution_time = timer.stop()
        if self._metrics_enabled():
            self.metrics.record_execution(context.operation_name, execution_time, success=True)
        self._log(
            config,
            "info",
            "Hook execution completed: %s in %.2fms",
            context.operation_name,
            execution_time,
            context=context,
        )

        warnings: list[ErrorRecord] = []
        if isinstance(value, OperationOutcome):
            warnings = [
                ErrorRecord(severity=w.severity, code=w.code, message=w.message, context=context)
                for w in value.warnings
            ]
            value = value.data

        return HookResult(
            success=True,
            can_proceed=True,
            warnings=warnings,
            execution_time_ms=execution_time,
            modified_data=value,
        )

    def _failure_result(
        self,
        error: Exception,
        context: HookContext,
        config: HookConfig,
        execution_time: float,
    ) -> HookResult:
        record = classify(error, context, strict=config.enable_strict_validation)
        can_proceed = config.enable_graceful_degradation

        logger.error(
            "Hook execution failed: %s [%s] %s (canProceed=%s)",
            context.operation_name,
            record.code,
            record.message,
            can_proceed,
            extra={"operation_id": context.operation_id},
            exc_info=config.logs_at("debug"),
        )
        if can_proceed:
            self._log_degradation(record, context, config)

        return HookResult(
            success=False,
            can_proceed=can_proceed,
            errors=[record],
            execution_time_ms=execution_time,
        )

    def _log_degradation(self, record: ErrorRecord, context: HookContext, config: HookConfig) -> None:
        if record.code == HOOK_TIMEOUT:
            message = "Hook timeout in %s, consider moving the work to an async calculation"
        elif record.code == OVERLAP_VALIDATION:
            message = "Overlap detected in %s but allowing operation"
        elif record.code == DUPLICATE_VALIDATION:
            message = "Duplicate validation failed in %s but allowing operation"
        else:
            message = "Hook error in %s handled gracefully"
        self._log(config, "warn", message, context.operation_name, context=context)

    def _log(self, config: HookConfig, level: str, message: str, *args: Any, context: HookContext | None = None) -> None:
        if not config.logs_at(level):
            return
        extra = {"operation_id": context.operation_id} if context else None
        logger.log(_LEVELS[level], message, *args, extra=extra)
