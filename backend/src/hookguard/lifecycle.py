"""Default lifecycle hooks for a content category.

ContentLifecycle runs the category's calculations and validation rules for
before* hooks, and the calculations again for after* hooks when async
calculations are enabled. It is meant to be registered with a HookRegistry
and dispatched through the hook core, which turns a raised
RuleViolationError into a classified ErrorRecord.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from hookguard.calculations import CalculationService
from hookguard.config import HookConfig, HookConfigManager
from hookguard.exceptions import RuleViolationError
from hookguard.hooks.types import HookEvent, Operation, OperationOutcome, OperationWarning, Severity
from hookguard.validation.engine import ValidationEngine
from hookguard.validation.types import ValidationResult

logger = logging.getLogger(__name__)

ExistingLoader = Callable[[HookEvent], Awaitable[dict[str, Any] | None]]


class ContentLifecycle:
    """LifecycleHooks implementation backed by calculations and rules.

    Args:
        content_category: Category this implementation handles
        engine: Validation engine holding the category's rules
        calculations: Optional calculation service
        config_manager: Source of the category's HookConfig
        load_existing: Optional coroutine returning the current record for
            update events (e.g., a lookup by event.where)
    """

    def __init__(
        self,
        content_category: str,
        engine: ValidationEngine,
        calculations: CalculationService | None = None,
        config_manager: HookConfigManager | None = None,
        load_existing: ExistingLoader | None = None,
    ):
        self.content_category = content_category
        self.engine = engine
        self.calculations = calculations
        self.config_manager = config_manager
        self.load_existing = load_existing

    @property
    def config(self) -> HookConfig:
        if self.config_manager is not None:
            return self.config_manager.get_config(self.content_category)
        return self.engine.config_for(self.content_category)

    async def before_create(self, event: HookEvent) -> OperationOutcome:
        return await self._before(Operation.CREATE, event, existing=None)

    async def before_update(self, event: HookEvent) -> OperationOutcome:
        existing = await self.load_existing(event) if self.load_existing else None
        return await self._before(Operation.UPDATE, event, existing=existing)

    async def after_create(self, event: HookEvent) -> OperationOutcome | None:
        return await self._after(event)

    async def after_update(self, event: HookEvent) -> OperationOutcome | None:
        return await self._after(event)

    async def _before(
        self,
        operation: Operation,
        event: HookEvent,
        existing: dict[str, Any] | None,
    ) -> OperationOutcome:
        data = event.data
        warnings: list[OperationWarning] = []

        if self.calculations is not None:
            calculated = await self.calculations.calculate(self.content_category, data, existing)
            data = calculated.data
            warnings.extend(calculated.warnings)

        result = await self.engine.validate(self.content_category, operation, data, existing)
        if not result.passed:
            raise RuleViolationError(result)

        warnings.extend(_rule_warnings(result))
        return OperationOutcome(data=data, warnings=warnings)

    async def _after(self, event: HookEvent) -> OperationOutcome | None:
        if self.calculations is None or not self.config.enable_async_calculations:
            return None
        record = event.result if isinstance(event.result, dict) else event.data
        calculated = await self.calculations.calculate(self.content_category, record)
        if calculated.calculated_fields:
            logger.debug(
                "Recalculated %s for %s",
                ", ".join(calculated.calculated_fields),
                self.content_category,
            )
        return OperationOutcome(data=calculated.data, warnings=list(calculated.warnings))


def _rule_warnings(result: ValidationResult) -> list[OperationWarning]:
    return [
        OperationWarning(code=o.code, message=f"{o.rule_id}: {o.message}", severity=Severity.WARNING)
        for o in result.warnings
        if not o.is_critical
    ]
