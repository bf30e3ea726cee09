"""Derived-field calculations.

Calculations compute fields from the incoming payload (e.g., a goal
difference from goals for and against) before the payload is validated and
persisted. They run in dependency order; each one sees the fields computed
by the calculations before it.

A calculation that times out, raises, or produces a value rejected by its
`check` falls back to its `fallback_value` (with a warning) if it has one,
otherwise it is reported as failed and its field is left untouched.
Calculations whose required fields are missing are skipped.
"""

import logging
import threading
import time
from collections.abc import Awaitable, Callable, Collection
from dataclasses import dataclass, field
from typing import Any

from hookguard.config import HookConfig, HookConfigManager
from hookguard.exceptions import ConfigurationError, HookTimeoutError
from hookguard.hooks.timeout import run_with_deadline
from hookguard.hooks.types import OperationWarning, Severity
from hookguard.validation.ordering import check_graph, dependency_order

logger = logging.getLogger(__name__)

CALCULATION_FALLBACK = "CALCULATION_FALLBACK"
CALCULATION_FAILED = "CALCULATION_FAILED"
CALCULATION_SKIPPED = "CALCULATION_SKIPPED"

Calculate = Callable[[dict[str, Any], dict[str, Any] | None], Any | Awaitable[Any]]


@dataclass(frozen=True)
class CalculationDefinition:
    """A derived field for one content category.

    Attributes:
        name: Unique name within the content category
        content_category: Category the calculation applies to
        field: Payload field the value is written to
        calculate: (data, existing_data) -> value, sync or async
        depends_on: Names of calculations that must run first
        requires: Fields that must be present, otherwise the calculation is skipped
        priority: Lower runs first among calculations whose dependencies are met
        enabled: Disabled calculations are skipped
        fallback_value: Value used when the calculation fails (None = no fallback)
        check: Optional predicate the computed value must satisfy
        timeout_ms: Per-calculation deadline; falls back to HookConfig
    """

    name: str
    content_category: str
    field: str
    calculate: Calculate
    depends_on: frozenset[str] = field(default_factory=frozenset)
    requires: tuple[str, ...] = ()
    priority: int = 100
    enabled: bool = True
    fallback_value: Any = None
    check: Callable[[Any], bool] | None = None
    timeout_ms: float | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.depends_on, frozenset):
            object.__setattr__(self, "depends_on", frozenset(self.depends_on))
        if not isinstance(self.requires, tuple):
            object.__setattr__(self, "requires", tuple(self.requires))


@dataclass
class CalculationEntry:
    """Outcome of one calculation."""

    name: str
    field: str
    success: bool
    value: Any = None
    fallback_used: bool = False
    skipped: bool = False
    skip_reason: str | None = None
    error: str | None = None
    execution_time_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "field": self.field,
            "success": self.success,
            "value": self.value,
            "fallbackUsed": self.fallback_used,
            "skipped": self.skipped,
            "skipReason": self.skip_reason,
            "error": self.error,
            "executionTimeMs": self.execution_time_ms,
        }


@dataclass
class CalculationResult:
    """Aggregated outcome of running a category's calculations."""

    data: dict[str, Any]
    entries: list[CalculationEntry] = field(default_factory=list)
    warnings: list[OperationWarning] = field(default_factory=list)
    execution_time_ms: float = 0.0

    @property
    def success(self) -> bool:
        return all(e.success for e in self.entries)

    @property
    def calculated_fields(self) -> list[str]:
        return [e.field for e in self.entries if e.success and not e.skipped]

    def entry_for(self, name: str) -> CalculationEntry | None:
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "entries": [e.to_dict() for e in self.entries],
            "warnings": [{"code": w.code, "message": w.message} for w in self.warnings],
            "executionTimeMs": self.execution_time_ms,
        }


def _name(calculation: CalculationDefinition) -> str:
    return calculation.name


def _deps(calculation: CalculationDefinition) -> Collection[str]:
    return calculation.depends_on


def _priority(calculation: CalculationDefinition) -> int:
    return calculation.priority


def _is_present(data: dict[str, Any], name: str) -> bool:
    return data.get(name) is not None


class CalculationService:
    """Registers and runs derived-field calculations per content category.

    Example:
        service = CalculationService()
        service.register(CalculationDefinition(
            name="goal-difference",
            content_category="standing",
            field="goal_difference",
            calculate=lambda data, existing: data["goals_for"] - data["goals_against"],
            requires=("goals_for", "goals_against"),
            fallback_value=0,
        ))
        result = await service.calculate("standing", payload)
    """

    def __init__(
        self,
        config: HookConfig | None = None,
        config_manager: HookConfigManager | None = None,
    ):
        self.config_manager = config_manager
        self._config = config or HookConfig()
        self._calculations: dict[str, dict[str, CalculationDefinition]] = {}
        self._ordered: dict[str, tuple[CalculationDefinition, ...]] = {}
        self._lock = threading.RLock()

    def config_for(self, content_category: str) -> HookConfig:
        if self.config_manager is not None:
            return self.config_manager.get_config(content_category)
        return self._config

    def register(self, calculation: CalculationDefinition) -> None:
        """Register a calculation, replacing one with the same name.

        Raises:
            ConfigurationError: If the calculation is malformed
            RuleDependencyError: If the dependency graph becomes invalid
        """
        if not calculation.name or not isinstance(calculation.name, str):
            raise ConfigurationError("Calculation name is required and must be a string")
        if not calculation.field:
            raise ConfigurationError(f"Calculation '{calculation.name}' has no target field")
        if not callable(calculation.calculate):
            raise ConfigurationError(f"Calculation '{calculation.name}' calculate must be callable")

        category = calculation.content_category
        with self._lock:
            calculations = dict(self._calculations.get(category, {}))
            calculations[calculation.name] = calculation
            nodes = list(calculations.values())
            check_graph(nodes, _name, _deps, content_category=category)
            ordered = dependency_order(
                [c for c in nodes if c.enabled], _name, _deps, _priority, content_category=category
            )
            self._calculations[category] = calculations
            self._ordered[category] = tuple(ordered)
        logger.debug("Registered calculation '%s' for '%s'", calculation.name, category)

    def unregister(self, content_category: str, name: str) -> bool:
        with self._lock:
            calculations = dict(self._calculations.get(content_category, {}))
            if calculations.pop(name, None) is None:
                return False
            nodes = list(calculations.values())
            check_graph(nodes, _name, _deps, content_category=content_category)
            self._calculations[content_category] = calculations
            self._ordered[content_category] = tuple(
                dependency_order(
                    [c for c in nodes if c.enabled], _name, _deps, _priority,
                    content_category=content_category,
                )
            )
        return True

    def get_calculations(self, content_category: str) -> list[CalculationDefinition]:
        """Enabled calculations for a category, in execution order."""
        with self._lock:
            return list(self._ordered.get(content_category, ()))

    async def calculate(
        self,
        content_category: str,
        payload: dict[str, Any],
        existing_data: dict[str, Any] | None = None,
    ) -> CalculationResult:
        """Run the category's calculations against a payload.

        The payload is not mutated; CalculationResult.data is a copy with
        the computed fields applied.
        """
        config = self.config_for(content_category)
        data = dict(payload)
        result = CalculationResult(data=data)
        started = time.perf_counter()

        for calculation in self.get_calculations(content_category):
            entry = await self._run(calculation, data, existing_data, config)
            result.entries.append(entry)
            if entry.success and not entry.skipped:
                data[calculation.field] = entry.value
            if entry.fallback_used:
                result.warnings.append(
                    OperationWarning(
                        CALCULATION_FALLBACK,
                        f"Calculation '{calculation.name}' used fallback value: {entry.error}",
                    )
                )
            elif not entry.success:
                result.warnings.append(
                    OperationWarning(
                        CALCULATION_FAILED,
                        f"Calculation '{calculation.name}' failed: {entry.error}",
                    )
                )
            elif entry.skipped:
                result.warnings.append(
                    OperationWarning(
                        CALCULATION_SKIPPED,
                        f"Calculation '{calculation.name}' skipped: {entry.skip_reason}",
                        severity=Severity.INFO,
                    )
                )

        result.execution_time_ms = (time.perf_counter() - started) * 1000
        return result

    async def _run(
        self,
        calculation: CalculationDefinition,
        data: dict[str, Any],
        existing_data: dict[str, Any] | None,
        config: HookConfig,
    ) -> CalculationEntry:
        missing = [
            name for name in calculation.requires
            if not _is_present(data, name) and not _is_present(existing_data or {}, name)
        ]
        if missing:
            return CalculationEntry(
                name=calculation.name,
                field=calculation.field,
                success=True,
                skipped=True,
                skip_reason=f"Missing required field(s): {', '.join(missing)}",
            )

        deadline = calculation.timeout_ms or config.max_hook_execution_time_ms
        started = time.perf_counter()
        snapshot = dict(data)
        try:
            value = await run_with_deadline(lambda: calculation.calculate(snapshot, existing_data), deadline)
            if calculation.check is not None and not calculation.check(value):
                raise ValueError(f"value {value!r} rejected by check")
        except HookTimeoutError as e:
            error = str(e)
        except Exception as e:
            error = str(e) or type(e).__name__
        else:
            return CalculationEntry(
                name=calculation.name,
                field=calculation.field,
                success=True,
                value=value,
                execution_time_ms=(time.perf_counter() - started) * 1000,
            )

        execution_time = (time.perf_counter() - started) * 1000
        if calculation.fallback_value is not None:
            logger.warning("Calculation '%s' failed, using fallback: %s", calculation.name, error)
            return CalculationEntry(
                name=calculation.name,
                field=calculation.field,
                success=True,
                value=calculation.fallback_value,
                fallback_used=True,
                error=error,
                execution_time_ms=execution_time,
            )
        logger.error("Calculation '%s' failed: %s", calculation.name, error)
        return CalculationEntry(
            name=calculation.name,
            field=calculation.field,
            success=False,
            error=error,
            execution_time_ms=execution_time,
        )
