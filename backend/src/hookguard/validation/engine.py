"""Validation rule engine.

Runs the enabled rules of a content category in dependency order against a
payload and aggregates the outcomes into a ValidationResult. Every rule
runs under its own deadline; a rule that times out or raises becomes a
failed outcome instead of aborting the run.
"""

import logging
import time
from typing import Any

from hookguard.config import HookConfig, HookConfigManager
from hookguard.exceptions import HookTimeoutError
from hookguard.hooks.timeout import run_with_deadline
from hookguard.hooks.types import Operation
from hookguard.validation.cache import ResultCache, cache_key
from hookguard.validation.registry import RuleRegistry
from hookguard.validation.types import (
    RULE_ERROR,
    RULE_FAILED,
    RULE_TIMEOUT,
    RuleDefinition,
    RuleOutcome,
    ValidationResult,
)

logger = logging.getLogger(__name__)


class ValidationEngine:
    """Evaluates registered rules against payloads.

    Results are cached per (category, operation, payload, existing data,
    strict mode). The cache for a category is dropped whenever its rules
    change in the registry.

    Example:
        engine = ValidationEngine(registry, config_manager=manager)
        result = await engine.validate("team", Operation.CREATE, payload)
        if not result.can_proceed:
            ...
    """

    def __init__(
        self,
        registry: RuleRegistry,
        config: HookConfig | None = None,
        config_manager: HookConfigManager | None = None,
        cache: ResultCache | None = None,
    ):
        self.registry = registry
        self.config_manager = config_manager
        self._config = config or HookConfig()
        self.cache = cache if cache is not None else ResultCache()
        self.registry.add_change_listener(self.cache.invalidate_category)

    def config_for(self, content_category: str) -> HookConfig:
        if self.config_manager is not None:
            return self.config_manager.get_config(content_category)
        return self._config

    async def validate(
        self,
        content_category: str,
        operation: Operation | str,
        payload: dict[str, Any],
        existing_data: dict[str, Any] | None = None,
        strict: bool | None = None,
    ) -> ValidationResult:
        """Validate a payload against the category's enabled rules.

        Args:
            content_category: Category whose rules apply
            operation: The write being validated
            payload: Incoming data (passed to evaluators untouched)
            existing_data: Current record for updates, None for creates
            strict: Overrides HookConfig.enable_strict_validation

        Returns:
            ValidationResult with one outcome per executed rule
        """
        config = self.config_for(content_category)
        if strict is None:
            strict = config.enable_strict_validation
        operation_name = operation.value if isinstance(operation, Operation) else str(operation)

        try:
            key = cache_key(content_category, operation_name, payload, existing_data, strict)
        except (ValueError, RecursionError) as e:
            logger.debug("Payload for %s.%s is not cacheable: %s", content_category, operation_name, e)
            key = None
        if key is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Validation cache hit for %s", key)
                return cached

        # Read before the rule snapshot so a concurrent registry change is detected
        generation = self.cache.generation(content_category)
        rules = self.registry.get_rules_for(content_category)
        started = time.perf_counter()
        outcomes = []
        for rule in rules:
            outcome = await self._evaluate(rule, payload, existing_data, config)
            self.registry.record_evaluation(rule.id, outcome.passed, outcome.execution_time_ms)
            outcomes.append(outcome)
        execution_time = (time.perf_counter() - started) * 1000

        result = self._aggregate(
            content_category, operation_name, outcomes, strict, execution_time, key
        )
        if key is not None and not any(o.code == RULE_TIMEOUT for o in outcomes):
            if not self.cache.set(key, result, content_category, generation):
                logger.debug("Rules for %s changed during validation, result not cached", content_category)

        if not result.passed:
            logger.info(
                "Validation failed for %s.%s: %s",
                content_category,
                operation_name,
                ", ".join(o.rule_id for o in outcomes if not o.passed and o.is_critical),
            )
        return result

    async def _evaluate(
        self,
        rule: RuleDefinition,
        payload: dict[str, Any],
        existing_data: dict[str, Any] | None,
        config: HookConfig,
    ) -> RuleOutcome:
        deadline = rule.timeout_ms or config.effective_rule_timeout_ms
        started = time.perf_counter()
        try:
            outcome = await run_with_deadline(lambda: rule.evaluate(payload, existing_data), deadline)
        except HookTimeoutError as e:
            logger.warning("Rule '%s' timed out after %sms", rule.id, e.deadline_ms)
            outcome = RuleOutcome.fail(
                f"Rule '{rule.id}' timed out after {deadline:g}ms", code=RULE_TIMEOUT
            )
        except Exception as e:
            logger.warning("Rule '%s' raised %s: %s", rule.id, type(e).__name__, e)
            outcome = RuleOutcome.fail(str(e) or f"Rule '{rule.id}' failed", code=RULE_ERROR)
        else:
            if not isinstance(outcome, RuleOutcome):
                outcome = RuleOutcome.fail(
                    f"Rule '{rule.id}' returned {type(outcome).__name__}, expected RuleOutcome",
                    code=RULE_ERROR,
                )

        return RuleOutcome(
            passed=outcome.passed,
            severity=rule.severity,
            message=outcome.message,
            suggestion=outcome.suggestion,
            rule_id=rule.id,
            code=outcome.code or ("" if outcome.passed else RULE_FAILED),
            field=outcome.field,
            execution_time_ms=(time.perf_counter() - started) * 1000,
        )

    @staticmethod
    def _aggregate(
        content_category: str,
        operation: str,
        outcomes: list[RuleOutcome],
        strict: bool,
        execution_time: float,
        key: str | None,
    ) -> ValidationResult:
        failed = [o for o in outcomes if not o.passed]
        critical = [o for o in failed if o.is_critical]
        passed = not critical
        if strict:
            errors = critical
            warnings = [o for o in failed if not o.is_critical]
        else:
            errors = []
            warnings = failed
        return ValidationResult(
            content_category=content_category,
            operation=operation,
            outcomes=tuple(outcomes),
            passed=passed,
            can_proceed=passed or not strict,
            errors=tuple(errors),
            warnings=tuple(warnings),
            execution_time_ms=execution_time,
            cache_key=key,
        )

    def clear_cache(self, content_category: str | None = None) -> None:
        if content_category is None:
            self.cache.clear()
        else:
            self.cache.invalidate_category(content_category)
