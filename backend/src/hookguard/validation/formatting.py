"""Formatting of validation and hook results for API responses and logs."""

import logging
from datetime import datetime, timezone
from typing import Any

from hookguard.hooks.types import HookContext, HookResult
from hookguard.validation.types import RuleOutcome, ValidationResult

logger = logging.getLogger(__name__)


def _outcome_for_api(outcome: RuleOutcome, include_type: bool) -> dict[str, Any]:
    entry: dict[str, Any] = {"code": outcome.code, "message": outcome.message}
    if outcome.field:
        entry["field"] = outcome.field
    if include_type:
        entry["type"] = outcome.severity.value
    if outcome.suggestion:
        entry["suggestions"] = [outcome.suggestion]
    return entry


def format_for_api(result: ValidationResult, data: Any = None) -> dict[str, Any]:
    """Format a ValidationResult as an API response body.

    `data` is only echoed back when the event may proceed. Empty error and
    warning lists are omitted.
    """
    response: dict[str, Any] = {
        "success": result.passed,
        "canProceed": result.can_proceed,
    }
    if result.can_proceed and data is not None:
        response["data"] = data
    if result.errors:
        response["errors"] = [_outcome_for_api(o, include_type=True) for o in result.errors]
    if result.warnings:
        response["warnings"] = [_outcome_for_api(o, include_type=False) for o in result.warnings]
    response["meta"] = {
        "validationTime": result.execution_time_ms,
        "rulesExecuted": result.rules_executed,
        "timestamp": result.timestamp.isoformat(),
    }
    return response


def log_level_for(result: ValidationResult) -> str:
    if result.errors:
        return "error"
    if result.warnings:
        return "warn"
    return "debug"


def format_for_log(result: ValidationResult, context: HookContext | None = None) -> dict[str, Any]:
    """Build a structured log entry for a ValidationResult."""
    level = log_level_for(result)
    if result.errors:
        message = f"Validation blocked {result.content_category}.{result.operation}: {len(result.errors)} error(s)"
    elif result.warnings:
        message = f"Validation passed with {len(result.warnings)} warning(s) for {result.content_category}.{result.operation}"
    else:
        message = f"Validation passed for {result.content_category}.{result.operation}"

    entry_context: dict[str, Any] = {
        "contentCategory": result.content_category,
        "operation": result.operation,
        "operationId": context.operation_id if context else None,
        "validationSummary": {
            "isValid": result.passed,
            "canProceed": result.can_proceed,
            "errorCount": len(result.errors),
            "warningCount": len(result.warnings),
            "executionTime": result.execution_time_ms,
        },
    }
    if result.errors:
        entry_context["errors"] = [
            {"rule": o.rule_id, "code": o.code, "message": o.message, "field": o.field, "type": o.severity.value}
            for o in result.errors
        ]
    if result.warnings:
        entry_context["warnings"] = [
            {"rule": o.rule_id, "code": o.code, "message": o.message, "field": o.field}
            for o in result.warnings
        ]
    return {
        "level": level,
        "message": message,
        "context": entry_context,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


_LOG_LEVELS = {"error": logging.ERROR, "warn": logging.WARNING, "info": logging.INFO, "debug": logging.DEBUG}


def log_result(result: ValidationResult, context: HookContext | None = None) -> None:
    """Emit a ValidationResult through the module logger."""
    entry = format_for_log(result, context)
    logger.log(_LOG_LEVELS[entry["level"]], entry["message"], extra={"validation": entry["context"]})


def hook_result_for_api(result: HookResult) -> dict[str, Any]:
    """Format a HookResult for an API response."""
    body = result.to_dict()
    if result.can_proceed and result.modified_data is not None:
        body["data"] = result.modified_data
    body["degraded"] = result.degraded
    return body
