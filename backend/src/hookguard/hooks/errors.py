"""Error classification for hook failures.

Maps a failure raised inside a wrapped hook operation to a typed,
severity-tagged ErrorRecord. Classification is pure: the same failure and
context always produce the same code, severity and message.
"""

from datetime import datetime

from hookguard.exceptions import (
    DuplicateValidationError,
    OverlapValidationError,
    ValidationError,
)
from hookguard.hooks.types import ErrorRecord, HookContext, Severity

HOOK_TIMEOUT = "HOOK_TIMEOUT"
VALIDATION_ERROR = "VALIDATION_ERROR"
OVERLAP_VALIDATION = "OVERLAP_VALIDATION"
DUPLICATE_VALIDATION = "DUPLICATE_VALIDATION"
UNKNOWN_ERROR = "UNKNOWN_ERROR"

DEFAULT_MESSAGE = "An unknown error occurred"


def error_code(failure: BaseException) -> str:
    """Get the machine-readable code for a failure."""
    if isinstance(failure, TimeoutError):
        return HOOK_TIMEOUT
    # Most specific validation subclasses first
    if isinstance(failure, OverlapValidationError):
        return OVERLAP_VALIDATION
    if isinstance(failure, DuplicateValidationError):
        return DUPLICATE_VALIDATION
    if isinstance(failure, ValidationError):
        return VALIDATION_ERROR
    return UNKNOWN_ERROR


def is_validation_failure(failure: BaseException) -> bool:
    return isinstance(failure, ValidationError)


def classify(
    failure: BaseException,
    context: HookContext | None,
    *,
    strict: bool = False,
    timestamp: datetime | None = None,
) -> ErrorRecord:
    """Classify a failure into an ErrorRecord.

    Hook-level failures default to WARNING. Only validation-originated
    failures under strict validation are tagged CRITICAL.

    Args:
        failure: The exception raised by the wrapped operation
        context: The invocation the failure belongs to
        strict: Whether strict validation is enabled
        timestamp: Fixed timestamp (defaults to now)

    Returns:
        The classified ErrorRecord
    """
    if strict and is_validation_failure(failure):
        severity = Severity.CRITICAL
    else:
        severity = Severity.WARNING

    record_kwargs = {}
    if timestamp is not None:
        record_kwargs["timestamp"] = timestamp

    return ErrorRecord(
        severity=severity,
        code=error_code(failure),
        message=str(failure) or DEFAULT_MESSAGE,
        context=context,
        **record_kwargs,
    )
