"""Validation rule engine for hookguard.

Rules are registered per content category in a RuleRegistry and evaluated
by the ValidationEngine in dependency order. Critical rule failures block
the event in strict mode; everything else is reported as a warning.
"""

from hookguard.validation.cache import ResultCache, cache_key, fingerprint
from hookguard.validation.engine import ValidationEngine
from hookguard.validation.formatting import (
    format_for_api,
    format_for_log,
    hook_result_for_api,
    log_result,
)
from hookguard.validation.loader import (
    RuleManifest,
    RuleOverride,
    apply_rule_overrides,
    check_manifest,
    load_manifest,
    parse_manifest,
)
from hookguard.validation.registry import RuleRegistry
from hookguard.validation.types import (
    RULE_ERROR,
    RULE_FAILED,
    RULE_TIMEOUT,
    RuleDefinition,
    RuleOutcome,
    ValidationResult,
)

__all__ = [
    # Types
    "RuleDefinition",
    "RuleOutcome",
    "ValidationResult",
    "RULE_FAILED",
    "RULE_TIMEOUT",
    "RULE_ERROR",
    # Registry and engine
    "RuleRegistry",
    "ValidationEngine",
    "ResultCache",
    "cache_key",
    "fingerprint",
    # Formatting
    "format_for_api",
    "format_for_log",
    "hook_result_for_api",
    "log_result",
    # Manifests
    "RuleManifest",
    "RuleOverride",
    "load_manifest",
    "parse_manifest",
    "apply_rule_overrides",
    "check_manifest",
]
