"""Hook system configuration.

HookConfig is a closed, immutable configuration struct; every change goes
through with_overrides(), which validates the new values. HookConfigManager
holds the global config, per-content-category overrides, environment
presets and feature flags, and notifies listeners on change.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from hookguard.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

LOG_LEVELS = ("error", "warn", "info", "debug")

MIN_EXECUTION_TIME_MS = 10
MAX_EXECUTION_TIME_MS = 5000
MAX_RETRY_ATTEMPTS = 10

# camelCase keys accepted from YAML/JSON, mapped to field names
_KEY_ALIASES = {
    "enableStrictValidation": "enable_strict_validation",
    "enableAsyncCalculations": "enable_async_calculations",
    "maxHookExecutionTime": "max_hook_execution_time_ms",
    "maxHookExecutionTimeMs": "max_hook_execution_time_ms",
    "retryAttempts": "retry_attempts",
    "enableGracefulDegradation": "enable_graceful_degradation",
    "logLevel": "log_level",
    "ruleTimeoutMs": "rule_timeout_ms",
}

_CAMEL_NAMES = {
    "enable_strict_validation": "enableStrictValidation",
    "enable_async_calculations": "enableAsyncCalculations",
    "max_hook_execution_time_ms": "maxHookExecutionTimeMs",
    "retry_attempts": "retryAttempts",
    "enable_graceful_degradation": "enableGracefulDegradation",
    "log_level": "logLevel",
    "rule_timeout_ms": "ruleTimeoutMs",
}

_ENV_VARS = {
    "HOOKGUARD_STRICT_VALIDATION": "enable_strict_validation",
    "HOOKGUARD_ASYNC_CALCULATIONS": "enable_async_calculations",
    "HOOKGUARD_MAX_HOOK_EXECUTION_TIME_MS": "max_hook_execution_time_ms",
    "HOOKGUARD_RETRY_ATTEMPTS": "retry_attempts",
    "HOOKGUARD_GRACEFUL_DEGRADATION": "enable_graceful_degradation",
    "HOOKGUARD_LOG_LEVEL": "log_level",
    "HOOKGUARD_RULE_TIMEOUT_MS": "rule_timeout_ms",
}


@dataclass(frozen=True)
class HookConfig:
    """Configuration for hook execution.

    Attributes:
        enable_strict_validation: Critical rule failures block instead of degrading
        enable_async_calculations: Run calculations for after* hooks
        max_hook_execution_time_ms: Deadline for one wrapped operation
        retry_attempts: Retries for operations wrapped with with_retry()
        enable_graceful_degradation: Failed hooks let the event proceed
        log_level: Verbosity of hook logging (error < warn < info < debug)
        rule_timeout_ms: Per-rule deadline (defaults to max_hook_execution_time_ms)
    """

    enable_strict_validation: bool = False
    enable_async_calculations: bool = True
    max_hook_execution_time_ms: float = 100
    retry_attempts: int = 2
    enable_graceful_degradation: bool = True
    log_level: str = "warn"
    rule_timeout_ms: float | None = None

    def __post_init__(self) -> None:
        errors = _validate(asdict(self))
        if errors:
            raise ConfigurationError("Invalid hook configuration: " + "; ".join(errors))

    @property
    def effective_rule_timeout_ms(self) -> float:
        if self.rule_timeout_ms is not None:
            return self.rule_timeout_ms
        return self.max_hook_execution_time_ms

    def logs_at(self, level: str) -> bool:
        """Whether a record at `level` passes the configured verbosity gate."""
        return LOG_LEVELS.index(level) <= LOG_LEVELS.index(self.log_level)

    def with_overrides(self, overrides: dict[str, Any]) -> HookConfig:
        """Return a copy with the given (camelCase or snake_case) overrides applied."""
        if not overrides:
            return self
        return replace(self, **normalize_keys(overrides))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HookConfig:
        """Create HookConfig from a YAML/JSON dict."""
        return cls(**normalize_keys(data or {}))

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> HookConfig:
        """Create config from HOOKGUARD_* environment variables.

        Unset variables keep their defaults.
        """
        environ = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for var, name in _ENV_VARS.items():
            raw = environ.get(var)
            if raw is None or raw == "":
                continue
            values[name] = _parse_env_value(var, name, raw)
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return {_CAMEL_NAMES[k]: v for k, v in asdict(self).items()}


def normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    """Map camelCase keys to field names, rejecting unknown keys."""
    known = {f.name for f in fields(HookConfig)}
    result: dict[str, Any] = {}
    unknown: list[str] = []
    for key, value in data.items():
        name = _KEY_ALIASES.get(key, key)
        if name not in known:
            unknown.append(key)
            continue
        result[name] = value
    if unknown:
        raise ConfigurationError(f"Unknown configuration field(s): {', '.join(sorted(unknown))}")
    return result


def _parse_env_value(var: str, name: str, raw: str) -> Any:
    if name.startswith("enable_"):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if name == "log_level":
        return raw.strip().lower()
    try:
        number = float(raw)
    except ValueError:
        raise ConfigurationError(f"{var} must be a number, got {raw!r}")
    return int(number) if name == "retry_attempts" else number


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate(values: dict[str, Any]) -> list[str]:
    errors: list[str] = []

    for name in ("enable_strict_validation", "enable_async_calculations", "enable_graceful_degradation"):
        if not isinstance(values[name], bool):
            errors.append(f"{name} must be a boolean")

    max_time = values["max_hook_execution_time_ms"]
    if not _is_number(max_time):
        errors.append("max_hook_execution_time_ms must be a number")
    elif not MIN_EXECUTION_TIME_MS <= max_time <= MAX_EXECUTION_TIME_MS:
        errors.append(
            f"max_hook_execution_time_ms must be between {MIN_EXECUTION_TIME_MS} and {MAX_EXECUTION_TIME_MS}"
        )

    retries = values["retry_attempts"]
    if not isinstance(retries, int) or isinstance(retries, bool):
        errors.append("retry_attempts must be an integer")
    elif not 0 <= retries <= MAX_RETRY_ATTEMPTS:
        errors.append(f"retry_attempts must be between 0 and {MAX_RETRY_ATTEMPTS}")

    if values["log_level"] not in LOG_LEVELS:
        errors.append(f"log_level must be one of: {', '.join(LOG_LEVELS)}")

    rule_timeout = values["rule_timeout_ms"]
    if rule_timeout is not None and (not _is_number(rule_timeout) or rule_timeout <= 0):
        errors.append("rule_timeout_ms must be a positive number")

    return errors


# =============================================================================
# Configuration Manager
# =============================================================================


ENVIRONMENT_PRESETS: dict[str, dict[str, Any]] = {
    "development": {"log_level": "debug", "enable_strict_validation": False},
    "staging": {"log_level": "info", "enable_strict_validation": False},
    "production": {"log_level": "warn", "enable_strict_validation": False, "max_hook_execution_time_ms": 50},
    "test": {"log_level": "error", "enable_strict_validation": True, "max_hook_execution_time_ms": 200},
}

DEFAULT_FEATURE_FLAGS: dict[str, bool] = {
    "enableHookMetrics": True,
}


@dataclass(frozen=True)
class ConfigChange:
    """One recorded configuration change."""

    scope: str  # "global", "category:<name>", "featureFlag", "reset"
    key: str
    old_value: Any
    new_value: Any
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


ChangeListener = Callable[[ConfigChange], None]


class HookConfigManager:
    """Runtime-mutable configuration for the hook system.

    Resolution order for a content category:
    1. HookConfig defaults
    2. Environment preset (HOOKGUARD_ENV: development, staging, production, test)
    3. Explicit global configuration
    4. Per-category overrides

    Every update is validated before it is applied; an invalid update raises
    ConfigurationError and leaves the current configuration untouched.
    """

    MAX_HISTORY = 100

    def __init__(
        self,
        global_config: dict[str, Any] | None = None,
        category_overrides: dict[str, dict[str, Any]] | None = None,
        environment: str | None = None,
        feature_flags: dict[str, bool] | None = None,
    ):
        self.environment = environment if environment is not None else os.environ.get("HOOKGUARD_ENV")
        if self.environment and self.environment not in ENVIRONMENT_PRESETS:
            raise ConfigurationError(
                f"Unknown environment '{self.environment}'. "
                f"Expected one of: {', '.join(ENVIRONMENT_PRESETS)}"
            )
        self._initial_global = dict(global_config or {})
        self._lock = threading.RLock()
        self._listeners: list[ChangeListener] = []
        self._history: list[ConfigChange] = []

        self._global = self._base_config().with_overrides(self._initial_global)
        self._category_overrides: dict[str, dict[str, Any]] = {}
        for category, overrides in (category_overrides or {}).items():
            self._global.with_overrides(overrides)  # validate eagerly
            self._category_overrides[category] = normalize_keys(overrides)
        self._feature_flags = {**DEFAULT_FEATURE_FLAGS, **(feature_flags or {})}

    def _base_config(self) -> HookConfig:
        preset = ENVIRONMENT_PRESETS.get(self.environment or "", {})
        return HookConfig().with_overrides(preset)

    # -- reads ---------------------------------------------------------------

    def get_global_config(self) -> HookConfig:
        with self._lock:
            return self._global

    def get_config(self, content_category: str | None = None) -> HookConfig:
        """Effective configuration for a content category."""
        with self._lock:
            if content_category is None:
                return self._global
            return self._global.with_overrides(self._category_overrides.get(content_category, {}))

    def get_feature_flag(self, name: str) -> bool:
        with self._lock:
            return self._feature_flags.get(name, False)

    def get_history(self, limit: int = 50) -> list[ConfigChange]:
        with self._lock:
            return self._history[-limit:]

    # -- writes --------------------------------------------------------------

    def update_global_config(self, overrides: dict[str, Any]) -> HookConfig:
        """Apply overrides to the global configuration.

        Raises:
            ConfigurationError: If any value is invalid (nothing is applied)
        """
        with self._lock:
            old = self._global
            new = old.with_overrides(overrides)
            for overrides_for_category in self._category_overrides.values():
                new.with_overrides(overrides_for_category)
            self._global = new
            change = ConfigChange("global", ",".join(sorted(overrides)), old.to_dict(), new.to_dict())
            self._record(change)
        logger.info("Hook configuration updated: %s", overrides)
        self._emit(change)
        return new

    def update_category_config(self, content_category: str, overrides: dict[str, Any]) -> HookConfig:
        """Apply overrides for a single content category."""
        with self._lock:
            current = dict(self._category_overrides.get(content_category, {}))
            current.update(normalize_keys(overrides))
            effective = self._global.with_overrides(current)
            old = self._category_overrides.get(content_category, {})
            self._category_overrides[content_category] = current
            change = ConfigChange(f"category:{content_category}", ",".join(sorted(overrides)), old, current)
            self._record(change)
        logger.info("Hook configuration for '%s' updated: %s", content_category, overrides)
        self._emit(change)
        return effective

    def set_feature_flag(self, name: str, enabled: bool) -> None:
        with self._lock:
            old = self._feature_flags.get(name, False)
            self._feature_flags[name] = enabled
            change = ConfigChange("featureFlag", name, old, enabled)
            self._record(change)
        self._emit(change)

    def reset_to_defaults(self) -> HookConfig:
        """Drop runtime changes and return to the initial configuration."""
        with self._lock:
            old = self._global
            self._global = self._base_config().with_overrides(self._initial_global)
            self._category_overrides.clear()
            self._feature_flags = dict(DEFAULT_FEATURE_FLAGS)
            change = ConfigChange("reset", "reset", old.to_dict(), self._global.to_dict())
            self._record(change)
        logger.info("Hook configuration reset to defaults")
        self._emit(change)
        return self._global

    # -- listeners -----------------------------------------------------------

    def add_change_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def remove_change_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _record(self, change: ConfigChange) -> None:
        self._history.append(change)
        if len(self._history) > self.MAX_HISTORY:
            del self._history[: len(self._history) - self.MAX_HISTORY]

    def _emit(self, change: ConfigChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception("Configuration change listener failed")

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "environment": self.environment,
                "global": self._global.to_dict(),
                "contentCategories": {
                    category: self.get_config(category).to_dict() for category in sorted(self._category_overrides)
                },
                "featureFlags": dict(self._feature_flags),
            }


def load_config_file(path: Path) -> HookConfigManager:
    """Build a HookConfigManager from a YAML file.

    Expected layout:

        environment: production        # optional
        global:
          enableStrictValidation: false
          maxHookExecutionTimeMs: 100
        contentCategories:
          team:
            enableStrictValidation: true
        featureFlags:
          enableHookMetrics: false
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: expected a mapping at the top level")

    unknown = set(data) - {"environment", "global", "contentCategories", "featureFlags"}
    if unknown:
        raise ConfigurationError(f"{path}: unknown section(s): {', '.join(sorted(unknown))}")

    return HookConfigManager(
        global_config=data.get("global") or {},
        category_overrides=data.get("contentCategories") or {},
        environment=data.get("environment"),
        feature_flags=data.get("featureFlags") or {},
    )
