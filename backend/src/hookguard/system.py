"""Wiring of the hook system components.

HookSystem bundles the shared state objects (configuration, metrics, rule
registry, result cache) and the services built on them, so an application
creates everything once at startup and passes it around explicitly.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from hookguard.calculations import CalculationService
from hookguard.config import HookConfigManager, load_config_file
from hookguard.hooks.dispatcher import LifecycleDispatcher
from hookguard.hooks.metrics import MetricsRecorder
from hookguard.hooks.registry import HookRegistry
from hookguard.lifecycle import ContentLifecycle, ExistingLoader
from hookguard.validation.cache import ResultCache
from hookguard.validation.engine import ValidationEngine
from hookguard.validation.registry import RuleRegistry

logger = logging.getLogger(__name__)


@dataclass
class HookSystem:
    """All hook system components for one process."""

    config_manager: HookConfigManager = field(default_factory=HookConfigManager)
    metrics: MetricsRecorder = field(default_factory=MetricsRecorder)
    hooks: HookRegistry = field(default_factory=HookRegistry)
    rules: RuleRegistry = field(default_factory=RuleRegistry)
    cache: ResultCache = field(default_factory=ResultCache)

    def __post_init__(self) -> None:
        self.engine = ValidationEngine(self.rules, config_manager=self.config_manager, cache=self.cache)
        self.calculations = CalculationService(config_manager=self.config_manager)
        self.dispatcher = LifecycleDispatcher(
            self.hooks, config_manager=self.config_manager, metrics=self.metrics
        )

    @classmethod
    def from_config_file(cls, path: Path) -> "HookSystem":
        return cls(config_manager=load_config_file(path))

    def enable_content_lifecycle(
        self,
        content_category: str,
        load_existing: ExistingLoader | None = None,
    ) -> ContentLifecycle:
        """Register the default calculations + rules lifecycle for a category."""
        lifecycle = ContentLifecycle(
            content_category,
            self.engine,
            calculations=self.calculations,
            config_manager=self.config_manager,
            load_existing=load_existing,
        )
        self.hooks.register(content_category, lifecycle)
        logger.info("Content lifecycle enabled for '%s'", content_category)
        return lifecycle
