"""Lifecycle event dispatcher.

Routes a lifecycle event to the registered implementation for its content
category and runs it through that category's HookExecutor. Executors share
one MetricsRecorder and one HookConfigManager.
"""

import logging
import threading

from hookguard.config import HookConfigManager
from hookguard.hooks.executor import HookExecutor
from hookguard.hooks.metrics import MetricsRecorder, OperationMetrics, SlowOperation
from hookguard.hooks.registry import HookRegistry
from hookguard.hooks.types import HookEvent, HookKind, HookResult

logger = logging.getLogger(__name__)


class LifecycleDispatcher:
    """Dispatches lifecycle events to per-category hook implementations."""

    def __init__(
        self,
        registry: HookRegistry,
        config_manager: HookConfigManager | None = None,
        metrics: MetricsRecorder | None = None,
    ):
        self.registry = registry
        self.config_manager = config_manager or HookConfigManager()
        self.metrics = metrics or MetricsRecorder()
        self._executors: dict[str, HookExecutor] = {}
        self._lock = threading.Lock()

    def executor_for(self, content_category: str) -> HookExecutor:
        """Get (or create) the executor for a content category."""
        with self._lock:
            executor = self._executors.get(content_category)
            if executor is None:
                executor = HookExecutor(
                    content_category,
                    metrics=self.metrics,
                    config_manager=self.config_manager,
                )
                self._executors[content_category] = executor
            return executor

    async def dispatch(self, content_category: str, hook_kind: HookKind, event: HookEvent) -> HookResult:
        """Run the hook for `hook_kind` on `content_category`.

        Categories or hook kinds without an implementation succeed
        immediately without touching metrics.
        """
        method = self.registry.resolve(content_category, hook_kind)
        if method is None:
            logger.debug("No %s hook for '%s', skipping", hook_kind.value, content_category)
            return HookResult(success=True, can_proceed=True, modified_data=None)

        executor = self.executor_for(content_category)
        return await executor.execute(hook_kind, event, lambda: method(event))

    def get_metrics(self, content_category: str) -> dict[str, OperationMetrics]:
        """Metrics for every hook kind of a content category."""
        return {
            kind.value: self.metrics.get_metrics(f"{content_category}.{kind.value}")
            for kind in HookKind
        }

    def get_slow_hooks(self, threshold_ms: float = 50) -> list[SlowOperation]:
        return self.metrics.get_slow_operations(threshold_ms)
