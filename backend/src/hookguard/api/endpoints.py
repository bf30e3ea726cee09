"""Admin API endpoints for hook metrics, configuration and rules."""

from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from hookguard.exceptions import ConfigurationError
from hookguard.system import HookSystem


class ConfigUpdateRequest(BaseModel):
    """Partial configuration update.

    `settings` uses the same keys as the config file (camelCase or
    snake_case). With `contentCategory` set, the update only applies to that
    category.
    """

    settings: dict[str, Any]
    contentCategory: str | None = None


class RuleEnabledRequest(BaseModel):
    enabled: bool


def create_admin_router(get_system: Callable[[], HookSystem | None]) -> APIRouter:
    """Create the hook admin router with an injected HookSystem."""
    router = APIRouter(prefix="/api", tags=["hooks"])

    def _system() -> HookSystem:
        system = get_system()
        if system is None:
            raise HTTPException(500, "Hook system not initialized")
        return system

    @router.get("/hooks/metrics")
    async def list_metrics() -> dict[str, Any]:
        """Return metrics for every operation executed so far."""
        metrics = _system().metrics.get_all_metrics()
        return {"data": {name: m.to_dict() for name, m in sorted(metrics.items())}}

    @router.get("/hooks/metrics/{name}")
    async def get_metrics(name: str) -> dict[str, Any]:
        return {"data": _system().metrics.get_metrics(name).to_dict()}

    @router.get("/hooks/slow")
    async def list_slow(threshold_ms: float = 50) -> dict[str, Any]:
        """Return operations whose average execution time exceeds the threshold."""
        slow = _system().metrics.get_slow_operations(threshold_ms)
        return {
            "data": [
                {"name": s.name, "averageExecutionTimeMs": s.average_execution_time_ms}
                for s in slow
            ],
            "thresholdMs": threshold_ms,
        }

    @router.get("/hooks/config")
    async def get_config() -> dict[str, Any]:
        return {"data": _system().config_manager.to_dict()}

    @router.patch("/hooks/config")
    async def update_config(request: ConfigUpdateRequest) -> dict[str, Any]:
        manager = _system().config_manager
        try:
            if request.contentCategory:
                config = manager.update_category_config(request.contentCategory, request.settings)
            else:
                config = manager.update_global_config(request.settings)
        except ConfigurationError as e:
            raise HTTPException(400, str(e))
        return {"data": config.to_dict()}

    @router.get("/rules/stats")
    async def rule_stats() -> dict[str, Any]:
        system = _system()
        return {"data": system.rules.get_stats(), "cache": system.cache.stats()}

    @router.put("/rules/{rule_id}/enabled")
    async def set_rule_enabled(rule_id: str, request: RuleEnabledRequest) -> dict[str, Any]:
        rules = _system().rules
        if not rules.is_registered(rule_id):
            raise HTTPException(404, f"Rule '{rule_id}' not found")
        try:
            rule = rules.set_enabled(rule_id, request.enabled)
        except ConfigurationError as e:
            raise HTTPException(409, str(e))
        return {"data": rule.to_dict()}

    return router
