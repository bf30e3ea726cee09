"""Registry of lifecycle hook implementations.

Each content category has at most one LifecycleHooks implementation.
Registration is typically done at application startup, either directly or
through the @lifecycle_hooks decorator on a class.
"""

from collections.abc import Callable
from typing import Any

from hookguard.hooks.types import HookKind, LifecycleHooks

REQUIRED_METHODS = ("before_create", "before_update", "after_create", "after_update")


class HookRegistry:
    """Maps content categories to their LifecycleHooks implementation.

    Example:
        registry = HookRegistry()
        registry.register("team", TeamHooks(engine))
        hooks = registry.get("team")
    """

    def __init__(self) -> None:
        self._hooks: dict[str, LifecycleHooks] = {}

    def register(self, content_category: str, hooks: Any) -> None:
        """Register the implementation for a content category.

        Re-registering a category replaces its implementation.

        Raises:
            TypeError: If the implementation lacks a required lifecycle method
        """
        missing = [name for name in REQUIRED_METHODS if not callable(getattr(hooks, name, None))]
        if missing:
            raise TypeError(
                f"Hooks for '{content_category}' must implement: {', '.join(missing)}"
            )
        self._hooks[content_category] = hooks

    def unregister(self, content_category: str) -> bool:
        return self._hooks.pop(content_category, None) is not None

    def get(self, content_category: str) -> LifecycleHooks:
        """Get the implementation for a content category.

        Raises:
            ValueError: If nothing is registered for the category
        """
        if content_category not in self._hooks:
            raise ValueError(
                f"No lifecycle hooks registered for '{content_category}'. "
                "Hooks must be explicitly registered at application startup."
            )
        return self._hooks[content_category]

    def resolve(self, content_category: str, hook_kind: HookKind) -> Callable[..., Any] | None:
        """Get the bound method for a hook kind, or None if not implemented."""
        hooks = self._hooks.get(content_category)
        if hooks is None:
            return None
        method = getattr(hooks, hook_kind.method_name, None)
        return method if callable(method) else None

    def is_registered(self, content_category: str) -> bool:
        return content_category in self._hooks

    def list_registered(self) -> list[str]:
        return sorted(self._hooks.keys())

    def clear(self) -> None:
        """Clear all registrations. Primarily for testing."""
        self._hooks.clear()


def lifecycle_hooks(registry: HookRegistry, content_category: str, *args: Any, **kwargs: Any) -> Callable[[type], type]:
    """Class decorator that instantiates and registers a hooks implementation.

    Usage:
        @lifecycle_hooks(registry, "season")
        class SeasonHooks:
            async def before_create(self, event): ...
    """

    def decorator(cls: type) -> type:
        registry.register(content_category, cls(*args, **kwargs))
        return cls

    return decorator
