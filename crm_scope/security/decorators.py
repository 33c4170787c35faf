from __future__ import annotations

from collections.abc import Callable


def require_permission(module: str, action: str, resource: str | None = None) -> Callable:
    """
    Decorator-style alternative to a `routes:` entry in the security config.

    Implementation detail:
    - This decorator does NOT perform authorization itself.
    - It attaches (module, action, resource) metadata that the global security
      dependency reads after routing, during dependency resolution.
    - When both are present, the decorator wins over the config rule.
    """

    def decorator(fn: Callable) -> Callable:
        setattr(fn, "__security_permission__", (module, action, resource or module))
        return fn

    return decorator
