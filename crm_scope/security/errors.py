"""
Exception taxonomy for the scope-resolution engine.

These are plain Python exceptions; the FastAPI layer converts them to
`HTTPException` at the dependency / route boundary.
"""

from __future__ import annotations


class AuthorizationError(Exception):
    """Base for failures that end a request with a structured denial."""

    status_code = 403

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NoPrincipalError(AuthorizationError):
    """No authenticated (or no active) identity behind the request."""

    status_code = 401


class PermissionDeniedError(AuthorizationError):
    """The principal holds no grant for the requested (module, action)."""

    def __init__(self, module: str, action: str, message: str) -> None:
        super().__init__(message)
        self.module = module
        self.action = action


class ObjectAccessDeniedError(AuthorizationError):
    """A single resource exists but lies outside the principal's scope."""

    def __init__(self, module: str, object_id: object | None = None) -> None:
        super().__init__(f"Access denied: this {module} record is outside your permitted scope")
        self.module = module
        self.object_id = object_id


class HierarchyLookupError(Exception):
    """Raised by a hierarchy store when the org chart cannot be read."""


class HierarchyCycleError(ValueError):
    """Raised when a manager change would make an employee report to itself."""


class AmbiguousGrantError(ValueError):
    """Raised when a role would hold two scopes for the same (module, action)."""

    def __init__(self, role_id: int, module: str, action: str, scopes: list[str]) -> None:
        super().__init__(
            f"role {role_id} would hold multiple scopes for ({module}, {action}): {sorted(scopes)}"
        )
        self.role_id = role_id
        self.module = module
        self.action = action
        self.scopes = sorted(scopes)


class UnknownPermissionError(LookupError):
    """Raised when a permission id / role id referenced by a grant write does not exist."""
