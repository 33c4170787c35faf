"""
Core value types of the scope-resolution engine.

Pure Python: no FastAPI or SQLAlchemy dependency, so the authorizer and the
filter synthesizer can be exercised with plain values in tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

# Reserved role code. Recognized on every principal resolution, so a role
# promoted to ADMIN mid-session takes effect on the next request.
ADMIN_ROLE_CODE = "ADMIN"

ACTIONS = frozenset({"view", "edit", "create", "delete", "assign", "approve", "generate", "manage"})


class Scope(str, Enum):
    """Breadth of rows a grant exposes, narrowest first."""

    OWN = "own"
    TEAM = "team"
    DEPARTMENT = "department"
    ASSIGNED = "assigned"
    ALL = "all"

    @property
    def breadth(self) -> int:
        return _SCOPE_ORDER.index(self)


_SCOPE_ORDER = [Scope.OWN, Scope.TEAM, Scope.DEPARTMENT, Scope.ASSIGNED, Scope.ALL]


@dataclass(frozen=True)
class Grant:
    """A (module, action, scope) triple held by a role."""

    module: str
    action: str
    scope: Scope

    def to_dict(self) -> dict[str, str]:
        return {"module": self.module, "action": self.action, "scope": self.scope.value}


@dataclass(frozen=True)
class Principal:
    """
    Request-scoped identity plus effective grants.

    Built fresh for every request by `resolve_principal`; never cached on a
    session or token so that revocations apply on the very next call.
    """

    user_id: int
    employee_id: int | None
    department_id: int | None
    role_code: str | None
    grants: tuple[Grant, ...] = field(default_factory=tuple)
    is_admin: bool = False

    def grants_for(self, module: str, action: str) -> list[Grant]:
        return [g for g in self.grants if g.module == module and g.action == action]


@dataclass(frozen=True)
class ScopeDecision:
    """Outcome of a successful authorization for one (module, action)."""

    module: str
    action: str
    scope: Scope
