from __future__ import annotations

from dataclasses import dataclass

from crm_scope.security.scopes import Principal, ScopeDecision
from crm_scope.security.synthesizer import RowFilter


@dataclass(frozen=True)
class AuthzContext:
    """
    Per-request authorization context.

    Computed once by the global security dependency and attached to:
    - request.state (FastAPI request lifetime)
    - Session.info (SQLAlchemy session lifetime)

    Downstream code reads the decision from here and never recomputes it.
    """

    principal: Principal
    decision: ScopeDecision

    # Table the row filters apply to (None: the route is not row-scoped).
    resource: str | None

    # Filter for list queries, including any honored explicit narrowing.
    row_filter: RowFilter | None

    # Scope-only filter, used for direct-object checks.
    base_filter: RowFilter | None

    @property
    def user_id(self) -> int:
        return self.principal.user_id

    @property
    def employee_id(self) -> int | None:
        return self.principal.employee_id
