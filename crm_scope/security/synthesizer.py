"""
Filter synthesizer: ScopeDecision + explicit query params -> row filter.

One engine for every resource module, parameterized by the ownership table
in `crm_scope.security.ownership`. The resulting `RowFilter` is a plain,
comparable value that can be

- compiled to a SQLAlchemy clause (`to_predicate` / `apply_row_filter`) for
  list queries, and
- evaluated against a loaded ORM object (`matches`) for direct-object checks,

so both paths share one definition of "visible".

Security invariant: explicit params can only narrow the scope-derived filter.
A param that would widen it is ignored (logged at debug), never reported to
the caller, so error text cannot be used to probe scope boundaries.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
import logging
from typing import Any

from sqlalchemy import ColumnElement, Select, and_, false, or_

from crm_scope.security.errors import ObjectAccessDeniedError
from crm_scope.security.hierarchy import ReporteeResolver
from crm_scope.security.ownership import ModuleSpec, get_module_spec
from crm_scope.security.scopes import Principal, Scope, ScopeDecision

logger = logging.getLogger(__name__)

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_EMPLOYEE_PARAMS = ("employeeId", "ownerId", "assigneeId")


@dataclass(frozen=True)
class ScopeParams:
    """Explicit narrowing requested by the caller (query string)."""

    department_id: int | None = None
    employee_id: int | None = None
    recursive: bool = False

    @classmethod
    def from_query(cls, query: Mapping[str, str]) -> ScopeParams:
        """
        Parse `departmentId`, `employeeId` / `ownerId` / `assigneeId` and `recursive`.

        Raises ValueError for non-integer ids.
        """

        employee_id = None
        for name in _EMPLOYEE_PARAMS:
            employee_id = _int_param(query, name)
            if employee_id is not None:
                break

        return cls(
            department_id=_int_param(query, "departmentId"),
            employee_id=employee_id,
            recursive=str(query.get("recursive", "")).strip().lower() in _TRUTHY,
        )


def _int_param(query: Mapping[str, str], name: str) -> int | None:
    raw = query.get(name)
    if raw is None or str(raw).strip() == "":
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid {name}: expected an integer id") from exc


@dataclass(frozen=True)
class RowFilter:
    """
    Row-visibility predicate for one module.

    - `employee_ids`: if set, one of the module's ownership fields (or
      assignment fields when `relation == "assigned"`) must be in this set.
      An empty set matches nothing.
    - `department_id`: if set, the row's resolved department must equal it.

    Both constraints are AND-ed; `None` means "no constraint on that axis".
    """

    module: str
    relation: str = "owner"
    employee_ids: frozenset[int] | None = None
    department_id: int | None = None

    @property
    def unrestricted(self) -> bool:
        return self.employee_ids is None and self.department_id is None


# ---- Synthesis -----------------------------------------------------------------------


def synthesize_filter(
    module: str,
    decision: ScopeDecision,
    principal: Principal,
    params: ScopeParams | None,
    resolver: ReporteeResolver,
) -> RowFilter:
    get_module_spec(module)
    params = params or ScopeParams()

    row_filter = _scope_filter(module, decision.scope, principal, resolver)

    if params.department_id is not None:
        if _department_narrowing_allowed(decision.scope, principal, params.department_id):
            row_filter = replace(row_filter, department_id=params.department_id)
        else:
            logger.debug(
                "Filter: ignoring departmentId=%s outside scope=%s user_id=%s",
                params.department_id,
                decision.scope.value,
                principal.user_id,
            )

    if params.employee_id is not None:
        targets = _employee_targets(decision.scope, principal, params.employee_id, params.recursive, resolver)
        if targets is not None:
            row_filter = replace(row_filter, employee_ids=targets)
        else:
            logger.debug(
                "Filter: ignoring employeeId=%s outside scope=%s user_id=%s",
                params.employee_id,
                decision.scope.value,
                principal.user_id,
            )

    logger.debug("Filter: module=%s scope=%s -> %s", module, decision.scope.value, row_filter)
    return row_filter


def _scope_filter(module: str, scope: Scope, principal: Principal, resolver: ReporteeResolver) -> RowFilter:
    emp = principal.employee_id
    self_ids = frozenset({emp}) if emp is not None else frozenset()

    if scope is Scope.ALL:
        return RowFilter(module=module)
    if scope is Scope.OWN:
        return RowFilter(module=module, employee_ids=self_ids)
    if scope is Scope.ASSIGNED:
        return RowFilter(module=module, relation="assigned", employee_ids=self_ids)
    if scope is Scope.TEAM:
        team = resolver.team(emp) if emp is not None else frozenset()
        return RowFilter(module=module, employee_ids=team)
    if scope is Scope.DEPARTMENT:
        if principal.department_id is None:
            return RowFilter(module=module, employee_ids=frozenset())
        return RowFilter(module=module, department_id=principal.department_id)

    raise ValueError(f"unhandled scope {scope!r}")


def _department_narrowing_allowed(scope: Scope, principal: Principal, department_id: int) -> bool:
    if scope is Scope.ALL:
        return True
    return scope in (Scope.TEAM, Scope.DEPARTMENT) and department_id == principal.department_id


def _employee_targets(
    scope: Scope,
    principal: Principal,
    target: int,
    recursive: bool,
    resolver: ReporteeResolver,
) -> frozenset[int] | None:
    """Employee ids the explicit filter may select, or None when it must be ignored."""

    emp = principal.employee_id

    def expand() -> frozenset[int]:
        if recursive:
            return resolver.closure(target) | {target}
        return frozenset({target})

    if scope is Scope.ALL:
        return expand()

    if scope is Scope.DEPARTMENT:
        if principal.department_id is not None and resolver.department_of(target) == principal.department_id:
            return expand()
        return None

    if scope is Scope.TEAM:
        if emp is None:
            return None
        team = resolver.team(emp)
        if target not in team:
            return None
        return expand() & team

    # own / assigned: only the principal themself.
    if emp is not None and target == emp:
        return frozenset({emp})
    return None


# ---- SQLAlchemy compilation ----------------------------------------------------------


def to_predicate(row_filter: RowFilter) -> ColumnElement[bool] | None:
    """Compile a RowFilter to a clause on its module's model; None when unrestricted."""

    if row_filter.unrestricted:
        return None

    spec = get_module_spec(row_filter.module)
    clauses: list[ColumnElement[bool]] = []

    if row_filter.employee_ids is not None:
        ids = sorted(row_filter.employee_ids)
        if not ids:
            clauses.append(false())
        else:
            clauses.append(
                or_(*(_path_clause(spec.model, p, lambda col: col.in_(ids)) for p in spec.paths_for(row_filter.relation)))
            )

    if row_filter.department_id is not None:
        dept = row_filter.department_id
        clauses.append(or_(*(_path_clause(spec.model, p, lambda col: col == dept) for p in spec.department_paths)))

    return and_(*clauses)


def apply_row_filter(stmt: Select, row_filter: RowFilter | None) -> Select:
    if row_filter is None:
        return stmt
    predicate = to_predicate(row_filter)
    return stmt if predicate is None else stmt.where(predicate)


def _path_clause(model: Any, path: str, build: Callable[[Any], ColumnElement[bool]]) -> ColumnElement[bool]:
    head, _, rest = path.partition(".")
    attr = getattr(model, head)
    if not rest:
        return build(attr)
    target = attr.property.mapper.class_
    return attr.has(_path_clause(target, rest, build))


# ---- Object evaluation ---------------------------------------------------------------


def matches(obj: Any, row_filter: RowFilter) -> bool:
    """Evaluate a RowFilter against a loaded ORM object."""

    spec = get_module_spec(row_filter.module)

    if row_filter.employee_ids is not None:
        values = (_resolve(obj, p) for p in spec.paths_for(row_filter.relation))
        if not any(v is not None and v in row_filter.employee_ids for v in values):
            return False

    if row_filter.department_id is not None:
        if not any(_resolve(obj, p) == row_filter.department_id for p in spec.department_paths):
            return False

    return True


def is_self_owned(obj: Any, spec: ModuleSpec, principal: Principal) -> bool:
    emp = principal.employee_id
    if emp is None:
        return False
    return any(_resolve(obj, p) == emp for p in spec.self_access_paths)


def check_object_access(obj: Any, principal: Principal, base_filter: RowFilter) -> None:
    """
    Direct-object access check.

    Owning, being assigned to, or having created the object always grants
    access. Otherwise the object must satisfy the scope-derived filter (the
    one synthesized without explicit params). Raises ObjectAccessDeniedError.
    """

    spec = get_module_spec(base_filter.module)
    if principal.is_admin or is_self_owned(obj, spec, principal) or matches(obj, base_filter):
        return

    logger.info(
        "Object access denied module=%s id=%s user_id=%s",
        base_filter.module,
        getattr(obj, "id", None),
        principal.user_id,
    )
    raise ObjectAccessDeniedError(base_filter.module, getattr(obj, "id", None))


def _resolve(obj: Any, path: str) -> Any:
    current = obj
    for part in path.split("."):
        if current is None:
            return None
        current = getattr(current, part)
    return current
