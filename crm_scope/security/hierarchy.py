"""
Org-chart traversal: reportee closure over the manager -> reports edges.

The closure itself is a pure function over an edge list. Stores only supply
edges (and an employee's department), so the algorithm can be tested with an
in-memory list and reused with any persistence backend.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
import logging
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from crm_scope.db.filters import SKIP_ROW_SCOPE
from crm_scope.models.org import Employee
from crm_scope.security.errors import HierarchyLookupError

logger = logging.getLogger(__name__)

# (employee_id, manager_id)
Edge = tuple[int, "int | None"]


class HierarchyStore(Protocol):
    def reporting_edges(self) -> Iterable[Edge]: ...

    def department_of(self, employee_id: int) -> int | None: ...


def reportee_closure(edges: Iterable[Edge], employee_id: int) -> set[int]:
    """
    Return every employee whose manager chain terminates at `employee_id`.

    `employee_id` itself is never part of the result, even when corrupted data
    makes it reachable from its own reports. Visited ids are expanded at most
    once, so a cycle ends the walk instead of looping.
    """

    reports: dict[int, list[int]] = {}
    for emp_id, manager_id in edges:
        if manager_id is not None:
            reports.setdefault(manager_id, []).append(emp_id)

    found: set[int] = set()
    visited: set[int] = {employee_id}
    queue = deque([employee_id])
    while queue:
        current = queue.popleft()
        for report_id in reports.get(current, ()):
            if report_id in visited:
                continue
            visited.add(report_id)
            found.add(report_id)
            queue.append(report_id)

    return found


class InMemoryHierarchyStore:
    """Edge-list store; handy for tests and for pre-fetched snapshots."""

    def __init__(self, edges: Iterable[Edge], departments: dict[int, int] | None = None) -> None:
        self._edges = list(edges)
        self._departments = dict(departments or {})

    def reporting_edges(self) -> list[Edge]:
        return list(self._edges)

    def department_of(self, employee_id: int) -> int | None:
        return self._departments.get(employee_id)


class SqlHierarchyStore:
    """
    Reads the employee hierarchy through a SQLAlchemy session.

    Always reads the whole org chart, even on a request session that carries
    row scoping: a chain may pass through employees the caller cannot see.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def reporting_edges(self) -> list[Edge]:
        # Inactive employees stay in the chart: their historical rows must remain
        # visible to their former managers.
        try:
            stmt = select(Employee.id, Employee.manager_id).execution_options(**{SKIP_ROW_SCOPE: True})
            rows = self._db.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise HierarchyLookupError("could not read reporting edges") from exc
        return [(row.id, row.manager_id) for row in rows]

    def department_of(self, employee_id: int) -> int | None:
        try:
            return self._db.execute(
                select(Employee.department_id)
                .where(Employee.id == employee_id)
                .execution_options(**{SKIP_ROW_SCOPE: True})
            ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise HierarchyLookupError(f"could not read department of employee {employee_id}") from exc


class ReporteeResolver:
    """
    Request-scoped facade over a `HierarchyStore`.

    Fails closed: a store error yields an empty team (and no department), which
    removes team visibility instead of over-granting. Results are memoized for
    the lifetime of this instance only, i.e. one request.
    """

    def __init__(self, store: HierarchyStore) -> None:
        self._store = store
        self._edges: list[Edge] | None = None
        self._closures: dict[int, frozenset[int]] = {}

    def closure(self, employee_id: int) -> frozenset[int]:
        cached = self._closures.get(employee_id)
        if cached is not None:
            return cached

        edges = self._load_edges()
        if edges is None:
            return frozenset()

        result = frozenset(reportee_closure(edges, employee_id))
        self._closures[employee_id] = result
        logger.debug("Reportee closure employee_id=%s size=%s", employee_id, len(result))
        return result

    def team(self, employee_id: int) -> frozenset[int]:
        """Closure plus the employee themself."""
        return self.closure(employee_id) | {employee_id}

    def department_of(self, employee_id: int) -> int | None:
        try:
            return self._store.department_of(employee_id)
        except HierarchyLookupError:
            logger.error("Department lookup failed employee_id=%s (failing closed)", employee_id, exc_info=True)
            return None

    def _load_edges(self) -> list[Edge] | None:
        if self._edges is not None:
            return self._edges
        try:
            self._edges = list(self._store.reporting_edges())
        except HierarchyLookupError:
            logger.error("Hierarchy lookup failed; team scope degrades to empty", exc_info=True)
            return None
        return self._edges


def would_create_cycle(edges: Iterable[Edge], employee_id: int, new_manager_id: int | None) -> bool:
    """True when making `new_manager_id` the manager of `employee_id` closes a loop."""

    if new_manager_id is None:
        return False
    if new_manager_id == employee_id:
        return True
    return new_manager_id in reportee_closure(edges, employee_id)
