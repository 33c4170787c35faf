"""
Ownership table: which fields mean "own", "assigned" and "department" per module.

This is configuration data for the filter synthesizer. Field paths are dotted
attribute paths from the resource model: `owner_id` is a column, and
`lead.owner_id` walks a many-to-one relationship first. Several paths in one
tuple are OR-ed together.
"""

from __future__ import annotations

from dataclasses import dataclass

from crm_scope.db.base import Base
from crm_scope.models.crm import Attendance, EodReport, Lead, LeaveRequest, Product, Project, Task
from crm_scope.models.org import Employee


@dataclass(frozen=True)
class ModuleSpec:
    name: str
    model: type[Base]
    owner_paths: tuple[str, ...]
    assigned_paths: tuple[str, ...]
    department_paths: tuple[str, ...]

    def paths_for(self, relation: str) -> tuple[str, ...]:
        if relation == "assigned":
            return self.assigned_paths or self.owner_paths
        return self.owner_paths

    @property
    def self_access_paths(self) -> tuple[str, ...]:
        # Ownership or assignment grants direct-object access regardless of scope.
        return tuple(dict.fromkeys(self.owner_paths + self.assigned_paths))


_EMPLOYEE_OWNED = dict(
    owner_paths=("employee_id",),
    assigned_paths=("employee_id",),
    department_paths=("employee.department_id",),
)

MODULES: dict[str, ModuleSpec] = {
    spec.name: spec
    for spec in (
        ModuleSpec(
            name="leads",
            model=Lead,
            owner_paths=("owner_id",),
            assigned_paths=("owner_id",),
            department_paths=("department_id",),
        ),
        ModuleSpec(
            name="tasks",
            model=Task,
            owner_paths=("assignee_id", "creator_id"),
            assigned_paths=("assignee_id",),
            department_paths=("assignee.department_id", "creator.department_id"),
        ),
        ModuleSpec(name="attendance", model=Attendance, **_EMPLOYEE_OWNED),
        ModuleSpec(name="eod", model=EodReport, **_EMPLOYEE_OWNED),
        ModuleSpec(name="leaves", model=LeaveRequest, **_EMPLOYEE_OWNED),
        ModuleSpec(
            name="products",
            model=Product,
            owner_paths=("product_manager_id",),
            assigned_paths=("product_manager_id",),
            department_paths=("product_manager.department_id",),
        ),
        ModuleSpec(
            name="projects",
            model=Project,
            owner_paths=("lead.owner_id",),
            assigned_paths=("lead.owner_id",),
            department_paths=("lead.department_id",),
        ),
        ModuleSpec(
            name="employees",
            model=Employee,
            owner_paths=("id",),
            assigned_paths=("id",),
            department_paths=("department_id",),
        ),
    )
}


def get_module_spec(module: str) -> ModuleSpec:
    try:
        return MODULES[module]
    except KeyError:
        raise KeyError(f"no ownership mapping for module {module!r}") from None


def has_module_spec(module: str | None) -> bool:
    return module is not None and module in MODULES
