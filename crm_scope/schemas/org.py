from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class DepartmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    code: str


class RoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    code: str
    department_id: int | None


class EmployeeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    emp_code: str
    first_name: str
    last_name: str
    email: str
    department_id: int
    role_id: int | None
    manager_id: int | None
    status: str


class ReporteesOut(BaseModel):
    employee_id: int
    reportee_ids: list[int]


class ManagerUpdate(BaseModel):
    manager_id: int | None


class GrantOut(BaseModel):
    module: str
    action: str
    scope: str


class MeOut(BaseModel):
    user_id: int
    employee_id: int | None
    department_id: int | None
    role_code: str | None
    is_admin: bool
    grants: list[GrantOut]


class PermissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    module: str
    action: str
    scope_type: str


class RolePermissionSync(BaseModel):
    permission_ids: list[int] = Field(default_factory=list)
