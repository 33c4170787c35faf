from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from crm_scope.models.org import Role, User
from crm_scope.security.errors import NoPrincipalError
from crm_scope.security.scopes import ADMIN_ROLE_CODE, Grant, Principal, Scope

logger = logging.getLogger(__name__)


def resolve_principal(db: Session, user_id: int) -> Principal:
    """
    Build the Principal for `user_id` from the database.

    Always reads the role and its permission rows fresh (no token payload, no
    session cache), so role edits and revocations apply on the next request.
    The ADMIN role code short-circuits to an explicit bypass principal.
    """

    user = db.execute(
        select(User)
        .where(User.id == user_id)
        .options(
            selectinload(User.employee),
            selectinload(User.role).selectinload(Role.permissions),
        )
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()

    if user is None or not user.is_active:
        logger.info("Principal: unknown or inactive user_id=%s", user_id)
        raise NoPrincipalError("Invalid or inactive user")

    employee = user.employee
    employee_id = employee.id if employee is not None else None
    department_id = employee.department_id if employee is not None else user.department_id

    role = user.role
    if role is None:
        return Principal(
            user_id=user.id,
            employee_id=employee_id,
            department_id=department_id,
            role_code=None,
        )

    if role.code == ADMIN_ROLE_CODE:
        return Principal(
            user_id=user.id,
            employee_id=employee_id,
            department_id=department_id,
            role_code=role.code,
            is_admin=True,
        )

    grants = tuple(Grant(module=p.module, action=p.action, scope=Scope(p.scope_type)) for p in role.permissions)
    logger.debug("Principal: user_id=%s role=%s grants=%s", user.id, role.code, len(grants))
    return Principal(
        user_id=user.id,
        employee_id=employee_id,
        department_id=department_id,
        role_code=role.code,
        grants=grants,
    )
