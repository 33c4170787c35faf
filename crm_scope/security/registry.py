"""
Permission registry: the (module, action, scope) catalogue and the
role -> permission assignment matrix.

All grant writes go through this class so that the one-scope-per
role x module x action rule is checked before the database constraint.
"""

from __future__ import annotations

from collections.abc import Iterable
import logging

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, selectinload

from crm_scope.models.org import Permission, Role, RolePermission
from crm_scope.security.errors import AmbiguousGrantError, UnknownPermissionError
from crm_scope.security.scopes import ACTIONS, Grant, Scope

logger = logging.getLogger(__name__)


def check_unambiguous(role_id: int, permissions: Iterable[Permission]) -> None:
    """Raise AmbiguousGrantError if two permissions share (module, action)."""

    seen: dict[tuple[str, str], set[str]] = {}
    for perm in permissions:
        seen.setdefault((perm.module, perm.action), set()).add(perm.scope_type)

    for (module, action), scopes in seen.items():
        if len(scopes) > 1:
            raise AmbiguousGrantError(role_id, module, action, list(scopes))


class PermissionRegistry:
    def __init__(self, db: Session) -> None:
        self._db = db

    # ---- Catalogue ------------------------------------------------------------------

    def list_permissions(self) -> list[Permission]:
        stmt = select(Permission).order_by(Permission.module, Permission.action, Permission.id)
        return list(self._db.scalars(stmt).all())

    def ensure_permission(self, module: str, action: str, scope: Scope | str) -> Permission:
        """Get-or-create a catalogue entry."""

        scope = Scope(scope)
        if action not in ACTIONS:
            raise ValueError(f"unknown action {action!r}")

        perm = self._db.execute(
            select(Permission).where(
                Permission.module == module,
                Permission.action == action,
                Permission.scope_type == scope.value,
            )
        ).scalar_one_or_none()
        if perm is None:
            perm = Permission(module=module, action=action, scope_type=scope.value)
            self._db.add(perm)
            self._db.flush()
        return perm

    # ---- Assignment matrix ----------------------------------------------------------

    def role_permissions(self, role_id: int) -> list[Permission]:
        self._get_role(role_id)
        stmt = (
            select(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role_id == role_id)
            .order_by(Permission.id)
        )
        return list(self._db.scalars(stmt).all())

    def role_grants(self, role_id: int) -> list[Grant]:
        return [_to_grant(p) for p in self.role_permissions(role_id)]

    def permission_matrix(self) -> dict[str, list[Grant]]:
        """Role code -> grants, for every role."""

        stmt = (
            select(Role)
            .options(selectinload(Role.permissions))
            .order_by(Role.id)
            .execution_options(populate_existing=True)
        )
        roles = self._db.scalars(stmt).all()
        return {role.code: [_to_grant(p) for p in role.permissions] for role in roles}

    def grant(self, role_id: int, permission_id: int) -> RolePermission:
        """
        Attach one permission to a role.

        Idempotent for an identical grant; raises AmbiguousGrantError when the
        role already holds a different scope for the same (module, action).
        """

        self._get_role(role_id)
        perm = self._get_permission(permission_id)

        existing = self._db.execute(
            select(RolePermission)
            .where(
                RolePermission.role_id == role_id,
                RolePermission.module == perm.module,
                RolePermission.action == perm.action,
            )
            .options(selectinload(RolePermission.permission))
        ).scalar_one_or_none()

        if existing is not None:
            if existing.permission_id == perm.id:
                return existing
            raise AmbiguousGrantError(
                role_id,
                perm.module,
                perm.action,
                [existing.permission.scope_type, perm.scope_type],
            )

        link = RolePermission(role_id=role_id, permission_id=perm.id, module=perm.module, action=perm.action)
        self._db.add(link)
        self._db.flush()
        logger.info("Granted role_id=%s %s.%s scope=%s", role_id, perm.module, perm.action, perm.scope_type)
        return link

    def revoke(self, role_id: int, permission_id: int) -> bool:
        result = self._db.execute(
            delete(RolePermission).where(
                RolePermission.role_id == role_id,
                RolePermission.permission_id == permission_id,
            )
        )
        removed = bool(result.rowcount)
        if removed:
            logger.info("Revoked role_id=%s permission_id=%s", role_id, permission_id)
        return removed

    def sync_role_permissions(self, role_id: int, permission_ids: Iterable[int]) -> list[Permission]:
        """
        Replace a role's permission set.

        The whole new set is validated first; nothing is written when it holds
        an unknown id or two scopes for one (module, action).
        """

        self._get_role(role_id)
        wanted = sorted(set(permission_ids))

        perms = list(self._db.scalars(select(Permission).where(Permission.id.in_(wanted))).all()) if wanted else []
        missing = set(wanted).difference(p.id for p in perms)
        if missing:
            raise UnknownPermissionError(f"unknown permission ids: {sorted(missing)}")

        check_unambiguous(role_id, perms)

        self._db.execute(delete(RolePermission).where(RolePermission.role_id == role_id))
        self._db.add_all(
            RolePermission(role_id=role_id, permission_id=p.id, module=p.module, action=p.action) for p in perms
        )
        self._db.flush()
        logger.info("Synced role_id=%s permissions=%s", role_id, wanted)
        return perms

    # ---- Helpers --------------------------------------------------------------------

    def _get_role(self, role_id: int) -> Role:
        role = self._db.get(Role, role_id)
        if role is None:
            raise UnknownPermissionError(f"unknown role id {role_id}")
        return role

    def _get_permission(self, permission_id: int) -> Permission:
        perm = self._db.get(Permission, permission_id)
        if perm is None:
            raise UnknownPermissionError(f"unknown permission id {permission_id}")
        return perm


def _to_grant(perm: Permission) -> Grant:
    return Grant(module=perm.module, action=perm.action, scope=Scope(perm.scope_type))
