from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from crm_scope.db.session import get_db
from crm_scope.models.org import Permission
from crm_scope.schemas.org import GrantOut, PermissionOut, RolePermissionSync
from crm_scope.security.errors import AmbiguousGrantError, UnknownPermissionError
from crm_scope.security.registry import PermissionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/permissions", response_model=list[PermissionOut])
def list_permissions(db: Session = Depends(get_db)) -> list[Permission]:
    return PermissionRegistry(db).list_permissions()


@router.get("/permissions-matrix", response_model=dict[str, list[GrantOut]])
def permissions_matrix(db: Session = Depends(get_db)) -> dict[str, list[GrantOut]]:
    matrix = PermissionRegistry(db).permission_matrix()
    return {code: [GrantOut(**g.to_dict()) for g in grants] for code, grants in matrix.items()}


@router.get("/roles/{role_id}/permissions", response_model=list[PermissionOut])
def role_permissions(role_id: int, db: Session = Depends(get_db)) -> list[Permission]:
    try:
        return PermissionRegistry(db).role_permissions(role_id)
    except UnknownPermissionError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.put("/roles/{role_id}/permissions", response_model=list[PermissionOut])
def sync_role_permissions(role_id: int, payload: RolePermissionSync, db: Session = Depends(get_db)) -> list[Permission]:
    try:
        perms = PermissionRegistry(db).sync_role_permissions(role_id, payload.permission_ids)
    except UnknownPermissionError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except AmbiguousGrantError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    db.commit()
    return perms


@router.post("/roles/{role_id}/permissions/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
def grant_permission(role_id: int, permission_id: int, db: Session = Depends(get_db)) -> Response:
    try:
        PermissionRegistry(db).grant(role_id, permission_id)
    except UnknownPermissionError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except AmbiguousGrantError as exc:
        db.rollback()
        logger.warning("Rejected ambiguous grant: %s", exc)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/roles/{role_id}/permissions/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
def revoke_permission(role_id: int, permission_id: int, db: Session = Depends(get_db)) -> Response:
    if not PermissionRegistry(db).revoke(role_id, permission_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Grant not found")
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
