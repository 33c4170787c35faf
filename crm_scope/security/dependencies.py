from __future__ import annotations

import logging
from typing import Any

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from crm_scope.db.session import get_db
from crm_scope.security.auth import extract_user_id, load_principal
from crm_scope.security.authorizer import authorize
from crm_scope.security.config import SecurityConfig
from crm_scope.security.context import AuthzContext
from crm_scope.security.errors import ObjectAccessDeniedError, PermissionDeniedError
from crm_scope.security.hierarchy import ReporteeResolver, SqlHierarchyStore
from crm_scope.security.ownership import has_module_spec
from crm_scope.security.scopes import Principal
from crm_scope.security.synthesizer import ScopeParams, check_object_access, synthesize_filter
from crm_scope.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def get_security_config(request: Request) -> SecurityConfig:
    config = getattr(request.app.state, "security_config", None)
    if config is None:
        raise RuntimeError("Security config not loaded. Did app startup run?")
    return config


def get_current_principal(request: Request) -> Principal:
    principal = getattr(request.state, "principal", None)
    if principal is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return principal


def get_authz(request: Request) -> AuthzContext:
    authz = getattr(request.state, "authz", None)
    if authz is None:
        raise RuntimeError(f"No authorization context for {request.method} {request.url.path}; missing route rule?")
    return authz


def enforce_security(
    request: Request,
    config: SecurityConfig = Depends(get_security_config),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db, use_cache=False),
) -> None:
    """
    Global security dependency.

    Pipeline: token -> Principal (fresh from the DB) -> ScopeDecision for the
    route's (module, action) -> row filter for the route's resource. The
    result is stored on `request.state.authz`; `get_db` hands it to the
    session so list queries are scoped without changes to route handlers.
    """

    rule = config.match(request.url.path, request.method)

    # Decorator metadata (alternative to config rules).
    endpoint = request.scope.get("endpoint")
    decorated = getattr(endpoint, "__security_permission__", None) if endpoint else None
    if decorated is not None:
        module, action, resource = decorated
    else:
        module, action, resource = rule.module, rule.action, rule.resource

    if not (rule.auth_required or module is not None):
        return

    user_id = extract_user_id(request, config, settings)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication token required")

    principal = load_principal(db, user_id)
    request.state.principal = principal

    if module is None:
        return

    try:
        decision = authorize(principal, module, action)
    except PermissionDeniedError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.message) from exc

    row_filter = base_filter = None
    if has_module_spec(resource):
        try:
            params = ScopeParams.from_query(request.query_params)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

        resolver = ReporteeResolver(SqlHierarchyStore(db))
        base_filter = synthesize_filter(resource, decision, principal, None, resolver)
        row_filter = synthesize_filter(resource, decision, principal, params, resolver)

    authz = AuthzContext(
        principal=principal,
        decision=decision,
        resource=resource if has_module_spec(resource) else None,
        row_filter=row_filter,
        base_filter=base_filter,
    )
    request.state.authz = authz
    # FastAPI may hand this same session to the route handler from its dependency cache.
    db.info["authz"] = authz


def require_object_access(obj: Any, authz: AuthzContext, label: str = "Resource") -> Any:
    """
    Direct-object guard: 404 when missing, 403 when found but outside scope.

    Load `obj` with the `skip_row_scope` execution option so an out-of-scope
    row is still found and reported as 403 rather than hidden as 404.
    """

    if obj is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found")

    if authz.base_filter is None:
        return obj

    try:
        check_object_access(obj, authz.principal, authz.base_filter)
    except ObjectAccessDeniedError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.message) from exc
    return obj


def require_employee_id(authz: AuthzContext) -> int:
    """Self-service writes need an employee behind the user account."""

    if authz.employee_id is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Employee profile required")
    return authz.employee_id
