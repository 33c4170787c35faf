from __future__ import annotations

import logging

from crm_scope.security.errors import PermissionDeniedError
from crm_scope.security.scopes import Principal, Scope, ScopeDecision

logger = logging.getLogger(__name__)


ACTION_PHRASES: dict[str, str] = {
    "view": "view this content",
    "create": "create new items",
    "edit": "make changes",
    "delete": "delete items",
    "assign": "assign items",
}


def denial_message(module: str, action: str) -> str:
    readable = ACTION_PHRASES.get(action, action)
    return f"You don't have permission to {readable} in {module}."


def authorize(principal: Principal, module: str, action: str) -> ScopeDecision:
    """
    Decide the scope `principal` holds for (module, action).

    Algorithm:
    1. ADMIN principals get `all` without consulting any grant.
    2. Otherwise look for grants matching (module, action).
    3. No match -> PermissionDeniedError carrying the phrase-table message.
    4. One match -> its scope.

    Several matches can only come from rows written before the one-scope-per
    action constraint existed. They resolve to the narrowest scope.
    """

    if principal.is_admin:
        logger.debug("Scope: admin bypass user_id=%s module=%s action=%s", principal.user_id, module, action)
        return ScopeDecision(module=module, action=action, scope=Scope.ALL)

    matches = principal.grants_for(module, action)
    if not matches:
        logger.info(
            "Scope: denied user_id=%s role=%s module=%s action=%s",
            principal.user_id,
            principal.role_code,
            module,
            action,
        )
        raise PermissionDeniedError(module, action, denial_message(module, action))

    if len(matches) > 1:
        logger.warning(
            "Scope: ambiguous grants role=%s module=%s action=%s scopes=%s; using narrowest",
            principal.role_code,
            module,
            action,
            sorted(g.scope.value for g in matches),
        )
    scope = min((g.scope for g in matches), key=lambda s: s.breadth)

    logger.debug(
        "Scope: allowed user_id=%s module=%s action=%s scope=%s",
        principal.user_id,
        module,
        action,
        scope.value,
    )
    return ScopeDecision(module=module, action=action, scope=scope)
