from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status
from sqlalchemy.orm import Session

from crm_scope.security.config import SecurityConfig
from crm_scope.security.errors import NoPrincipalError
from crm_scope.security.principal import resolve_principal
from crm_scope.security.scopes import Principal
from crm_scope.security.tokens import TokenError, decode_access_token
from crm_scope.settings import Settings

logger = logging.getLogger(__name__)


def extract_user_id(request: Request, config: SecurityConfig, settings: Settings) -> int | None:
    """
    Extract the bearer token and turn it into a user id.

    - Input: `Authorization: Bearer <token>`
    - provider "jwt": verify the HS256 token and read its user id claim
    - provider "dummy": `<token>` must be an integer user id
    """

    header_name = config.auth.authorization_header
    bearer_prefix = config.auth.bearer_prefix

    raw = request.headers.get(header_name)
    if not raw:
        logger.info("Missing Authorization header (auth required) path=%s method=%s", request.url.path, request.method)
        return None

    prefix = f"{bearer_prefix} "
    if not raw.startswith(prefix):
        logger.warning("Invalid Authorization header format path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header_name}. Expected '{bearer_prefix} <token>'.",
        )

    token = raw[len(prefix) :].strip()
    if not token:
        logger.warning("Empty bearer token path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header_name}. Missing token after '{bearer_prefix}'.",
        )

    if config.auth.provider == "dummy":
        try:
            return int(token)
        except ValueError as exc:
            logger.warning("Bearer token not an int (dummy provider) path=%s method=%s", request.url.path, request.method)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid bearer token (expected integer user id).",
            ) from exc

    try:
        return decode_access_token(
            token,
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            leeway=settings.jwt_leeway_seconds,
        )
    except TokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc


def load_principal(db: Session, user_id: int) -> Principal:
    try:
        return resolve_principal(db, user_id)
    except NoPrincipalError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
