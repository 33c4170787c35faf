"""
Verify app-issued JWT access tokens and extract the user id.

Token issuance lives with the login flow and is out of scope here; this
module only answers "which user does this bearer token belong to?". The
returned id is the input to `resolve_principal`, which reloads role and
permissions from the database instead of trusting anything else in the
payload.
"""

from __future__ import annotations

import logging
from typing import Any

import jwt

logger = logging.getLogger(__name__)


class TokenError(Exception):
    """Raised when token validation fails. Do not log the token."""

    pass


def _extract_user_id(payload: dict[str, Any]) -> int:
    """
    Read the user id from a validated payload.

    The login flow writes it as `id`; standard `sub` is accepted as well.
    """

    raw = payload.get("id", payload.get("sub"))
    if raw is None:
        raise TokenError("Invalid token: missing user id")
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise TokenError("Invalid token: user id is not an integer") from exc


def decode_access_token(token: str, secret: str, algorithm: str = "HS256", leeway: int = 0) -> int:
    """
    Validate signature and lifetime, then return the user id.

    Raises TokenError on any failure.
    """

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            leeway=leeway,
            options={"verify_signature": True, "verify_exp": True, "verify_nbf": True},
        )
    except jwt.ExpiredSignatureError as e:
        logger.info("Token expired")
        raise TokenError("Your token has expired. Please log in again.") from e
    except jwt.InvalidTokenError as e:
        logger.info("Token invalid: %s", type(e).__name__)
        raise TokenError("Invalid token. Please log in again.") from e

    return _extract_user_id(payload)
