"""FastAPI dependencies."""
import logging
from typing import Optional

import jwt
from fastapi import Header, HTTPException
from jwt import ExpiredSignatureError, InvalidTokenError

from edify.config import get_settings
from edify.services.moderation.workflow import RequestContext

logger = logging.getLogger(__name__)


def _mask_identifier(identifier: str) -> str:
    """Mask a sensitive identifier for logging (e.g., user_id, token)."""
    if not identifier:
        return "<missing>"
    if len(identifier) <= 8:
        return f"{identifier[:2]}...{identifier[-2:]}"
    return f"{identifier[:4]}...{identifier[-4:]}"


def decode_auth_token(token: str) -> RequestContext:
    """
    Verify an auth-provider session token and read the caller from it.

    Claims used: ``sub`` (user id), ``org_id`` and ``org_role``.

    Raises:
        InvalidTokenError: bad signature, expired, or missing ``sub``
    """
    settings = get_settings()
    options = {"require": ["sub"], "verify_aud": bool(settings.auth_jwt_audience)}
    payload = jwt.decode(
        token,
        settings.auth_jwt_secret,
        algorithms=[settings.jwt_algorithm],
        audience=settings.auth_jwt_audience or None,
        options=options,
    )
    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise InvalidTokenError("Token has no subject")
    return RequestContext(
        user_id=user_id,
        org_id=payload.get("org_id") or None,
        org_role=payload.get("org_role") or None,
    )


async def get_request_context(
        authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> RequestContext:
    """Resolve the authenticated caller from the ``Authorization: Bearer`` header."""
    if not authorization:
        raise HTTPException(status_code=401, detail="Unauthorized access")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="Unauthorized access")

    try:
        ctx = decode_auth_token(token)
    except ExpiredSignatureError as exc:
        raise HTTPException(status_code=401, detail="Token expired") from exc
    except InvalidTokenError as exc:
        logger.info(f"Rejected auth token {_mask_identifier(token)}: {exc}")
        raise HTTPException(status_code=401, detail="Unauthorized access") from exc

    logger.debug(f"Authenticated {_mask_identifier(ctx.user_id)} role={ctx.org_role}")
    return ctx
