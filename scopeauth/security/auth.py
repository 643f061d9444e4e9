from __future__ import annotations

import logging
from typing import Any

import jwt
from fastapi import HTTPException, Request, status

from scopeauth.security.config import SecurityConfig
from scopeauth.security.context import Actor
from scopeauth.settings import Settings

logger = logging.getLogger(__name__)


def extract_bearer_token(request: Request, config: SecurityConfig) -> str | None:
    """
    Return the raw bearer token, or None when the header is absent.

    Malformed headers are a client error (400), not an authentication failure.
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
    return token


def actor_from_claims(payload: dict[str, Any]) -> Actor | None:
    """
    Build an Actor from verified token claims.

    ``user_id`` may arrive as an int or a numeric string; anything else yields None.
    """

    raw_id = payload.get("user_id")
    if isinstance(raw_id, bool):
        return None
    try:
        user_id = int(raw_id)
    except (TypeError, ValueError):
        return None
    if user_id <= 0:
        return None

    role = payload.get("role")
    return Actor(id=user_id, role=str(role) if role is not None else None)


def decode_actor(token: str, settings: Settings) -> Actor:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as exc:
        logger.info("Token expired")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired") from exc
    except jwt.InvalidTokenError as exc:
        logger.info("Token invalid: %s", type(exc).__name__)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    actor = actor_from_claims(payload)
    if actor is None:
        logger.info("Token has no usable user_id claim")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token: user_id")
    return actor


def extract_actor(request: Request, config: SecurityConfig, settings: Settings) -> Actor | None:
    token = extract_bearer_token(request, config)
    if token is None:
        return None
    return decode_actor(token, settings)
