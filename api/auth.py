"""Bearer-token check for the knowledge-base admin endpoints."""

import logging

import jwt
from fastapi import Depends, HTTPException, Request

from kb_ingest.config import AppConfig

from api.deps import get_config

logger = logging.getLogger("kb_ingest")


def decode_token(token: str, config: AppConfig) -> dict:
    return jwt.decode(
        token,
        config.auth.jwt_secret,
        algorithms=[config.auth.jwt_algorithm],
    )


def require_admin(request: Request, config: AppConfig = Depends(get_config)) -> dict:
    """Return the token payload of an admin caller, else 401/403."""
    auth_header = request.headers.get("authorization", "")
    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")

    token = auth_header.split(" ", 1)[1].strip()
    try:
        payload = decode_token(token, config)
    except jwt.PyJWTError as e:
        logger.info(f"Rejected token: {e}")
        raise HTTPException(status_code=401, detail="Invalid Token")

    if payload.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Forbidden")
    return payload
