"""
Authentication dependencies for FastAPI.

User routes take a Bearer JWT whose subject is the caller's netid. Admin
routes take the shared X-Admin-Token header.
"""

import hmac
import logging
import uuid

from fastapi import Header, HTTPException, Request

from redi_match.auth.security import decode_access_token

logger = logging.getLogger(__name__)


def _extract_bearer(authorization: str | None) -> str | None:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        return None
    return parts[1].strip()


def get_current_netid(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> str:
    trace_id = str(uuid.uuid4())
    token = _extract_bearer(authorization)
    if not token:
        logger.warning("[AUTH_FAILURE] reason=missing_token trace_id=%s", trace_id)
        raise HTTPException(status_code=401, detail={"message": "Authentication required", "trace_id": trace_id})

    payload = decode_access_token(token, secret=request.app.state.jwt_secret)
    netid = str(payload.get("sub") or "").strip()
    if not netid:
        logger.warning("[AUTH_FAILURE] reason=token_missing_subject trace_id=%s", trace_id)
        raise HTTPException(status_code=401, detail={"message": "unauthorized", "trace_id": trace_id})

    logger.debug("[auth] token valid, netid=%s", netid)
    return netid


def require_admin(
    request: Request,
    x_admin_token: str | None = Header(default=None, alias="X-Admin-Token"),
) -> None:
    admin_token = request.app.state.admin_token
    if not admin_token or not x_admin_token or not hmac.compare_digest(x_admin_token, admin_token):
        raise HTTPException(status_code=401, detail="Invalid admin token")
