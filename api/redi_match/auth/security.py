from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from fastapi import HTTPException

from redi_match.config import JWT_SECRET

ALGORITHM = "HS256"
ACCESS_TOKEN_TTL_MINUTES = 60


def create_access_token(netid: str, *, secret: str | None = None, ttl_minutes: int | None = None) -> str:
    secret = secret if secret is not None else JWT_SECRET
    if not secret:
        raise HTTPException(status_code=500, detail="JWT secret not configured")
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=ttl_minutes or ACCESS_TOKEN_TTL_MINUTES)
    payload: dict[str, Any] = {
        "sub": netid,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_access_token(token: str, *, secret: str | None = None) -> dict[str, Any]:
    secret = secret if secret is not None else JWT_SECRET
    if not secret:
        raise HTTPException(status_code=500, detail="JWT secret not configured")
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
        if not isinstance(payload, dict):
            raise HTTPException(status_code=401, detail="Invalid token")
        return payload
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(status_code=401, detail="Token expired") from exc
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc
