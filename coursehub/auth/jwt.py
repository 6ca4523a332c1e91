# auth/jwt.py
"""
HS256 access tokens.

Tokens are minted by the identity service that owns user accounts; this API
only verifies them and reads the user id (`sub`) and `role` claims.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from jwt import encode, decode, ExpiredSignatureError, InvalidTokenError
from uuid import uuid4
from config import settings
import logging

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ACCESS = "access"
ROLES = ("student", "instructor", "admin")
DEFAULT_ROLE = "student"

def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Sign an access token; `data` must carry `sub` and may carry `role`."""
    claims = dict(data)
    ttl = expires_delta if expires_delta is not None else timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims.update({"exp": datetime.now(timezone.utc) + ttl, "jti": str(uuid4()), "type": ACCESS})
    return encode(claims, settings.JWT_SECRET, algorithm=ALGORITHM)

def decode_token(token: str) -> dict:
    try:
        return decode(token, settings.JWT_SECRET, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        logger.warning("Attempt to use expired token")
        raise ValueError("Token expired")
    except InvalidTokenError:
        logger.warning("Attempt to use invalid token")
        raise ValueError("Invalid token")

def principal_from_token(token: str) -> Dict[str, str]:
    """
    Decode an access token into the `{"_id", "role"}` principal the routes use.

    Raises ValueError for expired, forged or non-access tokens, a missing
    subject or an unknown role.
    """
    payload = decode_token(token)
    if payload.get("type") != ACCESS:
        raise ValueError("Not an access token")
    sub = payload.get("sub")
    if not sub:
        raise ValueError("Token has no subject")
    role = payload.get("role") or DEFAULT_ROLE
    if role not in ROLES:
        logger.warning(f"Token for {sub} carries unknown role {role!r}")
        raise ValueError("Unknown role")
    return {"_id": str(sub), "role": role}
