"""
Session authentication helpers.

The rental backend issues the JWT; this service only reads it to build an
explicit Session {token, userId, role} that is passed to every backend call.

  - JWT_SECRET set   → signature (HS256), expiry and issuer are verified
  - JWT_SECRET empty → claims are read without verification; the backend
                       still authenticates every forwarded call

ASP.NET Identity tokens carry the user id and role under long claim URIs,
so those are accepted alongside the short names.
"""
import logging
from typing import Optional

import jwt
from fastapi import Header

from config import settings
from domain.errors import UnauthorizedError
from models import Session

logger = logging.getLogger(__name__)

_USER_ID_CLAIMS = (
    "sub",
    "nameid",
    "userId",
    "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/nameidentifier",
)
_ROLE_CLAIMS = (
    "role",
    "http://schemas.microsoft.com/ws/2008/06/identity/claims/role",
)


def _parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    token = parts[1].strip()
    return token or None


def decode_access_token(token: str) -> dict:
    """Return the token's claims. Raises UnauthorizedError when verification fails."""
    if not settings.jwt_secret:
        return jwt.decode(token, options={"verify_signature": False})
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            issuer=settings.jwt_issuer or None,
            options={"verify_aud": False},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Access token expired.")
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid access token.")


def _first_claim(claims: dict, names: tuple) -> Optional[str]:
    for name in names:
        value = claims.get(name)
        if isinstance(value, list):
            value = value[0] if value else None
        if value not in (None, ""):
            return str(value)
    return None


def session_from_token(token: Optional[str]) -> Session:
    """Build the caller Session for a bearer token (anonymous when None)."""
    if not token:
        return Session()

    try:
        claims = decode_access_token(token)
    except jwt.InvalidTokenError:
        # Unverified mode: an opaque token is still forwarded as-is
        logger.debug("Bearer token is not a readable JWT; forwarding without claims")
        return Session(token=token)

    user_id = _first_claim(claims, _USER_ID_CLAIMS)
    return Session(
        token=token,
        user_id=int(user_id) if user_id and user_id.isdigit() else None,
        role=_first_claim(claims, _ROLE_CLAIMS),
    )


async def get_session(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> Session:
    """
    Best-effort session: anonymous when no bearer token is sent.

    A token that fails verification (expired, bad signature) never rejects
    the request here. It is still forwarded to the rental backend, which
    stays the authority on whether it is accepted.
    """
    token = _parse_bearer_token(authorization)
    try:
        return session_from_token(token)
    except UnauthorizedError as e:
        logger.warning(f"⚠️ Bearer token rejected ({e.message}); continuing without claims")
        return Session(token=token)


async def require_session(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> Session:
    session = session_from_token(_parse_bearer_token(authorization))
    if not session.is_authenticated:
        raise UnauthorizedError(
            "Authentication required. Provide Authorization: Bearer <token>."
        )
    return session
