"""Authentication utilities for bearer tokens issued by the hosted auth service.

Tokens are verified locally with ``python-jose``:

- When ``AUTH_JWT_SECRET`` is set, tokens are HS256-signed with that shared
  secret (the default for the managed database's auth service).
- Otherwise tokens are RS256-signed and verified against the JWKS at
  ``AUTH_JWKS_URL``, fetched with ``httpx`` and cached in memory.

``aud`` and ``iss`` are only verified when the matching settings are set.
The ``sub`` claim is the application user id; a ``profiles`` row is created
the first time a user is seen.
"""

from __future__ import annotations

from typing import Dict, Optional

import httpx
from fastapi import HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from draftwise.core.config import settings
from draftwise.models.tables import Profile

auth_scheme = HTTPBearer(auto_error=False)

DEV_USER_ID = "dev_user"

# JWKS cache.  Cleared once on an unknown kid to follow key rotation.
_jwks: Optional[Dict] = None


def get_jwks() -> Dict:
    """Fetch and cache the JWKS used to verify RS256 tokens."""
    global _jwks
    if _jwks is not None:
        return _jwks
    if not settings.AUTH_JWKS_URL:
        raise HTTPException(status_code=500, detail="Auth is not configured")
    try:
        resp = httpx.get(settings.AUTH_JWKS_URL, timeout=5)
        resp.raise_for_status()
        data = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        raise HTTPException(status_code=500, detail=f"Failed to fetch JWKS: {exc}") from exc
    if not isinstance(data, dict) or "keys" not in data:
        raise HTTPException(status_code=500, detail="Invalid JWKS payload")
    _jwks = data
    return data


def _decode_kwargs() -> Dict:
    kwargs: Dict = {"options": {}}
    if settings.AUTH_JWT_AUDIENCE:
        kwargs["audience"] = settings.AUTH_JWT_AUDIENCE
    else:
        kwargs["options"]["verify_aud"] = False
    if settings.AUTH_JWT_ISSUER:
        kwargs["issuer"] = settings.AUTH_JWT_ISSUER
    return kwargs


def decode_token(token: str) -> Dict:
    """Decode and verify a bearer token, returning its claims.

    Raises:
        HTTPException: 401 if the token is malformed, expired or forged.
    """
    if settings.AUTH_JWT_SECRET:
        try:
            return jwt.decode(token, settings.AUTH_JWT_SECRET, algorithms=["HS256"], **_decode_kwargs())
        except Exception as exc:
            raise HTTPException(status_code=401, detail=f"Invalid token: {exc}") from exc

    try:
        header = jwt.get_unverified_header(token)
    except Exception as exc:
        raise HTTPException(status_code=401, detail=f"Invalid token header: {exc}") from exc
    kid = header.get("kid")
    if not kid:
        raise HTTPException(status_code=401, detail="Invalid token: missing kid header")
    key = next((k for k in get_jwks().get("keys", []) if k.get("kid") == kid), None)
    if not key:
        # Clear cache and retry once (rotation scenario)
        global _jwks
        _jwks = None
        key = next((k for k in get_jwks().get("keys", []) if k.get("kid") == kid), None)
        if not key:
            raise HTTPException(status_code=401, detail="Unknown signing key (kid)")
    try:
        return jwt.decode(token, key, algorithms=["RS256"], **_decode_kwargs())
    except Exception as exc:
        raise HTTPException(status_code=401, detail=f"Invalid token: {exc}") from exc


async def resolve_profile(db: AsyncSession, claims: Dict) -> Profile:
    """Return the profile for the token subject, creating it on first sight."""
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token: no sub claim")
    profile = await db.get(Profile, user_id)
    if profile is None:
        user_meta = claims.get("user_metadata") or {}
        profile = Profile(
            id=user_id,
            email=claims.get("email"),
            full_name=user_meta.get("full_name") or claims.get("name"),
            avatar_url=user_meta.get("avatar_url") or claims.get("picture"),
        )
        db.add(profile)
        await db.commit()
        await db.refresh(profile)
    return profile


async def authenticate(
    db: AsyncSession,
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Profile:
    """Resolve the current authenticated user's profile.

    In development mode (``DEV_AUTH_BYPASS``) a placeholder profile is
    returned or created.
    """
    if settings.DEV_AUTH_BYPASS:
        return await resolve_profile(
            db, {"sub": DEV_USER_ID, "email": "dev@example.com", "name": "Dev User"}
        )
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    claims = decode_token(credentials.credentials)
    return await resolve_profile(db, claims)


__all__ = ["auth_scheme", "decode_token", "resolve_profile", "authenticate"]
