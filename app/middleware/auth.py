"""
Supabase JWT Authentication Middleware

Verifies Supabase-issued JWTs against the project's JWKS and exposes
FastAPI dependencies for the authenticated principal and the
super-admin guard used by the subscription back office.
"""
import time
import logging
from typing import Optional
from fastapi import Depends, HTTPException, Header
from jose import jwt, jwk
import httpx

from app.config import SUPABASE_URL, SUPER_ADMIN_ROLE

logger = logging.getLogger(__name__)

# JWKS cache
_jwks_cache: Optional[dict] = None
_jwks_cache_time: float = 0
JWKS_CACHE_DURATION = 60 * 60  # 1 hour in seconds

# JWT configuration
JWT_AUDIENCE = "authenticated"


def get_supabase_url() -> str:
    """Get Supabase URL from configuration"""
    if not SUPABASE_URL:
        raise ValueError("SUPABASE_URL must be set")
    return SUPABASE_URL


def get_jwks_url() -> str:
    return f"{get_supabase_url()}/auth/v1/.well-known/jwks.json"


def get_jwt_issuer() -> str:
    return f"{get_supabase_url()}/auth/v1"


async def get_jwks() -> dict:
    """
    Fetch and cache JWKS from Supabase
    Returns cached JWKS if available and not expired
    """
    global _jwks_cache, _jwks_cache_time

    now = time.time()

    if _jwks_cache and (now - _jwks_cache_time) < JWKS_CACHE_DURATION:
        return _jwks_cache

    jwks_url = get_jwks_url()
    logger.info(f"Fetching JWKS from Supabase: {jwks_url}")

    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(jwks_url, timeout=10.0)
            response.raise_for_status()
            _jwks_cache = response.json()
            _jwks_cache_time = now
            logger.info("JWKS cached successfully")
            return _jwks_cache
    except Exception as e:
        logger.error(f"Failed to fetch JWKS: {e}")
        if _jwks_cache:
            logger.warning("Using expired JWKS cache due to fetch failure")
            return _jwks_cache
        raise HTTPException(
            status_code=500,
            detail="Failed to fetch authentication keys"
        )


async def verify_token(token: str) -> dict:
    """
    Verify a Supabase JWT token using JWKS (public keys).

    Supports ES256 and RS256 signed tokens.

    Returns the decoded JWT payload
    Raises HTTPException if verification fails
    """
    try:
        jwks = await get_jwks()

        unverified_header = jwt.get_unverified_header(token)
        kid = unverified_header.get("kid")

        if not kid:
            raise HTTPException(
                status_code=401,
                detail="Token missing key ID (kid)"
            )

        key_data = next(
            (k for k in jwks.get("keys", []) if k.get("kid") == kid),
            None
        )
        if not key_data:
            raise HTTPException(
                status_code=401,
                detail=f"Key with ID '{kid}' not found in JWKS"
            )

        key = jwk.construct(key_data)

        return jwt.decode(
            token,
            key,
            algorithms=["ES256", "RS256"],
            audience=JWT_AUDIENCE,
            issuer=get_jwt_issuer(),
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired")
    except jwt.JWTClaimsError as e:
        raise HTTPException(status_code=401, detail=f"Token validation failed: {str(e)}")
    except jwt.JWTError as e:
        raise HTTPException(status_code=401, detail=f"Invalid token: {str(e)}")
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Token verification error: {e}", exc_info=True)
        raise HTTPException(status_code=401, detail="Token verification failed")


def get_role_from_payload(payload: dict) -> Optional[str]:
    """Read the platform role from the token's app_metadata claim"""
    app_metadata = payload.get("app_metadata") or {}
    return app_metadata.get("role")


async def get_current_claims(
    authorization: Optional[str] = Header(None)
) -> dict:
    """
    FastAPI dependency returning the verified JWT payload
    from the Authorization header
    """
    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header missing")

    try:
        scheme, token = authorization.split(" ", 1)
    except ValueError:
        raise HTTPException(
            status_code=401,
            detail="Invalid authorization header format. Expected 'Bearer <token>'"
        )
    if scheme.lower() != "bearer":
        raise HTTPException(
            status_code=401,
            detail="Invalid authorization scheme. Expected 'Bearer'"
        )

    payload = await verify_token(token)
    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token: no user ID")
    return payload


async def require_super_admin(claims: dict = Depends(get_current_claims)) -> str:
    """
    FastAPI dependency allowing only platform super admins through.
    Returns the authenticated user ID.
    """
    user_id = claims["sub"]
    if get_role_from_payload(claims) != SUPER_ADMIN_ROLE:
        logger.warning(f"User {user_id} denied: super admin role required")
        raise HTTPException(status_code=403, detail="Forbidden")
    return user_id
