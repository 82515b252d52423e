# api/security.py
"""Request authentication: shared API key and per-user bearer tokens."""
import hmac
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import settings
from utils.auth_token import TokenConfigError, user_id_from_claims, verify

logger = logging.getLogger(settings.LOGGER_NAME)

bearer_scheme = HTTPBearer(auto_error=False)


async def require_api_key(x_api_key: Optional[str] = Header(None, alias="x-api-key")) -> None:
    """Rejects requests whose x-api-key header does not match the configured key."""
    if not settings.REQUIRE_AUTHENTICATION:
        return
    if not settings.API_KEY:
        logger.error("API key authentication is required but no API_KEY is configured")
        raise HTTPException(status_code=401, detail="API key configuration is missing")
    if not x_api_key:
        raise HTTPException(status_code=401, detail="API key is missing")
    if not hmac.compare_digest(x_api_key.encode(), settings.API_KEY.encode()):
        logger.warning("Rejected request with an invalid API key")
        raise HTTPException(status_code=401, detail="Invalid API key")


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> str:
    """User id carried by the bearer token (claims id, userId or sub)."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        claims = verify(credentials.credentials)
    except TokenConfigError:
        logger.error("Bearer token received but JWT_SECRET is not configured")
        raise HTTPException(status_code=500, detail="Authentication is not configured")
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user_id = user_id_from_claims(claims)
    if not user_id:
        raise HTTPException(status_code=401, detail="Token does not identify a user")
    return user_id
