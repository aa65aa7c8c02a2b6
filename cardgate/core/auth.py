"""
Caller authentication for the admin and generation gateways.

Admin calls carry a shared secret in X-Admin-Password. Generation calls carry
an access key as a bearer token; the key itself is verified later by the key
verifier so that quota and expiry are checked in one place.
"""
import logging
import secrets
from typing import Optional

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from cardgate.core.config import settings

logger = logging.getLogger(__name__)

admin_password_header = APIKeyHeader(name="X-Admin-Password", auto_error=False)
bearer_scheme = HTTPBearer(auto_error=False)


class AdminClient:
    """Authenticated administrative caller."""
    def __init__(self, authenticated: bool):
        self.authenticated = authenticated  # False when admin auth is disabled (dev/testing)


def require_admin(
    password: Optional[str] = Security(admin_password_header),
) -> AdminClient:
    """
    Dependency guarding key registry operations.

    If ADMIN_PASSWORD is not configured, authentication is disabled (for testing/dev).

    Raises:
        HTTPException: 401 if the header is missing or does not match
    """
    if not settings.is_admin_auth_enabled():
        logger.debug("ADMIN_PASSWORD not configured - admin authentication is disabled (TESTING mode)")
        return AdminClient(authenticated=False)

    if not password:
        logger.warning("Admin password missing from request")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )

    if not secrets.compare_digest(password.encode(), settings.ADMIN_PASSWORD.encode()):
        logger.warning("Invalid admin password attempted")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )

    return AdminClient(authenticated=True)


def require_access_key(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> str:
    """
    Dependency extracting the bearer access key from the Authorization header.

    Raises:
        HTTPException: 401 if the header is missing or not a Bearer token
    """
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials.strip():
        logger.warning("Generation request without a bearer access key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return credentials.credentials.strip()
