# pyright: reportMissingTypeStubs=false
"""
Authentication and authorization dependencies for FastAPI.

Provides dependency injection functions for user authentication and
administrator access control.
"""

import logging
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from services.jwt_service import jwt_service, TokenPayload

logger = logging.getLogger(__name__)


class UserContext:
    """Authenticated user context extracted from JWT token."""

    def __init__(self, owner_id: str, display_name: str, is_admin: bool = False):
        self.owner_id = owner_id
        self.display_name = display_name
        self.is_admin = is_admin

    @classmethod
    def from_payload(cls, payload: TokenPayload) -> "UserContext":
        return cls(owner_id=payload.sub, display_name=payload.name, is_admin=payload.is_admin)

    def __repr__(self) -> str:
        return f"UserContext(owner_id='{self.owner_id}', is_admin={self.is_admin})"


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[TokenPayload]:
    """Extract and validate JWT token payload."""
    if not credentials:
        return None
    return jwt_service.verify_token(credentials.credentials)


def get_current_user(payload: Optional[TokenPayload] = Depends(get_token_payload)) -> UserContext:
    """Get authenticated user context from JWT token."""
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication credentials not provided"
        )
    return UserContext.from_payload(payload)


def require_admin(user: UserContext = Depends(get_current_user)) -> UserContext:
    """Require administrator access."""
    if not user.is_admin:
        logger.warning(f"Non-admin {user.owner_id} attempted an admin operation")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return user


def authenticate_token(token: Optional[str]) -> Optional[UserContext]:
    """Resolve a raw token (e.g. a WebSocket query parameter) to a user."""
    if not token:
        return None
    payload = jwt_service.verify_token(token)
    return UserContext.from_payload(payload) if payload else None
