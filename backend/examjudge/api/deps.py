"""API dependencies - identity resolved from auth-service tokens"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from examjudge.core.security import decode_access_token
from examjudge.core.exceptions import AuthenticationError, AuthorizationError

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """Identity carried by a verified access token"""
    id: str
    role: str = "student"
    name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CurrentUser:
    """
    Get current authenticated user from JWT token

    Args:
        credentials: HTTP Bearer credentials

    Returns:
        Current user

    Raises:
        AuthenticationError: If token is missing or invalid
    """
    if credentials is None:
        raise AuthenticationError("Missing bearer token")

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise AuthenticationError("Invalid or expired token")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")

    return CurrentUser(
        id=str(user_id),
        role=payload.get("role", "student"),
        name=payload.get("name") or payload.get("username"),
    )


async def get_current_admin_user(
    current_user: CurrentUser = Depends(get_current_user)
) -> CurrentUser:
    """
    Get current admin user (authorization check)

    Raises:
        AuthorizationError: If user is not admin
    """
    if not current_user.is_admin:
        raise AuthorizationError("Admin access required")
    return current_user
