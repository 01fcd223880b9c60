"""
Handcrafted Haven Backend — Request Dependencies
================================================

What:  FastAPI dependencies that resolve the caller from the Authorization header.
How:   "Authorization: Bearer hh_sess_<id>_<secret>" → AuthService.authenticate().

    current_user    → 401 unless a valid session token is present
    optional_user   → None for anonymous callers (guest reviews, contact form);
                      a present but invalid token is still rejected
    require_admin   → 403 unless the caller's email is in ADMIN_EMAILS
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from haven.config import settings
from haven.database import get_db_session
from haven.exceptions import AuthenticationError, PermissionDeniedError
from haven.models.user_profile import UserProfile
from haven.services.auth_service import auth_service


def bearer_token(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    """Extract the token from an Authorization header, or None when absent."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError()
    return token.strip()


async def current_user(
    token: Optional[str] = Depends(bearer_token),
    db: AsyncSession = Depends(get_db_session),
) -> UserProfile:
    if token is None:
        raise AuthenticationError()
    return await auth_service.authenticate(db, token)


async def optional_user(
    token: Optional[str] = Depends(bearer_token),
    db: AsyncSession = Depends(get_db_session),
) -> Optional[UserProfile]:
    if token is None:
        return None
    return await auth_service.authenticate(db, token)


def is_admin(profile: UserProfile) -> bool:
    return profile.email.lower() in settings.admin_emails_set


async def require_admin(user: UserProfile = Depends(current_user)) -> UserProfile:
    if not is_admin(user):
        raise PermissionDeniedError(message="Administrator access required")
    return user
