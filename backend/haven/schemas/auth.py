"""
Handcrafted Haven Backend — Authentication Schemas
==================================================

What:  Sign up / sign in / password reset bodies and the session payload.

Credentials are plain strings here; AuthService validates them so that a
short password or malformed email produces the storefront's own message
(400) instead of FastAPI's generic 422.
"""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from haven.schemas.profile import ProfileResponse


class SignUpRequest(BaseModel):
    """Registration form; camelCase names from older clients are accepted."""
    model_config = ConfigDict(populate_by_name=True)

    first_name: str = Field(default="", validation_alias=AliasChoices("first_name", "firstName"))
    last_name: str = Field(default="", validation_alias=AliasChoices("last_name", "lastName"))
    email: str = ""
    password: str = ""


class SignInRequest(BaseModel):
    email: str = ""
    password: str = ""


class PasswordResetRequest(BaseModel):
    email: str = ""


class PasswordResetConfirmRequest(BaseModel):
    token: str = ""
    new_password: str = ""


class SessionResponse(BaseModel):
    """
    Bearer session issued at sign up / sign in.

    The client sends `Authorization: Bearer <access_token>` on every
    authenticated request until `expires_at`.
    """
    access_token: str = Field(description="Opaque token: hh_sess_<id>_<secret>")
    token_type: str = "bearer"
    expires_at: datetime


class AuthResponse(BaseModel):
    message: str
    user: ProfileResponse
    session: SessionResponse


class CurrentUserResponse(BaseModel):
    user: ProfileResponse
