"""
Handcrafted Haven Backend — Auth Route Handlers
===============================================

What:  Sign up, sign in, sign out, current user and password reset.
Who:   The storefront's login/register pages and its session bootstrap.

Tokens:
    Sign up and sign in return `session.access_token`; the client sends it
    back as "Authorization: Bearer <token>". Sign out revokes that token.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from haven.database import get_db_session
from haven.deps import bearer_token
from haven.schemas.auth import (
    AuthResponse,
    CurrentUserResponse,
    PasswordResetConfirmRequest,
    PasswordResetRequest,
    SignInRequest,
    SignUpRequest,
)
from haven.schemas.common import ErrorResponse, MessageResponse
from haven.services.auth_service import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post(
    "/signup",
    status_code=201,
    response_model=AuthResponse,
    responses={
        400: {"description": "Invalid email or weak password", "model": ErrorResponse},
        409: {"description": "Email already registered", "model": ErrorResponse},
    },
    summary="Create a buyer account",
)
async def sign_up(
    body: SignUpRequest,
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    return await auth_service.sign_up(
        db,
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        password=body.password,
    )


@router.post(
    "/signin",
    response_model=AuthResponse,
    responses={
        401: {"description": "Invalid credentials", "model": ErrorResponse},
        429: {"description": "Too many failed attempts", "model": ErrorResponse},
    },
    summary="Sign in with email and password",
)
async def sign_in(
    body: SignInRequest,
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    return await auth_service.sign_in(db, email=body.email, password=body.password)


@router.post(
    "/signout",
    response_model=MessageResponse,
    responses={401: {"description": "Missing or expired session", "model": ErrorResponse}},
    summary="Revoke the current session",
)
async def sign_out(
    token: Optional[str] = Depends(bearer_token),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    return await auth_service.sign_out(db, token)


@router.get(
    "/me",
    response_model=CurrentUserResponse,
    responses={401: {"description": "Missing or expired session", "model": ErrorResponse}},
    summary="Profile of the signed-in user",
)
async def me(
    token: Optional[str] = Depends(bearer_token),
    db: AsyncSession = Depends(get_db_session),
) -> CurrentUserResponse:
    return await auth_service.get_current_user(db, token)


@router.post(
    "/password-reset",
    response_model=MessageResponse,
    summary="Request a password reset link",
    description="Always answers the same way, whether or not the email is registered.",
)
async def request_password_reset(
    body: PasswordResetRequest,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    return await auth_service.request_password_reset(db, body.email)


@router.post(
    "/password-reset/confirm",
    response_model=MessageResponse,
    responses={400: {"description": "Invalid or expired token", "model": ErrorResponse}},
    summary="Set a new password with a reset token",
)
async def confirm_password_reset(
    body: PasswordResetConfirmRequest,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    return await auth_service.reset_password(db, body.token, body.new_password)
