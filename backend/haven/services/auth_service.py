"""
Handcrafted Haven Backend — Authentication Service
==================================================

What:  Registration, sign in/out, bearer session lookup and password reset.
Why:   Every storefront action that changes data needs to know who is asking.
How:   Passwords and token secrets are hashed with Argon2id (services.security).
       Sessions are opaque `hh_sess_<id>_<secret>` strings; the row is found
       by id and the secret verified against its stored hash.
Who:   Called by the auth routes and by the `current_user` dependency.

Error wording:
    Failures are raised with the same raw texts a hosted auth provider would
    return ("Invalid login credentials", "User already registered", ...) and
    translated by services.error_messages, so the storefront sees one
    consistent set of sentences.

Sign-in throttling:
    Failed attempts are tracked per email in a sliding window (same
    algorithm as RateLimitMiddleware, keyed by account instead of IP).
    More than `login_max_attempts` failures inside `login_window_seconds`
    → 429 until the oldest failure leaves the window.
"""

import logging
import re
import time
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from haven.config import settings
from haven.exceptions import (
    AuthenticationError,
    ConflictError,
    DatabaseError,
    HavenError,
    RateLimitExceededError,
    ValidationError,
)
from haven.models.auth_session import AuthSession, PasswordResetToken
from haven.models.user_profile import UserProfile
from haven.schemas.auth import AuthResponse, CurrentUserResponse, SessionResponse
from haven.schemas.common import MessageResponse
from haven.schemas.profile import ProfileResponse
from haven.services import error_messages
from haven.services.security import (
    RESET_TOKEN_PREFIX,
    SESSION_TOKEN_PREFIX,
    generate_token,
    hash_secret,
    parse_token,
    verify_secret,
)
from haven.utils.limits import check_length

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PASSWORD_MIN_LENGTH = 6

SESSION_EXPIRED_MESSAGE = "Your session has expired. Please sign in again."
INVALID_RESET_MESSAGE = "This password reset link is invalid or has expired."

# Idle emails are pruned once this many are tracked
THROTTLE_CLEANUP_THRESHOLD = 1_000


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored here is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AuthService:
    """
    Account and session management.

    State:
        _failed_attempts: email → timestamps of recent failed sign-ins.
        In-memory and per-process, like the request rate limiter; emails
        with no failure left in the window are pruned.
    """

    def __init__(self) -> None:
        self._failed_attempts: Dict[str, List[float]] = {}

    # ── Sign-in throttle ──────────────────────────────────────────────────

    def _check_login_throttle(self, email: str) -> None:
        now = time.time()
        window_start = now - settings.login_window_seconds
        attempts = [ts for ts in self._failed_attempts.get(email, ()) if ts > window_start]
        if attempts:
            self._failed_attempts[email] = attempts
        else:
            self._failed_attempts.pop(email, None)

        if len(attempts) >= settings.login_max_attempts:
            retry_after = int(attempts[0] + settings.login_window_seconds - now) + 1
            logger.warning(
                "Sign-in throttled for %s: %d failures in %ds",
                email,
                len(attempts),
                settings.login_window_seconds,
            )
            raise RateLimitExceededError(
                retry_after=retry_after,
                message=error_messages.sign_in_error_message(error_messages.TOO_MANY_REQUESTS),
            )

    def _record_failed_attempt(self, email: str) -> None:
        now = time.time()
        self._failed_attempts.setdefault(email, []).append(now)

        if len(self._failed_attempts) > THROTTLE_CLEANUP_THRESHOLD:
            self._cleanup_idle_emails(now - settings.login_window_seconds)

    def _cleanup_idle_emails(self, window_start: float) -> None:
        idle = [
            email for email, stamps in self._failed_attempts.items()
            if not stamps or stamps[-1] <= window_start
        ]
        for email in idle:
            del self._failed_attempts[email]
        logger.debug("Dropped %d idle sign-in throttle entries", len(idle))

    def reset_login_attempts(self, email: Optional[str] = None) -> None:
        """Forget failures for one email, or for everyone when email is None."""
        if email is None:
            self._failed_attempts.clear()
        else:
            self._failed_attempts.pop(email, None)

    # ── Lookups ───────────────────────────────────────────────────────────

    async def get_profile_by_email(self, db: AsyncSession, email: str) -> Optional[UserProfile]:
        result = await db.execute(
            select(UserProfile).where(UserProfile.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    # ── Registration ──────────────────────────────────────────────────────

    async def ensure_user_profile(
        self,
        db: AsyncSession,
        email: str,
        password_hash: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> Tuple[UserProfile, bool]:
        """
        Return the profile for `email`, creating it when missing.

        The display name comes from `metadata`: full_name, else
        "first_name last_name", else the part of the email before "@".
        New profiles start as active, unverified buyers.

        Returns:
            (profile, was_created)
        """
        email = normalize_email(email)
        existing = await self.get_profile_by_email(db, email)
        if existing is not None:
            return existing, False

        metadata = metadata or {}
        full_name = (metadata.get("full_name") or "").strip()
        if not full_name and metadata.get("first_name"):
            full_name = f"{metadata['first_name']} {metadata.get('last_name') or ''}".strip()
        if not full_name:
            full_name = email.split("@")[0]

        profile = UserProfile(
            email=email,
            password_hash=password_hash,
            full_name=full_name,
            role="buyer",
            is_active=True,
            is_verified=False,
        )
        db.add(profile)
        try:
            await db.flush()
        except IntegrityError as e:
            logger.warning("Profile insert collided for %s: %s", email, e.orig)
            raise ConflictError(message=error_messages.profile_error_message(str(e.orig)))

        logger.info("Profile created for %s (%s)", email, profile.id)
        return profile, True

    async def sign_up(
        self,
        db: AsyncSession,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
    ) -> AuthResponse:
        """
        Register a buyer account and sign it in.

        Raises:
            ValidationError: malformed email, password shorter than 6 characters,
                             or a name or email too long to store
            ConflictError: email already registered
        """
        email = normalize_email(email)
        if not is_valid_email(email):
            raise ValidationError(
                message=error_messages.sign_up_error_message(error_messages.INVALID_EMAIL),
                field="email",
            )
        if len(password or "") < PASSWORD_MIN_LENGTH:
            raise ValidationError(
                message=error_messages.sign_up_error_message(error_messages.WEAK_PASSWORD),
                field="password",
            )

        check_length(UserProfile.email, email, "Email")
        first_name = (first_name or "").strip()
        last_name = (last_name or "").strip()
        check_length(UserProfile.full_name, f"{first_name} {last_name}".strip(), "Name")

        try:
            if await self.get_profile_by_email(db, email) is not None:
                raise ConflictError(
                    message=error_messages.sign_up_error_message(error_messages.ALREADY_REGISTERED)
                )

            profile, _ = await self.ensure_user_profile(
                db,
                email=email,
                password_hash=hash_secret(password),
                metadata={
                    "first_name": first_name,
                    "last_name": last_name,
                    "full_name": f"{first_name} {last_name}".strip(),
                },
            )
            session = await self._issue_session(db, profile)
        except HavenError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error during sign up for %s: %s", email, e, exc_info=True)
            raise DatabaseError(
                message=error_messages.sign_up_error_message(str(e)),
                context={"error_type": type(e).__name__},
            )

        return AuthResponse(
            message="Registration successful! Welcome to Handcrafted Haven.",
            user=ProfileResponse.from_model(profile),
            session=session,
        )

    # ── Sessions ──────────────────────────────────────────────────────────

    async def _issue_session(self, db: AsyncSession, profile: UserProfile) -> SessionResponse:
        token_id, secret, token = generate_token(SESSION_TOKEN_PREFIX)
        expires_at = datetime.now(timezone.utc) + timedelta(hours=settings.session_ttl_hours)
        db.add(
            AuthSession(
                token_id=token_id,
                secret_hash=hash_secret(secret),
                user_id=profile.id,
                expires_at=expires_at,
            )
        )
        await db.flush()
        return SessionResponse(access_token=token, expires_at=expires_at)

    async def sign_in(self, db: AsyncSession, email: str, password: str) -> AuthResponse:
        """
        Verify credentials and issue a session.

        Unknown email, wrong password and deactivated account all produce
        the same message so the response does not reveal which emails exist.
        """
        email = normalize_email(email)
        self._check_login_throttle(email)

        profile = await self.get_profile_by_email(db, email) if email else None
        if (
            profile is None
            or not profile.is_active
            or not verify_secret(password or "", profile.password_hash)
        ):
            self._record_failed_attempt(email)
            logger.info("Failed sign-in for %s", email)
            raise AuthenticationError(
                message=error_messages.sign_in_error_message(error_messages.INVALID_CREDENTIALS)
            )

        self.reset_login_attempts(email)
        session = await self._issue_session(db, profile)
        logger.info("User %s signed in", profile.id)
        return AuthResponse(
            message="Login successful!",
            user=ProfileResponse.from_model(profile),
            session=session,
        )

    async def _find_session(self, db: AsyncSession, token: Optional[str]) -> AuthSession:
        parsed = parse_token(token, SESSION_TOKEN_PREFIX)
        if parsed is None:
            raise AuthenticationError(message=SESSION_EXPIRED_MESSAGE)

        result = await db.execute(
            select(AuthSession).where(AuthSession.token_id == parsed.token_id)
        )
        session = result.scalar_one_or_none()
        if (
            session is None
            or session.revoked_at is not None
            or as_utc(session.expires_at) <= datetime.now(timezone.utc)
            or not verify_secret(parsed.secret, session.secret_hash)
        ):
            raise AuthenticationError(message=SESSION_EXPIRED_MESSAGE)
        return session

    async def authenticate(self, db: AsyncSession, token: Optional[str]) -> UserProfile:
        """
        Resolve a bearer token to its profile.

        Raises:
            AuthenticationError: malformed, unknown, revoked or expired token,
                                 or an account that has been deactivated
        """
        session = await self._find_session(db, token)
        profile = await db.get(UserProfile, session.user_id)
        if profile is None or not profile.is_active:
            raise AuthenticationError(message=SESSION_EXPIRED_MESSAGE)
        return profile

    async def get_current_user(self, db: AsyncSession, token: Optional[str]) -> CurrentUserResponse:
        profile = await self.authenticate(db, token)
        return CurrentUserResponse(user=ProfileResponse.from_model(profile))

    async def sign_out(self, db: AsyncSession, token: Optional[str]) -> MessageResponse:
        session = await self._find_session(db, token)
        session.revoked_at = datetime.now(timezone.utc)
        await db.flush()
        logger.info("Session %s revoked", session.token_id)
        return MessageResponse(message="Logout successful!")

    # ── Password reset ────────────────────────────────────────────────────

    async def issue_password_reset_token(self, db: AsyncSession, profile: UserProfile) -> str:
        """Create a single-use reset token and return the full token string."""
        token_id, secret, token = generate_token(RESET_TOKEN_PREFIX)
        db.add(
            PasswordResetToken(
                token_id=token_id,
                secret_hash=hash_secret(secret),
                user_id=profile.id,
                expires_at=datetime.now(timezone.utc)
                + timedelta(minutes=settings.password_reset_ttl_minutes),
            )
        )
        await db.flush()
        return token

    async def request_password_reset(self, db: AsyncSession, email: str) -> MessageResponse:
        """
        Start a password reset.

        The response is identical whether or not the email is registered.
        There is no mail delivery; the token is written to the log for the
        operator to pass on.
        """
        email = normalize_email(email)
        if not is_valid_email(email):
            raise ValidationError(
                message=error_messages.sign_up_error_message(error_messages.INVALID_EMAIL),
                field="email",
            )

        profile = await self.get_profile_by_email(db, email)
        if profile is not None and profile.is_active:
            token = await self.issue_password_reset_token(db, profile)
            logger.info("Password reset token for %s: %s", email, token)
        else:
            logger.info("Password reset requested for unknown email %s", email)

        return MessageResponse(message="Password reset email sent! Please check your inbox.")

    async def reset_password(
        self, db: AsyncSession, token: str, new_password: str
    ) -> MessageResponse:
        """
        Set a new password with a reset token.

        Consumes the token and revokes every open session of the account.
        """
        if len(new_password or "") < PASSWORD_MIN_LENGTH:
            raise ValidationError(
                message=error_messages.sign_up_error_message(error_messages.WEAK_PASSWORD),
                field="new_password",
            )

        parsed = parse_token(token, RESET_TOKEN_PREFIX)
        if parsed is None:
            raise ValidationError(message=INVALID_RESET_MESSAGE, field="token")

        result = await db.execute(
            select(PasswordResetToken).where(PasswordResetToken.token_id == parsed.token_id)
        )
        reset = result.scalar_one_or_none()
        now = datetime.now(timezone.utc)
        if (
            reset is None
            or reset.used_at is not None
            or as_utc(reset.expires_at) <= now
            or not verify_secret(parsed.secret, reset.secret_hash)
        ):
            raise ValidationError(message=INVALID_RESET_MESSAGE, field="token")

        profile = await db.get(UserProfile, reset.user_id)
        if profile is None:
            raise ValidationError(message=INVALID_RESET_MESSAGE, field="token")

        profile.password_hash = hash_secret(new_password)
        reset.used_at = now
        await db.execute(
            update(AuthSession)
            .where(AuthSession.user_id == profile.id, AuthSession.revoked_at.is_(None))
            .values(revoked_at=now)
        )
        await db.flush()
        self.reset_login_attempts(profile.email)

        logger.info("Password reset completed for %s", profile.id)
        return MessageResponse(
            message="Your password has been updated. Please sign in with your new password."
        )


# ── Singleton Instance ────────────────────────────────────────────────────
auth_service = AuthService()
