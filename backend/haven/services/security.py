"""
Password hashing and opaque token helpers.

Responsibilities:
- Hash and verify passwords with Argon2id
- Generate token strings of the form: <prefix><token_id>_<secret>
  (`hh_sess_` for sessions, `hh_reset_` for password resets)
- Parse token strings back into (token_id, secret)

Only hashes of secrets are ever persisted; the full token string is shown to
the client once, at issue time.
"""
from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass
from typing import Optional, Tuple

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

SESSION_TOKEN_PREFIX = "hh_sess_"
RESET_TOKEN_PREFIX = "hh_reset_"

_hasher = PasswordHasher()


@dataclass(frozen=True)
class ParsedToken:
    token_id: str
    secret: str


def hash_secret(secret: str) -> str:
    """Hash a password or token secret with Argon2id."""
    return _hasher.hash(secret)


def verify_secret(secret: str, encoded_hash: str) -> bool:
    if not secret or not encoded_hash:
        return False
    try:
        return _hasher.verify(encoded_hash, secret)
    except (VerificationError, InvalidHashError):
        return False


def generate_token_id() -> str:
    """Short hex id used for lookup; never contains '_' so parsing can split once."""
    return uuid.uuid4().hex[:16]


def generate_secret(length: int = 32) -> str:
    return secrets.token_urlsafe(length)


def build_token_string(prefix: str, token_id: str, secret: str) -> str:
    return f"{prefix}{token_id}_{secret}"


def parse_token(token: Optional[str], prefix: str) -> Optional[ParsedToken]:
    """Parse a token string into token_id and secret.

    Returns None if the format is invalid.
    """
    if not token or not token.startswith(prefix):
        return None
    body = token[len(prefix):]
    # The secret may contain '_' (urlsafe alphabet), so split on the first one only
    idx = body.find("_")
    if idx <= 0:
        return None
    token_id = body[:idx]
    secret = body[idx + 1:]
    if not secret:
        return None
    return ParsedToken(token_id=token_id, secret=secret)


def generate_token(prefix: str) -> Tuple[str, str, str]:
    """Generate a new token and return (token_id, secret, full_token)."""
    tid = generate_token_id()
    sec = generate_secret()
    return tid, sec, build_token_string(prefix, tid, sec)
