"""
Handcrafted Haven Backend — User-Facing Error Messages
======================================================

What:  Turns raw backend error text (auth failures, storage errors,
       database constraint violations) into messages a shopper can act on.
How:   Each operation has an ordered list of (substring, message) rules.
       The first rule whose substring occurs in the raw text wins;
       otherwise the operation's default message is returned.
Why:   Raw errors such as "UNIQUE constraint failed: product_reviews..." or
       "duplicate key value violates unique constraint" must never reach
       the storefront, but the storefront still wants a specific sentence.

Matching is case-insensitive because PostgreSQL and SQLite spell the same
constraint failures differently ("foreign key" vs "FOREIGN KEY").
"""

from typing import Optional, Sequence, Tuple

Rules = Sequence[Tuple[Tuple[str, ...], str]]

# ── Raw texts raised by AuthService ───────────────────────────────────────
# These mirror the wording of the hosted auth provider the storefront was
# first written against, so the same rules cover both.
INVALID_CREDENTIALS = "Invalid login credentials"
EMAIL_NOT_CONFIRMED = "Email not confirmed"
TOO_MANY_REQUESTS = "Too many requests"
ALREADY_REGISTERED = "User already registered"
WEAK_PASSWORD = "Password should be at least 6 characters"
INVALID_EMAIL = "Email address is invalid"

SIGN_IN_RULES: Rules = (
    ((INVALID_CREDENTIALS,), "Invalid email or password. Please check your credentials and try again."),
    ((EMAIL_NOT_CONFIRMED,), "Please check your email and click the verification link before signing in."),
    ((TOO_MANY_REQUESTS,), "Too many login attempts. Please wait a moment before trying again."),
)

SIGN_UP_RULES: Rules = (
    (("already registered",), "This email is already registered. Please use a different email or try signing in."),
    (("Password",), "Password must be at least 6 characters long."),
    (("Email",), "Please enter a valid email address."),
)

STORAGE_RULES: Rules = (
    (("Bucket not found",), "Storage not configured. Please contact support."),
    (("exceeded",), "Storage quota exceeded. Please contact support."),
)

REVIEW_RULES: Rules = (
    (("duplicate", "UNIQUE"), "You have already reviewed this product."),
    (("foreign key",), "Product not found."),
)

CONTACT_RULES: Rules = (
    (("foreign key",), "Seller not found. Please try again."),
    (("duplicate", "UNIQUE"), "You have already sent this message. Please wait before sending another."),
)

PROFILE_RULES: Rules = (
    (("permission denied",), "Permission denied while loading your profile. Please contact support."),
    (("duplicate", "UNIQUE"), "Profile already exists but query failed. Please try again."),
)

ACCOUNT_DELETION_RULES: Rules = (
    (("foreign key",), "Cannot delete account due to existing data dependencies. Please contact support."),
)

# ── Defaults per operation ────────────────────────────────────────────────
SIGN_IN_DEFAULT = "Login failed. Please try again."
SIGN_UP_DEFAULT = "Registration failed. Please try again."
UPLOAD_DEFAULT = "Failed to upload image. Please try again."
REVIEW_DEFAULT = "Failed to submit review. Please try again."
CONTACT_DEFAULT = "Failed to send message. Please try again."
PROFILE_DEFAULT = "Failed to ensure user profile"
ACCOUNT_DELETION_DEFAULT = "Failed to delete account. Please try again or contact support."


def friendly_message(raw: Optional[str], rules: Rules, default: str) -> str:
    """Return the message of the first rule matching `raw`, else `default`."""
    if not raw:
        return default
    haystack = raw.lower()
    for needles, message in rules:
        if any(needle.lower() in haystack for needle in needles):
            return message
    return default


def sign_in_error_message(raw: Optional[str], default: str = SIGN_IN_DEFAULT) -> str:
    return friendly_message(raw, SIGN_IN_RULES, default)


def sign_up_error_message(raw: Optional[str], default: str = SIGN_UP_DEFAULT) -> str:
    return friendly_message(raw, SIGN_UP_RULES, default)


def storage_error_message(raw: Optional[str], default: str = UPLOAD_DEFAULT) -> str:
    return friendly_message(raw, STORAGE_RULES, default)


def review_error_message(raw: Optional[str], default: str = REVIEW_DEFAULT) -> str:
    return friendly_message(raw, REVIEW_RULES, default)


def contact_error_message(raw: Optional[str], default: str = CONTACT_DEFAULT) -> str:
    return friendly_message(raw, CONTACT_RULES, default)


def profile_error_message(raw: Optional[str], default: str = PROFILE_DEFAULT) -> str:
    return friendly_message(raw, PROFILE_RULES, default)


def account_deletion_error_message(
    raw: Optional[str], default: str = ACCOUNT_DELETION_DEFAULT
) -> str:
    return friendly_message(raw, ACCOUNT_DELETION_RULES, default)
