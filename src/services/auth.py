"""
Authentication helpers for HRMS.

Password hashing (argon2), signed email-verification tokens (JWT) and
the @login_required decorator used by all protected routes.
"""

from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from flask import session

from config.settings import SECRET_KEY
from src.services.errors import AuthenticationError, ValidationError

JWT_ALGORITHM = "HS256"
VERIFY_EMAIL_PURPOSE = "verify_email"

_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return _hasher.verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def create_verification_token(email: str, hours: int = 24, secret: str | None = None,
                              now: datetime | None = None) -> tuple[str, datetime]:
    """Sign a time-boxed email-verification token.

    Returns:
        (token, expires_at), where expires_at is a naive UTC datetime for storage.
    """
    issued = now or datetime.now(timezone.utc)
    expires = issued + timedelta(hours=hours)
    payload = {"sub": email, "purpose": VERIFY_EMAIL_PURPOSE, "iat": issued, "exp": expires}
    token = jwt.encode(payload, secret or SECRET_KEY, algorithm=JWT_ALGORITHM)
    return token, expires.replace(tzinfo=None)


def decode_verification_token(token: str, secret: str | None = None) -> str:
    """Return the email a verification token was issued for.

    Raises:
        ValidationError: token is missing, tampered with, expired or not
            a verification token.
    """
    if not token:
        raise ValidationError("Missing token")
    try:
        payload = jwt.decode(token, secret or SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise ValidationError("Verification link has expired")
    except jwt.InvalidTokenError:
        raise ValidationError("Invalid verification token")

    if payload.get("purpose") != VERIFY_EMAIL_PURPOSE or not payload.get("sub"):
        raise ValidationError("Invalid verification token")
    return payload["sub"]


def current_user() -> dict | None:
    """The logged-in user stored in the session, or None."""
    return session.get("user")


def login_required(f):
    """Decorator that rejects requests without a logged-in session (401)."""
    @wraps(f)
    def decorated(*args, **kwargs):
        if not session.get("user"):
            raise AuthenticationError("Authentication required")
        return f(*args, **kwargs)
    return decorated
