"""
Regular account lifecycle: signup, admin-created accounts, login and
password change.

Admin signups go through src/services/admin_approval.py instead; login
for both kinds of account is gated by the same eligibility check.
"""

import logging
import re
import secrets
import sqlite3
from urllib.parse import quote

from src.services.admin_approval import (
    APPROVED,
    clean_text,
    login_failure_message,
    normalize_email,
    validate_email_address,
)
from src.services.auth import create_verification_token, hash_password, verify_password
from src.services.email_sender import send_account_credentials_email, send_verification_email
from src.services.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

log = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
_PASSWORD_MIX = re.compile(r"(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")

# Generated passwords leave out look-alikes (0/O, 1/l/I)
PASSWORD_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz23456789"
GENERATED_PASSWORD_LENGTH = 12


def serialize_user(row) -> dict:
    """API shape of a users row. Never includes the hash or tokens."""
    return {
        "id": row["id"],
        "firstName": row["first_name"],
        "lastName": row["last_name"],
        "email": row["email"],
        "role": row["role"],
        "isActive": bool(row["is_active"]),
        "emailVerified": bool(row["email_verified"]),
        "adminApprovalStatus": row["admin_approval_status"],
        "profileId": row["profile_id"],
        "createdAt": row["created_at"],
    }


def validate_new_password(password: str) -> None:
    """Raise ValidationError unless the password meets the policy."""
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not _PASSWORD_MIX.match(password):
        raise ValidationError(
            "Password must contain at least one uppercase letter, one lowercase letter, and one number"
        )


def register_user(
    db: sqlite3.Connection,
    first_name: str,
    last_name: str,
    email: str,
    password: str,
    profile_id: int | None = None,
    base_url: str = "",
    token_hours: int = 24,
    secret: str | None = None,
) -> int:
    """Create an active, unverified regular account and email a verification link.

    Raises:
        ValidationError: missing fields, malformed email, weak password or
            unknown profile id.
        ConflictError: email already registered.
    """
    first_name = clean_text(first_name)
    last_name = clean_text(last_name)
    email = normalize_email(email)

    if not first_name or not last_name or not email or not isinstance(password, str) or not password:
        raise ValidationError("All fields are required")
    email = validate_email_address(email)
    validate_new_password(password)

    if db.execute("SELECT id FROM users WHERE email = ?", (email,)).fetchone():
        raise ConflictError("User already exists with this email")

    if profile_id in ("", None):
        profile_id = None
    else:
        try:
            profile_id = int(profile_id)
        except (TypeError, ValueError):
            raise ValidationError("profileId must be an integer")

    if profile_id is not None and not db.execute(
        "SELECT id FROM profiles WHERE id = ?", (profile_id,)
    ).fetchone():
        raise ValidationError("Profile not found")

    token, expires_at = create_verification_token(email, hours=token_hours, secret=secret)
    try:
        cursor = db.execute(
            """INSERT INTO users
               (first_name, last_name, email, password_hash, role, is_active,
                email_verified, admin_approval_status, verification_token,
                verification_expires_at, profile_id)
               VALUES (?, ?, ?, ?, 'user', 1, 0, ?, ?, ?, ?)""",
            (first_name, last_name, email, hash_password(password), APPROVED,
             token, expires_at.strftime("%Y-%m-%d %H:%M:%S"), profile_id),
        )
        db.commit()
    except sqlite3.IntegrityError:
        db.rollback()
        raise ConflictError("User already exists with this email")

    user_id = cursor.lastrowid
    log.info("User account created: %s (user #%d)", email, user_id)

    verify_url = f"{base_url}/api/auth/verify-email?token={quote(token)}"
    if not send_verification_email(email, f"{first_name} {last_name}", verify_url, hours=token_hours):
        log.warning("Verification email not delivered to %s, account kept", email)

    return user_id


def authenticate(db: sqlite3.Connection, email: str, password: str):
    """Check credentials and login eligibility.

    Returns:
        The users row.

    Raises:
        ValidationError: email or password missing.
        AuthenticationError: unknown email or wrong password (same message).
        AuthorizationError: credentials fine but a login condition fails.
    """
    email = normalize_email(email)
    if not email or not isinstance(password, str) or not password:
        raise ValidationError("Email and password are required")

    user = db.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
    if not user or not verify_password(password, user["password_hash"]):
        log.warning("Failed login attempt: %s", email)
        raise AuthenticationError("Invalid email or password")

    reason = login_failure_message(user)
    if reason:
        log.warning("Login refused for %s: %s", email, reason)
        raise AuthorizationError(reason)

    db.execute("UPDATE users SET last_login = datetime('now') WHERE id = ?", (user["id"],))
    db.commit()
    return user


def change_password(db: sqlite3.Connection, email: str, old_password: str, new_password: str) -> None:
    """Replace a password after checking the old one.

    Raises:
        ValidationError: fields missing, old password wrong, new password
            weak or unchanged.
        NotFoundError: no account for this email.
    """
    email = normalize_email(email)
    if not email or not isinstance(old_password, str) or not old_password or not new_password:
        raise ValidationError("Email, old password, and new password are required")

    user = db.execute("SELECT id, password_hash FROM users WHERE email = ?", (email,)).fetchone()
    if not user:
        raise NotFoundError("No account found with this email address")
    if not verify_password(old_password, user["password_hash"]):
        raise ValidationError("Old password is incorrect")

    validate_new_password(new_password)
    if verify_password(new_password, user["password_hash"]):
        raise ValidationError("New password must be different from the old password")

    db.execute(
        "UPDATE users SET password_hash = ?, updated_at = datetime('now') WHERE id = ?",
        (hash_password(new_password), user["id"]),
    )
    db.commit()
    log.info("Password changed for %s", email)


def generate_password(length: int = GENERATED_PASSWORD_LENGTH) -> str:
    """Random password that satisfies validate_new_password."""
    while True:
        password = "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))
        if _PASSWORD_MIX.match(password):
            return password


def create_account_for_profile(db: sqlite3.Connection, profile_id: int, base_url: str = ""):
    """Create an active, verified user account for an existing profile.

    The password is generated and only ever sent to the profile's email.

    Returns:
        (users row, whether the credentials email was delivered)

    Raises:
        NotFoundError: no such profile.
        ValidationError: the profile has no usable email address.
        ConflictError: the email is taken or the profile already has an account.
    """
    profile = db.execute("SELECT * FROM profiles WHERE id = ?", (profile_id,)).fetchone()
    if not profile:
        raise NotFoundError("Profile not found")
    if not profile["email"]:
        raise ValidationError("Profile has no email address")
    email = validate_email_address(profile["email"])

    if db.execute("SELECT id FROM users WHERE email = ?", (email,)).fetchone():
        raise ConflictError("User with this email already exists")
    if db.execute("SELECT id FROM users WHERE profile_id = ?", (profile_id,)).fetchone():
        raise ConflictError("This profile already has a user account")

    password = generate_password()
    try:
        cursor = db.execute(
            """INSERT INTO users
               (first_name, last_name, email, password_hash, role, is_active,
                email_verified, admin_approval_status, profile_id)
               VALUES (?, ?, ?, ?, 'user', 1, 1, ?, ?)""",
            (profile["first_name"], profile["last_name"], email, hash_password(password),
             APPROVED, profile_id),
        )
        db.commit()
    except sqlite3.IntegrityError:
        db.rollback()
        raise ConflictError("User with this email already exists")

    user = db.execute("SELECT * FROM users WHERE id = ?", (cursor.lastrowid,)).fetchone()
    log.info("User account #%d created for profile #%d (%s)", user["id"], profile_id, email)

    full_name = f"{profile['first_name']} {profile['last_name']}"
    emailed = send_account_credentials_email(email, full_name, password, f"{base_url}/login")
    if not emailed:
        log.warning("Credentials email not delivered to %s, account kept", email)
    return user, emailed
