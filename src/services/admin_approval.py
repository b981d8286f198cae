"""
Admin account authorization: the signup → approval state machine.

States:
    pending   — signup received, account inactive
    approved  — a super admin approved it, account active
    rejected  — a super admin rejected it, account forced inactive

approval status and is_active are separate columns, so every transition
writes both in one UPDATE. Login for an admin needs four independent
flags to line up (role, email verified, approved, active); they are
checked one by one so a diagnostic can say which of them is off.

Emails are sent after the state change is committed and their outcome
is only logged.
"""

import logging
import sqlite3
from urllib.parse import quote

from email_validator import EmailNotValidError, validate_email

from src.services.auth import create_verification_token, decode_verification_token, hash_password
from src.services.email_sender import (
    send_admin_approval_request,
    send_admin_decision_email,
    send_admin_signup_email,
)
from src.services.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

log = logging.getLogger(__name__)

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"

# action → (new approval status, new is_active)
TRANSITIONS = {
    "approve": (APPROVED, 1),
    "reject": (REJECTED, 0),
}

# Login conditions, in the order failures are reported
ADMIN_LOGIN_CONDITIONS = ("role_admin", "email_verified", "approved", "active")
USER_LOGIN_CONDITIONS = ("email_verified", "active")

LOGIN_FAILURE_MESSAGES = {
    "role_admin": "Account is not an admin account",
    "email_verified": "Email not verified. Please check your email and click the verification link to continue.",
    "approved": "Admin account pending approval by super admin.",
    "active": "Account is deactivated",
}


# ── Login eligibility ─────────────────────────────────────

def login_conditions(user) -> dict[str, bool]:
    """Evaluate each login flag independently."""
    return {
        "role_admin": user["role"] == "admin",
        "email_verified": bool(user["email_verified"]),
        "approved": user["admin_approval_status"] == APPROVED,
        "active": bool(user["is_active"]),
    }


def failed_admin_login_conditions(user) -> list[str]:
    """Names of the admin login conditions this account fails, in report order."""
    conditions = login_conditions(user)
    return [name for name in ADMIN_LOGIN_CONDITIONS if not conditions[name]]


def is_admin_login_permitted(user) -> bool:
    """role=admin ∧ email verified ∧ approved ∧ active."""
    return not failed_admin_login_conditions(user)


def failed_login_conditions(user) -> list[str]:
    """Failed conditions for whatever kind of account this is.

    Admins need all four flags; regular users need only verified + active.
    """
    if user["role"] == "admin":
        return failed_admin_login_conditions(user)
    conditions = login_conditions(user)
    return [name for name in USER_LOGIN_CONDITIONS if not conditions[name]]


def login_failure_message(user) -> str | None:
    """User-facing reason for the first failing condition, or None if login is allowed."""
    failed = failed_login_conditions(user)
    if not failed:
        return None
    if failed[0] == "approved" and user["admin_approval_status"] == REJECTED:
        return "Admin account request was rejected."
    return LOGIN_FAILURE_MESSAGES[failed[0]]


# ── Transitions ───────────────────────────────────────────

def normalize_email(email) -> str:
    if not isinstance(email, str):
        return ""
    return email.strip().lower()


def clean_text(value) -> str:
    """Stripped string, or "" for anything that is not a string."""
    if not isinstance(value, str):
        return ""
    return value.strip()


def validate_email_address(email) -> str:
    """Normalized address, or ValidationError unless it is a single plain mailbox.

    Rejects embedded whitespace and line breaks, so a stored address is
    always safe to put in a To header.
    """
    email = normalize_email(email)
    try:
        result = validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        raise ValidationError("Valid email is required")
    return result.normalized.lower()


def is_super_admin_account(user, super_admin_emails=()) -> bool:
    """An admin account whose email is on the super-admin allow-list."""
    if not user or user.get("role") != "admin":
        return False
    allowed = {normalize_email(e) for e in super_admin_emails}
    email = normalize_email(user.get("email"))
    return bool(email) and email in allowed


def request_admin_account(
    db: sqlite3.Connection,
    first_name: str,
    last_name: str,
    email: str,
    password: str,
    super_admin_emails=(),
    base_url: str = "",
    token_hours: int = 24,
    secret: str | None = None,
) -> int:
    """Create a pending, inactive admin account and send the notifications.

    Returns:
        The new user's id.

    Raises:
        ValidationError: a required field is empty or the email is malformed.
        ConflictError: the email is already registered. No row is created.
    """
    first_name = clean_text(first_name)
    last_name = clean_text(last_name)
    email = normalize_email(email)

    if not first_name or not last_name or not email or not isinstance(password, str) or not password:
        raise ValidationError("All fields are required")
    email = validate_email_address(email)

    existing = db.execute("SELECT id FROM users WHERE email = ?", (email,)).fetchone()
    if existing:
        raise ConflictError("User already exists with this email")

    token, expires_at = create_verification_token(email, hours=token_hours, secret=secret)

    try:
        cursor = db.execute(
            """INSERT INTO users
               (first_name, last_name, email, password_hash, role, is_active,
                email_verified, admin_approval_status, verification_token,
                verification_expires_at)
               VALUES (?, ?, ?, ?, 'admin', 0, 0, ?, ?, ?)""",
            (first_name, last_name, email, hash_password(password), PENDING,
             token, expires_at.strftime("%Y-%m-%d %H:%M:%S")),
        )
        db.commit()
    except sqlite3.IntegrityError:
        # Lost a race with a concurrent signup for the same email
        db.rollback()
        raise ConflictError("User already exists with this email")

    user_id = cursor.lastrowid
    full_name = f"{first_name} {last_name}"
    log.info("Admin signup request created: %s (user #%d)", email, user_id)

    verify_url = f"{base_url}/api/auth/verify-email?token={quote(token)}"
    if not send_admin_signup_email(email, full_name, verify_url, hours=token_hours):
        log.warning("Verification email not delivered to %s, account kept", email)

    approval_url = f"{base_url}/admin/approve-user/{user_id}"
    for super_admin in sorted(super_admin_emails):
        if not send_admin_approval_request(super_admin, full_name, email, approval_url):
            log.warning("Approval request for %s not delivered to %s", email, super_admin)

    return user_id


def decide_admin_request(
    db: sqlite3.Connection,
    caller,
    user_id: int,
    action: str,
    super_admin_emails=(),
    base_url: str = "",
) -> dict:
    """Approve or reject an admin account.

    Approval sets (approved, active); rejection sets (rejected, inactive).
    Both columns change in a single statement. Repeating the same decision
    leaves the row as it is and sends no second email.

    Raises:
        AuthorizationError: caller is not an admin account on the
            super-admin allow-list.
        NotFoundError: no such user.
        ValidationError: target is not an admin account, or unknown action.
    """
    if not is_super_admin_account(caller, super_admin_emails):
        raise AuthorizationError("Only super administrators can approve admin accounts")

    user = db.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    if not user:
        raise NotFoundError("User not found")
    if user["role"] != "admin":
        raise ValidationError("User is not an admin account")
    if action not in TRANSITIONS:
        raise ValidationError('Invalid action. Use "approve" or "reject"')

    new_status, new_active = TRANSITIONS[action]
    unchanged = user["admin_approval_status"] == new_status and user["is_active"] == new_active

    if not unchanged:
        db.execute(
            """UPDATE users
               SET admin_approval_status = ?, is_active = ?, updated_at = datetime('now')
               WHERE id = ?""",
            (new_status, new_active, user_id),
        )
        db.commit()
        log.info("Admin account #%d %s by %s", user_id, new_status, caller["email"])

        full_name = f"{user['first_name']} {user['last_name']}"
        if not send_admin_decision_email(user["email"], full_name, new_status == APPROVED,
                                         f"{base_url}/login"):
            log.warning("Decision email (%s) not delivered to %s", new_status, user["email"])
    else:
        log.info("Admin account #%d already %s, no change", user_id, new_status)

    return {
        "userId": user_id,
        "adminApprovalStatus": new_status,
        "isActive": bool(new_active),
    }


def list_pending_admins(db: sqlite3.Connection) -> list[dict]:
    """Pending admin requests: name, email and request time only."""
    rows = db.execute(
        """SELECT id, first_name, last_name, email, created_at FROM users
           WHERE role = 'admin' AND admin_approval_status = ?
           ORDER BY created_at, id""",
        (PENDING,),
    ).fetchall()
    return [
        {
            "id": r["id"],
            "firstName": r["first_name"],
            "lastName": r["last_name"],
            "email": r["email"],
            "createdAt": r["created_at"],
        }
        for r in rows
    ]


def admin_account_report(db: sqlite3.Connection) -> list[dict]:
    """Every admin account with the login conditions it fails."""
    rows = db.execute("SELECT * FROM users WHERE role = 'admin' ORDER BY email").fetchall()
    return [
        {
            "id": r["id"],
            "email": r["email"],
            "adminApprovalStatus": r["admin_approval_status"],
            "failed": failed_admin_login_conditions(r),
        }
        for r in rows
    ]


def deactivate_unapproved_admins(db: sqlite3.Connection) -> int:
    """Force pending/rejected admins that are somehow active back to inactive.

    Approved-but-inactive is left alone: that's a legitimate suspension.

    Returns:
        Number of accounts changed.
    """
    cursor = db.execute(
        """UPDATE users SET is_active = 0, updated_at = datetime('now')
           WHERE role = 'admin' AND admin_approval_status != ? AND is_active = 1""",
        (APPROVED,),
    )
    db.commit()
    if cursor.rowcount:
        log.warning("Deactivated %d unapproved admin account(s)", cursor.rowcount)
    return cursor.rowcount


def verify_email(db: sqlite3.Connection, token: str, secret: str | None = None):
    """Consume an email-verification token and mark the account verified.

    Returns:
        The updated user row.

    Raises:
        ValidationError: token invalid or expired.
        NotFoundError: no account holds this token (already used, or replaced).
    """
    email = decode_verification_token(token, secret=secret)
    user = db.execute(
        "SELECT * FROM users WHERE email = ? AND verification_token = ?",
        (email, token),
    ).fetchone()
    if not user:
        raise NotFoundError("User not found")

    db.execute(
        """UPDATE users
           SET email_verified = 1, verification_token = NULL,
               verification_expires_at = NULL, updated_at = datetime('now')
           WHERE id = ?""",
        (user["id"],),
    )
    db.commit()
    log.info("Email verified: %s", email)
    return db.execute("SELECT * FROM users WHERE id = ?", (user["id"],)).fetchone()
