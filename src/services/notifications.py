"""
In-app notification inbox.

Each row belongs to one user. The reminder job writes certificate
notices for the user linked to the certificate holder's profile, and
profile creation notifies every active admin. Reading is per user: a
user can only see or mark their own notifications.
"""

import logging
import sqlite3

from src.services.errors import NotFoundError, ValidationError

log = logging.getLogger(__name__)

PRIORITIES = ("low", "medium", "high", "critical")

CERTIFICATE_EXPIRY = "certificate_expiry"
CERTIFICATE_EXPIRED = "certificate_expired"
PROFILE_CREATED = "profile_created"

DEFAULT_LIST_LIMIT = 50


def serialize_notification(row) -> dict:
    return {
        "id": row["id"],
        "type": row["type"],
        "priority": row["priority"],
        "message": row["message"],
        "certificateId": row["certificate_id"],
        "read": bool(row["is_read"]),
        "emailSent": bool(row["email_sent"]),
        "createdAt": row["created_at"],
    }


def expiry_priority(days: int) -> str:
    """Priority of a certificate notice `days` from expiry."""
    if days <= 0:
        return "critical"
    if days <= 7:
        return "high"
    if days <= 14:
        return "medium"
    return "low"


def create_notification(db: sqlite3.Connection, user_id: int, type_: str, message: str,
                        priority: str = "low", certificate_id: int | None = None,
                        threshold_days: int | None = None, email_sent: bool = False) -> int:
    """Insert one notification. The caller commits."""
    if priority not in PRIORITIES:
        raise ValidationError(f"Unknown priority: {priority}")
    cursor = db.execute(
        """INSERT INTO notifications
           (user_id, type, priority, message, certificate_id, threshold_days, email_sent)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (user_id, type_, priority, message, certificate_id, threshold_days, 1 if email_sent else 0),
    )
    return cursor.lastrowid


def has_certificate_notification(db: sqlite3.Connection, user_id: int, certificate_id: int,
                                 threshold_days: int) -> bool:
    return db.execute(
        """SELECT 1 FROM notifications
           WHERE user_id = ? AND certificate_id = ? AND threshold_days = ?""",
        (user_id, certificate_id, threshold_days),
    ).fetchone() is not None


def notify_admins(db: sqlite3.Connection, type_: str, message: str, priority: str = "low") -> int:
    """One notification per active admin account. The caller commits.

    Returns:
        Number of notifications written.
    """
    admins = db.execute("SELECT id FROM users WHERE role = 'admin' AND is_active = 1").fetchall()
    for admin in admins:
        create_notification(db, admin["id"], type_, message, priority=priority)
    return len(admins)


def list_notifications(db: sqlite3.Connection, user_id: int, limit: int = DEFAULT_LIST_LIMIT) -> list[dict]:
    """Newest first."""
    rows = db.execute(
        "SELECT * FROM notifications WHERE user_id = ? ORDER BY created_at DESC, id DESC LIMIT ?",
        (user_id, limit),
    ).fetchall()
    return [serialize_notification(r) for r in rows]


def unread_count(db: sqlite3.Connection, user_id: int) -> int:
    return db.execute(
        "SELECT COUNT(*) FROM notifications WHERE user_id = ? AND is_read = 0", (user_id,)
    ).fetchone()[0]


def mark_read(db: sqlite3.Connection, user_id: int, notification_id: int) -> dict:
    """Mark one of the user's notifications as read.

    Raises:
        NotFoundError: no such notification, or it belongs to someone else.
    """
    cursor = db.execute(
        "UPDATE notifications SET is_read = 1 WHERE id = ? AND user_id = ?",
        (notification_id, user_id),
    )
    if not cursor.rowcount:
        raise NotFoundError("Notification not found")
    db.commit()
    row = db.execute("SELECT * FROM notifications WHERE id = ?", (notification_id,)).fetchone()
    return serialize_notification(row)


def mark_all_read(db: sqlite3.Connection, user_id: int) -> int:
    """Returns the number of notifications that were unread."""
    cursor = db.execute(
        "UPDATE notifications SET is_read = 1 WHERE user_id = ? AND is_read = 0", (user_id,)
    )
    db.commit()
    if cursor.rowcount:
        log.info("User #%d marked %d notification(s) read", user_id, cursor.rowcount)
    return cursor.rowcount
