"""
Automated certificate expiry reminders.

Scans all certificates and emails the profile holder when a certificate
is 30, 14, 7, 3 or 1 days from expiry, expires today, or has just
expired. Each (certificate, threshold) pair is emailed at most once;
sent reminders are recorded in certificate_reminders. Changing a
certificate's expiry date clears its reminders, so a renewal starts over.

Accounts linked to the holder's profile also get an in-app notification
for each threshold, whether or not the email went out.

Runs:
  - Daily at 6am via APScheduler
  - On app startup
  - On manual trigger via POST /api/certificates/reminders/run
"""

import logging
from datetime import date

from config.settings import REMINDER_DAYS
from src.database.connection import get_db
from src.services import notifications
from src.services.cert_status import days_until_expiry, format_cert_date, parse_cert_date
from src.services.email_sender import send_cert_expiry_email

log = logging.getLogger(__name__)

# Recorded threshold for the one-off "has expired" notice
EXPIRED_THRESHOLD = -1


def reminder_threshold(days: int | None, reminder_days=REMINDER_DAYS) -> int | None:
    """Which reminder (if any) is due for a certificate `days` from expiry.

    Expired notices are only sent within the largest reminder window after
    expiry, so certificates that lapsed long ago don't trigger a burst of
    mail the first time the job runs.
    """
    if days is None:
        return None
    if days in reminder_days or days == 0:
        return days
    if days < 0 and -days <= max(reminder_days):
        return EXPIRED_THRESHOLD
    return None


def run_cert_reminders(db_path: str | None = None, today: date | None = None) -> dict:
    """Send due expiry reminders.

    Args:
        db_path: Optional database path (for testing). Uses default if None.
        today: Optional override of the current date (for testing).

    Returns:
        {"checked": n, "sent": n, "failed": n, "notified": n}
    """
    today = today or date.today()
    db = get_db(db_path) if db_path else get_db()
    try:
        certs = db.execute("""
            SELECT c.id, c.certificate, c.expiry_date, c.profile_id,
                   p.email, p.first_name, p.last_name
            FROM certificates c
            JOIN profiles p ON c.profile_id = p.id
            WHERE c.expiry_date IS NOT NULL
              AND p.email IS NOT NULL AND p.email != ''
              AND p.is_active = 1
            ORDER BY c.id
        """).fetchall()

        checked = sent = failed = notified = 0

        for cert in certs:
            checked += 1
            days = days_until_expiry(cert["expiry_date"], today)
            threshold = reminder_threshold(days)
            if threshold is None:
                continue

            already = db.execute(
                "SELECT id FROM certificate_reminders WHERE certificate_id = ? AND threshold_days = ?",
                (cert["id"], threshold),
            ).fetchone()
            if already:
                continue

            name = f"{cert['first_name']} {cert['last_name']}"
            expiry_display = format_cert_date(parse_cert_date(cert["expiry_date"]))
            emailed = send_cert_expiry_email(cert["email"], name, cert["certificate"], expiry_display, days)

            notified += _notify_linked_users(db, cert, threshold, days, expiry_display, emailed)
            if emailed:
                db.execute(
                    "INSERT INTO certificate_reminders (certificate_id, threshold_days, sent_to) VALUES (?, ?, ?)",
                    (cert["id"], threshold, cert["email"]),
                )
            db.commit()

            if not emailed:
                failed += 1
                continue
            sent += 1
            log.info("CERT REMINDER: %s, %s, %d days", name, cert["certificate"], days)

        log.info(
            "Certificate reminder run complete: %d checked, %d sent, %d failed, %d in-app",
            checked, sent, failed, notified,
        )
        return {"checked": checked, "sent": sent, "failed": failed, "notified": notified}
    except Exception:
        log.exception("Certificate reminder run failed")
        raise
    finally:
        db.close()


def expiry_notice(cert_name: str, expiry_display: str, days: int) -> str:
    if days < 0:
        return f"{cert_name} expired on {expiry_display}."
    if days == 0:
        return f"{cert_name} expires today ({expiry_display})."
    return f"{cert_name} expires on {expiry_display} ({days} days remaining)."


def _notify_linked_users(db, cert, threshold: int, days: int, expiry_display: str, emailed: bool) -> int:
    """In-app notice for each account linked to the holder's profile, once per threshold."""
    users = db.execute("SELECT id FROM users WHERE profile_id = ?", (cert["profile_id"],)).fetchall()
    written = 0
    for user in users:
        if notifications.has_certificate_notification(db, user["id"], cert["id"], threshold):
            continue
        notifications.create_notification(
            db, user["id"],
            notifications.CERTIFICATE_EXPIRED if days < 0 else notifications.CERTIFICATE_EXPIRY,
            expiry_notice(cert["certificate"], expiry_display, days),
            priority=notifications.expiry_priority(days),
            certificate_id=cert["id"],
            threshold_days=threshold,
            email_sent=emailed,
        )
        written += 1
    return written
