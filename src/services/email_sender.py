"""
Account and certificate notification emails: rendering and sending.

Every send is best-effort: failures are logged and reported as False,
never raised. Callers fire a notification after their state change has
been committed, so a mail outage can't undo a signup or an approval.
Each message is attempted once; there is no queue and no retry.
"""

import logging
import smtplib
from datetime import datetime
from email.errors import MessageError
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from config.settings import (
    SMTP_HOST,
    SMTP_PORT,
    SMTP_USER,
    SMTP_PASSWORD,
    SMTP_TIMEOUT,
    EMAIL_FROM,
)
from src.services.errors import NotificationError

log = logging.getLogger(__name__)

# Header colours by message kind
KIND_COLORS = {
    "info": "#1E3A5F",
    "success": "#16A34A",
    "warning": "#D97706",
    "error": "#DC2626",
}


def send_verification_email(to_email: str, name: str, verify_url: str, hours: int = 24) -> bool:
    """Ask a new account holder to confirm their email address."""
    paragraphs = [
        "Please verify your email address by clicking the link below.",
        f"The link expires in {hours} hours.",
    ]
    return send_notification(
        to_email, name, "Verify Your HRMS Account Email", paragraphs,
        kind="info", action_url=verify_url, action_label="Verify email",
    )


def send_admin_signup_email(to_email: str, name: str, verify_url: str, hours: int = 24) -> bool:
    """Verification email for an admin signup. Also explains the approval step."""
    paragraphs = [
        "Please verify your email address by clicking the link below.",
        f"The link expires in {hours} hours.",
        "After verification, your account will be reviewed by a super administrator for approval.",
    ]
    return send_notification(
        to_email, name, "Verify Your Admin Account Email", paragraphs,
        kind="info", action_url=verify_url, action_label="Verify email",
    )


def send_admin_approval_request(to_email: str, requester_name: str, requester_email: str,
                                approval_url: str) -> bool:
    """Tell a super admin that an admin account is waiting for review."""
    paragraphs = [
        "A new admin account request has been submitted:",
        f"Name: {requester_name}",
        f"Email: {requester_email}",
        "Please review and approve or reject this request in the admin panel.",
    ]
    return send_notification(
        to_email, "Administrator", "New Admin Account Approval Required", paragraphs,
        kind="warning", action_url=approval_url, action_label="Review request",
    )


def send_admin_decision_email(to_email: str, name: str, approved: bool, login_url: str) -> bool:
    """Tell the requester whether their admin account was approved or rejected."""
    if approved:
        return send_notification(
            to_email, name, "Admin Account Approved",
            [
                "Congratulations! Your admin account has been approved.",
                "You can now log in to HRMS with your credentials.",
            ],
            kind="success", action_url=login_url, action_label="Log in",
        )
    return send_notification(
        to_email, name, "Admin Account Request Rejected",
        [
            "Your admin account request has been rejected.",
            "Please contact the system administrator for more information.",
        ],
        kind="error",
    )


def send_account_credentials_email(to_email: str, name: str, password: str, login_url: str) -> bool:
    """Login details for an account an administrator created on someone's behalf."""
    paragraphs = [
        "An HRMS account has been created for you.",
        f"Email: {to_email}",
        f"Temporary password: {password}",
        "Please log in and change your password straight away.",
    ]
    return send_notification(
        to_email, name, "Your HRMS Account Details", paragraphs,
        kind="info", action_url=login_url, action_label="Log in",
    )


def send_cert_expiry_email(to_email: str, name: str, cert_name: str, expiry_date: str,
                           days_remaining: int) -> bool:
    """Certificate expiry reminder. Urgency follows the days remaining."""
    if days_remaining < 0:
        label, kind = "EXPIRED", "error"
        status_line = f"Your certificate {cert_name} expired on {expiry_date}."
    elif days_remaining == 0:
        label, kind = "URGENT", "error"
        status_line = f"Your certificate {cert_name} expires today ({expiry_date})."
    elif days_remaining <= 7:
        label, kind = "URGENT", "error"
        status_line = f"Your certificate {cert_name} expires on {expiry_date} ({days_remaining} days remaining)."
    else:
        label, kind = "WARNING", "warning"
        status_line = f"Your certificate {cert_name} expires on {expiry_date} ({days_remaining} days remaining)."

    return send_notification(
        to_email, name, f"{label}: Certificate Expiry Notification - {cert_name}",
        [status_line, "Please arrange renewal and upload the new certificate to HRMS."],
        kind=kind,
    )


def send_notification(to_email: str, name: str, subject: str, paragraphs: list[str],
                      kind: str = "info", action_url: str | None = None,
                      action_label: str | None = None) -> bool:
    """Render and send one notification. Returns True on success, False on failure."""
    if not to_email:
        log.warning("Notification '%s' skipped: no recipient", subject)
        return False
    html_body = render_notification_html(subject, name, paragraphs, kind, action_url, action_label)
    plain_body = render_notification_plaintext(name, paragraphs, action_url)
    return _send_email(to_email, subject, html_body, plain_body)


def render_notification_html(title: str, name: str, paragraphs: list[str], kind: str = "info",
                             action_url: str | None = None, action_label: str | None = None) -> str:
    """Render a notification as an HTML email body."""
    color = KIND_COLORS.get(kind, KIND_COLORS["info"])
    body = "".join(f'<p style="margin:0 0 12px;">{escape(p)}</p>' for p in paragraphs)

    button = ""
    if action_url:
        button = f"""
        <p style="margin:24px 0;text-align:center;">
            <a href="{escape(action_url, quote=True)}" style="background:{color};color:white;padding:10px 20px;border-radius:4px;text-decoration:none;">{escape(action_label or action_url)}</a>
        </p>
        <p style="font-size:12px;color:#6B7280;word-break:break-all;">{escape(action_url)}</p>"""

    return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="margin:0;padding:0;background:#F3F4F6;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;">
<div style="max-width:600px;margin:0 auto;padding:24px;">

    <!-- Header -->
    <div style="background:{color};color:white;padding:20px 24px;border-radius:8px 8px 0 0;">
        <h1 style="margin:0;font-size:20px;">{escape(title)}</h1>
    </div>

    <!-- Content -->
    <div style="background:white;padding:24px;border-radius:0 0 8px 8px;font-size:14px;color:#111827;">
        <p style="margin:0 0 12px;">Hello <strong>{escape(name or "there")}</strong>,</p>
        {body}
        {button}
    </div>

    <!-- Footer -->
    <div style="text-align:center;padding:16px;color:#9CA3AF;font-size:12px;">
        This is an automated message from HRMS<br>
        Sent {datetime.now().strftime('%d/%m/%Y at %H:%M')}
    </div>

</div>
</body>
</html>"""


def render_notification_plaintext(name: str, paragraphs: list[str], action_url: str | None = None) -> str:
    """Render a plain-text fallback version of a notification."""
    lines = [f"Hello {name or 'there'},", ""]
    lines.extend(paragraphs)
    if action_url:
        lines.extend(["", action_url])
    lines.extend(["", "This is an automated message from HRMS"])
    return "\n".join(lines)


def _send_email(to_email: str, subject: str, html_body: str, plain_body: str) -> bool:
    """Send an email via SMTP. Never raises."""
    if not SMTP_USER or not SMTP_PASSWORD:
        log.error("SMTP credentials not configured, cannot send '%s' to %s", subject, to_email)
        return False

    try:
        _deliver(to_email, _build_message(to_email, subject, html_body, plain_body))
    except NotificationError as e:
        log.error("Failed to send '%s' to %s: %s", subject, to_email, e)
        return False

    log.info("Email '%s' sent to %s", subject, to_email)
    return True


def _build_message(to_email: str, subject: str, html_body: str, plain_body: str) -> MIMEMultipart:
    try:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = EMAIL_FROM
        msg["To"] = to_email
        msg.attach(MIMEText(plain_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))
    except (MessageError, ValueError) as e:
        raise NotificationError(f"Malformed message: {e}") from e
    return msg


def _deliver(to_email: str, msg: MIMEMultipart) -> None:
    """Hand one message to the SMTP server."""
    try:
        if SMTP_PORT == 465:
            with smtplib.SMTP_SSL(SMTP_HOST, SMTP_PORT, timeout=SMTP_TIMEOUT) as server:
                server.login(SMTP_USER, SMTP_PASSWORD)
                server.sendmail(EMAIL_FROM, to_email, msg.as_string())
        else:
            with smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=SMTP_TIMEOUT) as server:
                server.starttls()
                server.login(SMTP_USER, SMTP_PASSWORD)
                server.sendmail(EMAIL_FROM, to_email, msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        raise NotificationError(str(e)) from e
    except (MessageError, ValueError) as e:
        # Header that cannot be serialized, e.g. a line break in an address
        raise NotificationError(f"Malformed message: {e}") from e
