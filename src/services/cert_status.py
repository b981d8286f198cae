"""
Certificate lifecycle classification.

Every active/expiring/expired determination in the app goes through this
module. No other code should independently compare certificate dates.

Dates arrive as 'DD/MM/YYYY' (UK day-first, what the front end sends),
'YYYY-MM-DD' (what the database stores) or date objects. Anything else
parses to None and the record is left out of the lifecycle buckets
rather than being compared against an invalid date.
"""

import re
from collections import Counter
from datetime import date, datetime

from src.services.errors import ValidationError

_UK_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[ T].*)?$")


def parse_cert_date(value) -> date | None:
    """Parse a certificate date. Returns None for empty or malformed input."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    m = _UK_DATE.match(text)
    if m:
        day, month, year = (int(g) for g in m.groups())
    else:
        m = _ISO_DATE.match(text)
        if not m:
            return None
        year, month, day = (int(g) for g in m.groups())

    try:
        return date(year, month, day)
    except ValueError:
        return None


def format_cert_date(value: date | None) -> str | None:
    """date(2025, 3, 15) → '15/03/2025'."""
    if value is None:
        return None
    return value.strftime("%d/%m/%Y")


def days_until_expiry(expiry, today: date | None = None) -> int | None:
    """Calendar days until expiry. 0 = expires today, negative = days past expiry."""
    exp = parse_cert_date(expiry)
    if exp is None:
        return None
    return (exp - (today or date.today())).days


def is_active(issued, expiry, today: date | None = None) -> bool:
    """Issued on or before today and not yet past the end of its expiry day."""
    issue_d = parse_cert_date(issued)
    exp = parse_cert_date(expiry)
    if issue_d is None or exp is None:
        return False
    today = today or date.today()
    return issue_d <= today <= exp


def calculate_cert_status(expiry, window_days: int = 30, today: date | None = None) -> str:
    """Status of a single certificate.

    Returns:
        'valid'     — more than window_days until expiry
        'expiring'  — 0..window_days until expiry (expiring today included)
        'expired'   — past expiry date
        'no_expiry' — no usable expiry date on file
    """
    days = days_until_expiry(expiry, today)
    if days is None:
        return "no_expiry"
    if days < 0:
        return "expired"
    if days <= window_days:
        return "expiring"
    return "valid"


def classify_certificates(records, days: int = 30, today: date | None = None) -> dict:
    """Build the dashboard aggregates for a collection of certificate records.

    Records are dicts in API shape (issueDate, expiryDate, category, jobRole).
    The active / expiring / expired passes are independent: a certificate
    expiring today is both active and expiring.

    Raises:
        ValidationError: days is negative or not an integer.
    """
    if isinstance(days, bool) or not isinstance(days, int) or days < 0:
        raise ValidationError("days must be a non-negative integer")

    today = today or date.today()
    records = list(records)

    active_count = 0
    expiring = []
    expired = []

    for cert in records:
        remaining = days_until_expiry(cert.get("expiryDate"), today)
        if remaining is None:
            continue

        if is_active(cert.get("issueDate"), cert.get("expiryDate"), today):
            active_count += 1
        if 0 <= remaining <= days:
            expiring.append({**cert, "daysUntilExpiry": remaining})
        if remaining < 0:
            expired.append({**cert, "daysUntilExpiry": remaining})

    expiring.sort(key=lambda c: c["daysUntilExpiry"])
    expired.sort(key=lambda c: c["daysUntilExpiry"], reverse=True)

    category_counts = Counter((c.get("category") or "").strip() or "Other" for c in records)
    job_role_counts = Counter((c.get("jobRole") or "").strip() or "Unspecified" for c in records)

    return {
        "days": days,
        "totalCount": len(records),
        "activeCount": active_count,
        "expiringCertificates": expiring,
        "expiredCertificates": expired,
        "categoryCounts": dict(category_counts),
        "jobRoleCounts": dict(job_role_counts),
    }
