"""
Certificate routes: CRUD plus the compliance dashboard stats.

Routes (all under /api/certificates):
    GET    /dashboard-stats?days=30   — active / expiring / expired + counts
    GET    /                          — paginated list with search + filters
    GET    /<id>                      — single certificate
    POST   /                          — create (admin)
    PUT    /<id>                      — update (admin)
    DELETE /<id>                      — delete (admin)
    POST   /reminders/run             — run the expiry reminder job now (admin)

Dates go over the wire as DD/MM/YYYY and are stored as YYYY-MM-DD.
Malformed dates are rejected here, before they reach the database.
"""

import logging
import math
import sqlite3

from flask import Blueprint, jsonify, request

from config.settings import EXPIRY_WINDOW_DAYS
from src.database.connection import get_db
from src.services.auth import login_required
from src.services.cert_refresh import run_cert_reminders
from src.services.cert_status import classify_certificates, format_cert_date, parse_cert_date
from src.services.errors import DependencyError, NotFoundError, ValidationError
from src.services.permissions import require_role

log = logging.getLogger(__name__)

certificates_bp = Blueprint("certificates", __name__, url_prefix="/api/certificates")

# API field → column
FIELD_COLUMNS = {
    "certificate": "certificate",
    "description": "description",
    "profileId": "profile_id",
    "profileName": "profile_name",
    "category": "category",
    "jobRole": "job_role",
    "provider": "provider",
    "issueDate": "issue_date",
    "expiryDate": "expiry_date",
    "cost": "cost",
}
DATE_FIELDS = ("issueDate", "expiryDate")
REQUIRED_FIELDS = ("certificate", "category")

DEFAULT_PAGE_SIZE = 30
MAX_PAGE_SIZE = 100


def serialize_certificate(row) -> dict:
    """API shape of a certificates row."""
    return {
        "id": row["id"],
        "certificate": row["certificate"],
        "description": row["description"],
        "profileId": row["profile_id"],
        "profileName": row["profile_name"],
        "category": row["category"],
        "jobRole": row["job_role"],
        "provider": row["provider"],
        "issueDate": format_cert_date(parse_cert_date(row["issue_date"])),
        "expiryDate": format_cert_date(parse_cert_date(row["expiry_date"])),
        "cost": row["cost"],
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }


# ── Dashboard ────────────────────────────────────────────────


@certificates_bp.route("/dashboard-stats")
@login_required
def dashboard_stats():
    """Lifecycle classification of every certificate.

    Query params:
        days: expiring-soon window in days (default 30, must be >= 0)
    """
    raw_days = request.args.get("days", str(EXPIRY_WINDOW_DAYS)).strip()
    try:
        days = int(raw_days)
    except ValueError:
        raise ValidationError("days must be a non-negative integer")

    db = get_db()
    try:
        rows = db.execute("SELECT * FROM certificates ORDER BY created_at DESC, id DESC").fetchall()
    except sqlite3.Error:
        log.exception("Failed to load certificates for dashboard stats")
        raise DependencyError("Failed to load certificate statistics")
    finally:
        db.close()

    return jsonify(classify_certificates([serialize_certificate(r) for r in rows], days=days))


# ── CRUD ─────────────────────────────────────────────────────


@certificates_bp.route("", methods=["GET"])
@certificates_bp.route("/", methods=["GET"])
@login_required
def list_certificates():
    """Paginated certificate list, newest first.

    Query params:
        page: 1-based page number (default 1)
        limit: page size (default 30, max 100)
        search: matches certificate or profile name (case-insensitive)
        category: exact category
        profile: profile id
    """
    page = _positive_int(request.args.get("page"), 1, "page")
    limit = min(_positive_int(request.args.get("limit"), DEFAULT_PAGE_SIZE, "limit"), MAX_PAGE_SIZE)

    where, params = [], []
    search = (request.args.get("search") or "").strip()
    if search:
        where.append("(certificate LIKE ? COLLATE NOCASE OR profile_name LIKE ? COLLATE NOCASE)")
        params.extend([f"%{search}%", f"%{search}%"])
    if request.args.get("category"):
        where.append("category = ?")
        params.append(request.args["category"])
    if request.args.get("profile"):
        where.append("profile_id = ?")
        params.append(request.args["profile"])

    where_sql = f"WHERE {' AND '.join(where)}" if where else ""

    db = get_db()
    try:
        total = db.execute(f"SELECT COUNT(*) FROM certificates {where_sql}", params).fetchone()[0]
        rows = db.execute(
            f"SELECT * FROM certificates {where_sql} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
            params + [limit, (page - 1) * limit],
        ).fetchall()
    finally:
        db.close()

    return jsonify({
        "certificates": [serialize_certificate(r) for r in rows],
        "page": page,
        "total": total,
        "totalPages": math.ceil(total / limit),
        "hasMore": page * limit < total,
    })


@certificates_bp.route("/<int:cert_id>", methods=["GET"])
@login_required
def get_certificate(cert_id):
    db = get_db()
    try:
        row = db.execute("SELECT * FROM certificates WHERE id = ?", (cert_id,)).fetchone()
    finally:
        db.close()
    if not row:
        raise NotFoundError("Certificate not found")
    return jsonify(serialize_certificate(row))


@certificates_bp.route("", methods=["POST"])
@certificates_bp.route("/", methods=["POST"])
@login_required
@require_role("admin")
def create_certificate():
    """Create a certificate. certificate and category are required."""
    data = request.get_json(silent=True) or {}
    values = _clean_payload(data)

    missing = [f for f in REQUIRED_FIELDS if not values.get(f)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    _check_date_order(values.get("issueDate"), values.get("expiryDate"))

    db = get_db()
    try:
        _resolve_profile(db, values)
        columns = [FIELD_COLUMNS[f] for f in values]
        cursor = db.execute(
            f"INSERT INTO certificates ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
            [_to_column(f, v) for f, v in values.items()],
        )
        db.commit()
        row = db.execute("SELECT * FROM certificates WHERE id = ?", (cursor.lastrowid,)).fetchone()
    finally:
        db.close()

    log.info("Certificate #%d created: %s for %s", row["id"], row["certificate"], row["profile_name"])
    return jsonify(serialize_certificate(row)), 201


@certificates_bp.route("/<int:cert_id>", methods=["PUT"])
@login_required
@require_role("admin")
def update_certificate(cert_id):
    """Partial update. Only the fields present in the body change."""
    data = request.get_json(silent=True) or {}
    values = _clean_payload(data)

    db = get_db()
    try:
        existing = db.execute("SELECT * FROM certificates WHERE id = ?", (cert_id,)).fetchone()
        if not existing:
            raise NotFoundError("Certificate not found")
        if not values:
            raise ValidationError("No valid fields to update")

        for field in REQUIRED_FIELDS:
            if field in values and not values[field]:
                raise ValidationError(f"{field} cannot be empty")

        issue = values["issueDate"] if "issueDate" in values else parse_cert_date(existing["issue_date"])
        expiry = values["expiryDate"] if "expiryDate" in values else parse_cert_date(existing["expiry_date"])
        _check_date_order(issue, expiry)

        if "profileId" in values:
            _resolve_profile(db, values)

        set_clause = ", ".join(f"{FIELD_COLUMNS[f]} = ?" for f in values)
        db.execute(
            f"UPDATE certificates SET {set_clause}, updated_at = datetime('now') WHERE id = ?",
            [_to_column(f, v) for f, v in values.items()] + [cert_id],
        )
        if "expiryDate" in values and values["expiryDate"] != parse_cert_date(existing["expiry_date"]):
            # New expiry: reminder thresholds apply to it from scratch
            db.execute("DELETE FROM certificate_reminders WHERE certificate_id = ?", (cert_id,))
            db.execute(
                "UPDATE notifications SET threshold_days = NULL WHERE certificate_id = ?", (cert_id,)
            )
            log.info("Certificate #%d expiry changed, reminders reset", cert_id)
        db.commit()
        row = db.execute("SELECT * FROM certificates WHERE id = ?", (cert_id,)).fetchone()
    finally:
        db.close()

    log.info("Certificate #%d updated: %s", cert_id, ", ".join(values))
    return jsonify(serialize_certificate(row))


@certificates_bp.route("/<int:cert_id>", methods=["DELETE"])
@login_required
@require_role("admin")
def delete_certificate(cert_id):
    db = get_db()
    try:
        row = db.execute("SELECT certificate, profile_name FROM certificates WHERE id = ?", (cert_id,)).fetchone()
        if not row:
            raise NotFoundError("Certificate not found")
        db.execute("DELETE FROM certificates WHERE id = ?", (cert_id,))
        db.commit()
    finally:
        db.close()

    log.info("Certificate #%d deleted: %s for %s", cert_id, row["certificate"], row["profile_name"])
    return jsonify({"message": "Certificate deleted successfully", "id": cert_id})


@certificates_bp.route("/reminders/run", methods=["POST"])
@login_required
@require_role("admin")
def run_reminders():
    """Manual trigger for the daily expiry reminder job."""
    return jsonify(run_cert_reminders())


# ── Helpers ──────────────────────────────────────────────────


def _clean_payload(data: dict) -> dict:
    """Keep known fields, strip strings and parse dates.

    issuedDate is accepted as an alias for issueDate. Text and date fields
    must be strings; cost may also be a number.
    """
    if "issuedDate" in data and "issueDate" not in data:
        data = {**data, "issueDate": data["issuedDate"]}

    values = {}
    for field in FIELD_COLUMNS:
        if field not in data:
            continue
        value = data[field]

        if field == "profileId":
            values[field] = _clean_profile_id(value)
            continue
        if field == "cost" and isinstance(value, (int, float)) and not isinstance(value, bool):
            values[field] = f"{value:.2f}"
            continue
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"{field} must be a string")

        value = (value or "").strip() or None
        if field in DATE_FIELDS and value is not None:
            parsed = parse_cert_date(value)
            if parsed is None:
                raise ValidationError(f"{field} must be a valid date (DD/MM/YYYY)")
            value = parsed
        values[field] = value
    return values


def _clean_profile_id(value) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValidationError("profileId must be an integer")
    try:
        return int(value)
    except ValueError:
        raise ValidationError("profileId must be an integer")


def _check_date_order(issue, expiry) -> None:
    if issue and expiry and issue > expiry:
        raise ValidationError("issueDate cannot be after expiryDate")


def _resolve_profile(db, values: dict) -> None:
    """Check profileId exists and fill profileName from it when not given."""
    profile_id = values.get("profileId")
    if profile_id is None:
        return
    profile = db.execute(
        "SELECT first_name, last_name FROM profiles WHERE id = ?", (profile_id,)
    ).fetchone()
    if not profile:
        raise ValidationError("Profile not found")
    if not values.get("profileName"):
        values["profileName"] = f"{profile['first_name']} {profile['last_name']}"


def _to_column(field: str, value):
    if field in DATE_FIELDS and value is not None:
        return value.isoformat()
    return value


def _positive_int(raw, default: int, name: str) -> int:
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a positive integer")
    if value < 1:
        raise ValidationError(f"{name} must be a positive integer")
    return value
