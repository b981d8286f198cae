"""
Profile routes for the HR records of people who hold certificates.

Routes (all under /api/profiles):
    GET    /                    — list (search by name/email, active filter)
    GET    /<id>                — single profile
    GET    /<id>/certificates   — certificates held by this profile
    POST   /                    — create (admin)
    PUT    /<id>                — update (admin)
    DELETE /<id>                — delete profile and its certificates (admin)
    POST   /<id>/user-account   — create a login for this profile, password emailed (admin)

Certificates keep a copy of the profile's name; renaming a profile
rewrites that copy in the same transaction. Creating a profile leaves an
in-app notification for every active admin.
"""

import logging
import sqlite3

from flask import Blueprint, current_app, jsonify, request

from src.api.certificates import serialize_certificate
from src.database.connection import get_db
from src.services.accounts import create_account_for_profile, serialize_user
from src.services import notifications
from src.services.admin_approval import validate_email_address
from src.services.auth import login_required
from src.services.errors import ConflictError, NotFoundError, ValidationError
from src.services.permissions import require_role

log = logging.getLogger(__name__)

profiles_bp = Blueprint("profiles", __name__, url_prefix="/api/profiles")

# API field → column
FIELD_COLUMNS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "email": "email",
    "phone": "phone",
    "company": "company",
    "jobTitle": "job_title",
    "jobRole": "job_role",
    "addressLine1": "address_line1",
    "addressLine2": "address_line2",
    "city": "city",
    "postcode": "postcode",
    "country": "country",
    "emergencyContactName": "emergency_contact_name",
    "emergencyContactPhone": "emergency_contact_phone",
    "isActive": "is_active",
}
REQUIRED_FIELDS = ("firstName", "lastName")


def serialize_profile(row) -> dict:
    data = {field: row[column] for field, column in FIELD_COLUMNS.items()}
    data["isActive"] = bool(row["is_active"])
    data["id"] = row["id"]
    data["createdAt"] = row["created_at"]
    data["updatedAt"] = row["updated_at"]
    return data


@profiles_bp.route("", methods=["GET"])
@profiles_bp.route("/", methods=["GET"])
@login_required
def list_profiles():
    """All profiles, alphabetical.

    Query params:
        search: matches first name, last name or email
        active: 1 or 0
    """
    where, params = [], []
    search = (request.args.get("search") or "").strip()
    if search:
        where.append("(first_name LIKE ? COLLATE NOCASE OR last_name LIKE ? COLLATE NOCASE"
                     " OR email LIKE ? COLLATE NOCASE)")
        params.extend([f"%{search}%"] * 3)
    if request.args.get("active") in ("0", "1"):
        where.append("is_active = ?")
        params.append(int(request.args["active"]))

    where_sql = f"WHERE {' AND '.join(where)}" if where else ""
    db = get_db()
    try:
        rows = db.execute(
            f"SELECT * FROM profiles {where_sql} ORDER BY first_name, last_name", params
        ).fetchall()
        return jsonify([serialize_profile(r) for r in rows])
    finally:
        db.close()


@profiles_bp.route("/<int:profile_id>", methods=["GET"])
@login_required
def get_profile(profile_id):
    db = get_db()
    try:
        row = db.execute("SELECT * FROM profiles WHERE id = ?", (profile_id,)).fetchone()
    finally:
        db.close()
    if not row:
        raise NotFoundError("Profile not found")
    return jsonify(serialize_profile(row))


@profiles_bp.route("/<int:profile_id>/certificates", methods=["GET"])
@login_required
def profile_certificates(profile_id):
    db = get_db()
    try:
        if not db.execute("SELECT id FROM profiles WHERE id = ?", (profile_id,)).fetchone():
            raise NotFoundError("Profile not found")
        rows = db.execute(
            "SELECT * FROM certificates WHERE profile_id = ? ORDER BY created_at DESC, id DESC",
            (profile_id,),
        ).fetchall()
        return jsonify([serialize_certificate(r) for r in rows])
    finally:
        db.close()


@profiles_bp.route("", methods=["POST"])
@profiles_bp.route("/", methods=["POST"])
@login_required
@require_role("admin")
def create_profile():
    data = request.get_json(silent=True) or {}
    values = _clean_payload(data)
    missing = [f for f in REQUIRED_FIELDS if not values.get(f)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = [FIELD_COLUMNS[f] for f in values]
    db = get_db()
    try:
        try:
            cursor = db.execute(
                f"INSERT INTO profiles ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
                list(values.values()),
            )
            notifications.notify_admins(
                db, notifications.PROFILE_CREATED,
                f"New profile created: {values['firstName']} {values['lastName']}",
            )
            db.commit()
        except sqlite3.IntegrityError:
            db.rollback()
            raise ConflictError("A profile with this email already exists")
        row = db.execute("SELECT * FROM profiles WHERE id = ?", (cursor.lastrowid,)).fetchone()
    finally:
        db.close()

    log.info("Profile #%d created: %s %s", row["id"], row["first_name"], row["last_name"])
    return jsonify(serialize_profile(row)), 201


@profiles_bp.route("/<int:profile_id>", methods=["PUT"])
@login_required
@require_role("admin")
def update_profile(profile_id):
    data = request.get_json(silent=True) or {}
    values = _clean_payload(data)

    db = get_db()
    try:
        existing = db.execute("SELECT * FROM profiles WHERE id = ?", (profile_id,)).fetchone()
        if not existing:
            raise NotFoundError("Profile not found")
        if not values:
            raise ValidationError("No valid fields to update")
        for field in REQUIRED_FIELDS:
            if field in values and not values[field]:
                raise ValidationError(f"{field} cannot be empty")

        set_clause = ", ".join(f"{FIELD_COLUMNS[f]} = ?" for f in values)
        try:
            db.execute(
                f"UPDATE profiles SET {set_clause}, updated_at = datetime('now') WHERE id = ?",
                list(values.values()) + [profile_id],
            )
            if "firstName" in values or "lastName" in values:
                first = values.get("firstName", existing["first_name"])
                last = values.get("lastName", existing["last_name"])
                db.execute(
                    "UPDATE certificates SET profile_name = ?, updated_at = datetime('now') WHERE profile_id = ?",
                    (f"{first} {last}", profile_id),
                )
            db.commit()
        except sqlite3.IntegrityError:
            db.rollback()
            raise ConflictError("A profile with this email already exists")
        row = db.execute("SELECT * FROM profiles WHERE id = ?", (profile_id,)).fetchone()
    finally:
        db.close()

    log.info("Profile #%d updated: %s", profile_id, ", ".join(values))
    return jsonify(serialize_profile(row))


@profiles_bp.route("/<int:profile_id>", methods=["DELETE"])
@login_required
@require_role("admin")
def delete_profile(profile_id):
    """Delete a profile. Its certificates go with it; linked user accounts are unlinked."""
    db = get_db()
    try:
        row = db.execute("SELECT first_name, last_name FROM profiles WHERE id = ?", (profile_id,)).fetchone()
        if not row:
            raise NotFoundError("Profile not found")
        cert_count = db.execute(
            "SELECT COUNT(*) FROM certificates WHERE profile_id = ?", (profile_id,)
        ).fetchone()[0]
        db.execute("DELETE FROM profiles WHERE id = ?", (profile_id,))
        db.commit()
    finally:
        db.close()

    log.info("Profile #%d deleted (%s %s) with %d certificates",
             profile_id, row["first_name"], row["last_name"], cert_count)
    return jsonify({
        "message": "Profile and associated data deleted successfully",
        "certificatesDeleted": cert_count,
    })


@profiles_bp.route("/<int:profile_id>/user-account", methods=["POST"])
@login_required
@require_role("admin")
def create_profile_user_account(profile_id):
    """Create a login for the person on this profile.

    The account is active and pre-verified, with a generated password sent
    to the profile's email. A failed send is logged; the account is kept.
    """
    db = get_db()
    try:
        user, emailed = create_account_for_profile(
            db, profile_id, base_url=current_app.config["FRONTEND_URL"]
        )
    finally:
        db.close()

    if emailed:
        message = "User created successfully and credentials sent via email"
    else:
        message = "User created successfully, but the credentials email could not be sent"
    return jsonify({"message": message, "user": serialize_user(user)}), 201


def _clean_payload(data: dict) -> dict:
    values = {}
    for field in FIELD_COLUMNS:
        if field not in data:
            continue
        value = data[field]
        if field == "isActive":
            if value not in (True, False):
                raise ValidationError("isActive must be true or false")
            values[field] = 1 if value else 0
            continue
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"{field} must be a string")
        value = (value or "").strip() or None
        if field == "email" and value:
            value = validate_email_address(value)
        values[field] = value
    return values
