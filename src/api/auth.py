"""
Account and admin-approval routes.

Routes (all under /api/auth):
    POST /signup                    — regular account signup
    POST /admin-signup              — admin account request (pending approval)
    GET  /verify-email?token=...    — confirm email address
    POST /login                     — email + password, starts a session
    POST /logout                    — clear session
    GET  /me                        — current session user
    POST /reset-password            — change password (old + new)
    POST /approve-admin/<user_id>   — super admin: {"action": "approve" | "reject"}
    GET  /pending-admin-approvals   — super admin: admin requests awaiting review
"""

import logging

from flask import Blueprint, current_app, jsonify, request, session

from src.database.connection import get_db
from src.services import accounts, admin_approval
from src.services.auth import current_user, login_required
from src.services.permissions import require_super_admin

log = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _signup_options() -> dict:
    cfg = current_app.config
    return {
        "base_url": cfg["FRONTEND_URL"],
        "token_hours": cfg["VERIFICATION_TOKEN_HOURS"],
        "secret": current_app.secret_key,
    }


@auth_bp.route("/signup", methods=["POST"])
def signup():
    data = request.get_json(silent=True) or {}
    db = get_db()
    try:
        user_id = accounts.register_user(
            db,
            data.get("firstName"),
            data.get("lastName"),
            data.get("email"),
            data.get("password"),
            profile_id=data.get("profileId"),
            **_signup_options(),
        )
    finally:
        db.close()
    return jsonify({
        "message": "Account created. Please check your email to verify your address.",
        "userId": user_id,
    }), 201


@auth_bp.route("/admin-signup", methods=["POST"])
def admin_signup():
    """Request an admin account. It stays inactive until a super admin approves it."""
    data = request.get_json(silent=True) or {}
    db = get_db()
    try:
        user_id = admin_approval.request_admin_account(
            db,
            data.get("firstName"),
            data.get("lastName"),
            data.get("email"),
            data.get("password"),
            super_admin_emails=current_app.config["SUPER_ADMIN_EMAILS"],
            **_signup_options(),
        )
    finally:
        db.close()
    return jsonify({
        "message": "Admin account request submitted successfully. Please check your email "
                   "for verification and wait for super admin approval.",
        "userId": user_id,
    }), 201


@auth_bp.route("/verify-email")
def verify_email():
    token = request.args.get("token", "")
    db = get_db()
    try:
        user = admin_approval.verify_email(db, token, secret=current_app.secret_key)
    finally:
        db.close()
    return jsonify({
        "message": "Email verified successfully",
        "user": accounts.serialize_user(user),
    })


@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or {}
    db = get_db()
    try:
        user = accounts.authenticate(db, data.get("email"), data.get("password"))
    finally:
        db.close()

    session.clear()
    session["user"] = {
        "id": user["id"],
        "email": user["email"],
        "name": f"{user['first_name']} {user['last_name']}",
        "role": user["role"],
    }
    session.permanent = True
    log.info("User logged in: %s (%s)", user["email"], user["role"])
    return jsonify({"message": "Login successful", "user": accounts.serialize_user(user)})


@auth_bp.route("/logout", methods=["POST"])
def logout():
    user = session.get("user", {})
    session.clear()
    log.info("User logged out: %s", user.get("email", "unknown"))
    return jsonify({"message": "Logged out"})


@auth_bp.route("/me")
@login_required
def me():
    return jsonify(current_user())


@auth_bp.route("/reset-password", methods=["POST"])
def reset_password():
    data = request.get_json(silent=True) or {}
    db = get_db()
    try:
        accounts.change_password(
            db, data.get("email"), data.get("oldPassword"), data.get("newPassword")
        )
    finally:
        db.close()
    return jsonify({"message": "Password reset successful"})


# ── Super admin ──────────────────────────────────────────────


@auth_bp.route("/approve-admin/<int:user_id>", methods=["POST"])
def approve_admin(user_id):
    """Approve or reject a pending admin account.

    The super-admin check is done by admin_approval.decide_admin_request.
    """
    data = request.get_json(silent=True) or {}
    caller = current_user() or {}
    db = get_db()
    try:
        result = admin_approval.decide_admin_request(
            db,
            caller,
            user_id,
            data.get("action"),
            super_admin_emails=current_app.config["SUPER_ADMIN_EMAILS"],
            base_url=current_app.config["FRONTEND_URL"],
        )
    finally:
        db.close()

    if result["adminApprovalStatus"] == admin_approval.APPROVED:
        message = "Admin account approved successfully"
    else:
        message = "Admin account rejected"
    return jsonify({"message": message, **result})


@auth_bp.route("/pending-admin-approvals")
@require_super_admin("Only super administrators can view pending approvals")
def pending_admin_approvals():
    db = get_db()
    try:
        return jsonify(admin_approval.list_pending_admins(db))
    finally:
        db.close()
