"""
Notification inbox routes for the logged-in user.

Routes (all under /api/notifications):
    GET /                 — newest 50 notifications
    GET /unread-count     — {"count": n}
    PUT /<id>/read        — mark one read
    PUT /read-all         — mark every notification read
"""

from flask import Blueprint, jsonify, session

from src.database.connection import get_db
from src.services import notifications
from src.services.auth import login_required

notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


def _user_id() -> int:
    return session["user"]["id"]


@notifications_bp.route("", methods=["GET"])
@notifications_bp.route("/", methods=["GET"])
@login_required
def list_notifications():
    db = get_db()
    try:
        return jsonify(notifications.list_notifications(db, _user_id()))
    finally:
        db.close()


@notifications_bp.route("/unread-count", methods=["GET"])
@login_required
def unread_count():
    db = get_db()
    try:
        return jsonify({"count": notifications.unread_count(db, _user_id())})
    finally:
        db.close()


@notifications_bp.route("/<int:notification_id>/read", methods=["PUT"])
@login_required
def mark_read(notification_id):
    db = get_db()
    try:
        return jsonify(notifications.mark_read(db, _user_id(), notification_id))
    finally:
        db.close()


@notifications_bp.route("/read-all", methods=["PUT"])
@login_required
def mark_all_read():
    db = get_db()
    try:
        updated = notifications.mark_all_read(db, _user_id())
    finally:
        db.close()
    return jsonify({"message": "All notifications marked as read", "updated": updated})
