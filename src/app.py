"""
HRMS — Flask application entry point.

Run with:
    python src/app.py
"""

import atexit
import logging
import os
import sqlite3
import sys
from pathlib import Path

# Allow imports from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv

load_dotenv()

from datetime import timedelta

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from config import settings
from src.api.auth import auth_bp
from src.api.certificates import certificates_bp
from src.api.notifications import notifications_bp
from src.api.profiles import profiles_bp
from src.services.errors import HRMSError

log = logging.getLogger(__name__)


def create_app() -> Flask:
    app = Flask(__name__)
    app.secret_key = settings.SECRET_KEY
    app.permanent_session_lifetime = timedelta(hours=24)

    app.config["SUPER_ADMIN_EMAILS"] = settings.SUPER_ADMIN_EMAILS
    app.config["FRONTEND_URL"] = settings.FRONTEND_URL
    app.config["VERIFICATION_TOKEN_HOURS"] = settings.VERIFICATION_TOKEN_HOURS

    # Register blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(certificates_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(profiles_bp)

    _register_error_handlers(app)

    @app.route("/health")
    def health():
        return {"status": "ok", "service": "hrms"}

    # Start certificate reminder scheduler (daily at 6am + on startup)
    # Skip during testing to avoid spawning threads per test
    if os.environ.get("TESTING") != "1":
        _start_reminder_scheduler(app)

    return app


def _register_error_handlers(app: Flask) -> None:
    """Every failure goes back as JSON with a human-readable message."""

    @app.errorhandler(HRMSError)
    def handle_hrms_error(e):
        return jsonify({"message": e.message}), e.status_code

    @app.errorhandler(sqlite3.Error)
    def handle_db_error(e):
        log.exception("Database error")
        return jsonify({"message": "Server error, please try again later"}), 500

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"message": e.description}), e.code


def _start_reminder_scheduler(app):
    """Start the daily certificate reminder job using APScheduler."""
    try:
        from apscheduler.schedulers.background import BackgroundScheduler
        from src.services.cert_refresh import run_cert_reminders

        scheduler = BackgroundScheduler(daemon=True)
        scheduler.add_job(
            func=run_cert_reminders,
            trigger="cron",
            hour=6,
            minute=0,
            id="daily_cert_reminders",
            replace_existing=True,
        )
        scheduler.start()
        atexit.register(scheduler.shutdown)
        app.config["REMINDER_SCHEDULER"] = scheduler

        # Run on startup (in background thread to not block app startup)
        import threading
        threading.Thread(target=run_cert_reminders, daemon=True).start()

        log.info("Certificate reminder scheduler started (daily at 6:00am)")
    except Exception:
        log.exception("Failed to start certificate reminder scheduler")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = create_app()
    app.run(host=settings.APP_HOST, port=settings.APP_PORT, debug=settings.APP_DEBUG)
