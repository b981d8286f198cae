"""
Tests for the role-based permission system.

Covers:
- Super-admin allow-list lookup (case-insensitive, per-app config)
- get_current_role
- require_role decorator (401 anonymous, 403 wrong role, super_admin ⊇ admin)
- require_super_admin decorator (403 even when anonymous, same rule as get_current_role)
"""

import os
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

os.environ["TESTING"] = "1"

from src.app import create_app
from src.services.admin_approval import is_super_admin_account
from src.services.errors import AuthenticationError, AuthorizationError
from src.services.permissions import (
    get_current_role,
    get_super_admin_emails,
    require_role,
    require_super_admin,
)


def get_app():
    app = create_app()
    app.config["TESTING"] = True
    app.config["SUPER_ADMIN_EMAILS"] = frozenset({"Boss@Example.com", " deputy@example.com "})
    return app


@require_role("admin")
def _admin_only():
    return "ok"


@require_role("user", "admin")
def _any_user():
    return "ok"


@require_super_admin()
def _super_only():
    return "ok"


# ── Allow-list ────────────────────────────────────────


def test_super_admin_emails_normalized():
    with get_app().app_context():
        assert get_super_admin_emails() == frozenset({"boss@example.com", "deputy@example.com"})


def _admin(email):
    return {"email": email, "role": "admin"}


def test_is_super_admin_case_insensitive():
    with get_app().app_context():
        allowed = get_super_admin_emails()
        assert is_super_admin_account(_admin("BOSS@example.com"), allowed)
        assert is_super_admin_account(_admin("deputy@example.com"), allowed)
        assert not is_super_admin_account(_admin("admin@example.com"), allowed)
        assert not is_super_admin_account(_admin(""), allowed)
        assert not is_super_admin_account(_admin(None), allowed)
        assert not is_super_admin_account(None, allowed)


def test_empty_allow_list_has_no_super_admins():
    app = get_app()
    app.config["SUPER_ADMIN_EMAILS"] = frozenset()
    with app.app_context():
        assert not is_super_admin_account(_admin("boss@example.com"), get_super_admin_emails())


# ── get_current_role ──────────────────────────────────


def test_get_current_role_from_session():
    app = get_app()
    with app.test_request_context():
        from flask import session
        assert get_current_role() is None

        session["user"] = {"email": "sam@example.com", "role": "user"}
        assert get_current_role() == "user"

        session["user"] = {"email": "admin@example.com", "role": "admin"}
        assert get_current_role() == "admin"

        session["user"] = {"email": "boss@example.com", "role": "admin"}
        assert get_current_role() == "super_admin"


def test_allow_listed_regular_user_is_not_super_admin():
    """Only admin accounts are promoted by the allow-list."""
    app = get_app()
    with app.test_request_context():
        from flask import session
        session["user"] = {"email": "boss@example.com", "role": "user"}
        assert get_current_role() == "user"


# ── require_role ──────────────────────────────────────


def test_require_role_anonymous_is_401():
    with get_app().test_request_context():
        with pytest.raises(AuthenticationError):
            _admin_only()


def test_require_role_wrong_role_is_403():
    with get_app().test_request_context():
        from flask import session
        session["user"] = {"email": "sam@example.com", "role": "user"}
        with pytest.raises(AuthorizationError):
            _admin_only()
        assert _any_user() == "ok"


def test_require_role_super_admin_counts_as_admin():
    with get_app().test_request_context():
        from flask import session
        session["user"] = {"email": "boss@example.com", "role": "admin"}
        assert _admin_only() == "ok"


# ── require_super_admin ───────────────────────────────


def test_require_super_admin():
    with get_app().test_request_context():
        from flask import session
        with pytest.raises(AuthorizationError):
            _super_only()

        session["user"] = {"email": "admin@example.com", "role": "admin"}
        with pytest.raises(AuthorizationError):
            _super_only()

        session["user"] = {"email": "deputy@example.com", "role": "admin"}
        assert _super_only() == "ok"


def test_require_super_admin_rejects_allow_listed_regular_user():
    with get_app().test_request_context():
        from flask import session
        session["user"] = {"email": "boss@example.com", "role": "user"}
        assert get_current_role() == "user"
        with pytest.raises(AuthorizationError):
            _super_only()
