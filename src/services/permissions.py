"""
Role-based permission checks for HRMS.

Roles:
    super_admin — an admin whose email is in SUPER_ADMIN_EMAILS; may
                  approve or reject admin account requests
    admin       — full certificate and profile management
    user        — regular account

The super-admin allow-list is read from app.config["SUPER_ADMIN_EMAILS"]
so it can be rotated or overridden per app instance.
"""

from functools import wraps

from flask import current_app, session

from src.services.admin_approval import is_super_admin_account
from src.services.errors import AuthenticationError, AuthorizationError


def get_super_admin_emails() -> frozenset[str]:
    """The configured super-admin allow-list, lowercased."""
    emails = current_app.config.get("SUPER_ADMIN_EMAILS") or ()
    return frozenset(e.strip().lower() for e in emails if e and e.strip())


def get_current_role() -> str | None:
    """'super_admin', 'admin', 'user', or None when not logged in."""
    user = session.get("user")
    if not user:
        return None
    if is_super_admin_account(user, get_super_admin_emails()):
        return "super_admin"
    return user.get("role")


def require_role(*allowed_roles, message: str = "You do not have access to this resource"):
    """Decorator that restricts a route to specific roles.

    super_admin satisfies "admin" as well.

    Usage:
        @require_role("admin")
        def admin_route():
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            role = get_current_role()
            if role is None:
                raise AuthenticationError("Authentication required")
            if role not in allowed_roles and not (role == "super_admin" and "admin" in allowed_roles):
                raise AuthorizationError(message)
            return f(*args, **kwargs)
        return decorated
    return decorator


def require_super_admin(message: str = "Only super administrators can perform this action"):
    """Decorator that restricts a route to super admins.

    Same rule as get_current_role: an admin account whose email is on the
    allow-list. Unlike require_role, an anonymous caller gets 403 too: the
    check is on the caller's identity, and there is none.
    """
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            if get_current_role() != "super_admin":
                raise AuthorizationError(message)
            return f(*args, **kwargs)
        return decorated
    return decorator
