#!/usr/bin/env python3
"""
Create (or repair) a super admin account.

The account is created approved, active and verified so it can log in
straight away and approve other admin requests. The email must also be
listed in SUPER_ADMIN_EMAILS for the approval routes to accept it.

Usage:
    python scripts/create_super_admin.py --email boss@example.com --first Dana --last Reid
    python scripts/create_super_admin.py --email boss@example.com --reset-password
"""

import argparse
import getpass
import sys
from pathlib import Path

# Allow running from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv

load_dotenv()

from config.settings import DATABASE_PATH, SUPER_ADMIN_EMAILS
from src.database.connection import get_db, init_schema
from src.services.admin_approval import APPROVED, normalize_email
from src.services.auth import hash_password


def create_super_admin(db_path: str, email: str, first_name: str, last_name: str,
                       password: str, reset_password: bool = False) -> str:
    """Insert the admin, or bring an existing one back to a loginable state.

    Returns:
        'created' or 'updated'.
    """
    email = normalize_email(email)
    db = get_db(db_path)
    try:
        init_schema(db)
        existing = db.execute("SELECT id FROM users WHERE email = ?", (email,)).fetchone()
        if existing:
            db.execute(
                """UPDATE users
                   SET role = 'admin', is_active = 1, email_verified = 1,
                       admin_approval_status = ?, verification_token = NULL,
                       verification_expires_at = NULL, updated_at = datetime('now')
                   WHERE id = ?""",
                (APPROVED, existing["id"]),
            )
            if reset_password:
                db.execute("UPDATE users SET password_hash = ? WHERE id = ?",
                           (hash_password(password), existing["id"]))
            db.commit()
            return "updated"

        db.execute(
            """INSERT INTO users
               (first_name, last_name, email, password_hash, role, is_active,
                email_verified, admin_approval_status)
               VALUES (?, ?, ?, ?, 'admin', 1, 1, ?)""",
            (first_name, last_name, email, hash_password(password), APPROVED),
        )
        db.commit()
        return "created"
    finally:
        db.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Create or repair an HRMS super admin account")
    parser.add_argument("--db", default=DATABASE_PATH)
    parser.add_argument("--email", required=True)
    parser.add_argument("--first", default="Super")
    parser.add_argument("--last", default="Admin")
    parser.add_argument("--reset-password", action="store_true",
                        help="Also replace the password of an existing account")
    args = parser.parse_args()

    password = None
    if args.reset_password or not _exists(args.db, args.email):
        password = getpass.getpass("Password: ")
        if not password:
            sys.exit("Password is required")

    result = create_super_admin(args.db, args.email, args.first, args.last, password,
                                reset_password=args.reset_password)
    print(f"Super admin {result}: {normalize_email(args.email)}")
    if normalize_email(args.email) not in SUPER_ADMIN_EMAILS:
        print("WARNING: email is not in SUPER_ADMIN_EMAILS, so it cannot approve admin requests yet")


def _exists(db_path: str, email: str) -> bool:
    db = get_db(db_path)
    try:
        init_schema(db)
        return db.execute("SELECT 1 FROM users WHERE email = ?", (normalize_email(email),)).fetchone() is not None
    finally:
        db.close()


if __name__ == "__main__":
    main()
