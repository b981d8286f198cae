"""
Tests for the maintenance scripts.

Covers:
- setup_db: schema creation and sample seed
- create_super_admin: create, then repair an account left pending
"""

import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

TEST_DB = "/tmp/test_hrms_scripts.db"
os.environ["TESTING"] = "1"

from scripts.create_super_admin import create_super_admin
from scripts.setup_db import init_database
from src.database.connection import get_db
from src.services.admin_approval import is_admin_login_permitted
from src.services.auth import verify_password


def _fresh():
    if Path(TEST_DB).exists():
        Path(TEST_DB).unlink()


def test_init_database_with_seed():
    _fresh()
    init_database(TEST_DB, seed=True)
    db = get_db(TEST_DB)
    profiles = db.execute("SELECT COUNT(*) FROM profiles").fetchone()[0]
    certs = db.execute("SELECT COUNT(*) FROM certificates").fetchone()[0]
    db.close()
    assert profiles == 3
    assert certs == 5


def test_create_super_admin_then_repair():
    _fresh()
    assert create_super_admin(TEST_DB, "Boss@Example.com", "Dana", "Reid", "Boss12345") == "created"

    db = get_db(TEST_DB)
    db.execute("UPDATE users SET is_active = 0, admin_approval_status = 'pending'")
    db.commit()
    db.close()

    assert create_super_admin(TEST_DB, "boss@example.com", "Dana", "Reid", "Other12345",
                              reset_password=True) == "updated"

    db = get_db(TEST_DB)
    row = db.execute("SELECT * FROM users WHERE email = 'boss@example.com'").fetchone()
    db.close()
    assert is_admin_login_permitted(row)
    assert verify_password("Other12345", row["password_hash"])
