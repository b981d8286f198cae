#!/usr/bin/env python3
"""
Report admin accounts that can't log in, and why.

Admin login needs four flags to agree (role, email verified, approved,
active). Manual edits can leave them out of step; this lists each admin
with the conditions it fails.

Usage:
    python scripts/check_admin_accounts.py             # report only
    python scripts/check_admin_accounts.py --fix       # deactivate active pending/rejected admins
"""

import argparse
import sys
from pathlib import Path

# Allow running from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv

load_dotenv()

from config.settings import DATABASE_PATH, SUPER_ADMIN_EMAILS
from src.database.connection import get_db
from src.services.admin_approval import admin_account_report, deactivate_unapproved_admins


def main() -> None:
    parser = argparse.ArgumentParser(description="Check HRMS admin account login flags")
    parser.add_argument("--db", default=DATABASE_PATH)
    parser.add_argument("--fix", action="store_true",
                        help="Deactivate admins that are active without approval")
    args = parser.parse_args()

    db = get_db(args.db)
    try:
        if args.fix:
            changed = deactivate_unapproved_admins(db)
            print(f"Deactivated {changed} unapproved admin account(s)")

        report = admin_account_report(db)
        if not report:
            print("No admin accounts found")
            return

        for entry in report:
            marker = " [super admin]" if entry["email"] in SUPER_ADMIN_EMAILS else ""
            if entry["failed"]:
                print(f"  BLOCKED  {entry['email']}{marker} ({entry['adminApprovalStatus']}): "
                      f"fails: {', '.join(entry['failed'])}")
            else:
                print(f"  OK       {entry['email']}{marker}")

        blocked = sum(1 for e in report if e["failed"])
        print(f"\n{len(report)} admin account(s), {blocked} cannot log in")
    finally:
        db.close()


if __name__ == "__main__":
    main()
