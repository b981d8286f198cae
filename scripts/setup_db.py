#!/usr/bin/env python3
"""
Initialize the HRMS SQLite database.

Usage:
    python scripts/setup_db.py                    # default: data/hrms.db
    python scripts/setup_db.py --db path/to.db    # custom path
    python scripts/setup_db.py --seed              # include sample profiles + certificates
"""

import argparse
import sys
from datetime import date, timedelta
from pathlib import Path

# Allow running from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config.settings import DATABASE_PATH
from src.database.connection import get_db, init_schema

SAMPLE_PROFILES = [
    ("Amelia", "Hughes", "amelia.hughes@example.com", "Site Supervisor"),
    ("Daniel", "Okafor", "daniel.okafor@example.com", "Security Officer"),
    ("Priya", "Shah", "priya.shah@example.com", "First Aider"),
]

# (profile index, certificate, category, issued days ago, expires in days)
SAMPLE_CERTIFICATES = [
    (0, "CSCS Card", "Construction", 700, 400),
    (0, "SMSTS", "Construction", 1800, 12),
    (1, "SIA Door Supervisor", "Security", 1090, -5),
    (1, "First Aid at Work", "Health & Safety", 300, 795),
    (2, "First Aid at Work", "Health & Safety", 1050, 45),
]


def init_database(db_path: str, seed: bool = False) -> None:
    """Create all tables from schema.sql and optionally seed sample data."""
    conn = get_db(db_path)
    try:
        init_schema(conn)
        print(f"Database initialized: {db_path}")

        if seed:
            profile_ids = []
            for first, last, email, role in SAMPLE_PROFILES:
                conn.execute(
                    "INSERT OR IGNORE INTO profiles (first_name, last_name, email, job_role) VALUES (?, ?, ?, ?)",
                    (first, last, email, role),
                )
                row = conn.execute("SELECT id FROM profiles WHERE email = ?", (email,)).fetchone()
                profile_ids.append(row["id"])

            today = date.today()
            for idx, name, category, issued_ago, expires_in in SAMPLE_CERTIFICATES:
                first, last, _, role = SAMPLE_PROFILES[idx]
                conn.execute(
                    """INSERT INTO certificates
                       (certificate, profile_id, profile_name, category, job_role, issue_date, expiry_date)
                       VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    (
                        name, profile_ids[idx], f"{first} {last}", category, role,
                        (today - timedelta(days=issued_ago)).isoformat(),
                        (today + timedelta(days=expires_in)).isoformat(),
                    ),
                )
            conn.commit()
            print(f"Seeded {len(SAMPLE_PROFILES)} profiles, {len(SAMPLE_CERTIFICATES)} certificates")

        # Print summary
        tables = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        ).fetchall()
        print(f"Tables created: {', '.join(row['name'] for row in tables)}")
    finally:
        conn.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Initialize the HRMS database")
    parser.add_argument(
        "--db",
        default=DATABASE_PATH,
        help="Path to the SQLite database file",
    )
    parser.add_argument(
        "--seed",
        action="store_true",
        help="Seed the database with sample profiles and certificates",
    )
    args = parser.parse_args()

    init_database(args.db, seed=args.seed)


if __name__ == "__main__":
    main()
