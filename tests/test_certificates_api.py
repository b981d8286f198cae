"""
Tests for the certificate routes.

Covers:
- Dashboard stats (classification over the live table, days param validation,
  database failure)
- List with pagination, search and filters
- Create / update / delete, including date and value-type validation and
  profile linking
- Role checks: reads need login, writes need admin
"""

import os
import sqlite3
import sys
from datetime import date, timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

TEST_DB = "/tmp/test_hrms_certificates.db"
os.environ["DATABASE_PATH"] = TEST_DB
os.environ["TESTING"] = "1"

from src.app import create_app
from src.database.connection import get_db, init_schema

TODAY = date.today()


def iso(offset_days: int) -> str:
    return (TODAY + timedelta(days=offset_days)).isoformat()


def uk(offset_days: int) -> str:
    return (TODAY + timedelta(days=offset_days)).strftime("%d/%m/%Y")


def setup_test_db():
    os.environ["DATABASE_PATH"] = TEST_DB
    if Path(TEST_DB).exists():
        Path(TEST_DB).unlink()
    db = get_db(TEST_DB)
    init_schema(db)
    db.execute("""INSERT INTO profiles (id, first_name, last_name, email, job_role)
                  VALUES (1, 'Amelia', 'Hughes', 'amelia@example.com', 'Site Supervisor')""")
    db.execute("""INSERT INTO profiles (id, first_name, last_name, email, job_role)
                  VALUES (2, 'Daniel', 'Okafor', 'daniel@example.com', 'Security Officer')""")
    rows = [
        # (certificate, profile, category, job_role, issue, expiry)
        ("CSCS Card", 1, "Construction", "Site Supervisor", iso(-700), iso(400)),
        ("SMSTS", 1, "Construction", "Site Supervisor", iso(-1800), iso(5)),
        ("SIA Door Supervisor", 2, "Security", "Security Officer", iso(-1090), iso(-3)),
        ("First Aid at Work", 2, "Health & Safety", "Security Officer", iso(-300), iso(0)),
    ]
    for name, pid, category, role, issued, expiry in rows:
        db.execute(
            """INSERT INTO certificates
               (certificate, profile_id, profile_name, category, job_role, issue_date, expiry_date)
               VALUES (?, ?, (SELECT first_name || ' ' || last_name FROM profiles WHERE id = ?), ?, ?, ?, ?)""",
            (name, pid, pid, category, role, issued, expiry),
        )
    db.commit()
    db.close()


def get_app():
    app = create_app()
    app.config["TESTING"] = True
    app.config["SUPER_ADMIN_EMAILS"] = frozenset({"boss@example.com"})
    return app


def get_client(role="admin", email="admin@example.com"):
    client = get_app().test_client()
    if role:
        with client.session_transaction() as sess:
            sess["user"] = {"id": 1, "email": email, "name": "Test User", "role": role}
    return client


def _cert_count():
    db = get_db(TEST_DB)
    count = db.execute("SELECT COUNT(*) FROM certificates").fetchone()[0]
    db.close()
    return count


# ── Dashboard stats ─────────────────────────────────────


def test_dashboard_stats_classifies_table():
    setup_test_db()
    resp = get_client(role="user").get("/api/certificates/dashboard-stats")
    assert resp.status_code == 200
    data = resp.get_json()

    assert data["days"] == 30
    assert data["totalCount"] == 4
    assert data["activeCount"] == 3
    assert [c["certificate"] for c in data["expiringCertificates"]] == ["First Aid at Work", "SMSTS"]
    assert [c["daysUntilExpiry"] for c in data["expiringCertificates"]] == [0, 5]
    assert [c["certificate"] for c in data["expiredCertificates"]] == ["SIA Door Supervisor"]
    assert data["categoryCounts"] == {"Construction": 2, "Security": 1, "Health & Safety": 1}
    assert data["jobRoleCounts"] == {"Site Supervisor": 2, "Security Officer": 2}


def test_dashboard_stats_days_param():
    setup_test_db()
    resp = get_client(role="user").get("/api/certificates/dashboard-stats?days=0")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["days"] == 0
    assert [c["certificate"] for c in data["expiringCertificates"]] == ["First Aid at Work"]


def test_dashboard_stats_rejects_bad_days():
    setup_test_db()
    client = get_client(role="user")
    for bad in ("-1", "abc", "1.5"):
        resp = client.get(f"/api/certificates/dashboard-stats?days={bad}")
        assert resp.status_code == 400, bad
        assert "days" in resp.get_json()["message"]


def test_dashboard_stats_requires_login():
    setup_test_db()
    resp = get_client(role=None).get("/api/certificates/dashboard-stats")
    assert resp.status_code == 401


def test_dashboard_stats_empty_table():
    setup_test_db()
    db = get_db(TEST_DB)
    db.execute("DELETE FROM certificates")
    db.commit()
    db.close()
    data = get_client(role="user").get("/api/certificates/dashboard-stats").get_json()
    assert data["totalCount"] == 0
    assert data["categoryCounts"] == {}


def test_dashboard_stats_database_failure_is_500():
    setup_test_db()
    mock_db = MagicMock()
    mock_db.execute.side_effect = sqlite3.OperationalError("disk I/O error")
    with patch("src.api.certificates.get_db", return_value=mock_db):
        resp = get_client(role="user").get("/api/certificates/dashboard-stats")
    assert resp.status_code == 500
    assert resp.get_json() == {"message": "Failed to load certificate statistics"}
    mock_db.close.assert_called_once()


# ── List / get ──────────────────────────────────────────


def test_list_certificates_paginates():
    setup_test_db()
    resp = get_client(role="user").get("/api/certificates?limit=3")
    data = resp.get_json()
    assert resp.status_code == 200
    assert len(data["certificates"]) == 3
    assert data["total"] == 4
    assert data["totalPages"] == 2
    assert data["hasMore"] is True

    page2 = get_client(role="user").get("/api/certificates?limit=3&page=2").get_json()
    assert len(page2["certificates"]) == 1
    assert page2["hasMore"] is False


def test_list_certificates_search_and_filters():
    setup_test_db()
    client = get_client(role="user")
    assert client.get("/api/certificates?search=okafor").get_json()["total"] == 2
    assert client.get("/api/certificates?search=smsts").get_json()["total"] == 1
    assert client.get("/api/certificates?category=Construction").get_json()["total"] == 2
    assert client.get("/api/certificates?profile=2").get_json()["total"] == 2


def test_list_rejects_bad_page():
    setup_test_db()
    resp = get_client(role="user").get("/api/certificates?page=0")
    assert resp.status_code == 400


def test_get_certificate_dates_in_uk_format():
    setup_test_db()
    resp = get_client(role="user").get("/api/certificates/2")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["certificate"] == "SMSTS"
    assert data["expiryDate"] == uk(5)
    assert data["profileName"] == "Amelia Hughes"


def test_get_certificate_not_found():
    setup_test_db()
    resp = get_client(role="user").get("/api/certificates/999")
    assert resp.status_code == 404
    assert resp.get_json()["message"] == "Certificate not found"


# ── Create ──────────────────────────────────────────────


def test_create_certificate():
    setup_test_db()
    resp = get_client().post("/api/certificates", json={
        "certificate": "IPAF", "category": "Construction", "profileId": 1,
        "issueDate": "01/01/2024", "expiryDate": "2029-01-01", "provider": "IPAF Ltd",
    })
    assert resp.status_code == 201
    data = resp.get_json()
    assert data["profileName"] == "Amelia Hughes"
    assert data["issueDate"] == "01/01/2024"
    assert data["expiryDate"] == "01/01/2029"

    db = get_db(TEST_DB)
    row = db.execute("SELECT issue_date, expiry_date FROM certificates WHERE id = ?", (data["id"],)).fetchone()
    db.close()
    assert (row["issue_date"], row["expiry_date"]) == ("2024-01-01", "2029-01-01")


def test_create_accepts_issued_date_alias():
    setup_test_db()
    resp = get_client().post("/api/certificates", json={
        "certificate": "IPAF", "category": "Construction", "issuedDate": "02/02/2024",
    })
    assert resp.status_code == 201
    assert resp.get_json()["issueDate"] == "02/02/2024"


def test_create_missing_required_fields():
    setup_test_db()
    resp = get_client().post("/api/certificates", json={"certificate": "IPAF"})
    assert resp.status_code == 400
    assert "category" in resp.get_json()["message"]
    assert _cert_count() == 4


def test_create_rejects_malformed_date():
    setup_test_db()
    resp = get_client().post("/api/certificates", json={
        "certificate": "IPAF", "category": "Construction", "expiryDate": "31/02/2025",
    })
    assert resp.status_code == 400
    assert _cert_count() == 4


def test_create_rejects_issue_after_expiry():
    setup_test_db()
    resp = get_client().post("/api/certificates", json={
        "certificate": "IPAF", "category": "Construction",
        "issueDate": "01/06/2025", "expiryDate": "01/01/2025",
    })
    assert resp.status_code == 400


def test_create_rejects_non_string_values():
    setup_test_db()
    client = get_client()
    for extra in ({"cost": {}}, {"certificate": 5}, {"expiryDate": 20290101},
                  {"provider": ["IPAF Ltd"]}, {"profileId": True}, {"profileId": 1.5}):
        body = {"certificate": "IPAF", "category": "Construction", **extra}
        resp = client.post("/api/certificates", json=body)
        assert resp.status_code == 400, extra
    assert _cert_count() == 4


def test_create_accepts_numeric_cost():
    setup_test_db()
    resp = get_client().post("/api/certificates", json={
        "certificate": "IPAF", "category": "Construction", "cost": 125.5,
    })
    assert resp.status_code == 201
    assert resp.get_json()["cost"] == "125.50"


def test_create_unknown_profile():
    setup_test_db()
    resp = get_client().post("/api/certificates", json={
        "certificate": "IPAF", "category": "Construction", "profileId": 999,
    })
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Profile not found"


def test_create_requires_admin():
    setup_test_db()
    resp = get_client(role="user").post("/api/certificates", json={
        "certificate": "IPAF", "category": "Construction",
    })
    assert resp.status_code == 403
    assert _cert_count() == 4


def test_create_requires_login():
    setup_test_db()
    resp = get_client(role=None).post("/api/certificates", json={
        "certificate": "IPAF", "category": "Construction",
    })
    assert resp.status_code == 401


def test_super_admin_can_write():
    setup_test_db()
    resp = get_client(email="boss@example.com").post("/api/certificates", json={
        "certificate": "IPAF", "category": "Construction",
    })
    assert resp.status_code == 201


# ── Update ──────────────────────────────────────────────


def test_update_certificate_partial():
    setup_test_db()
    resp = get_client().put("/api/certificates/2", json={"expiryDate": uk(60), "provider": "CITB"})
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["expiryDate"] == uk(60)
    assert data["provider"] == "CITB"
    assert data["certificate"] == "SMSTS"

    stats = get_client(role="user").get("/api/certificates/dashboard-stats").get_json()
    assert "SMSTS" not in [c["certificate"] for c in stats["expiringCertificates"]]


def test_update_checks_date_order_against_stored_dates():
    setup_test_db()
    # stored issue date is 1800 days ago
    resp = get_client().put("/api/certificates/2", json={"expiryDate": uk(-2000)})
    assert resp.status_code == 400


def test_update_not_found():
    setup_test_db()
    resp = get_client().put("/api/certificates/999", json={"provider": "CITB"})
    assert resp.status_code == 404


def test_update_empty_body():
    setup_test_db()
    resp = get_client().put("/api/certificates/2", json={"unknown": "x"})
    assert resp.status_code == 400


def test_update_cannot_blank_required_field():
    setup_test_db()
    resp = get_client().put("/api/certificates/2", json={"certificate": "  "})
    assert resp.status_code == 400


def test_update_rejects_non_string_values():
    setup_test_db()
    resp = get_client().put("/api/certificates/1", json={"cost": {}})
    assert resp.status_code == 400
    resp = get_client().put("/api/certificates/1", json={"category": 7})
    assert resp.status_code == 400
    assert get_client().get("/api/certificates/1").get_json()["category"] == "Construction"


# ── Delete ──────────────────────────────────────────────


def test_delete_certificate():
    setup_test_db()
    resp = get_client().delete("/api/certificates/3")
    assert resp.status_code == 200
    assert resp.get_json() == {"message": "Certificate deleted successfully", "id": 3}
    assert _cert_count() == 3
    assert get_client().get("/api/certificates/3").status_code == 404


def test_delete_not_found():
    setup_test_db()
    resp = get_client().delete("/api/certificates/999")
    assert resp.status_code == 404


def test_delete_requires_admin():
    setup_test_db()
    resp = get_client(role="user").delete("/api/certificates/3")
    assert resp.status_code == 403
    assert _cert_count() == 4


# ── Reminder trigger ────────────────────────────────────


@patch("src.api.certificates.run_cert_reminders", return_value={"checked": 4, "sent": 2, "failed": 0})
def test_run_reminders_endpoint(mock_run):
    setup_test_db()
    resp = get_client().post("/api/certificates/reminders/run")
    assert resp.status_code == 200
    assert resp.get_json()["sent"] == 2
    mock_run.assert_called_once()


def test_run_reminders_requires_admin():
    setup_test_db()
    resp = get_client(role="user").post("/api/certificates/reminders/run")
    assert resp.status_code == 403
