"""Compliance dashboard endpoint tests — snapshot built from stored
employees, positions, requirements and certificates.
"""

from __future__ import annotations

from datetime import datetime, timezone

from certtracker.common.constants import CertificateStatus
from certtracker.compliance.service import ComplianceService
from tests.conftest import make_certificate, make_employee, make_position

DASHBOARD_URL = "/api/v1/compliance/dashboard"


async def test_empty_dashboard(client, user_headers):
    resp = await client.get(DASHBOARD_URL, headers=user_headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["totals"]["total_certificates"] == 0
    assert body["totals"]["compliance_rate"] == 0
    assert body["position_compliance"] == []
    assert body["urgent_actions"] == []


async def test_dashboard_requires_login(client):
    assert (await client.get(DASHBOARD_URL)).status_code == 401


async def test_dashboard_snapshot(client, user_headers, db):
    welder = await make_position(db, "Welder", required=("CPR", "Hot Work"))
    driver = await make_position(db, "Driver", required=("License",))
    await make_employee(db, "Ann", positions=(welder,))
    await make_employee(db, "Bob", email=None, positions=(welder, driver))
    await make_employee(db, "Gone", email=None, positions=(driver,), is_active=False)

    await make_certificate(db, "Ann", "CPR", expires_in_days=12, position=welder)
    await make_certificate(db, "Ann", "Hot Work", expires_in_days=300, position=welder)
    await make_certificate(db, "Bob", "CPR", expires_in_days=-2, position=welder)
    await make_certificate(db, "Bob", "License", expires_in_days=25, position=driver)
    await make_certificate(
        db, "Bob", "Hot Work", expires_in_days=8, position=welder, status=CertificateStatus.revoked,
    )

    body = (await client.get(DASHBOARD_URL, headers=user_headers)).json()

    totals = body["totals"]
    assert totals["total_certificates"] == 5
    assert totals["active_certificates"] == 3
    assert totals["expired"] == 1
    assert totals["expiring_soon"] == 2
    assert totals["total_employees"] == 2
    # Ann 2/2, Bob 1/3 (License only) -> 3/5
    assert totals["compliance_rate"] == 60

    rows = {row["position"]: row for row in body["position_compliance"]}
    assert rows["Welder"]["total_certs"] == 4
    assert rows["Welder"]["active_certs"] == 2
    assert rows["Welder"]["compliance_rate"] == 50
    assert rows["Welder"]["employees"] == 2
    assert rows["Driver"]["compliance_rate"] == 100
    assert rows["Driver"]["employees"] == 1
    assert [row["position"] for row in body["position_compliance"]] == ["Welder", "Driver"]

    assert [a["employee_name"] for a in body["urgent_actions"]] == ["Ann", "Bob"]
    assert body["urgent_actions"][0]["days_left"] == 12


async def test_inactive_positions_are_left_out(db):
    welder = await make_position(db, "Welder", required=("CPR",))
    welder.is_active = False
    await db.commit()
    await make_employee(db, "Ann", positions=(welder,))

    snapshot = await ComplianceService.snapshot(db, datetime.now(timezone.utc))

    assert snapshot.position_compliance == []
    assert snapshot.totals.compliance_rate == 0
    assert snapshot.totals.total_employees == 1
