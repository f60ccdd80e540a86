"""Positions and position requirements test suite — CRUD, unique titles,
soft delete, requirement management, per-employee requirement coverage.
"""

from __future__ import annotations

import uuid

from sqlalchemy import select

from certtracker.common.audit import AuditTrail
from certtracker.common.constants import CertificateStatus
from tests.conftest import (
    make_certificate,
    make_certificate_type,
    make_employee,
    make_position,
)

POSITIONS_URL = "/api/v1/positions"
REQUIREMENTS_URL = "/api/v1/position-requirements"


# ═════════════════════════════════════════════════════════════════════
# Positions
# ═════════════════════════════════════════════════════════════════════


class TestPositions:
    async def test_create_and_get(self, client, admin_headers, db):
        resp = await client.post(
            POSITIONS_URL,
            json={"title": "Welder", "department": "Fabrication"},
            headers=admin_headers,
        )

        assert resp.status_code == 201
        body = resp.json()
        assert body["title"] == "Welder"
        assert body["is_active"] is True
        assert body["required_certificate_types"] == []

        fetched = await client.get(f"{POSITIONS_URL}/{body['id']}", headers=admin_headers)
        assert fetched.json()["department"] == "Fabrication"

        audit = (
            await db.execute(select(AuditTrail).where(AuditTrail.entity_type == "position"))
        ).scalars().all()
        assert [entry.action for entry in audit] == ["create"]

    async def test_duplicate_title_conflicts(self, client, admin_headers, db):
        await make_position(db, "Welder")

        resp = await client.post(POSITIONS_URL, json={"title": "Welder"}, headers=admin_headers)

        assert resp.status_code == 409

    async def test_rename_onto_existing_title_conflicts(self, client, admin_headers, db):
        await make_position(db, "Welder")
        driver = await make_position(db, "Driver")

        resp = await client.patch(
            f"{POSITIONS_URL}/{driver.id}", json={"title": "Welder"}, headers=admin_headers,
        )

        assert resp.status_code == 409

    async def test_list_sorted_and_hides_inactive(self, client, admin_headers, db):
        await make_position(db, "Welder")
        await make_position(db, "Driver")
        gone = await make_position(db, "Astronaut")

        await client.delete(f"{POSITIONS_URL}/{gone.id}", headers=admin_headers)

        titles = [p["title"] for p in (await client.get(POSITIONS_URL, headers=admin_headers)).json()]
        assert titles == ["Driver", "Welder"]

        everything = await client.get(
            POSITIONS_URL, params={"include_inactive": True}, headers=admin_headers,
        )
        assert len(everything.json()) == 3

    async def test_required_types_listed(self, client, admin_headers, db):
        position = await make_position(db, "Welder", required=("CPR", "Hot Work"))

        body = (await client.get(f"{POSITIONS_URL}/{position.id}", headers=admin_headers)).json()

        assert sorted(body["required_certificate_types"]) == ["CPR", "Hot Work"]

    async def test_unknown_position_is_404(self, client, admin_headers):
        resp = await client.get(f"{POSITIONS_URL}/{uuid.uuid4()}", headers=admin_headers)

        assert resp.status_code == 404
        assert resp.json()["title"] == "Position Not Found"


# ═════════════════════════════════════════════════════════════════════
# Requirements
# ═════════════════════════════════════════════════════════════════════


class TestRequirements:
    async def test_create_and_list_for_position(self, client, admin_headers, db):
        position = await make_position(db, "Welder")
        cert_type = await make_certificate_type(db, "Hot Work")
        await db.commit()

        resp = await client.post(
            REQUIREMENTS_URL,
            json={
                "position_id": str(position.id),
                "certificate_type_id": str(cert_type.id),
                "validity_period_months": 24,
            },
            headers=admin_headers,
        )

        assert resp.status_code == 201
        assert resp.json()["certificate_type"]["name"] == "Hot Work"
        assert resp.json()["validity_period_months"] == 24

        listed = await client.get(f"{REQUIREMENTS_URL}/position/{position.id}", headers=admin_headers)
        assert [r["certificate_type"]["name"] for r in listed.json()] == ["Hot Work"]

    async def test_duplicate_requirement_conflicts(self, client, admin_headers, db):
        position = await make_position(db, "Welder", required=("CPR",))
        cert_type = await make_certificate_type(db, "CPR")

        resp = await client.post(
            REQUIREMENTS_URL,
            json={"position_id": str(position.id), "certificate_type_id": str(cert_type.id)},
            headers=admin_headers,
        )

        assert resp.status_code == 409

    async def test_unknown_certificate_type_is_404(self, client, admin_headers, db):
        position = await make_position(db, "Welder")

        resp = await client.post(
            REQUIREMENTS_URL,
            json={"position_id": str(position.id), "certificate_type_id": str(uuid.uuid4())},
            headers=admin_headers,
        )

        assert resp.status_code == 404

    async def test_removed_requirement_no_longer_required(self, client, admin_headers, db):
        position = await make_position(db, "Welder", required=("CPR", "Hot Work"))
        listed = (await client.get(f"{REQUIREMENTS_URL}/position/{position.id}", headers=admin_headers)).json()
        cpr = next(r for r in listed if r["certificate_type"]["name"] == "CPR")

        resp = await client.delete(f"{REQUIREMENTS_URL}/{cpr['id']}", headers=admin_headers)
        assert resp.status_code == 200

        body = (await client.get(f"{POSITIONS_URL}/{position.id}", headers=admin_headers)).json()
        assert body["required_certificate_types"] == ["Hot Work"]

    async def test_update_requirement(self, client, admin_headers, db):
        position = await make_position(db, "Welder", required=("CPR",))
        listed = (await client.get(REQUIREMENTS_URL, headers=admin_headers)).json()

        resp = await client.patch(
            f"{REQUIREMENTS_URL}/{listed[0]['id']}",
            json={"is_required": False, "validity_period_months": 6},
            headers=admin_headers,
        )

        assert resp.status_code == 200
        assert resp.json()["is_required"] is False
        assert resp.json()["validity_period_months"] == 6
        assert resp.json()["position_id"] == str(position.id)


class TestEmployeeRequirementStatus:
    async def test_coverage_uses_newest_certificate_per_type(self, client, admin_headers, db):
        position = await make_position(db, "Welder", required=("CPR", "Hot Work", "Forklift"))
        employee = await make_employee(db, "Ann Lee", positions=(position,))
        # Older CPR expired, newer one valid
        await make_certificate(db, "Ann Lee", "CPR", expires_in_days=-30, issued_days_ago=400)
        await make_certificate(db, "Ann Lee", "CPR", expires_in_days=335, issued_days_ago=30)
        await make_certificate(
            db, "Ann Lee", "Hot Work", expires_in_days=100, status=CertificateStatus.revoked,
        )

        resp = await client.get(f"{REQUIREMENTS_URL}/employee/{employee.id}", headers=admin_headers)

        assert resp.status_code == 200
        body = resp.json()
        assert body["employee_name"] == "Ann Lee"
        assert body["position"]["title"] == "Welder"
        by_type = {r["certificate_type"]: r for r in body["requirements"]}
        assert by_type["CPR"]["is_compliant"] is True
        assert by_type["CPR"]["expires_in"] == 335
        assert by_type["Hot Work"]["is_compliant"] is False
        assert by_type["Forklift"]["certificate_id"] is None
        assert by_type["Forklift"]["is_compliant"] is False

    async def test_employee_without_positions(self, client, admin_headers, db):
        employee = await make_employee(db, "Ann Lee")

        body = (await client.get(f"{REQUIREMENTS_URL}/employee/{employee.id}", headers=admin_headers)).json()

        assert body["position"] is None
        assert body["requirements"] == []
