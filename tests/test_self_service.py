"""Self-service test suite — a user's own employee record, certificates,
certificate image and compliance counts, linked by e-mail.
"""

from __future__ import annotations

import uuid

from certtracker.common.constants import CertificateStatus
from tests.conftest import make_certificate, make_employee, make_position

BASE_URL = "/api/v1/self-service"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


async def _linked_employee(db):
    """Employee whose e-mail matches the ``regular_user`` account, in other casing."""
    welder = await make_position(db, "Welder")
    return await make_employee(db, "Val Viewer", email="Viewer@Example.com", positions=(welder,))


class TestMe:
    async def test_returns_employee_linked_by_email(self, client, user_headers, db):
        await _linked_employee(db)

        resp = await client.get(f"{BASE_URL}/me", headers=user_headers)

        assert resp.status_code == 200
        body = resp.json()
        assert body["name"] == "Val Viewer"
        assert [p["title"] for p in body["positions"]] == ["Welder"]
        assert body["primary_position"]["title"] == "Welder"

    async def test_no_matching_employee_is_404(self, client, user_headers, db):
        await make_employee(db, "Someone Else", email="else@example.com")

        resp = await client.get(f"{BASE_URL}/me", headers=user_headers)

        assert resp.status_code == 404
        assert resp.headers["content-type"].startswith("application/problem+json")

    async def test_requires_login(self, client):
        resp = await client.get(f"{BASE_URL}/me")
        assert resp.status_code == 401


class TestMyCertificates:
    async def test_lists_own_certificates_soonest_first(self, client, user_headers, db):
        await _linked_employee(db)
        await make_certificate(db, "Val Viewer", "Forklift", expires_in_days=200)
        await make_certificate(db, "Val Viewer", "CPR", expires_in_days=10)
        await make_certificate(db, "Val Viewer", "Rigging", expires_in_days=-3, issued_days_ago=400)
        await make_certificate(db, "Ann Lee", "CPR", expires_in_days=5)

        resp = await client.get(f"{BASE_URL}/my-certificates", headers=user_headers)

        assert resp.status_code == 200
        body = resp.json()
        assert body["employee"]["name"] == "Val Viewer"
        certs = body["certificates"]
        assert [c["cert_type"] for c in certs] == ["Rigging", "CPR", "Forklift"]
        assert [c["status"] for c in certs] == ["EXPIRED", "ACTIVE", "ACTIVE"]
        assert [c["days_until_expiration"] for c in certs] == [-3, 10, 200]
        assert [c["expiring_soon"] for c in certs] == [False, True, False]

    async def test_no_matching_employee_is_404(self, client, user_headers):
        resp = await client.get(f"{BASE_URL}/my-certificates", headers=user_headers)
        assert resp.status_code == 404


class TestMyCertificateImage:
    async def _upload(self, client, admin_headers, cert) -> None:
        resp = await client.put(
            f"/api/v1/certificates/{cert.id}/attachment",
            files={"file": ("card.png", PNG_BYTES, "image/png")},
            headers=admin_headers,
        )
        assert resp.status_code == 200

    async def test_own_certificate_image_is_served(self, client, admin_headers, user_headers, db):
        await _linked_employee(db)
        cert = await make_certificate(db, "Val Viewer", "CPR")
        await self._upload(client, admin_headers, cert)

        resp = await client.get(f"{BASE_URL}/my-certificates/{cert.id}/image", headers=user_headers)

        assert resp.status_code == 200
        assert resp.content == PNG_BYTES
        assert resp.headers["content-type"] == "image/png"
        assert resp.headers["cache-control"] == "private, max-age=3600"

    async def test_someone_elses_certificate_is_forbidden(
        self, client, admin_headers, user_headers, db,
    ):
        await _linked_employee(db)
        cert = await make_certificate(db, "Ann Lee", "CPR")
        await self._upload(client, admin_headers, cert)

        resp = await client.get(f"{BASE_URL}/my-certificates/{cert.id}/image", headers=user_headers)

        assert resp.status_code == 403

    async def test_certificate_without_image_is_404(self, client, user_headers, db):
        await _linked_employee(db)
        cert = await make_certificate(db, "Val Viewer", "CPR")

        resp = await client.get(f"{BASE_URL}/my-certificates/{cert.id}/image", headers=user_headers)

        assert resp.status_code == 404

    async def test_unknown_certificate_is_404(self, client, user_headers, db):
        await _linked_employee(db)

        resp = await client.get(
            f"{BASE_URL}/my-certificates/{uuid.uuid4()}/image", headers=user_headers,
        )

        assert resp.status_code == 404


class TestMyCompliance:
    async def test_counts_use_dashboard_window(self, client, user_headers, db):
        await _linked_employee(db)
        await make_certificate(db, "Val Viewer", "CPR", expires_in_days=10)
        await make_certificate(db, "Val Viewer", "Forklift", expires_in_days=200)
        await make_certificate(db, "Val Viewer", "Rigging", expires_in_days=-3, issued_days_ago=400)
        await make_certificate(
            db, "Val Viewer", "Hot Work", expires_in_days=50, status=CertificateStatus.revoked,
        )
        await make_certificate(db, "Ann Lee", "CPR", expires_in_days=5)

        resp = await client.get(f"{BASE_URL}/my-compliance", headers=user_headers)

        assert resp.status_code == 200
        body = resp.json()
        assert body["employee"]["name"] == "Val Viewer"
        assert [p["title"] for p in body["employee"]["positions"]] == ["Welder"]
        assert body["stats"] == {"total": 4, "active": 2, "expiring_soon": 1, "expired": 1}

    async def test_no_certificates_gives_zero_counts(self, client, user_headers, db):
        await _linked_employee(db)

        resp = await client.get(f"{BASE_URL}/my-compliance", headers=user_headers)

        assert resp.json()["stats"] == {"total": 0, "active": 0, "expiring_soon": 0, "expired": 0}
