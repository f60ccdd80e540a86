"""Company documents test suite — upload validation, listing, viewing,
deletion.
"""

from __future__ import annotations

import os

import pytest

from certtracker.documents.service import detect_file_type

DOCS_URL = "/api/v1/documents"


async def _upload(client, headers, name="handbook.pdf", content=b"%PDF-1.4 handbook", mime="application/pdf", **form):
    return await client.post(
        f"{DOCS_URL}/upload",
        files={"document": (name, content, mime)},
        data=form,
        headers=headers,
    )


class TestDetectFileType:
    @pytest.mark.parametrize(
        "filename,content_type,expected",
        [
            ("Handbook.PDF", None, "pdf"),
            ("sheet.xlsx", "application/octet-stream", "xlsx"),
            ("blob", "image/png", "png"),
            ("script.exe", "application/x-msdownload", None),
            (None, None, None),
        ],
    )
    def test_detection(self, filename, content_type, expected):
        assert detect_file_type(filename, content_type) == expected


class TestUpload:
    async def test_upload_and_list(self, client, admin_headers, user_headers):
        resp = await _upload(client, admin_headers, description="Safety handbook")

        assert resp.status_code == 201
        doc = resp.json()["document"]
        assert doc["original_name"] == "handbook.pdf"
        assert doc["file_type"] == "pdf"
        assert doc["file_size"] == len(b"%PDF-1.4 handbook")
        assert doc["description"] == "Safety handbook"

        # Any signed-in user may list
        listed = await client.get(DOCS_URL, headers=user_headers)
        assert [d["id"] for d in listed.json()] == [doc["id"]]

    async def test_disallowed_type_rejected(self, client, admin_headers):
        resp = await _upload(client, admin_headers, name="run.exe", content=b"MZ", mime="application/x-msdownload")
        assert resp.status_code == 400

    async def test_empty_file_rejected(self, client, admin_headers):
        resp = await _upload(client, admin_headers, content=b"")
        assert resp.status_code == 400

    async def test_oversized_file_rejected(self, client, admin_headers, monkeypatch):
        from certtracker.config import settings

        monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE_MB", 0)
        resp = await _upload(client, admin_headers)
        assert resp.status_code == 400

    async def test_regular_user_cannot_upload(self, client, user_headers):
        resp = await _upload(client, user_headers)
        assert resp.status_code == 403


class TestViewAndDelete:
    async def test_pdf_is_shown_inline(self, client, admin_headers):
        doc = (await _upload(client, admin_headers)).json()["document"]

        resp = await client.get(f"{DOCS_URL}/{doc['id']}/view", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.content == b"%PDF-1.4 handbook"
        assert resp.headers["content-type"] == "application/pdf"
        assert resp.headers["content-disposition"].startswith("inline")

    async def test_other_types_are_downloads(self, client, admin_headers):
        doc = (
            await _upload(
                client,
                admin_headers,
                name="roster.xlsx",
                content=b"PK\x03\x04 sheet",
                mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            )
        ).json()["document"]

        resp = await client.get(f"{DOCS_URL}/{doc['id']}/view", headers=admin_headers)

        assert resp.headers["content-disposition"].startswith("attachment")

    async def test_delete_removes_row_and_blob(self, client, admin_headers, upload_root):
        doc = (await _upload(client, admin_headers)).json()["document"]
        bucket = os.path.join(upload_root, "documents")
        assert len(os.listdir(bucket)) == 1

        resp = await client.delete(f"{DOCS_URL}/{doc['id']}", headers=admin_headers)

        assert resp.status_code == 200
        assert os.listdir(bucket) == []
        assert (await client.get(DOCS_URL, headers=admin_headers)).json() == []
        missing = await client.get(f"{DOCS_URL}/{doc['id']}/view", headers=admin_headers)
        assert missing.status_code == 404
