"""Tests for common utilities — reference resolution, filters, pagination,
blob storage, problem-detail errors.
"""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import select

from certtracker.common.filters import apply_filters, apply_search, apply_sorting
from certtracker.common.pagination import PaginationMeta, PaginationParams, paginate
from certtracker.common.refs import resolve_id, resolve_ids, same_ref
from certtracker.common.storage import BlobStore
from certtracker.workforce.models import Position
from tests.conftest import make_position


# ═════════════════════════════════════════════════════════════════════
# References
# ═════════════════════════════════════════════════════════════════════


class _Obj:
    def __init__(self, id):
        self.id = id


class TestResolveId:
    def test_shapes(self):
        raw = uuid.uuid4()

        assert resolve_id(raw) == str(raw)
        assert resolve_id("abc") == "abc"
        assert resolve_id({"_id": "abc", "title": "Welder"}) == "abc"
        assert resolve_id({"id": raw}) == str(raw)
        assert resolve_id(_Obj("abc")) == "abc"
        assert resolve_id(_Obj({"_id": "nested"})) == "nested"

    def test_unresolvable(self):
        assert resolve_id(None) is None
        assert resolve_id("") is None
        assert resolve_id({"title": "no id"}) is None
        assert resolve_id(42) is None

    def test_resolve_ids_drops_blanks(self):
        assert resolve_ids(["a", None, {"_id": "b"}, {}]) == ["a", "b"]
        assert resolve_ids(None) == []

    def test_same_ref(self):
        assert same_ref("a", {"id": "a"})
        assert not same_ref(None, None)
        assert not same_ref("a", "b")


# ═════════════════════════════════════════════════════════════════════
# Pagination / filters
# ═════════════════════════════════════════════════════════════════════


def _params(page: int = 1, page_size: int = 2, sort=None) -> PaginationParams:
    return PaginationParams(page=page, page_size=page_size, sort=sort)


class TestPaginationMeta:
    def test_build(self):
        meta = PaginationMeta.build(total=5, page=2, page_size=2)

        assert meta.total_pages == 3
        assert meta.has_next is True
        assert meta.has_prev is True

    def test_empty(self):
        meta = PaginationMeta.build(total=0, page=1, page_size=50)

        assert meta.total_pages == 0
        assert meta.has_next is False


class TestPaginate:
    async def test_counts_without_where_clause(self, db):
        for title in ("C", "A", "B"):
            await make_position(db, title)

        page = await paginate(db, select(Position), _params(sort="title"), model=Position)

        assert page.meta.total == 3
        assert [p.title for p in page.data] == ["A", "B"]

    async def test_second_page_descending(self, db):
        for title in ("C", "A", "B"):
            await make_position(db, title)

        page = await paginate(db, select(Position), _params(page=2, sort="-title"), model=Position)

        assert [p.title for p in page.data] == ["A"]
        assert page.meta.has_prev is True

    async def test_unknown_sort_column_ignored(self, db):
        await make_position(db, "A")

        page = await paginate(db, select(Position), _params(sort="nope; DROP TABLE"), model=Position)

        assert page.meta.total == 1


class TestFilters:
    async def test_filters_and_search(self, db):
        await make_position(db, "Welder", department="Fabrication")
        await make_position(db, "Driver", department="Logistics")
        await make_position(db, "Welder Lead", department="Fabrication")

        query = apply_filters(select(Position), Position, {"department": "Fabrication", "title": None})
        query = apply_search(query, Position, "lead", ["title"])
        rows = (await db.execute(query)).scalars().all()

        assert [p.title for p in rows] == ["Welder Lead"]

    async def test_ilike_and_in_suffixes(self, db):
        await make_position(db, "Welder", department="Fabrication")
        await make_position(db, "Driver", department="Logistics")

        ilike = apply_filters(select(Position), Position, {"department__ilike": "log"})
        rows = (await db.execute(apply_sorting(ilike, Position, "title"))).scalars().all()
        assert [p.title for p in rows] == ["Driver"]

        in_query = apply_filters(select(Position), Position, {"title__in": ["Welder", "Driver"]})
        assert len((await db.execute(in_query)).scalars().all()) == 2


# ═════════════════════════════════════════════════════════════════════
# Blob storage
# ═════════════════════════════════════════════════════════════════════


class TestBlobStore:
    def test_save_read_delete(self, tmp_path):
        store = BlobStore(str(tmp_path), bucket="certificates")

        blob_id = store.save(b"hello", "Card.PNG")

        assert blob_id.endswith(".png")
        assert store.exists(blob_id)
        assert store.read(blob_id) == b"hello"
        assert store.delete(blob_id) is True
        assert store.delete(blob_id) is False
        with pytest.raises(FileNotFoundError):
            store.path_for(blob_id)

    def test_original_name_never_reaches_disk(self, tmp_path):
        store = BlobStore(str(tmp_path), bucket="documents")

        blob_id = store.save(b"x", "../../etc/passwd")

        assert "/" not in blob_id and ".." not in blob_id

    @pytest.mark.parametrize("bad", ["../secret", "abc", "0" * 32 + "/x"])
    def test_rejects_malformed_ids(self, tmp_path, bad):
        with pytest.raises(ValueError):
            BlobStore(str(tmp_path)).exists(bad)


# ═════════════════════════════════════════════════════════════════════
# Error responses
# ═════════════════════════════════════════════════════════════════════


async def test_not_found_is_problem_detail(client, admin_headers):
    resp = await client.get(f"/api/v1/employees/{uuid.uuid4()}", headers=admin_headers)

    assert resp.status_code == 404
    body = resp.json()
    assert body["status"] == 404
    assert body["type"].endswith("/not-found")
    assert body["instance"].startswith("/api/v1/employees/")


async def test_invalid_uuid_is_validation_problem(client, admin_headers):
    resp = await client.get("/api/v1/employees/not-a-uuid", headers=admin_headers)

    assert resp.status_code == 422
    assert "employee_id" in resp.json()["errors"]
