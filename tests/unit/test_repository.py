"""
Tests for the table repositories.

Run: pytest tests/unit/test_repository.py -v
"""

import builtins
from typing import Union, get_type_hints

import httpx
import pytest

from services.repository import Repository, Row, SupabaseRepository, InMemoryRepository, NIL_UUID
from exceptions import DatabaseError, NetworkError

from tests.factories import SKUMappingFactory


@pytest.fixture
def supabase_repo(mock_supabase):
    mock_supabase.set_table_data("sku_mapping", [
        SKUMappingFactory.create(id="m-1", market_sku="MSKU-2", variant_description="Classic RT"),
        SKUMappingFactory.create(id="m-2", market_sku="MSKU-1", variant_description="AC L.I.T."),
        SKUMappingFactory.create(id="m-3", market_sku="MSKU-1", variant_description="Players Mint"),
    ])
    return SupabaseRepository("sku_mapping", client=mock_supabase)


@pytest.fixture
def memory_repo():
    return InMemoryRepository("sku_mapping", [
        SKUMappingFactory.create(id="m-1", market_sku="MSKU-2", variant_description="Classic RT"),
        SKUMappingFactory.create(id="m-2", market_sku="MSKU-1", variant_description="AC L.I.T."),
        SKUMappingFactory.create(id="m-3", market_sku="MSKU-1", variant_description="Players Mint"),
    ])


# ===================
# SUPABASE
# ===================

class TestSupabaseRepository:
    """Tests for SupabaseRepository against the mock client."""

    def test_list_builds_filtered_ordered_query(self, supabase_repo, mock_supabase):
        rows = supabase_repo.list({"market_sku": "MSKU-1"}, order_by="variant_description", limit=5)

        assert [r["id"] for r in rows] == ["m-2", "m-3"]
        calls = mock_supabase.get_table("sku_mapping").calls
        assert ("eq", "market_sku", "MSKU-1") in calls
        assert ("order", "variant_description", False) in calls
        assert ("limit", 5) in calls

    def test_list_filter_with_list_uses_in(self, supabase_repo, mock_supabase):
        rows = supabase_repo.list({"id": ["m-1", "m-3"]})

        assert {r["id"] for r in rows} == {"m-1", "m-3"}
        assert ("in_", "id", ["m-1", "m-3"]) in mock_supabase.get_table("sku_mapping").calls

    def test_get_found_and_missing(self, supabase_repo):
        assert supabase_repo.get("m-2")["market_sku"] == "MSKU-1"
        assert supabase_repo.get("nope") is None

    def test_insert_and_update(self, supabase_repo):
        created = supabase_repo.insert({"market_sku": "MSKU-9", "variant_description": "New"})

        updated = supabase_repo.update(created[0]["id"], {"variant_description": "Renamed"})

        assert updated["variant_description"] == "Renamed"
        assert len(supabase_repo.list()) == 4

    def test_insert_empty_list_skips_call(self, supabase_repo, mock_supabase):
        assert supabase_repo.insert([]) == []
        assert not any(c[0] == "insert" for c in mock_supabase.get_table("sku_mapping").calls)

    def test_delete_by_filter(self, supabase_repo):
        deleted = supabase_repo.delete({"market_sku": "MSKU-1"})

        assert deleted == 2
        assert [r["id"] for r in supabase_repo.list()] == ["m-1"]

    def test_delete_requires_filter(self, supabase_repo):
        with pytest.raises(ValueError):
            supabase_repo.delete({})

    def test_delete_all_uses_nil_uuid_guard(self, supabase_repo, mock_supabase):
        deleted = supabase_repo.delete_all()

        assert deleted == 3
        assert ("neq", "id", NIL_UUID) in mock_supabase.get_table("sku_mapping").calls

    def test_client_error_becomes_database_error(self, supabase_repo, mock_supabase):
        mock_supabase.get_table("sku_mapping").error = Exception("permission denied for table")

        with pytest.raises(DatabaseError) as exc_info:
            supabase_repo.list()

        assert exc_info.value.status_code == 500
        assert "permission denied" in exc_info.value.message

    def test_transport_error_becomes_network_error(self, supabase_repo, mock_supabase):
        mock_supabase.get_table("sku_mapping").error = httpx.ConnectError("connection refused")

        with pytest.raises(NetworkError):
            supabase_repo.get("m-1")


# ===================
# IN-MEMORY
# ===================

class TestInMemoryRepository:
    """Tests for InMemoryRepository."""

    @pytest.mark.parametrize("repo_class", [Repository, SupabaseRepository, InMemoryRepository])
    def test_row_annotations_use_builtin_list(self, repo_class):
        """Should resolve list[Row] to the builtin even though the class defines list()."""
        hints = get_type_hints(repo_class.insert)

        assert hints["rows"] == Union[Row, builtins.list[Row]]
        assert hints["return"] == builtins.list[Row]

    def test_insert_assigns_id_and_created_at(self):
        repo = InMemoryRepository("users")

        created = repo.insert({"username": "a"})[0]

        assert created["id"]
        assert created["created_at"]

    def test_returned_rows_are_copies(self, memory_repo):
        row = memory_repo.get("m-1")
        row["market_sku"] = "changed"

        assert memory_repo.get("m-1")["market_sku"] == "MSKU-2"

    def test_order_and_ties_keep_insertion_order(self, memory_repo):
        rows = memory_repo.list(order_by="market_sku")

        assert [r["id"] for r in rows] == ["m-2", "m-3", "m-1"]

    def test_descending_with_limit(self, memory_repo):
        rows = memory_repo.list(order_by="market_sku", descending=True, limit=1)

        assert [r["id"] for r in rows] == ["m-1"]

    def test_none_sorts_last_ascending(self):
        repo = InMemoryRepository("t", [{"id": "a", "n": None}, {"id": "b", "n": 2}, {"id": "c", "n": 1}])

        assert [r["id"] for r in repo.list(order_by="n")] == ["c", "b", "a"]

    def test_list_filter_membership(self, memory_repo):
        rows = memory_repo.list({"id": ("m-1", "m-2")})

        assert {r["id"] for r in rows} == {"m-1", "m-2"}

    def test_update_missing_returns_none(self, memory_repo):
        assert memory_repo.update("nope", {"market_sku": "x"}) is None

    def test_delete_and_delete_all(self, memory_repo):
        assert memory_repo.delete({"id": "m-1"}) == 1
        assert memory_repo.delete_all() == 2
        assert memory_repo.list() == []
