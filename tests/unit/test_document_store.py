import pytest
from datetime import datetime
from kpi_reports.document_store import InMemoryDocumentStore, SERVER_TIMESTAMP, DELETE_FIELD
from kpi_reports.errors import StorageUnavailable

@pytest.mark.unit
class TestInMemoryDocumentStore:
    def test_create_resolves_server_timestamps(self, store):
        store.create("jobs", "a", {"status": "pending", "createdAt": SERVER_TIMESTAMP})
        doc = store.get("jobs", "a")
        assert doc["status"] == "pending"
        assert isinstance(doc["createdAt"], datetime)

    def test_create_rejects_duplicate_id(self, store):
        store.create("jobs", "a", {"status": "pending"})
        with pytest.raises(StorageUnavailable):
            store.create("jobs", "a", {"status": "pending"})

    def test_get_returns_copy(self, store):
        store.create("jobs", "a", {"payload": {"x": 1}})
        doc = store.get("jobs", "a")
        doc["payload"]["x"] = 2
        assert store.get("jobs", "a")["payload"]["x"] == 1

    def test_get_missing(self, store):
        assert store.get("jobs", "nope") is None

    def test_update_missing_document(self, store):
        with pytest.raises(StorageUnavailable):
            store.update("jobs", "nope", {"status": "failed"})

    def test_conditional_update(self, store):
        store.create("jobs", "a", {"status": "pending"})
        assert store.update("jobs", "a", {"status": "processing"}, expected={"status": "pending"})
        assert not store.update("jobs", "a", {"status": "processing"}, expected={"status": "pending"})
        assert store.get("jobs", "a")["status"] == "processing"

    def test_expected_none_matches_missing_field(self, store):
        store.create("jobs", "a", {"status": "pending"})
        assert store.update("jobs", "a", {"claimToken": "t1"}, expected={"claimToken": None})
        assert not store.update("jobs", "a", {"claimToken": "t2"}, expected={"claimToken": None})

    def test_delete_field(self, store):
        store.create("jobs", "a", {"error": "boom"})
        store.update("jobs", "a", {"error": DELETE_FIELD})
        assert "error" not in store.get("jobs", "a")

    def test_query_filters_orders_and_limits(self, store):
        for doc_id, status in [("a", "pending"), ("b", "done"), ("c", "pending"), ("d", "pending")]:
            store.create("jobs", doc_id, {"status": status, "createdAt": SERVER_TIMESTAMP})

        oldest = store.query("jobs", where={"status": "pending"}, order_by="createdAt", limit=2)
        assert [doc_id for doc_id, _ in oldest] == ["a", "c"]

        newest = store.query("jobs", where={"status": "pending"}, order_by="createdAt", descending=True)
        assert [doc_id for doc_id, _ in newest] == ["d", "c", "a"]

    def test_collections_are_separate(self):
        store = InMemoryDocumentStore()
        store.create("one", "a", {})
        assert store.get("two", "a") is None
        assert store.query("two") == []
