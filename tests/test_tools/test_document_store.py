"""
Tests for Document Store Tool
Tests per-tenant documents, defaults and failure handling
"""

import pytest
from unittest.mock import MagicMock
from sqlalchemy.exc import OperationalError

from config import DocumentKeys
from exceptions import StoreUnavailable
from tools.document_store import SqlDocumentStore, TenantLocks, default_document


def _db_error() -> OperationalError:
    return OperationalError("SELECT 1", {}, Exception("database is locked"))


class TestDefaults:
    """Tests for default documents"""

    @pytest.mark.unit
    def test_read_missing_returns_default(self, store):
        document = store.read("new-tenant", DocumentKeys.SETTINGS)

        assert document["timezone"] == "Asia/Kolkata"
        assert document["reminder_advance_minutes"] == 15
        assert document["trackers"] == []
        assert document["meal_times"]["breakfast"] == {"start": "07:00", "end": "10:00"}

    @pytest.mark.unit
    def test_defaults_are_copies(self, store):
        first = store.read("t", DocumentKeys.MEDICINES)
        first["medicines"].append({"id": "med_x"})

        assert store.read("t", DocumentKeys.MEDICINES)["medicines"] == []
        assert default_document(DocumentKeys.MEDICINES)["medicines"] == []

    @pytest.mark.unit
    def test_every_key_has_a_default(self):
        assert default_document(DocumentKeys.LOGS)["logs"] == []
        assert default_document(DocumentKeys.REMINDERS)["reminders"] == {}
        assert default_document(DocumentKeys.SCHEDULES)["schedules"] == []


class TestReadWrite:
    """Tests for persistence"""

    @pytest.mark.integration
    def test_write_then_read(self, store):
        document = store.read("t1", DocumentKeys.MEDICINES)
        document["medicines"].append({"id": "med_1", "inventory": 3})

        assert store.write("t1", DocumentKeys.MEDICINES, document) is True

        stored = store.read("t1", DocumentKeys.MEDICINES)
        assert stored["medicines"] == [{"id": "med_1", "inventory": 3}]
        assert stored["tenant_id"] == "t1"
        assert stored["version"] == "1.0"

    @pytest.mark.integration
    def test_last_writer_wins(self, store):
        store.write("t1", DocumentKeys.LOGS, {"logs": [1]})
        store.write("t1", DocumentKeys.LOGS, {"logs": [2]})

        assert store.read("t1", DocumentKeys.LOGS)["logs"] == [2]

    @pytest.mark.integration
    def test_tenants_are_isolated(self, store):
        store.write("a", DocumentKeys.LOGS, {"logs": ["a"]})

        assert store.read("b", DocumentKeys.LOGS)["logs"] == []

    @pytest.mark.integration
    def test_tenants_lists_known_tenants(self, store):
        store.initialize_tenant("beta")
        store.initialize_tenant("alpha")

        assert store.tenants() == ["alpha", "beta"]

    @pytest.mark.integration
    def test_initialize_tenant_keeps_existing_documents(self, store):
        store.write("t1", DocumentKeys.MEDICINES, {"medicines": [{"id": "m"}]})
        store.initialize_tenant("t1")

        assert store.read("t1", DocumentKeys.MEDICINES)["medicines"] == [{"id": "m"}]
        assert store.read("t1", DocumentKeys.SETTINGS)["tenant_id"] == "t1"


class TestFailures:
    """Tests for store failures"""

    @pytest.mark.unit
    def test_write_failure_returns_false(self):
        session = MagicMock()
        session.execute.side_effect = _db_error()
        store = SqlDocumentStore(MagicMock(return_value=session))

        assert store.write("t1", DocumentKeys.LOGS, {"logs": []}) is False
        session.rollback.assert_called_once()
        session.close.assert_called_once()

    @pytest.mark.unit
    def test_write_or_raise(self):
        session = MagicMock()
        session.execute.side_effect = _db_error()
        store = SqlDocumentStore(MagicMock(return_value=session))

        with pytest.raises(StoreUnavailable):
            store.write_or_raise("t1", DocumentKeys.LOGS, {"logs": []})

    @pytest.mark.unit
    def test_read_failure_raises_store_unavailable(self):
        store = SqlDocumentStore(MagicMock(side_effect=_db_error()))

        with pytest.raises(StoreUnavailable):
            store.read("t1", DocumentKeys.LOGS)


class TestTenantLocks:

    @pytest.mark.unit
    def test_same_lock_per_tenant(self):
        locks = TenantLocks()

        assert locks("a") is locks("a")
        assert locks("a") is not locks("b")
