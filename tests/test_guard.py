"""Tests for ownership checks and batch authorization."""
import pytest

from mcp_custom_formats.engine.guard import OwnershipGuard
from mcp_custom_formats.errors import NotFound, ServiceMismatch, Unauthorized
from mcp_custom_formats.schema import ServiceKind

from conftest import make_record


@pytest.fixture
def guard(store, inventory):
    return OwnershipGuard(store, inventory)


class TestOwnershipGuard:

    @pytest.mark.parametrize("owner", [None, "", "   "])
    def test_missing_identity(self, owner):
        with pytest.raises(Unauthorized):
            OwnershipGuard.require_identity(owner)

    def test_foreign_record_is_not_found(self, guard, store):
        record = make_record(store, owner="bob")
        with pytest.raises(NotFound) as exc_info:
            guard.get_record(record.id, "alice")
        assert exc_info.value.kind == "NotFound"

    def test_deleted_record_is_not_found(self, guard, store):
        record = make_record(store)
        store.soft_delete_record(record.id, "alice")
        with pytest.raises(NotFound):
            guard.get_record(record.id, "alice")

    def test_foreign_instance_is_not_found(self, guard):
        with pytest.raises(NotFound):
            guard.get_instance("radarr-bob", "alice")


class TestAuthorizeBatch:

    def test_returns_records_in_request_order(self, guard, store):
        a = make_record(store, name="A")
        b = make_record(store, name="B")
        instance, records = guard.authorize_batch("alice", [b.id, a.id], "radarr-main")
        assert instance.id == "radarr-main"
        assert [r.name for r in records] == ["B", "A"]

    def test_repeated_id_rejects_batch(self, guard, store):
        """A repeated id fetches fewer records than requested."""
        a = make_record(store, name="A")
        with pytest.raises(NotFound) as exc_info:
            guard.authorize_batch("alice", [a.id, a.id], "radarr-main")
        assert exc_info.value.message == "Some custom formats were not found"

    def test_unknown_record(self, guard, store):
        a = make_record(store, name="A")
        with pytest.raises(NotFound) as exc_info:
            guard.authorize_batch("alice", [a.id, "missing"], "radarr-main")
        assert exc_info.value.message == "Some custom formats were not found"

    def test_foreign_record_in_batch(self, guard, store):
        a = make_record(store, name="A")
        theirs = make_record(store, name="B", owner="bob")
        with pytest.raises(NotFound):
            guard.authorize_batch("alice", [a.id, theirs.id], "radarr-main")

    def test_foreign_instance(self, guard, store):
        a = make_record(store)
        with pytest.raises(NotFound):
            guard.authorize_batch("alice", [a.id], "radarr-bob")

    def test_service_mismatch(self, guard, store):
        a = make_record(store, name="A")
        s = make_record(store, name="Anime", service_kind=ServiceKind.SONARR)
        with pytest.raises(ServiceMismatch) as exc_info:
            guard.authorize_batch("alice", [a.id, s.id], "radarr-main")
        assert exc_info.value.message == 'CF "Anime" is for SONARR, instance is RADARR'

    def test_no_identity(self, guard, store):
        a = make_record(store)
        with pytest.raises(Unauthorized):
            guard.authorize_batch("", [a.id], "radarr-main")
