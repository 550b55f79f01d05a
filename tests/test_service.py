"""End-to-end tests for FormatService with a fake arr instance."""
import pytest

from mcp_custom_formats.engine import FormatService
from mcp_custom_formats.errors import Conflict, NotFound, Unauthorized, ValidationError


def _body(name="DV", kind="RADARR", value=r"\bDV\b"):
    return {
        "name": name,
        "service_kind": kind,
        "specifications": [{
            "name": "Dolby Vision",
            "implementation": "ReleaseTitleSpecification",
            "required": True,
            "fields": {"value": value},
        }],
    }


@pytest.fixture
def service(store, inventory, client_factory):
    return FormatService(store, inventory, client_factory=client_factory, max_parallel=2)


class TestRecords:

    def test_create_starts_at_version_one(self, service):
        record = service.create_record("alice", _body())
        assert record.version == 1
        assert record.owner == "alice"
        assert service.get_record("alice", record.id).name == "DV"

    def test_create_requires_identity(self, service):
        with pytest.raises(Unauthorized):
            service.create_record(None, _body())

    def test_create_invalid(self, service):
        body = _body()
        body["specifications"] = []
        with pytest.raises(ValidationError):
            service.create_record("alice", body)

    def test_duplicate_then_recreate_after_delete(self, service):
        record = service.create_record("alice", _body())
        with pytest.raises(Conflict):
            service.create_record("alice", _body())

        assert service.delete_record("alice", record.id) == "DV"
        again = service.create_record("alice", _body())
        assert again.id != record.id

    def test_rename_into_existing_name(self, service):
        service.create_record("alice", _body(name="A"))
        b = service.create_record("alice", _body(name="B"))
        with pytest.raises(Conflict):
            service.update_record("alice", b.id, {"name": "A"})

    def test_rename_to_same_name(self, service):
        a = service.create_record("alice", _body(name="A"))
        updated = service.update_record("alice", a.id, {"name": "A"})
        assert updated.version == 1

    def test_update_versions(self, service):
        record = service.create_record("alice", _body())
        record = service.update_record("alice", record.id, {"includeCustomFormatWhenRenaming": True})
        assert record.version == 1
        record = service.update_record("alice", record.id, {"specifications": _body()["specifications"]})
        assert record.version == 2

    def test_other_owner_not_found(self, service):
        record = service.create_record("alice", _body())
        with pytest.raises(NotFound):
            service.get_record("bob", record.id)
        with pytest.raises(NotFound):
            service.update_record("bob", record.id, {"name": "mine"})
        with pytest.raises(NotFound):
            service.delete_record("bob", record.id)

    def test_list_sorted_and_filtered(self, service):
        service.create_record("alice", _body(name="Zeta"))
        service.create_record("alice", _body(name="Alpha"))
        service.create_record("alice", _body(name="Anime", kind="SONARR"))

        names = [r.name for r in service.list_records("alice")]
        assert names == ["Alpha", "Zeta", "Anime"]
        assert [r.name for r in service.list_records("alice", "sonarr")] == ["Anime"]


class TestDeploymentFlow:

    @pytest.mark.asyncio
    async def test_deploy_edit_check_redeploy(self, service, remote):
        record = service.create_record("alice", _body())

        result = await service.deploy("alice", {"record_ids": [record.id],
                                                "instance_id": "radarr-main"})
        assert result.to_dict() == {"success": True, "created": ["DV"],
                                    "updated": [], "failed": []}
        assert not service.list_updates("alice").has_updates

        service.update_record("alice", record.id, _body(value="DoVi"))
        report = service.list_updates("alice", instance_id="radarr-main")
        assert report.outdated_count == 1
        assert report.updates[0].current_version == 2

        result = await service.deploy("alice", {"personalCFIds": [record.id],
                                                "instanceId": "radarr-main"})
        assert result.updated == ["DV"]
        assert not service.list_updates("alice").has_updates
        assert len(remote.formats) == 1

    @pytest.mark.asyncio
    async def test_deploy_invalid_body(self, service):
        with pytest.raises(ValidationError):
            await service.deploy("alice", {"record_ids": [], "instance_id": "radarr-main"})

    @pytest.mark.asyncio
    async def test_stop_tracking_keeps_remote(self, service, remote):
        record = service.create_record("alice", _body())
        await service.deploy("alice", {"record_ids": [record.id], "instance_id": "radarr-main"})

        entry = service.list_deployments("alice")[0]
        assert service.stop_tracking("alice", entry.id) == "DV"
        assert service.list_deployments("alice") == []
        assert "DV" in remote.names()

    @pytest.mark.asyncio
    async def test_restore_deployed(self, service):
        record = service.create_record("alice", _body(value="v1"))
        await service.deploy("alice", {"record_ids": [record.id], "instance_id": "radarr-main"})
        service.update_record("alice", record.id, _body(value="v2"))

        entry = service.list_deployments("alice")[0]
        restored = service.restore_deployed("alice", entry.id)
        assert restored.specifications[0].fields == {"value": "v1"}
        assert restored.version == 3

    @pytest.mark.asyncio
    async def test_close_drains(self, service):
        await service.close()
