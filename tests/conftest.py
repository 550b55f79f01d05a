"""Shared fixtures: an inventory file, an in-memory store and a fake arr instance."""
import asyncio
from typing import Any, Optional

import pytest

from mcp_custom_formats.config.inventory import InstanceInventory
from mcp_custom_formats.errors import RemoteError
from mcp_custom_formats.remote.base import RemoteInstanceClient
from mcp_custom_formats.schema import ConfigRecord, ServiceKind, Specification
from mcp_custom_formats.store import MemoryRecordStore, new_id


INVENTORY_YAML = """
defaults:
  timeout: 5
  retries: 1

instances:
  radarr-main:
    owner: alice
    service: RADARR
    label: "Radarr 4K"
    base_url: http://radarr.test:7878/
    api_key: radarr-key

  sonarr-main:
    owner: alice
    service: sonarr
    label: "Sonarr"
    base_url: http://sonarr.test:8989
    api_key_env: TEST_SONARR_KEY

  radarr-bob:
    owner: bob
    service: RADARR
    base_url: http://bob.test:7878

  broken:
    owner: alice
    service: LIDARR
    base_url: http://lidarr.test:8686
"""


class FakeArrInstance:
    """State of one remote instance, shared by all clients opened against it."""

    def __init__(self, formats: Optional[list[dict]] = None):
        self.formats: dict[int, dict] = {}
        self.next_id = 1
        self.calls: list[tuple] = []
        self.fail_names: dict[str, str] = {}
        self.fail_listing = False
        self.gate: Optional[asyncio.Event] = None
        self.list_gate: Optional[asyncio.Event] = None
        self.closed = 0
        for f in formats or []:
            self.formats[f["id"]] = dict(f)
            self.next_id = max(self.next_id, f["id"] + 1)

    def names(self) -> dict[str, int]:
        return {f["name"]: f["id"] for f in self.formats.values()}


class FakeArrClient(RemoteInstanceClient):

    def __init__(self, instance, remote: FakeArrInstance):
        super().__init__(instance)
        self.remote = remote

    async def close(self) -> None:
        self.remote.closed += 1

    async def list_custom_formats(self) -> list[dict[str, Any]]:
        self.remote.calls.append(("list",))
        if self.remote.list_gate is not None:
            await self.remote.list_gate.wait()
        if self.remote.fail_listing:
            raise RemoteError("HTTP 401: Unauthorized", status_code=401)
        return [dict(f) for f in self.remote.formats.values()]

    async def _maybe_fail(self, payload: dict) -> None:
        if self.remote.gate is not None:
            await self.remote.gate.wait()
        error = self.remote.fail_names.get(payload["name"])
        if error:
            raise RemoteError(error, status_code=400)

    async def create_custom_format(self, payload: dict[str, Any]) -> dict[str, Any]:
        self.remote.calls.append(("create", payload["name"]))
        await self._maybe_fail(payload)
        created = {**payload, "id": self.remote.next_id}
        self.remote.next_id += 1
        self.remote.formats[created["id"]] = created
        return dict(created)

    async def update_custom_format(self, remote_id: int, payload: dict[str, Any]) -> dict[str, Any]:
        self.remote.calls.append(("update", remote_id, payload["name"]))
        await self._maybe_fail(payload)
        self.remote.formats[remote_id] = {**payload, "id": remote_id}
        return dict(self.remote.formats[remote_id])


@pytest.fixture
def inventory_file(tmp_path):
    path = tmp_path / "instances.yaml"
    path.write_text(INVENTORY_YAML)
    return str(path)


@pytest.fixture
def inventory(inventory_file):
    return InstanceInventory(inventory_file)


@pytest.fixture
def store():
    return MemoryRecordStore()


@pytest.fixture
def remote():
    return FakeArrInstance()


@pytest.fixture
def client_factory(remote):
    return lambda instance: FakeArrClient(instance, remote)


def make_specs(value: str = r"\bDV\b") -> list[Specification]:
    return [
        Specification(
            name="Dolby Vision",
            implementation="ReleaseTitleSpecification",
            required=True,
            fields={"value": value},
        )
    ]


def make_record(
    store,
    name: str = "DV",
    owner: str = "alice",
    service_kind: ServiceKind = ServiceKind.RADARR,
    version: int = 1,
    value: str = r"\bDV\b",
) -> ConfigRecord:
    return store.create_record(
        ConfigRecord(
            id=new_id(),
            owner=owner,
            name=name,
            service_kind=service_kind,
            specifications=make_specs(value),
            version=version,
        )
    )
