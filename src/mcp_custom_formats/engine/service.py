"""FormatService - single entry point for custom format operations.

Wires together:
1. Input parsing/validation
2. Ownership checks
3. Versioned record CRUD
4. Batch deployment through the reconciliation engine
5. Ledger queries (drift, updates, stop tracking, restore)
"""
import logging
from typing import Any, Optional

from ..config.inventory import InstanceInventory
from ..errors import Conflict
from ..remote import create_client
from ..schema import (
    BatchResult,
    ConfigRecord,
    DeploymentView,
    UpdatesReport,
)
from ..store import RecordStore, new_id
from .guard import OwnershipGuard
from .ledger import DeploymentLedger
from .parser import parse_create, parse_deploy, parse_patch, parse_service_kind
from .reconciler import ClientFactory, ReconciliationEngine
from .versioning import apply_update

logger = logging.getLogger(__name__)


class FormatService:
    """
    Owner-scoped operations on custom formats and their deployments.

    Usage:
        service = FormatService(YamlRecordStore(), InstanceInventory())
        record = service.create_record("alice", {...})
        result = await service.deploy("alice", {"record_ids": [record.id],
                                                "instance_id": "radarr-main"})
    """

    def __init__(
        self,
        store: RecordStore,
        inventory: InstanceInventory,
        client_factory: ClientFactory = create_client,
        max_parallel: Optional[int] = None,
    ):
        self.store = store
        self.inventory = inventory
        self.guard = OwnershipGuard(store, inventory)
        self.ledger = DeploymentLedger(store, inventory)
        self.engine = ReconciliationEngine(
            store,
            inventory,
            ledger=self.ledger,
            client_factory=client_factory,
            max_parallel=max_parallel,
        )

    # === Records ===

    def create_record(self, owner: str, data: dict[str, Any]) -> ConfigRecord:
        owner = self.guard.require_identity(owner)
        model = parse_create(data)

        record = ConfigRecord(
            id=new_id(),
            owner=owner,
            name=model.name,
            service_kind=model.service_kind,
            include_when_renaming=model.include_when_renaming,
            specifications=[s.to_specification() for s in model.specifications],
            version=1,
        )
        created = self.store.create_record(record)
        logger.info(f"Created '{created.name}' ({created.service_kind.value}) for {owner}")
        return created

    def get_record(self, owner: str, record_id: str) -> ConfigRecord:
        owner = self.guard.require_identity(owner)
        return self.guard.get_record(record_id, owner)

    def list_records(
        self,
        owner: str,
        service_kind: Optional[str] = None,
    ) -> list[ConfigRecord]:
        owner = self.guard.require_identity(owner)
        records = self.store.find_records(owner, service_kind=parse_service_kind(service_kind))
        return sorted(records, key=lambda r: (r.service_kind.value, r.name))

    def update_record(
        self,
        owner: str,
        record_id: str,
        data: dict[str, Any],
    ) -> ConfigRecord:
        owner = self.guard.require_identity(owner)
        patch = parse_patch(data)
        record = self.guard.get_record(record_id, owner)

        if patch.name is not None and patch.name != record.name:
            clash = self.store.find_records(
                owner,
                service_kind=record.service_kind,
                name=patch.name,
            )
            if clash:
                raise Conflict(
                    f'A custom format named "{patch.name}" already exists '
                    f"for {record.service_kind.value}"
                )

        updated, version_changed = apply_update(record, patch)
        saved = self.store.save_record(updated)
        logger.info(
            f"Updated '{saved.name}' for {owner}"
            + (f" (v{record.version} -> v{saved.version})" if version_changed else "")
        )
        return saved

    def delete_record(self, owner: str, record_id: str) -> str:
        """Soft delete. Ledger rows keep pointing at the tombstone."""
        owner = self.guard.require_identity(owner)
        record = self.guard.get_record(record_id, owner)
        self.store.soft_delete_record(record.id, owner)
        logger.info(f"Deleted '{record.name}' for {owner}")
        return record.name

    # === Deployment ===

    async def deploy(self, owner: str, data: dict[str, Any]) -> BatchResult:
        owner = self.guard.require_identity(owner)
        request = parse_deploy(data)
        return await self.engine.deploy_batch(owner, request.record_ids, request.instance_id)

    def list_deployments(
        self,
        owner: str,
        instance_id: Optional[str] = None,
    ) -> list[DeploymentView]:
        return self.ledger.list_deployments(owner, instance_id)

    def list_updates(
        self,
        owner: str,
        instance_id: Optional[str] = None,
        service_kind: Optional[str] = None,
    ) -> UpdatesReport:
        return self.ledger.list_updates(owner, instance_id, parse_service_kind(service_kind))

    def stop_tracking(self, owner: str, entry_id: str) -> str:
        return self.ledger.stop_tracking(owner, entry_id)

    def restore_deployed(self, owner: str, entry_id: str) -> ConfigRecord:
        return self.ledger.restore_deployed(owner, entry_id)

    async def close(self) -> None:
        await self.engine.drain()
