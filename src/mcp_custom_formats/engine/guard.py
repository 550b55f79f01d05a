"""Ownership checks applied before every operation.

Anything the caller does not own looks exactly like something that does
not exist: the guard only ever raises NotFound, never a "forbidden" kind.
"""
import logging
from typing import Optional

from ..config.inventory import InstanceInventory
from ..errors import NotFound, ServiceMismatch, Unauthorized
from ..schema import ConfigRecord, DeploymentLedgerEntry, Instance
from ..store import RecordStore

logger = logging.getLogger(__name__)


class OwnershipGuard:
    """Resolve entities by (id, owner) and validate deployment batches."""

    def __init__(self, store: RecordStore, inventory: InstanceInventory):
        self.store = store
        self.inventory = inventory

    @staticmethod
    def require_identity(owner: Optional[str]) -> str:
        if not owner or not str(owner).strip():
            raise Unauthorized("Authentication required")
        return owner

    def get_record(self, record_id: str, owner: str) -> ConfigRecord:
        record = self.store.get_record(record_id, owner)
        if record is None:
            raise NotFound("Custom format not found")
        return record

    def get_instance(self, instance_id: str, owner: str) -> Instance:
        instance = self.inventory.get_instance(instance_id, owner)
        if instance is None:
            raise NotFound("Instance not found")
        return instance

    def get_deployment(self, entry_id: str, owner: str) -> DeploymentLedgerEntry:
        entry = self.store.get_deployment(entry_id, owner)
        if entry is None:
            raise NotFound("Deployment record not found")
        return entry

    def authorize_batch(
        self,
        owner: str,
        record_ids: list[str],
        instance_id: str,
    ) -> tuple[Instance, list[ConfigRecord]]:
        """Validate a whole deployment batch before any remote call.

        Args:
            owner: Caller identity
            record_ids: Requested record ids
            instance_id: Target instance

        Returns:
            The instance and the records, in request order

        Raises:
            Unauthorized: no identity
            NotFound: instance absent/unowned, or fewer records fetched than
                ids requested (absent, unowned, deleted or repeated ids)
            ServiceMismatch: a record's service kind differs from the instance's
        """
        owner = self.require_identity(owner)
        instance = self.get_instance(instance_id, owner)

        found = {r.id: r for r in self.store.find_records(owner, ids=list(record_ids))}
        if len(found) < len(record_ids):
            logger.info(
                f"Batch for {instance_id} rejected: {len(found)} formats fetched "
                f"for {len(record_ids)} requested"
            )
            raise NotFound("Some custom formats were not found")

        records = [found[record_id] for record_id in record_ids]

        for record in records:
            if record.service_kind != instance.service_kind:
                raise ServiceMismatch(
                    f'CF "{record.name}" is for {record.service_kind.value}, '
                    f"instance is {instance.service_kind.value}"
                )

        return instance, records
