"""Deployment ledger: what was pushed where, and at which version.

Drift is never stored. It is derived on every read by comparing a ledger
row's ``deployed_version`` with the live record's ``version``.
"""
import logging
from typing import Optional

from ..config.inventory import InstanceInventory
from ..schema import (
    ConfigRecord,
    DeploymentLedgerEntry,
    DeploymentView,
    RecordPatch,
    ServiceKind,
    UpdatesReport,
)
from ..store import RecordStore
from .guard import OwnershipGuard
from .versioning import apply_update

logger = logging.getLogger(__name__)


class DeploymentLedger:
    """Owner-scoped access to deployment ledger rows."""

    def __init__(self, store: RecordStore, inventory: InstanceInventory):
        self.store = store
        self.inventory = inventory
        self.guard = OwnershipGuard(store, inventory)

    def record_deployment(
        self,
        owner: str,
        record_id: str,
        instance_id: str,
        remote_id: int,
        version: int,
        specs_snapshot: str,
    ) -> DeploymentLedgerEntry:
        """Upsert the ledger row for (instance_id, record_id).

        Called once per successfully deployed item, right after the remote
        call returns.
        """
        entry = self.store.upsert_deployment(
            owner=owner,
            instance_id=instance_id,
            record_id=record_id,
            remote_id=remote_id,
            deployed_version=version,
            deployed_specs_snapshot=specs_snapshot,
        )
        logger.debug(
            f"Ledger {entry.id}: record {record_id} v{version} on "
            f"{instance_id} (remote id {remote_id})"
        )
        return entry

    def _view(
        self,
        entry: DeploymentLedgerEntry,
        record: Optional[ConfigRecord],
    ) -> DeploymentView:
        instance = self.inventory.get_instance(entry.instance_id, entry.owner)
        label = instance.label if instance else entry.instance_id

        # Tombstoned (or vanished) records stay listed but can't be redeployed
        if record is None or record.is_deleted:
            return DeploymentView(
                id=entry.id,
                record_id=entry.record_id,
                record_name=record.name if record else "",
                instance_id=entry.instance_id,
                instance_label=label,
                remote_id=entry.remote_id,
                deployed_version=entry.deployed_version,
                current_version=record.version if record else entry.deployed_version,
                needs_update=False,
                deployable=False,
                service_kind=(
                    record.service_kind if record
                    else instance.service_kind if instance
                    else ServiceKind.RADARR
                ),
                deployed_at=entry.deployed_at,
            )

        return DeploymentView(
            id=entry.id,
            record_id=entry.record_id,
            record_name=record.name,
            instance_id=entry.instance_id,
            instance_label=label,
            remote_id=entry.remote_id,
            deployed_version=entry.deployed_version,
            current_version=record.version,
            needs_update=record.version > entry.deployed_version,
            deployable=True,
            service_kind=record.service_kind,
            deployed_at=entry.deployed_at,
        )

    def list_deployments(
        self,
        owner: str,
        instance_id: Optional[str] = None,
    ) -> list[DeploymentView]:
        """All ledger rows of an owner with drift computed against live records.

        Ordered by instance id, newest deployment first within an instance.
        """
        owner = self.guard.require_identity(owner)
        entries = self.store.find_deployments(owner, instance_id=instance_id)
        if not entries:
            return []

        records = {
            r.id: r for r in self.store.find_records(
                owner,
                ids=[e.record_id for e in entries],
                include_deleted=True,
            )
        }

        entries.sort(key=lambda e: e.deployed_at, reverse=True)
        entries.sort(key=lambda e: e.instance_id)
        return [self._view(e, records.get(e.record_id)) for e in entries]

    def list_updates(
        self,
        owner: str,
        instance_id: Optional[str] = None,
        service_kind: Optional[ServiceKind] = None,
    ) -> UpdatesReport:
        """Only the deployments that have drifted behind their record."""
        views = self.list_deployments(owner, instance_id)
        updates = [
            v for v in views
            if v.needs_update
            and (service_kind is None or v.service_kind == service_kind)
        ]
        return UpdatesReport(updates=updates, total_deployed=len(views))

    def stop_tracking(self, owner: str, entry_id: str) -> str:
        """Forget a deployment. The remote custom format is left untouched.

        Returns:
            Name of the record that was being tracked
        """
        owner = self.guard.require_identity(owner)
        entry = self.guard.get_deployment(entry_id, owner)
        record = self.store.get_record(entry.record_id, owner, include_deleted=True)

        self.store.delete_deployment(entry.id, owner)
        name = record.name if record else entry.record_id
        logger.info(f"Stopped tracking '{name}' on {entry.instance_id}")
        return name

    def restore_deployed(self, owner: str, entry_id: str) -> ConfigRecord:
        """Roll a record's specifications back to what was last deployed.

        This is a normal specifications update, so the version moves forward.
        The instance only changes on the next deployment.
        """
        owner = self.guard.require_identity(owner)
        entry = self.guard.get_deployment(entry_id, owner)
        record = self.guard.get_record(entry.record_id, owner)

        updated, _ = apply_update(
            record,
            RecordPatch(specifications=entry.snapshot_specs()),
        )
        saved = self.store.save_record(updated)
        logger.info(
            f"Restored '{saved.name}' to the specs deployed on {entry.instance_id} "
            f"at v{entry.deployed_version} (now v{saved.version})"
        )
        return saved
