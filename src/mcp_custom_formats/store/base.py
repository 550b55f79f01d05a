"""Storage abstraction for custom format records and the deployment ledger.

Every call takes the owner identity as a mandatory argument; there is no
unscoped read path.
"""
from abc import ABC, abstractmethod
from typing import Optional

from ..schema import ConfigRecord, DeploymentLedgerEntry, ServiceKind


class RecordStore(ABC):
    """Abstract base class for record/ledger persistence."""

    # Records
    @abstractmethod
    def get_record(
        self,
        record_id: str,
        owner: str,
        include_deleted: bool = False,
    ) -> Optional[ConfigRecord]:
        """Get one record by (id, owner). Soft-deleted records are hidden by default."""
        pass

    @abstractmethod
    def find_records(
        self,
        owner: str,
        ids: Optional[list[str]] = None,
        service_kind: Optional[ServiceKind] = None,
        name: Optional[str] = None,
        include_deleted: bool = False,
    ) -> list[ConfigRecord]:
        """Find records of one owner matching all given filters."""
        pass

    @abstractmethod
    def create_record(self, record: ConfigRecord) -> ConfigRecord:
        """Insert a record.

        Raises:
            Conflict: a non-deleted record with the same
                (owner, name, service_kind) exists
        """
        pass

    @abstractmethod
    def save_record(self, record: ConfigRecord) -> ConfigRecord:
        """Replace an existing record with the given state.

        Raises:
            NotFound: no record with this (id, owner)
            Conflict: the new name collides within (owner, service_kind)
        """
        pass

    @abstractmethod
    def soft_delete_record(self, record_id: str, owner: str) -> bool:
        """Tombstone a record. Returns False if it was absent or already deleted."""
        pass

    # Deployment ledger
    @abstractmethod
    def get_deployment(self, entry_id: str, owner: str) -> Optional[DeploymentLedgerEntry]:
        pass

    @abstractmethod
    def find_deployments(
        self,
        owner: str,
        instance_id: Optional[str] = None,
        record_id: Optional[str] = None,
    ) -> list[DeploymentLedgerEntry]:
        pass

    @abstractmethod
    def upsert_deployment(
        self,
        owner: str,
        instance_id: str,
        record_id: str,
        remote_id: int,
        deployed_version: int,
        deployed_specs_snapshot: str,
    ) -> DeploymentLedgerEntry:
        """Create or fully overwrite the ledger row for (instance_id, record_id)."""
        pass

    @abstractmethod
    def delete_deployment(self, entry_id: str, owner: str) -> bool:
        pass
