"""In-memory record store.

Also the base for the YAML store: all mutations go through one lock and
finish with ``_persist()``; a failed persist rolls the change back.
"""
import logging
import threading
import uuid
from dataclasses import replace
from typing import Any, Optional

from ..errors import Conflict, NotFound
from ..schema import ConfigRecord, DeploymentLedgerEntry, ServiceKind, utcnow
from .base import RecordStore

logger = logging.getLogger(__name__)

_MISSING = object()


def new_id() -> str:
    return uuid.uuid4().hex


class MemoryRecordStore(RecordStore):
    """Dict-backed store. Returns detached copies so callers cannot mutate state."""

    def __init__(self):
        self._records: dict[str, ConfigRecord] = {}
        self._deployments: dict[str, DeploymentLedgerEntry] = {}
        self._lock = threading.Lock()

    def _persist(self) -> None:
        """Hook called after every mutation, with the lock held."""
        pass

    def _commit(self, table: dict, key: str, value: Optional[Any]) -> None:
        """Set (or, for None, remove) ``table[key]`` and persist.

        A failing ``_persist()`` puts the previous entry back before the
        error propagates, so memory never holds what was not stored.
        Caller holds the lock.
        """
        previous = table.get(key, _MISSING)
        if value is None:
            table.pop(key, None)
        else:
            table[key] = value
        try:
            self._persist()
        except Exception:
            if previous is _MISSING:
                table.pop(key, None)
            else:
                table[key] = previous
            raise

    # === Records ===

    def get_record(
        self,
        record_id: str,
        owner: str,
        include_deleted: bool = False,
    ) -> Optional[ConfigRecord]:
        with self._lock:
            record = self._records.get(record_id)
            if record is None or record.owner != owner:
                return None
            if record.is_deleted and not include_deleted:
                return None
            return record.copy()

    def find_records(
        self,
        owner: str,
        ids: Optional[list[str]] = None,
        service_kind: Optional[ServiceKind] = None,
        name: Optional[str] = None,
        include_deleted: bool = False,
    ) -> list[ConfigRecord]:
        wanted = set(ids) if ids is not None else None
        with self._lock:
            return [
                r.copy() for r in self._records.values()
                if r.owner == owner
                and (include_deleted or not r.is_deleted)
                and (wanted is None or r.id in wanted)
                and (service_kind is None or r.service_kind == service_kind)
                and (name is None or r.name == name)
            ]

    def _check_unique(self, record: ConfigRecord) -> None:
        for other in self._records.values():
            if (
                other.id != record.id
                and not other.is_deleted
                and other.owner == record.owner
                and other.name == record.name
                and other.service_kind == record.service_kind
            ):
                raise Conflict(
                    f'A custom format named "{record.name}" already exists '
                    f"for {record.service_kind.value}"
                )

    def create_record(self, record: ConfigRecord) -> ConfigRecord:
        with self._lock:
            if record.id in self._records:
                raise Conflict(f"Record id {record.id} already exists")
            self._check_unique(record)
            self._commit(self._records, record.id, record.copy())
        logger.debug(f"Created record {record.id} ({record.name}) for {record.owner}")
        return record.copy()

    def save_record(self, record: ConfigRecord) -> ConfigRecord:
        with self._lock:
            current = self._records.get(record.id)
            if current is None or current.owner != record.owner:
                raise NotFound("Custom format not found")
            if not record.is_deleted:
                self._check_unique(record)
            self._commit(self._records, record.id, record.copy())
        return record.copy()

    def soft_delete_record(self, record_id: str, owner: str) -> bool:
        with self._lock:
            record = self._records.get(record_id)
            if record is None or record.owner != owner or record.is_deleted:
                return False
            self._commit(self._records, record_id, record.copy(deleted_at=utcnow()))
        logger.debug(f"Soft-deleted record {record_id}")
        return True

    # === Deployment ledger ===

    def get_deployment(self, entry_id: str, owner: str) -> Optional[DeploymentLedgerEntry]:
        with self._lock:
            entry = self._deployments.get(entry_id)
            if entry is None or entry.owner != owner:
                return None
            return replace(entry)

    def find_deployments(
        self,
        owner: str,
        instance_id: Optional[str] = None,
        record_id: Optional[str] = None,
    ) -> list[DeploymentLedgerEntry]:
        with self._lock:
            return [
                replace(e) for e in self._deployments.values()
                if e.owner == owner
                and (instance_id is None or e.instance_id == instance_id)
                and (record_id is None or e.record_id == record_id)
            ]

    def upsert_deployment(
        self,
        owner: str,
        instance_id: str,
        record_id: str,
        remote_id: int,
        deployed_version: int,
        deployed_specs_snapshot: str,
    ) -> DeploymentLedgerEntry:
        with self._lock:
            existing = next(
                (
                    e for e in self._deployments.values()
                    if e.instance_id == instance_id and e.record_id == record_id
                ),
                None,
            )
            # Whole-row overwrite: version, snapshot, timestamp and remote id
            # always change together.
            entry = DeploymentLedgerEntry(
                id=existing.id if existing else new_id(),
                owner=existing.owner if existing else owner,
                record_id=record_id,
                instance_id=instance_id,
                remote_id=remote_id,
                deployed_version=deployed_version,
                deployed_specs_snapshot=deployed_specs_snapshot,
                deployed_at=utcnow(),
            )
            self._commit(self._deployments, entry.id, entry)
        return replace(entry)

    def delete_deployment(self, entry_id: str, owner: str) -> bool:
        with self._lock:
            entry = self._deployments.get(entry_id)
            if entry is None or entry.owner != owner:
                return False
            self._commit(self._deployments, entry_id, None)
        return True
