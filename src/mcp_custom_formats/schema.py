"""Schema definitions shared by the store, the engine and the remote clients.

Defines local custom formats, deployment ledger rows, instances and the
result types returned to callers.
"""
import json
import os
from dataclasses import dataclass, field, asdict, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class ServiceKind(str, Enum):
    """Kind of arr application a format or instance belongs to."""
    RADARR = "RADARR"
    SONARR = "SONARR"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_dt(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Specification:
    """A single matching rule inside a custom format."""
    name: str
    implementation: str
    negate: bool = False
    required: bool = False
    fields: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Specification":
        return cls(
            name=data["name"],
            implementation=data["implementation"],
            negate=bool(data.get("negate", False)),
            required=bool(data.get("required", False)),
            fields=dict(data.get("fields") or {}),
        )


def specs_to_json(specifications: list[Specification]) -> str:
    """Serialize specifications the way they are kept in ledger snapshots."""
    return json.dumps([s.to_dict() for s in specifications])


def specs_from_json(raw: str) -> list[Specification]:
    return [Specification.from_dict(s) for s in json.loads(raw)]


@dataclass
class ConfigRecord:
    """A locally authored, versioned custom format."""
    id: str
    owner: str
    name: str
    service_kind: ServiceKind
    specifications: list[Specification]
    include_when_renaming: bool = False
    version: int = 1
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def copy(self, **changes) -> "ConfigRecord":
        """Return a detached copy; specifications are copied too."""
        changes.setdefault(
            "specifications",
            [Specification.from_dict(s.to_dict()) for s in self.specifications],
        )
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner": self.owner,
            "name": self.name,
            "service_kind": self.service_kind.value,
            "include_when_renaming": self.include_when_renaming,
            "specifications": [s.to_dict() for s in self.specifications],
            "version": self.version,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "deleted_at": _iso(self.deleted_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ConfigRecord":
        return cls(
            id=data["id"],
            owner=data["owner"],
            name=data["name"],
            service_kind=ServiceKind(data["service_kind"]),
            include_when_renaming=bool(data.get("include_when_renaming", False)),
            specifications=[Specification.from_dict(s) for s in data["specifications"]],
            version=int(data.get("version", 1)),
            created_at=_parse_dt(data.get("created_at")) or utcnow(),
            updated_at=_parse_dt(data.get("updated_at")) or utcnow(),
            deleted_at=_parse_dt(data.get("deleted_at")),
        )


@dataclass
class RecordPatch:
    """Partial update of a ConfigRecord. None means "not submitted"."""
    name: Optional[str] = None
    include_when_renaming: Optional[bool] = None
    specifications: Optional[list[Specification]] = None


@dataclass
class DeploymentLedgerEntry:
    """What version of which format is believed deployed to which instance."""
    id: str
    owner: str
    record_id: str
    instance_id: str
    remote_id: int
    deployed_version: int
    deployed_specs_snapshot: str
    deployed_at: datetime = field(default_factory=utcnow)

    def snapshot_specs(self) -> list[Specification]:
        return specs_from_json(self.deployed_specs_snapshot)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["deployed_at"] = _iso(self.deployed_at)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "DeploymentLedgerEntry":
        data = dict(data)
        data["deployed_at"] = _parse_dt(data.get("deployed_at")) or utcnow()
        return cls(**data)


@dataclass
class Instance:
    """A remote arr instance owned by one user."""
    id: str
    owner: str
    service_kind: ServiceKind
    base_url: str
    label: str = ""
    api_key: Optional[str] = None
    api_key_env: str = "ARR_API_KEY"
    timeout: float = 30
    retries: int = 3

    def get_api_key(self) -> str:
        """Get API key from config or environment variable."""
        if self.api_key:
            return self.api_key
        return os.environ.get(self.api_key_env, "")


# --- Results ---

@dataclass
class FailedItem:
    name: str
    error: str


@dataclass
class BatchResult:
    """Three-bucket outcome of deploying a batch to one instance."""
    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    failed: list[FailedItem] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.failed) == 0

    def to_dict(self) -> dict:
        data = {
            "success": self.success,
            "created": list(self.created),
            "updated": list(self.updated),
            "failed": [asdict(f) for f in self.failed],
        }
        if not self.success:
            data["error"] = "PartialDeploymentFailure"
        return data


@dataclass
class DeploymentView:
    """A ledger row joined with the live record, drift computed on read."""
    id: str
    record_id: str
    record_name: str
    instance_id: str
    instance_label: str
    remote_id: int
    deployed_version: int
    current_version: int
    needs_update: bool
    deployable: bool
    service_kind: ServiceKind
    deployed_at: datetime

    def to_dict(self) -> dict:
        data = asdict(self)
        data["service_kind"] = self.service_kind.value
        data["deployed_at"] = _iso(self.deployed_at)
        return data


@dataclass
class UpdatesReport:
    """Deployments whose record has moved past the deployed version."""
    updates: list[DeploymentView] = field(default_factory=list)
    total_deployed: int = 0

    @property
    def has_updates(self) -> bool:
        return len(self.updates) > 0

    @property
    def outdated_count(self) -> int:
        return len(self.updates)

    def to_dict(self) -> dict:
        return {
            "has_updates": self.has_updates,
            "updates": [u.to_dict() for u in self.updates],
            "total_deployed": self.total_deployed,
            "outdated_count": self.outdated_count,
        }
