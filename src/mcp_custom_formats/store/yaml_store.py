"""YAML-file backed record store.

Directory structure:
    ~/.formatsmith/
    └── state/
        ├── records.yaml       # Custom formats, including tombstones
        └── deployments.yaml   # Deployment ledger
"""
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

import yaml

from ..config.settings import get_home_dir
from ..schema import ConfigRecord, DeploymentLedgerEntry
from .memory import MemoryRecordStore

logger = logging.getLogger(__name__)

STATE_FORMAT = 1


class YamlRecordStore(MemoryRecordStore):
    """Keeps the whole state in memory and rewrites the YAML files on every mutation."""

    def __init__(self, base_dir: Optional[Path] = None):
        super().__init__()
        self.base_dir = Path(base_dir) if base_dir else get_home_dir()
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self._load()
        logger.debug(f"Record store initialized at {self.state_dir}")

    @property
    def state_dir(self) -> Path:
        return self.base_dir / "state"

    @property
    def records_path(self) -> Path:
        return self.state_dir / "records.yaml"

    @property
    def deployments_path(self) -> Path:
        return self.state_dir / "deployments.yaml"

    def _read(self, path: Path, key: str) -> list[dict]:
        if not path.exists():
            return []
        data = yaml.safe_load(path.read_text()) or {}
        fmt = data.get("format", STATE_FORMAT)
        if fmt != STATE_FORMAT:
            raise ValueError(f"Unsupported state format {fmt} in {path}")
        return data.get(key) or []

    def _load(self) -> None:
        for raw in self._read(self.records_path, "records"):
            record = ConfigRecord.from_dict(raw)
            self._records[record.id] = record
        for raw in self._read(self.deployments_path, "deployments"):
            entry = DeploymentLedgerEntry.from_dict(raw)
            self._deployments[entry.id] = entry

        logger.info(
            f"Loaded {len(self._records)} records and "
            f"{len(self._deployments)} deployments from {self.state_dir}"
        )

    def _write(self, path: Path, key: str, items: list[dict]) -> None:
        content = yaml.safe_dump(
            {"format": STATE_FORMAT, key: items},
            default_flow_style=False,
            sort_keys=False,
        )
        # Write-then-rename so a crash never leaves a truncated file
        fd, tmp = tempfile.mkstemp(dir=self.state_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(content)
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def _persist(self) -> None:
        self._write(
            self.records_path,
            "records",
            [r.to_dict() for r in self._records.values()],
        )
        self._write(
            self.deployments_path,
            "deployments",
            [e.to_dict() for e in self._deployments.values()],
        )
