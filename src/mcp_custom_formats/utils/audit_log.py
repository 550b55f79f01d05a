"""Audit trail of custom format pushes.

Every create/update sent to a remote instance becomes one JSON line in
``<FORMATSMITH_HOME>/audit.log``, successful or not. The line carries the
owner, the remote id and the deployed version, which is what is needed to
repair a ledger row by hand.
"""
import json
import logging
from collections import deque
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from ..config.settings import get_home_dir

audit_logger = logging.getLogger("formatsmith.audit")

AUDIT_FILE_NAME = "audit.log"


def default_audit_file() -> Path:
    return get_home_dir() / AUDIT_FILE_NAME


def setup_audit_logging(log_dir: Optional[str] = None) -> Path:
    """Send audit lines to a rotating file, and nowhere else.

    Args:
        log_dir: Directory for the audit log. Defaults to FORMATSMITH_HOME.

    Returns:
        Path of the audit file
    """
    directory = Path(log_dir) if log_dir else get_home_dir()
    directory.mkdir(parents=True, exist_ok=True)
    audit_file = directory / AUDIT_FILE_NAME

    for old in list(audit_logger.handlers):
        old.close()
        audit_logger.removeHandler(old)

    handler = RotatingFileHandler(audit_file, maxBytes=10 * 1024 * 1024, backupCount=10)
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)
    audit_logger.setLevel(logging.INFO)
    audit_logger.propagate = False
    return audit_file


@dataclass
class ChangeRecord:
    """One push attempt against a remote instance."""
    timestamp: str
    instance_id: str
    operation: str  # create_custom_format / update_custom_format
    user: str
    success: bool
    parameters: dict
    error: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, line: str) -> "ChangeRecord":
        return cls(**json.loads(line))

    def matches(
        self,
        instance_id: Optional[str] = None,
        user: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> bool:
        return (
            (instance_id is None or self.instance_id == instance_id)
            and (user is None or self.user == user)
            and (operation is None or self.operation == operation)
        )


def log_change(
    instance_id: str,
    operation: str,
    user: str,
    success: bool,
    parameters: dict,
    error: Optional[str] = None,
) -> ChangeRecord:
    record = ChangeRecord(
        timestamp=datetime.now(timezone.utc).isoformat(),
        instance_id=instance_id,
        operation=operation,
        user=user,
        success=success,
        parameters=parameters,
        error=error,
    )
    audit_logger.info(record.to_json())
    return record


def get_recent_changes(
    log_file: Optional[str] = None,
    instance_id: Optional[str] = None,
    user: Optional[str] = None,
    operation: Optional[str] = None,
    limit: int = 100,
) -> list[ChangeRecord]:
    """Newest-first audit entries matching every given filter.

    Lines that do not parse are ignored. Rotated backups are not read.
    """
    path = Path(log_file) if log_file else default_audit_file()
    if not path.exists():
        return []

    recent: deque[ChangeRecord] = deque(maxlen=max(0, limit))
    with path.open() as f:
        for line in f:
            if not line.strip():
                continue
            try:
                record = ChangeRecord.from_json(line)
            except (json.JSONDecodeError, TypeError):
                continue
            if record.matches(instance_id, user, operation):
                recent.append(record)

    return list(reversed(recent))
