"""Environment-driven settings.

Environment Variables:
    FORMATSMITH_HOME: Base directory for state (default: ~/.formatsmith)
    FORMATSMITH_INSTANCES: Path to instances.yaml (default: searched)
    FORMATSMITH_USER: Identity of the caller for the MCP server
    FORMATSMITH_MAX_PARALLEL: Concurrent remote calls per batch (default: 4)
"""
import os
from pathlib import Path
from typing import Optional

DEFAULT_HOME = Path.home() / ".formatsmith"
DEFAULT_MAX_PARALLEL = 4


def get_home_dir() -> Path:
    """Base directory for the record store, logs and audit log."""
    return Path(os.environ.get("FORMATSMITH_HOME", str(DEFAULT_HOME)))


def get_instances_path() -> Optional[str]:
    return os.environ.get("FORMATSMITH_INSTANCES")


def get_current_user() -> Optional[str]:
    """Caller identity supplied by the host process, if any."""
    user = os.environ.get("FORMATSMITH_USER", "").strip()
    return user or None


def get_max_parallel() -> int:
    try:
        value = int(os.environ.get("FORMATSMITH_MAX_PARALLEL", DEFAULT_MAX_PARALLEL))
    except ValueError:
        return DEFAULT_MAX_PARALLEL
    return max(1, value)
