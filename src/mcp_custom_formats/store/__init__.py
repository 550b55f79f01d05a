"""Record store package for custom formats and the deployment ledger.

This package provides:
- RecordStore: Owner-scoped storage interface
- MemoryRecordStore: In-process store (tests, embedding)
- YamlRecordStore: File-backed store used by the MCP server
"""

from .base import RecordStore
from .memory import MemoryRecordStore, new_id
from .yaml_store import YamlRecordStore

__all__ = [
    "RecordStore",
    "MemoryRecordStore",
    "YamlRecordStore",
    "new_id",
]
