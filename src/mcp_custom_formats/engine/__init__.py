"""Deployment engine - versioned custom formats pushed to arr instances.

- Records are versioned; any submitted specifications bump the version
- Batches are reconciled by name against one listing of the instance
- Every successful item is ledgered with its version and a spec snapshot
- Drift is derived on read: live version > deployed version

Usage:
    from mcp_custom_formats.engine import FormatService

    service = FormatService(store, inventory)
    result = await service.deploy("alice", {
        "record_ids": ["9b1f..."],
        "instance_id": "radarr-main",
    })
"""

from .service import FormatService
from .reconciler import ReconciliationEngine, NameMatcher, ItemOutcome
from .ledger import DeploymentLedger
from .guard import OwnershipGuard
from .versioning import apply_update
from .transformer import fields_to_array, to_remote_specification, build_payload
from .parser import parse_create, parse_patch, parse_deploy, parse_service_kind

__all__ = [
    # Main entry point
    "FormatService",
    # Components (for advanced use)
    "ReconciliationEngine",
    "NameMatcher",
    "ItemOutcome",
    "DeploymentLedger",
    "OwnershipGuard",
    "apply_update",
    "fields_to_array",
    "to_remote_specification",
    "build_payload",
    # Parser
    "parse_create",
    "parse_patch",
    "parse_deploy",
    "parse_service_kind",
]
