"""MCP Server for custom format management on Radarr/Sonarr instances.

Keeps personal custom formats versioned locally and deploys them to arr
instances, tracking what was deployed where for drift detection.

Tools exposed:
- list_instances: List instances owned by the current user
- list_formats: List custom formats
- get_format: Get one custom format
- create_format: Create a custom format (version 1)
- update_format: Update name/rename flag/specifications
- delete_format: Soft delete a custom format
- deploy_formats: Deploy custom formats to an instance (create or update by name)
- list_deployments: List tracked deployments with drift status
- check_updates: List deployments behind their local version
- stop_tracking: Forget a deployment (instance is not touched)
- restore_deployed: Roll a format back to its last deployed specifications
- get_audit_log: Recent deployment attempts

The caller identity comes from the FORMATSMITH_USER environment variable.
"""
import asyncio
import json
import logging
from dataclasses import asdict
from typing import Any, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from .config.inventory import InstanceInventory
from .config.settings import get_current_user, get_instances_path
from .engine import FormatService
from .errors import FormatError, UpstreamError, ValidationError
from .schema import ConfigRecord
from .store import YamlRecordStore
from .utils.audit_log import get_recent_changes, setup_audit_logging
from .utils.logging_config import setup_logging, timed_section

logger = logging.getLogger(__name__)

# Global service (initialized on first use)
service: Optional[FormatService] = None


def get_service() -> FormatService:
    """Get or create the format service."""
    global service
    if service is None:
        service = FormatService(
            store=YamlRecordStore(),
            inventory=InstanceInventory(get_instances_path()),
        )
    return service


server = Server("formatsmith")


SPECIFICATIONS_SCHEMA = {
    "type": "array",
    "minItems": 1,
    "description": "Ordered matching rules",
    "items": {
        "type": "object",
        "properties": {
            "name": {"type": "string"},
            "implementation": {
                "type": "string",
                "description": "Rule type, e.g. 'ReleaseTitleSpecification'"
            },
            "negate": {"type": "boolean", "default": False},
            "required": {"type": "boolean", "default": False},
            "fields": {
                "type": "object",
                "description": "Field values keyed by field name, e.g. {\"value\": \"\\\\bDV\\\\b\"}"
            }
        },
        "required": ["name", "implementation", "fields"]
    }
}


# === TOOLS ===

@server.list_tools()
async def list_tools() -> list[Tool]:
    """List all available tools."""
    return [
        Tool(
            name="list_instances",
            description="List Radarr/Sonarr instances you can deploy to",
            inputSchema={"type": "object", "properties": {}, "required": []}
        ),
        Tool(
            name="list_formats",
            description="List your custom formats",
            inputSchema={
                "type": "object",
                "properties": {
                    "service_kind": {
                        "type": "string",
                        "enum": ["RADARR", "SONARR"],
                        "description": "Only formats for this application"
                    }
                },
                "required": []
            }
        ),
        Tool(
            name="get_format",
            description="Get a single custom format with its specifications",
            inputSchema={
                "type": "object",
                "properties": {
                    "record_id": {"type": "string", "description": "Custom format ID"}
                },
                "required": ["record_id"]
            }
        ),
        Tool(
            name="create_format",
            description="Create a custom format. Names are unique per application.",
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {"type": "string", "minLength": 1, "maxLength": 100},
                    "service_kind": {"type": "string", "enum": ["RADARR", "SONARR"]},
                    "include_when_renaming": {"type": "boolean", "default": False},
                    "specifications": SPECIFICATIONS_SCHEMA,
                },
                "required": ["name", "service_kind", "specifications"]
            }
        ),
        Tool(
            name="update_format",
            description=(
                "Update a custom format. Submitting specifications creates a new "
                "version; renaming does not."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "record_id": {"type": "string"},
                    "name": {"type": "string", "minLength": 1, "maxLength": 100},
                    "include_when_renaming": {"type": "boolean"},
                    "specifications": SPECIFICATIONS_SCHEMA,
                },
                "required": ["record_id"]
            }
        ),
        Tool(
            name="delete_format",
            description="Delete a custom format (deployed copies on instances are kept)",
            inputSchema={
                "type": "object",
                "properties": {"record_id": {"type": "string"}},
                "required": ["record_id"]
            }
        ),
        Tool(
            name="deploy_formats",
            description=(
                "Deploy custom formats to an instance. Formats are matched by name: "
                "existing ones are updated, missing ones created. Failures are "
                "reported per format."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "record_ids": {
                        "type": "array",
                        "items": {"type": "string"},
                        "minItems": 1
                    },
                    "instance_id": {"type": "string"}
                },
                "required": ["record_ids", "instance_id"]
            }
        ),
        Tool(
            name="list_deployments",
            description="List tracked deployments and whether each needs an update",
            inputSchema={
                "type": "object",
                "properties": {"instance_id": {"type": "string"}},
                "required": []
            }
        ),
        Tool(
            name="check_updates",
            description="List deployments whose custom format changed since it was deployed",
            inputSchema={
                "type": "object",
                "properties": {
                    "instance_id": {"type": "string"},
                    "service_kind": {"type": "string", "enum": ["RADARR", "SONARR"]}
                },
                "required": []
            }
        ),
        Tool(
            name="stop_tracking",
            description=(
                "Stop tracking a deployment. The custom format stays on the instance."
            ),
            inputSchema={
                "type": "object",
                "properties": {"deployment_id": {"type": "string"}},
                "required": ["deployment_id"]
            }
        ),
        Tool(
            name="restore_deployed",
            description=(
                "Reset a custom format's specifications to what was last deployed "
                "to an instance (creates a new version)"
            ),
            inputSchema={
                "type": "object",
                "properties": {"deployment_id": {"type": "string"}},
                "required": ["deployment_id"]
            }
        ),
        Tool(
            name="get_audit_log",
            description="Recent deployment attempts, most recent first",
            inputSchema={
                "type": "object",
                "properties": {
                    "instance_id": {"type": "string"},
                    "operation": {
                        "type": "string",
                        "enum": ["create_custom_format", "update_custom_format"]
                    },
                    "limit": {"type": "integer", "default": 20}
                },
                "required": []
            }
        ),
    ]


def _json(data: Any) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(data, indent=2))]


def _record(record: ConfigRecord) -> dict:
    data = record.to_dict()
    data.pop("owner", None)
    return data


def _pick(arguments: dict, *keys: str) -> dict:
    return {k: arguments[k] for k in keys if k in arguments}


def _require(arguments: dict, key: str) -> Any:
    if arguments.get(key) is None:
        raise ValidationError(f"Missing argument: {key}")
    return arguments[key]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Handle tool calls."""
    instance_id = arguments.get("instance_id")

    async with timed_section(f"tool:{name}", instance_id=instance_id):
        try:
            svc = get_service()
            owner = get_current_user()
            return await dispatch(svc, owner, name, arguments)

        except FormatError as e:
            logger.info(f"Tool {name} rejected: {e.kind}: {e.message}")
            return _json(e.to_dict())

        except Exception:
            logger.exception(f"Tool {name} failed (arguments={arguments})")
            return _json(UpstreamError("Internal error while handling the request").to_dict())


async def dispatch(
    svc: FormatService,
    owner: Optional[str],
    name: str,
    arguments: dict,
) -> list[TextContent]:
    """Route a tool call to the service. FormatErrors propagate to the caller."""
    if name == "list_instances":
        owner = svc.guard.require_identity(owner)
        return _json({
            "instances": [
                {
                    "id": i.id,
                    "label": i.label,
                    "service_kind": i.service_kind.value,
                    "base_url": i.base_url,
                }
                for i in svc.inventory.get_instances(owner)
            ]
        })

    elif name == "list_formats":
        records = svc.list_records(owner, arguments.get("service_kind"))
        return _json({"custom_formats": [_record(r) for r in records]})

    elif name == "get_format":
        record = svc.get_record(owner, _require(arguments, "record_id"))
        return _json({"custom_format": _record(record)})

    elif name == "create_format":
        record = svc.create_record(
            owner,
            _pick(arguments, "name", "service_kind", "include_when_renaming", "specifications"),
        )
        return _json({"success": True, "custom_format": _record(record)})

    elif name == "update_format":
        record = svc.update_record(
            owner,
            _require(arguments, "record_id"),
            _pick(arguments, "name", "include_when_renaming", "specifications"),
        )
        return _json({"success": True, "custom_format": _record(record)})

    elif name == "delete_format":
        deleted = svc.delete_record(owner, _require(arguments, "record_id"))
        return _json({"success": True, "message": f'Deleted custom format "{deleted}"'})

    elif name == "deploy_formats":
        result = await svc.deploy(owner, _pick(arguments, "record_ids", "instance_id"))
        return _json(result.to_dict())

    elif name == "list_deployments":
        views = svc.list_deployments(owner, arguments.get("instance_id"))
        return _json({"deployments": [v.to_dict() for v in views]})

    elif name == "check_updates":
        report = svc.list_updates(
            owner,
            arguments.get("instance_id"),
            arguments.get("service_kind"),
        )
        return _json(report.to_dict())

    elif name == "stop_tracking":
        tracked = svc.stop_tracking(owner, _require(arguments, "deployment_id"))
        return _json({
            "success": True,
            "message": f'Stopped tracking deployment of "{tracked}"',
        })

    elif name == "restore_deployed":
        record = svc.restore_deployed(owner, _require(arguments, "deployment_id"))
        return _json({"success": True, "custom_format": _record(record)})

    elif name == "get_audit_log":
        owner = svc.guard.require_identity(owner)
        records = get_recent_changes(
            instance_id=arguments.get("instance_id"),
            user=owner,
            operation=arguments.get("operation"),
            limit=arguments.get("limit", 20),
        )
        return _json({"changes": [asdict(r) for r in records]})

    return _json({"error": "ValidationError", "message": f"Unknown tool: {name}"})


def main():
    """Run the MCP server."""
    setup_audit_logging()
    setup_logging()

    async def run():
        try:
            async with stdio_server() as (read_stream, write_stream):
                await server.run(
                    read_stream,
                    write_stream,
                    server.create_initialization_options()
                )
        finally:
            if service is not None:
                await service.close()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
