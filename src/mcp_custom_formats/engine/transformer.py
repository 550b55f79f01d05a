"""Shape adapter between local specifications and the arr API.

Locally a specification's fields are a mapping::

    {"value": "\\bDV\\b", "exceptLanguage": False}

The arr API wants an ordered list of name/value pairs::

    [{"name": "value", "value": "\\bDV\\b"}, {"name": "exceptLanguage", "value": False}]
"""
import copy
from typing import Any

from ..schema import ConfigRecord, Specification


def fields_to_array(fields: Any) -> list[dict[str, Any]]:
    """Convert a field mapping to the arr array form, keeping key order.

    Already-array input is passed through as a copy. The input is never
    mutated; values are deep-copied so the payload cannot alias local state.
    """
    if isinstance(fields, list):
        return copy.deepcopy(fields)
    if not fields:
        return []
    return [
        {"name": key, "value": copy.deepcopy(value)}
        for key, value in fields.items()
    ]


def to_remote_specification(spec: Specification) -> dict[str, Any]:
    return {
        "name": spec.name,
        "implementation": spec.implementation,
        "negate": spec.negate,
        "required": spec.required,
        "fields": fields_to_array(spec.fields),
    }


def build_payload(record: ConfigRecord) -> dict[str, Any]:
    """Remote create payload for a record."""
    return {
        "name": record.name,
        "includeCustomFormatWhenRenaming": record.include_when_renaming,
        "specifications": [to_remote_specification(s) for s in record.specifications],
    }
