"""Tests for the local-to-arr shape adapter."""
from mcp_custom_formats.engine.transformer import (
    build_payload,
    fields_to_array,
    to_remote_specification,
)
from mcp_custom_formats.schema import ConfigRecord, ServiceKind, Specification


class TestFieldsToArray:

    def test_mapping_becomes_name_value_pairs(self):
        """Each key becomes one {name, value} pair, in key order."""
        result = fields_to_array({"value": r"\bDV\b", "exceptLanguage": False})
        assert result == [
            {"name": "value", "value": r"\bDV\b"},
            {"name": "exceptLanguage", "value": False},
        ]

    def test_empty_and_none(self):
        assert fields_to_array({}) == []
        assert fields_to_array(None) == []

    def test_array_passes_through(self):
        """Already-array input is returned as an equal copy."""
        already = [{"name": "min", "value": 1}]
        result = fields_to_array(already)
        assert result == already
        assert result is not already

    def test_input_not_mutated(self):
        fields = {"value": ["a", "b"]}
        result = fields_to_array(fields)
        result[0]["value"].append("c")
        assert fields == {"value": ["a", "b"]}


class TestPayload:

    def test_specification_shape(self):
        spec = Specification(
            name="x265",
            implementation="ReleaseTitleSpecification",
            negate=True,
            fields={"value": "x265"},
        )
        assert to_remote_specification(spec) == {
            "name": "x265",
            "implementation": "ReleaseTitleSpecification",
            "negate": True,
            "required": False,
            "fields": [{"name": "value", "value": "x265"}],
        }

    def test_build_payload(self):
        record = ConfigRecord(
            id="r1",
            owner="alice",
            name="HDR",
            service_kind=ServiceKind.RADARR,
            include_when_renaming=True,
            specifications=[
                Specification(name="a", implementation="SourceSpecification", fields={"value": 7}),
                Specification(name="b", implementation="ResolutionSpecification", fields={"value": 2160}),
            ],
        )
        payload = build_payload(record)

        assert payload["name"] == "HDR"
        assert payload["includeCustomFormatWhenRenaming"] is True
        assert [s["name"] for s in payload["specifications"]] == ["a", "b"]
        assert "id" not in payload
        # Local record keeps the mapping form
        assert record.specifications[0].fields == {"value": 7}
