"""Parser for tool/API input.

Converts loosely-typed dict input into strongly-typed records, patches and
deployment requests. Any malformed input becomes a ValidationError.
"""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError
from ..schema import RecordPatch, ServiceKind, Specification


class SpecificationModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    implementation: str = Field(min_length=1)
    negate: bool = False
    required: bool = False
    fields: dict[str, Any] = Field(default_factory=dict)

    def to_specification(self) -> Specification:
        return Specification(
            name=self.name,
            implementation=self.implementation,
            negate=self.negate,
            required=self.required,
            fields=dict(self.fields),
        )


class CreateFormatModel(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    service_kind: ServiceKind
    include_when_renaming: bool = False
    specifications: list[SpecificationModel] = Field(min_length=1)


class UpdateFormatModel(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    include_when_renaming: Optional[bool] = None
    specifications: Optional[list[SpecificationModel]] = Field(default=None, min_length=1)


class DeployModel(BaseModel):
    record_ids: list[str] = Field(min_length=1)
    instance_id: str = Field(min_length=1)


# Wire names used by the arr ecosystem
_ALIASES = {
    "serviceType": "service_kind",
    "service": "service_kind",
    "includeCustomFormatWhenRenaming": "include_when_renaming",
    "personalCFIds": "record_ids",
    "instanceId": "instance_id",
}


def _normalize(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValidationError("Invalid request body: expected an object")
    normalized = {}
    for key, value in data.items():
        normalized[_ALIASES.get(key, key)] = value
    if isinstance(normalized.get("service_kind"), str):
        normalized["service_kind"] = normalized["service_kind"].upper()
    return normalized


def _validate(model: type[BaseModel], data: Any) -> BaseModel:
    try:
        return model.model_validate(_normalize(data))
    except PydanticValidationError as e:
        details = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        raise ValidationError("Invalid request body", details=details) from e


def parse_create(data: Any) -> CreateFormatModel:
    return _validate(CreateFormatModel, data)  # type: ignore[return-value]


def parse_patch(data: Any) -> RecordPatch:
    """Parse an update body. Omitted keys stay None and are not applied."""
    model = _validate(UpdateFormatModel, data)
    return RecordPatch(
        name=model.name,
        include_when_renaming=model.include_when_renaming,
        specifications=(
            [s.to_specification() for s in model.specifications]
            if model.specifications is not None
            else None
        ),
    )


def parse_deploy(data: Any) -> DeployModel:
    return _validate(DeployModel, data)  # type: ignore[return-value]


def parse_service_kind(value: Optional[str]) -> Optional[ServiceKind]:
    if value is None or value == "":
        return None
    try:
        return ServiceKind(str(value).upper())
    except ValueError:
        raise ValidationError(
            f"Invalid service kind: {value}. Must be one of "
            f"{', '.join(k.value for k in ServiceKind)}"
        )
