"""Kind-specific payloads carried by pending operations.

Each OperationKind has exactly one payload model. Payloads are validated
when an operation is proposed and again when it is read back for execution,
so the executor never interprets an unchecked blob. The stored JSON uses the
camelCase field names of the document API.
"""

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from sopgate.core.errors import InvalidArgumentError
from .states import OperationKind


# camelCase payload field -> Document attribute
MODIFIABLE_FIELDS: Dict[str, str] = {
    "fileName": "file_name",
    "filePath": "file_path",
    "fileSize": "file_size",
    "category": "category",
    "brand": "brand",
    "uploadedBy": "uploaded_by",
    "version": "version",
}

# Fields that may not be cleared by a change
REQUIRED_FIELDS = {"fileName", "filePath", "fileSize", "version"}


class _PayloadModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class CreatePayload(_PayloadModel):
    """Fields of the document a CREATE will construct."""

    file_name: str = Field(alias="fileName", min_length=1, max_length=255)
    file_path: str = Field(alias="filePath", min_length=1, max_length=1024)
    file_size: int = Field(0, alias="fileSize", ge=0)
    category: Optional[str] = Field(None, max_length=100)
    brand: Optional[str] = Field(None, max_length=100)
    uploaded_by: Optional[str] = Field(None, alias="uploadedBy", max_length=100)
    version: str = Field("v1.0", min_length=1, max_length=50)

    def document_fields(self) -> Dict[str, Any]:
        """Keyword arguments for the Document constructor."""
        return self.model_dump(by_alias=False)


class FieldChange(_PayloadModel):
    old: Any = None
    new: Any = None


class ModifyPayload(_PayloadModel):
    """Field-level change set: ``{"changes": {"brand": {"old": .., "new": ..}}}``."""

    changes: Dict[str, FieldChange]

    @field_validator("changes")
    @classmethod
    def _known_fields(cls, changes: Dict[str, FieldChange]) -> Dict[str, FieldChange]:
        if not changes:
            raise ValueError("at least one field change is required")
        for name, change in changes.items():
            if name not in MODIFIABLE_FIELDS:
                raise ValueError(f"field '{name}' cannot be modified")
            _check_new_value(name, change.new)
        return changes

    def attribute_changes(self) -> Dict[str, Any]:
        """New values keyed by Document attribute name."""
        return {MODIFIABLE_FIELDS[name]: change.new for name, change in self.changes.items()}


class DocumentSnapshot(_PayloadModel):
    """State of a document captured when its deletion was proposed."""

    id: str
    file_name: str = Field(alias="fileName")
    file_path: str = Field(alias="filePath")
    file_size: int = Field(0, alias="fileSize")
    category: Optional[str] = None
    brand: Optional[str] = None
    uploaded_by: Optional[str] = Field(None, alias="uploadedBy")
    version: Optional[str] = None


class DeletePayload(_PayloadModel):
    snapshot: DocumentSnapshot
    reason: Optional[str] = None


OperationPayload = Union[CreatePayload, ModifyPayload, DeletePayload]

PAYLOAD_MODELS: Dict[OperationKind, type] = {
    OperationKind.CREATE: CreatePayload,
    OperationKind.MODIFY: ModifyPayload,
    OperationKind.DELETE: DeletePayload,
}


def _check_new_value(name: str, value: Any) -> None:
    if value is None:
        if name in REQUIRED_FIELDS:
            raise ValueError(f"field '{name}' cannot be cleared")
        return
    if name == "fileSize":
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError("fileSize must be a non-negative integer")
    elif not isinstance(value, str):
        raise ValueError(f"field '{name}' must be a string")
    elif name in REQUIRED_FIELDS and not value.strip():
        raise ValueError(f"field '{name}' cannot be blank")


def _format_errors(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else error.get("msg", ""))
    return "; ".join(parts)


def parse_payload(kind: OperationKind, raw: Union[str, bytes, Dict[str, Any], BaseModel]) -> OperationPayload:
    """
    Validate a payload against the model for its operation kind.

    Args:
        kind: Operation kind selecting the payload model
        raw: JSON text, a mapping or an already-built payload model

    Returns:
        The typed payload

    Raises:
        InvalidArgumentError: If the payload does not match the kind's shape
    """
    try:
        model = PAYLOAD_MODELS[OperationKind(kind)]
    except (KeyError, ValueError):
        raise InvalidArgumentError(f"Unknown operation kind: {kind}")

    if isinstance(raw, model):
        return raw
    if isinstance(raw, BaseModel):
        raise InvalidArgumentError(
            f"{type(raw).__name__} is not a valid payload for {OperationKind(kind).value}"
        )

    try:
        if isinstance(raw, (str, bytes)):
            return model.model_validate_json(raw)
        return model.model_validate(raw)
    except ValidationError as exc:
        raise InvalidArgumentError(
            f"Invalid {OperationKind(kind).value} payload: {_format_errors(exc)}"
        ) from exc


def serialize_payload(payload: OperationPayload) -> str:
    """JSON text stored in ``pending_operations.proposed_payload``."""
    return payload.model_dump_json(by_alias=True)


def payload_as_dict(payload: OperationPayload) -> Dict[str, Any]:
    return payload.model_dump(mode="json", by_alias=True)
