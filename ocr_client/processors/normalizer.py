"""Response normalization boundary.

The backend may spell every logical field either in snake_case or in
camelCase. Each field is resolved here, once, at the transport edge:
the snake_case spelling is tried first, then the camelCase one, and a field
missing under both spellings stays unset. Nothing past this module looks at
raw payload keys.

The open ``extracted`` payload is never rewritten; it is wrapped as-is.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ocr_client.core.exceptions import InvalidResponseError
from ocr_client.models.dto import (
    BatchHandle,
    BatchResult,
    BatchStatistics,
    DocumentResult,
    ExtractedPayload,
    ProcessingTrigger,
    UploadTarget,
)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Logical fields with spellings beyond the snake/camel pair.
EXTRA_SPELLINGS: dict[str, tuple[str, ...]] = {
    "source_key": ("source_s3_key", "sourceS3Key"),
    "upload_url": ("url",),
}
_STATUS_FIELDS = {"status"}


def to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def spellings(name: str) -> tuple[str, ...]:
    """All accepted keys for a logical field, in lookup order."""
    return (name, to_camel(name)) + EXTRA_SPELLINGS.get(name, ())


def resolve_field(raw: Mapping[str, Any], name: str) -> Optional[Any]:
    """Value of a logical field under its first present spelling, else None."""
    for key in spellings(name):
        value = raw.get(key)
        if value is not None:
            return value
    return None


def normalize(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Resolve every known logical field of a backend payload.

    Returns a dict keyed by canonical (snake_case) names containing only the
    fields that were present under one of their spellings. Nested batch
    payloads are resolved recursively; ``extracted`` is wrapped untouched.
    """
    canonical: dict[str, Any] = {}
    for name in _KNOWN_FIELDS:
        value = resolve_field(raw, name)
        if value is None:
            continue
        if name in _STATUS_FIELDS and isinstance(value, str):
            value = value.strip().upper()
        elif name == "extracted":
            value = ExtractedPayload.from_raw(value) if isinstance(value, Mapping) else None
        elif name == "statistics" and isinstance(value, Mapping):
            value = normalize(value)
        elif name == "documents" and isinstance(value, list):
            value = [normalize(doc) for doc in value if isinstance(doc, Mapping)]
        if value is not None:
            canonical[name] = value
    return canonical


def _collect_field_names(*models: type[BaseModel]) -> tuple[str, ...]:
    names: list[str] = []
    for model in models:
        for name in model.model_fields:
            if name not in names:
                names.append(name)
    return tuple(names)


_KNOWN_FIELDS = _collect_field_names(
    UploadTarget,
    ProcessingTrigger,
    DocumentResult,
    BatchHandle,
    BatchStatistics,
    BatchResult,
)


def normalize_as(model: type[ModelT], raw: Any, *, operation: str) -> ModelT:
    """Normalize a raw payload and validate it into a canonical model.

    Raises:
        InvalidResponseError: payload is not an object or lacks required fields
    """
    if not isinstance(raw, Mapping):
        raise InvalidResponseError(
            operation=operation,
            message=f"Unexpected response from {operation}: expected a JSON object",
        )
    try:
        return model.model_validate(normalize(raw))
    except PydanticValidationError as e:
        missing = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        raise InvalidResponseError(
            operation=operation,
            message=f"Invalid response from {operation}: missing or malformed {', '.join(missing) or 'fields'}",
            details={"fields": missing},
        ) from e


def normalize_upload_target(raw: Any) -> UploadTarget:
    return normalize_as(UploadTarget, raw, operation="request_upload_target")


def normalize_processing_trigger(raw: Any) -> ProcessingTrigger:
    return normalize_as(ProcessingTrigger, raw, operation="start_processing")


def normalize_document_result(raw: Any) -> DocumentResult:
    return normalize_as(DocumentResult, raw, operation="check_status")


def normalize_batch_handle(raw: Any) -> BatchHandle:
    return normalize_as(BatchHandle, raw, operation="create_batch")


def normalize_batch_result(raw: Any) -> BatchResult:
    return normalize_as(BatchResult, raw, operation="get_batch_status")
