"""Canonical in-memory shapes of backend payloads and client progress.

Attribute names here are the only names internal code uses; the alternate
spellings a backend may send are resolved once by the response normalizer.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field


class DocumentStatus(str, Enum):
    """Per-document status; values the client does not know map to UNKNOWN."""

    PENDING_UPLOAD = "PENDING_UPLOAD"
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN


class BatchStatus(str, Enum):
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class OrchestrationState(str, Enum):
    """Externally visible state of one orchestrator run."""

    IDLE = "idle"
    REQUESTING_URL = "requesting_url"
    UPLOADING = "uploading"
    CREATING_BATCH = "creating_batch"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class ExtractionKind(str, Enum):
    GENERIC = "generic"
    INVOICE = "invoice"
    RECEIPT = "receipt"
    CONTRACT = "contract"
    UNKNOWN = "unknown"


_KIND_BY_DOCUMENT_TYPE: dict[str, ExtractionKind] = {
    "generic": ExtractionKind.GENERIC,
    "invoice": ExtractionKind.INVOICE,
    "nota_fiscal": ExtractionKind.INVOICE,
    "receipt": ExtractionKind.RECEIPT,
    "expense": ExtractionKind.RECEIPT,
    "contract": ExtractionKind.CONTRACT,
}
_GENERIC_STAT_KEYS = ("line_count", "word_count", "lineCount", "wordCount")


class ExtractedPayload(BaseModel):
    """Tagged view over the document-type dependent ``extracted`` payload.

    ``kind`` is only a discriminant for presentation; ``data`` is the raw
    mapping exactly as the backend sent it.
    """

    kind: ExtractionKind = ExtractionKind.UNKNOWN
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "ExtractedPayload":
        declared = raw.get("document_type", raw.get("documentType"))
        if isinstance(declared, str) and declared.strip().lower() in _KIND_BY_DOCUMENT_TYPE:
            kind = _KIND_BY_DOCUMENT_TYPE[declared.strip().lower()]
        elif any(key in raw for key in _GENERIC_STAT_KEYS):
            kind = ExtractionKind.GENERIC
        else:
            kind = ExtractionKind.UNKNOWN
        return cls(kind=kind, data=dict(raw))


class UploadTarget(BaseModel):
    """Single-use, time-limited write capability for one file."""

    document_id: str
    upload_url: str
    s3_key: Optional[str] = None
    content_type: Optional[str] = None
    expires_in: Optional[int] = None


class ProcessingTrigger(BaseModel):
    document_id: str
    status: Optional[DocumentStatus] = None
    job_id: Optional[str] = None


class DocumentResult(BaseModel):
    document_id: Optional[str] = None
    status: DocumentStatus
    source_key: Optional[str] = None
    created_at: Optional[str] = None
    job_id: Optional[str] = None
    raw_text: Optional[str] = None
    extracted: Optional[ExtractedPayload] = None
    error: Optional[str] = None


class BatchHandle(BaseModel):
    batch_id: str


class BatchStatistics(BaseModel):
    total: int = 0
    completed: int = 0
    processing: int = 0
    error: int = 0
    pending: int = 0


class BatchResult(BaseModel):
    batch_id: str
    status: BatchStatus
    statistics: BatchStatistics = Field(default_factory=BatchStatistics)
    documents: list[DocumentResult] = Field(default_factory=list)


class ProgressSnapshot(BaseModel):
    """The sole observable state of an in-flight orchestration."""

    phase: OrchestrationState
    message: str = ""
    percent: float = Field(default=0, ge=0, le=100)
    elapsed_seconds: int = 0
    current_item: Optional[int] = None
    total_items: Optional[int] = None
