"""Client for an asynchronous, externally hosted OCR document backend.

This package provides:
- An async HTTP transport for the backend's upload/process/status contract
- A response normalizer accepting snake_case and camelCase payloads
- A bounded polling engine with cancellation
- Single-document and batch orchestrators reporting progress snapshots
- A command-line client
"""

from ocr_client.batch import BatchUploadOrchestrator
from ocr_client.models.dto import (
    BatchResult,
    DocumentResult,
    OrchestrationState,
    ProgressSnapshot,
)
from ocr_client.models.files import DocumentFile
from ocr_client.orchestrator import DocumentUploadOrchestrator, process_document

__all__ = [
    "BatchResult",
    "BatchUploadOrchestrator",
    "DocumentFile",
    "DocumentResult",
    "DocumentUploadOrchestrator",
    "OrchestrationState",
    "ProgressSnapshot",
    "process_document",
]
