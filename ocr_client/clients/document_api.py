import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx
from ocr_client.core.exceptions import InvalidResponseError, TransportError
from ocr_client.core.settings import ClientSettings, get_settings
from ocr_client.models.dto import (
    BatchHandle,
    BatchResult,
    DocumentResult,
    ProcessingTrigger,
    UploadTarget,
)
from ocr_client.models.files import DocumentFile
from ocr_client.processors.normalizer import (
    normalize_batch_handle,
    normalize_batch_result,
    normalize_document_result,
    normalize_processing_trigger,
    normalize_upload_target,
)

logger = logging.getLogger(__name__)

OPERATION_LABELS = {
    "request_upload_target": "request upload URL",
    "upload_file": "upload file",
    "start_processing": "start processing",
    "check_status": "check document status",
    "create_batch": "create batch",
    "get_batch_status": "get batch status",
}
ERROR_BODY_LIMIT = 300


def _describe_status_error(operation: str, response: httpx.Response) -> str:
    label = OPERATION_LABELS.get(operation, operation)
    text = ""
    try:
        text = response.text.strip()[:ERROR_BODY_LIMIT]
    except (httpx.ResponseNotRead, UnicodeDecodeError):
        pass
    reason = response.reason_phrase or ""
    message = f"Failed to {label}: HTTP {response.status_code} {reason}".rstrip()
    return f"{message} - {text}" if text else message


class DocumentApiClient:
    """Async HTTP client for the document processing backend.

    Every backend JSON response is normalized before it leaves this class;
    every httpx failure is raised as TransportError.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        *,
        api_key_header: Optional[str] = None,
        timeout: Optional[float] = None,
        upload_timeout: Optional[float] = None,
        verify: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        settings: Optional[ClientSettings] = None,
    ):
        settings = settings or get_settings()
        self.base_url = (base_url or settings.OCR_API_BASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.api_key
        self.api_key_header = api_key_header or settings.OCR_API_KEY_HEADER
        self.timeout = timeout or settings.OCR_REQUEST_TIMEOUT_SECONDS
        self.upload_timeout = upload_timeout or settings.OCR_UPLOAD_TIMEOUT_SECONDS
        self.verify = settings.OCR_VERIFY_SSL if verify is None else verify
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            verify=self.verify,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("Client not started")
        return self._client

    def _api_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_key:
            headers[self.api_key_header] = self.api_key
        return headers

    async def _send(
        self, operation: str, method: str, url: str, **kwargs: Any
    ) -> httpx.Response:
        client = self._require_client()
        label = OPERATION_LABELS.get(operation, operation)
        try:
            resp = await client.request(method, url, **kwargs)
            resp.raise_for_status()
            return resp
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Backend call failed",
                extra={"operation": operation, "http_status": e.response.status_code},
            )
            raise TransportError(
                operation=operation,
                message=_describe_status_error(operation, e.response),
                status_code=e.response.status_code,
            ) from e
        except httpx.TimeoutException as e:
            logger.warning("Backend call timed out", extra={"operation": operation})
            raise TransportError(
                operation=operation,
                message=f"Failed to {label}: request timed out",
                error_code="TRANSPORT_TIMEOUT",
            ) from e
        except httpx.RequestError as e:
            logger.warning(
                f"Backend call network error: {type(e).__name__}",
                extra={"operation": operation},
            )
            raise TransportError(
                operation=operation,
                message=f"Failed to {label}: network error ({type(e).__name__}: {e})",
                error_code="TRANSPORT_NETWORK_ERROR",
            ) from e

    async def _request_json(
        self, operation: str, method: str, path: str, body: Optional[dict] = None
    ) -> Any:
        kwargs: dict[str, Any] = {"headers": self._api_headers()}
        if body is not None:
            kwargs["json"] = body
        resp = await self._send(operation, method, path, **kwargs)
        try:
            return resp.json()
        except ValueError as e:
            raise InvalidResponseError(
                operation=operation,
                message=f"Invalid response from {operation}: body is not JSON",
            ) from e

    async def request_upload_target(
        self,
        filename: str,
        content_type: str,
        document_type: Optional[str] = None,
        extraction_method: Optional[str] = None,
    ) -> UploadTarget:
        body: dict[str, Any] = {"filename": filename, "content_type": content_type}
        if document_type:
            body["document_type"] = document_type
        if extraction_method:
            body["extraction_method"] = extraction_method
        raw = await self._request_json("request_upload_target", "POST", "/documents", body)
        target = normalize_upload_target(raw)
        logger.info(
            "Upload target acquired",
            extra={"document_id": target.document_id, "file_name": filename},
        )
        return target

    async def upload_file(self, target: UploadTarget, file: DocumentFile) -> None:
        """PUT the raw bytes to the pre-signed write URL of ``target``."""
        content_type = (
            target.content_type or file.resolved_content_type or "application/octet-stream"
        )
        await self._send(
            "upload_file",
            "PUT",
            target.upload_url,
            content=file.content,
            headers={"Content-Type": content_type},
            timeout=self.upload_timeout,
        )
        logger.info(
            "File uploaded",
            extra={"document_id": target.document_id, "file_name": file.name},
        )

    async def start_processing(
        self, document_id: str, use_llm: Optional[bool] = None
    ) -> ProcessingTrigger:
        body: dict[str, Any] = {"document_id": document_id}
        if use_llm is not None:
            body["use_llm"] = use_llm
        raw = await self._request_json("start_processing", "POST", "/documents/process", body)
        trigger = normalize_processing_trigger(raw)
        logger.info(
            "Processing started",
            extra={"document_id": trigger.document_id, "job_id": trigger.job_id},
        )
        return trigger

    async def check_status(
        self, document_id: str, job_id: Optional[str] = None
    ) -> DocumentResult:
        body: dict[str, Any] = {"job_id": job_id} if job_id else {}
        raw = await self._request_json(
            "check_status",
            "POST",
            f"/documents/{quote(document_id, safe='')}/check-status",
            body,
        )
        return normalize_document_result(raw)

    async def create_batch(self, document_ids: list[str]) -> BatchHandle:
        body = {"documents": [{"document_id": doc_id} for doc_id in document_ids]}
        raw = await self._request_json("create_batch", "POST", "/batch", body)
        handle = normalize_batch_handle(raw)
        logger.info(
            f"Batch created with {len(document_ids)} documents",
            extra={"batch_id": handle.batch_id},
        )
        return handle

    async def get_batch_status(self, batch_id: str) -> BatchResult:
        raw = await self._request_json(
            "get_batch_status", "GET", f"/batch/{quote(batch_id, safe='')}"
        )
        return normalize_batch_result(raw)
