"""Tests for DocumentApiClient against a mocked backend."""

import json

import httpx
import pytest

from ocr_client.clients.document_api import DocumentApiClient
from ocr_client.core.exceptions import InvalidResponseError, TransportError
from ocr_client.models.dto import BatchStatus, DocumentStatus, UploadTarget
from ocr_client.models.files import DocumentFile

PDF = DocumentFile("scan.pdf", b"%PDF-1.4 test")


def body_of(request: httpx.Request) -> dict:
    return json.loads(request.content or b"{}")


class TestRequestUploadTarget:
    @pytest.mark.asyncio
    async def test_sends_snake_case_body_and_api_key(self, backend, settings):
        backend.add(
            "POST",
            "/documents",
            (200, {"documentId": "d1", "uploadUrl": "https://storage.test/u1", "s3Key": "k"}),
        )

        async with backend.client(settings) as api:
            target = await api.request_upload_target(
                "scan.pdf", "application/pdf", document_type="invoice", extraction_method="ocr"
            )

        assert target == UploadTarget(
            document_id="d1", upload_url="https://storage.test/u1", s3_key="k"
        )
        request = backend.calls("POST", "/documents")[0]
        assert body_of(request) == {
            "filename": "scan.pdf",
            "content_type": "application/pdf",
            "document_type": "invoice",
            "extraction_method": "ocr",
        }
        assert request.headers["x-api-key"] == "test-key"

    @pytest.mark.asyncio
    async def test_optional_hints_are_omitted(self, backend, settings):
        backend.add("POST", "/documents", (200, {"document_id": "d1", "upload_url": "https://s/u"}))

        async with backend.client(settings) as api:
            await api.request_upload_target("scan.pdf", "application/pdf")

        assert body_of(backend.requests[0]) == {
            "filename": "scan.pdf",
            "content_type": "application/pdf",
        }

    @pytest.mark.asyncio
    async def test_base_url_path_prefix_is_kept(self, backend, settings):
        backend.add(
            "POST", "/api/v1/documents", (200, {"document_id": "d1", "upload_url": "https://s/u"})
        )
        client = DocumentApiClient(
            base_url="https://api.test/api/v1/",
            settings=settings,
            transport=httpx.MockTransport(backend.handler),
        )

        async with client as api:
            target = await api.request_upload_target("scan.pdf", "application/pdf")

        assert target.document_id == "d1"

    @pytest.mark.asyncio
    async def test_no_api_key_header_when_not_configured(self, backend, settings):
        backend.add("POST", "/documents", (200, {"document_id": "d1", "upload_url": "https://s/u"}))
        keyless = settings.model_copy(update={"OCR_API_KEY": None})

        async with backend.client(keyless) as api:
            await api.request_upload_target("scan.pdf", "application/pdf")

        assert "x-api-key" not in backend.requests[0].headers


class TestUploadFile:
    @pytest.mark.asyncio
    async def test_puts_raw_bytes_without_api_key(self, backend, settings):
        backend.add("PUT", "/u1", (200, ""))
        target = UploadTarget(document_id="d1", upload_url="https://storage.test/u1")

        async with backend.client(settings) as api:
            await api.upload_file(target, PDF)

        request = backend.calls("PUT", "/u1")[0]
        assert request.url.host == "storage.test"
        assert request.content == PDF.content
        assert request.headers["content-type"] == "application/pdf"
        assert "x-api-key" not in request.headers

    @pytest.mark.asyncio
    async def test_target_content_type_wins(self, backend, settings):
        backend.add("PUT", "/u1", (200, ""))
        target = UploadTarget(
            document_id="d1", upload_url="https://storage.test/u1", content_type="application/x-pdf"
        )

        async with backend.client(settings) as api:
            await api.upload_file(target, PDF)

        assert backend.requests[0].headers["content-type"] == "application/x-pdf"

    @pytest.mark.asyncio
    async def test_storage_rejection_is_transport_error(self, backend, settings):
        backend.add("PUT", "/u1", (403, "<Error>SignatureDoesNotMatch</Error>"))
        target = UploadTarget(document_id="d1", upload_url="https://storage.test/u1")

        async with backend.client(settings) as api:
            with pytest.raises(TransportError) as exc_info:
                await api.upload_file(target, PDF)

        assert exc_info.value.status_code == 403
        assert exc_info.value.operation == "upload_file"
        assert "SignatureDoesNotMatch" in str(exc_info.value)


class TestProcessingCalls:
    @pytest.mark.asyncio
    async def test_start_processing_body(self, backend, settings):
        backend.add(
            "POST", "/documents/process", (200, {"documentId": "d1", "status": "PROCESSING", "jobId": "j1"})
        )

        async with backend.client(settings) as api:
            trigger = await api.start_processing("d1", use_llm=True)

        assert trigger.job_id == "j1"
        assert body_of(backend.requests[0]) == {"document_id": "d1", "use_llm": True}

    @pytest.mark.asyncio
    async def test_check_status_forwards_job_id(self, backend, settings):
        backend.add(
            "POST",
            "/documents/d1/check-status",
            (200, {"documentId": "d1", "status": "COMPLETED", "rawText": "hello"}),
        )

        async with backend.client(settings) as api:
            result = await api.check_status("d1", job_id="j1")

        assert result.status is DocumentStatus.COMPLETED
        assert result.raw_text == "hello"
        assert body_of(backend.requests[0]) == {"job_id": "j1"}

    @pytest.mark.asyncio
    async def test_check_status_without_job_id_sends_empty_object(self, backend, settings):
        backend.add("POST", "/documents/d1/check-status", (200, {"status": "PROCESSING"}))

        async with backend.client(settings) as api:
            await api.check_status("d1")

        assert body_of(backend.requests[0]) == {}


class TestBatchCalls:
    @pytest.mark.asyncio
    async def test_create_batch_body(self, backend, settings):
        backend.add("POST", "/batch", (200, {"batchId": "b1"}))

        async with backend.client(settings) as api:
            handle = await api.create_batch(["d1", "d2"])

        assert handle.batch_id == "b1"
        assert body_of(backend.requests[0]) == {
            "documents": [{"document_id": "d1"}, {"document_id": "d2"}]
        }

    @pytest.mark.asyncio
    async def test_get_batch_status(self, backend, settings):
        backend.add(
            "GET",
            "/batch/b1",
            (200, {"batch_id": "b1", "status": "FAILED", "statistics": {"total": 2, "error": 2}}),
        )

        async with backend.client(settings) as api:
            result = await api.get_batch_status("b1")

        assert result.status is BatchStatus.FAILED
        assert result.statistics.error == 2


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_http_error_message_includes_status_and_body(self, backend, settings):
        backend.add("POST", "/batch", (500, {"detail": "database unavailable"}))

        async with backend.client(settings) as api:
            with pytest.raises(TransportError) as exc_info:
                await api.create_batch(["d1"])

        error = exc_info.value
        assert error.status_code == 500
        assert error.error_code == "TRANSPORT_ERROR"
        assert str(error).startswith("Failed to create batch: HTTP 500")
        assert "database unavailable" in str(error)

    @pytest.mark.asyncio
    async def test_timeout_is_mapped(self, backend, settings):
        backend.add("GET", "/batch/b1", httpx.ReadTimeout("read timed out"))

        async with backend.client(settings) as api:
            with pytest.raises(TransportError) as exc_info:
                await api.get_batch_status("b1")

        assert exc_info.value.error_code == "TRANSPORT_TIMEOUT"
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_network_error_is_mapped(self, backend, settings):
        backend.add("POST", "/documents", httpx.ConnectError("connection refused"))

        async with backend.client(settings) as api:
            with pytest.raises(TransportError) as exc_info:
                await api.request_upload_target("scan.pdf", "application/pdf")

        assert exc_info.value.error_code == "TRANSPORT_NETWORK_ERROR"
        assert "connection refused" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_non_json_body_is_invalid_response(self, backend, settings):
        backend.add("POST", "/documents/process", (200, "<html>gateway</html>"))

        async with backend.client(settings) as api:
            with pytest.raises(InvalidResponseError):
                await api.start_processing("d1")

    @pytest.mark.asyncio
    async def test_missing_required_field_is_invalid_response(self, backend, settings):
        backend.add("POST", "/batch", (200, {"status": "ok"}))

        async with backend.client(settings) as api:
            with pytest.raises(InvalidResponseError) as exc_info:
                await api.create_batch(["d1"])

        assert "batch_id" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_use_before_start_raises(self, settings):
        api = DocumentApiClient(settings=settings)

        with pytest.raises(RuntimeError, match="Client not started"):
            await api.get_batch_status("b1")
