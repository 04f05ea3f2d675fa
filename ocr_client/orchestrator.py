from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional

from ocr_client.clients.document_api import DocumentApiClient
from ocr_client.core.exceptions import (
    BackendReportedError,
    BaseError,
    OperationCancelledError,
)
from ocr_client.core.settings import ClientSettings, get_settings
from ocr_client.models.dto import (
    DocumentResult,
    DocumentStatus,
    OrchestrationState,
    ProgressSnapshot,
)
from ocr_client.models.files import DocumentFile
from ocr_client.progress import (
    STATE_BY_PHASE,
    Counts,
    ProgressPhase,
    phase_message,
    progress_for,
)
from ocr_client.resilience.polling import PollingConfig, poll_until
from ocr_client.utils.clock import (
    CancellationToken,
    Clock,
    SystemClock,
    Ticker,
    elapsed_seconds,
)
from ocr_client.validation import validate_document_file

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressSnapshot], None]
ClientFactory = Callable[[], DocumentApiClient]

DEFAULT_DOCUMENT_ERROR = "Document processing failed"


@dataclass
class RunContext:
    """Mutable state owned by exactly one orchestrator call."""

    run_id: str
    started_at: float
    token: CancellationToken = field(default_factory=CancellationToken)
    ticker: Optional[Ticker] = None
    attempt: int = 0
    poll_high_water: float = 0
    document_ids: list[str] = field(default_factory=list)

    def stop_ticker(self) -> None:
        if self.ticker is not None:
            self.ticker.cancel()
            self.ticker = None


class BaseOrchestrator:
    """Run lifecycle shared by the single-document and batch orchestrators.

    Each call gets a fresh RunContext. ``reset()`` cancels the current one:
    pending waits wake up with OperationCancelledError and any progress the
    abandoned run still produces is dropped.

    One instance tracks one run at a time. Starting a new call on the same
    instance cancels the call in flight, which then raises
    OperationCancelledError; concurrent runs need separate instances.
    """

    result: Optional[Any]

    def __init__(
        self,
        *,
        client_factory: Optional[ClientFactory] = None,
        on_progress: Optional[ProgressCallback] = None,
        clock: Optional[Clock] = None,
        settings: Optional[ClientSettings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client_factory = client_factory or (
            lambda: DocumentApiClient(settings=self.settings)
        )
        self._on_progress = on_progress
        self.clock = clock or SystemClock()
        self._context: Optional[RunContext] = None
        self.state = OrchestrationState.IDLE
        self.progress = ProgressSnapshot(phase=OrchestrationState.IDLE)
        self.error: Optional[str] = None
        self.result = None

    @property
    def is_running(self) -> bool:
        return self._context is not None

    def _begin(self) -> RunContext:
        if self._context is not None:
            self._discard(self._context)
        ctx = RunContext(run_id=uuid.uuid4().hex, started_at=self.clock.now())
        self._context = ctx
        self.error = None
        self.result = None
        tick = self.settings.OCR_PROGRESS_TICK_SECONDS
        if tick and tick > 0:
            ctx.ticker = self.clock.start_ticker(tick, lambda: self._tick(ctx))
        return ctx

    def _discard(self, ctx: RunContext) -> None:
        ctx.token.cancel()
        ctx.stop_ticker()
        if self._context is ctx:
            self._context = None

    def _is_current(self, ctx: RunContext) -> bool:
        return ctx is self._context and not ctx.token.cancelled

    def _publish(self, snapshot: ProgressSnapshot) -> None:
        self.state = snapshot.phase
        self.progress = snapshot
        if self._on_progress:
            self._on_progress(snapshot)

    def _emit(
        self,
        ctx: RunContext,
        phase: ProgressPhase,
        *,
        elapsed: float = 0,
        counts: Optional[Counts] = None,
        percent: Optional[float] = None,
        message: Optional[str] = None,
        attempt: Optional[int] = None,
        filename: Optional[str] = None,
        current_item: Optional[int] = None,
        total_items: Optional[int] = None,
    ) -> None:
        if not self._is_current(ctx):
            return
        snapshot = ProgressSnapshot(
            phase=STATE_BY_PHASE[phase],
            message=message
            or phase_message(phase, elapsed, counts, attempt=attempt, filename=filename),
            percent=progress_for(phase, elapsed, counts) if percent is None else percent,
            elapsed_seconds=elapsed_seconds(self.clock, ctx.started_at),
            current_item=current_item,
            total_items=total_items,
        )
        self._publish(snapshot)

    def _tick(self, ctx: RunContext) -> None:
        if not self._is_current(ctx):
            return
        self._publish(
            self.progress.model_copy(
                update={"elapsed_seconds": elapsed_seconds(self.clock, ctx.started_at)}
            )
        )

    @contextmanager
    def _guard(self, ctx: RunContext) -> Iterator[None]:
        """Route any failure of the run into the terminal error state."""
        try:
            yield
        except OperationCancelledError:
            logger.info("Run cancelled", extra={"operation": type(self).__name__})
            raise
        except BaseError as e:
            self._fail(ctx, e.message)
            logger.error(
                f"Run failed: {e.message}",
                extra={"error_code": e.error_code, "operation": type(self).__name__},
            )
            raise
        except Exception as e:
            self._fail(ctx, f"Unexpected error: {type(e).__name__}: {e}")
            logger.exception("Run failed unexpectedly", extra={"operation": type(self).__name__})
            raise
        finally:
            ctx.stop_ticker()
            if self._context is ctx:
                self._context = None

    def _fail(self, ctx: RunContext, message: str) -> None:
        if not self._is_current(ctx):
            return
        self.error = message
        try:
            self._emit(ctx, ProgressPhase.ERROR, message=message)
        except Exception:
            # state is already ERROR; the run's own exception is re-raised
            logger.exception("Progress observer failed while reporting an error")

    def _complete(self, ctx: RunContext, message: Optional[str] = None) -> None:
        self._emit(ctx, ProgressPhase.COMPLETED, message=message)

    def reset(self) -> None:
        """Cancel the current run (if any) and return to idle. Idempotent."""
        if self._context is not None:
            self._discard(self._context)
        self.state = OrchestrationState.IDLE
        self.progress = ProgressSnapshot(phase=OrchestrationState.IDLE)
        self.error = None
        self.result = None

    def cancel(self) -> None:
        self.reset()


class DocumentUploadOrchestrator(BaseOrchestrator):
    """Drives one document through upload, processing and result delivery.

    States: idle -> requesting_url -> uploading -> processing ->
    completed | error.

    Retrying a failed ``submit`` acquires a new upload target and document
    id; targets acquired by earlier attempts are left unused on the backend.
    """

    result: Optional[DocumentResult]

    def _polling_config(self) -> PollingConfig:
        return PollingConfig(
            interval_seconds=self.settings.OCR_POLL_INTERVAL_SECONDS,
            max_attempts=self.settings.OCR_POLL_MAX_ATTEMPTS,
            max_elapsed_seconds=self.settings.OCR_POLL_MAX_ELAPSED_SECONDS,
        )

    async def submit(
        self,
        file: DocumentFile,
        extraction_method: Optional[str] = None,
        document_type: Optional[str] = None,
        use_llm: Optional[bool] = None,
    ) -> DocumentResult:
        """Upload ``file``, process it and return the completed result.

        Raises:
            ValidationError: file rejected before any network call
            TransportError: a one-shot backend call failed
            BackendReportedError: backend reported the document as ERROR
            PollingTimeoutError: no terminal status within the polling budget
            OperationCancelledError: reset() was called during the run
        """
        ctx = self._begin()
        with self._guard(ctx):
            content_type = validate_document_file(file, self.settings.OCR_MAX_FILE_SIZE_MB)
            async with self._client_factory() as api:
                self._emit(ctx, ProgressPhase.REQUESTING_URL)
                target = await api.request_upload_target(
                    file.name,
                    content_type,
                    document_type=document_type,
                    extraction_method=extraction_method,
                )
                ctx.token.raise_if_cancelled()
                ctx.document_ids.append(target.document_id)

                self._emit(ctx, ProgressPhase.UPLOADING)
                await api.upload_file(target, file)
                ctx.token.raise_if_cancelled()

                result = await self._process(ctx, api, target.document_id, use_llm)
            return self._deliver(ctx, result)

    async def reprocess(
        self, document_id: str, use_llm: Optional[bool] = None
    ) -> DocumentResult:
        """Re-run extraction on an already uploaded document."""
        ctx = self._begin()
        with self._guard(ctx):
            ctx.document_ids.append(document_id)
            async with self._client_factory() as api:
                result = await self._process(ctx, api, document_id, use_llm)
            return self._deliver(ctx, result)

    async def _process(
        self,
        ctx: RunContext,
        api: DocumentApiClient,
        document_id: str,
        use_llm: Optional[bool],
    ) -> DocumentResult:
        self._emit(ctx, ProgressPhase.PROCESSING_TRIGGER)
        trigger = await api.start_processing(document_id, use_llm=use_llm)
        ctx.token.raise_if_cancelled()
        job_id = trigger.job_id

        self._emit(ctx, ProgressPhase.PROCESSING_POLL)

        def on_progress(_status: DocumentResult, attempt: int, elapsed: int) -> None:
            ctx.attempt = attempt
            self._emit(ctx, ProgressPhase.PROCESSING_POLL, elapsed=elapsed, attempt=attempt)

        def is_failure(status: DocumentResult) -> Optional[BaseError]:
            if status.status is DocumentStatus.ERROR:
                return BackendReportedError(status.error or DEFAULT_DOCUMENT_ERROR, document_id)
            return None

        result = await poll_until(
            lambda: api.check_status(document_id, job_id),
            is_terminal=lambda status: status.status is DocumentStatus.COMPLETED,
            is_failure=is_failure,
            on_progress=on_progress,
            config=self._polling_config(),
            clock=self.clock,
            token=ctx.token,
        )

        missing = {}
        if result.document_id is None:
            missing["document_id"] = document_id
        if result.job_id is None and job_id:
            missing["job_id"] = job_id
        return result.model_copy(update=missing) if missing else result

    def _deliver(self, ctx: RunContext, result: DocumentResult) -> DocumentResult:
        ctx.token.raise_if_cancelled()
        self.result = result
        self._complete(ctx)
        logger.info(
            "Document processing completed",
            extra={"document_id": result.document_id, "job_id": result.job_id},
        )
        return result


async def process_document(
    file: DocumentFile,
    extraction_method: Optional[str] = None,
    document_type: Optional[str] = None,
    use_llm: Optional[bool] = None,
    *,
    on_progress: Optional[ProgressCallback] = None,
    settings: Optional[ClientSettings] = None,
) -> DocumentResult:
    """One-shot convenience wrapper around DocumentUploadOrchestrator.submit."""
    orchestrator = DocumentUploadOrchestrator(on_progress=on_progress, settings=settings)
    return await orchestrator.submit(file, extraction_method, document_type, use_llm)
