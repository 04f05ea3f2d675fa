from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

from ocr_client.clients.document_api import DocumentApiClient
from ocr_client.core.exceptions import BaseError, BatchUploadError, ValidationError
from ocr_client.models.dto import BatchResult, BatchStatus
from ocr_client.models.files import DocumentFile
from ocr_client.orchestrator import BaseOrchestrator, RunContext
from ocr_client.progress import ProgressPhase, progress_for
from ocr_client.resilience.polling import PollingConfig, poll_until
from ocr_client.validation import validate_document_files

logger = logging.getLogger(__name__)

TERMINAL_BATCH_STATUSES = frozenset({BatchStatus.COMPLETED, BatchStatus.FAILED})


class BatchUploadOrchestrator(BaseOrchestrator):
    """Uploads N documents, groups them into one backend batch and polls it.

    A FAILED batch is returned like a COMPLETED one: individual documents may
    have succeeded, so callers inspect ``statistics`` and ``documents``.
    """

    result: Optional[BatchResult]

    def _polling_config(self) -> PollingConfig:
        return PollingConfig(
            interval_seconds=self.settings.OCR_BATCH_POLL_INTERVAL_SECONDS,
            max_attempts=self.settings.OCR_BATCH_POLL_MAX_ATTEMPTS,
            max_elapsed_seconds=self.settings.OCR_POLL_MAX_ELAPSED_SECONDS,
        )

    async def submit_batch(
        self,
        files: Sequence[DocumentFile],
        extraction_method: Optional[str] = None,
        document_type: Optional[str] = None,
    ) -> BatchResult:
        """Upload every file, create a batch and wait for it to finish.

        Raises:
            ValidationError: a file was rejected before any network call
            BatchUploadError: one file failed to upload; no batch was created
            TransportError: batch creation failed
            PollingTimeoutError: batch not finished within the polling budget
            OperationCancelledError: reset() was called during the run
        """
        files = list(files)
        ctx = self._begin()
        with self._guard(ctx):
            if not files:
                raise ValidationError("No files selected for batch upload", field="files")
            content_types = validate_document_files(files, self.settings.OCR_MAX_FILE_SIZE_MB)
            total = len(files)

            async with self._client_factory() as api:
                self._emit(
                    ctx,
                    ProgressPhase.BATCH_UPLOAD,
                    counts={"current": 0, "total": total},
                    current_item=0,
                    total_items=total,
                )
                document_ids = await self._upload_all(
                    ctx, api, files, content_types, extraction_method, document_type
                )

                self._emit(ctx, ProgressPhase.CREATING_BATCH)
                handle = await api.create_batch(document_ids)
                ctx.token.raise_if_cancelled()
                logger.info(
                    f"Polling batch of {total} documents",
                    extra={"batch_id": handle.batch_id},
                )

                self._emit(
                    ctx,
                    ProgressPhase.BATCH_POLL,
                    counts={"completed": 0, "total": total},
                    message="Processing documents in batch...",
                )
                result = await poll_until(
                    lambda: api.get_batch_status(handle.batch_id),
                    is_terminal=lambda status: status.status in TERMINAL_BATCH_STATUSES,
                    on_progress=lambda status, attempt, _elapsed: self._on_batch_status(
                        ctx, status, attempt
                    ),
                    config=self._polling_config(),
                    clock=self.clock,
                    token=ctx.token,
                )

            ctx.token.raise_if_cancelled()
            self.result = result
            self._complete(ctx, message="Batch processing complete!")
            logger.info(
                f"Batch finished with status {result.status.value}",
                extra={"batch_id": result.batch_id},
            )
            return result

    def _on_batch_status(self, ctx: RunContext, status: BatchResult, attempt: int) -> None:
        ctx.attempt = attempt
        counts = {"completed": status.statistics.completed, "total": status.statistics.total}
        # percent never moves backwards while polling
        ctx.poll_high_water = max(
            ctx.poll_high_water, progress_for(ProgressPhase.BATCH_POLL, counts=counts)
        )
        self._emit(ctx, ProgressPhase.BATCH_POLL, counts=counts, percent=ctx.poll_high_water)

    async def _upload_one(
        self,
        api: DocumentApiClient,
        file: DocumentFile,
        content_type: str,
        extraction_method: Optional[str],
        document_type: Optional[str],
    ) -> str:
        try:
            target = await api.request_upload_target(
                file.name,
                content_type,
                document_type=document_type,
                extraction_method=extraction_method,
            )
            await api.upload_file(target, file)
        except BaseError as e:
            raise BatchUploadError(file.name, e) from e
        return target.document_id

    async def _upload_all(
        self,
        ctx: RunContext,
        api: DocumentApiClient,
        files: list[DocumentFile],
        content_types: list[str],
        extraction_method: Optional[str],
        document_type: Optional[str],
    ) -> list[str]:
        total = len(files)
        # a limit of 1 gives sequential uploads in input order (the semaphore is FIFO)
        semaphore = asyncio.Semaphore(max(1, self.settings.OCR_MAX_CONCURRENT_UPLOADS))
        slots: list[Optional[str]] = [None] * total

        async def upload(index: int) -> tuple[int, str]:
            async with semaphore:
                ctx.token.raise_if_cancelled()
                document_id = await self._upload_one(
                    api, files[index], content_types[index], extraction_method, document_type
                )
                return index, document_id

        tasks = [asyncio.ensure_future(upload(i)) for i in range(total)]
        finished = 0
        try:
            # this loop is the only writer of slots and progress
            for next_done in asyncio.as_completed(tasks):
                index, document_id = await next_done
                ctx.token.raise_if_cancelled()
                slots[index] = document_id
                finished += 1
                self._emit(
                    ctx,
                    ProgressPhase.BATCH_UPLOAD,
                    counts={"current": finished, "total": total},
                    filename=files[index].name,
                    current_item=finished,
                    total_items=total,
                )
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        ctx.document_ids.extend(doc_id for doc_id in slots if doc_id is not None)
        return list(ctx.document_ids)
