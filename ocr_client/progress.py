"""Pure progress mapping for orchestrator runs.

Maps a phase, the elapsed time and item counts to a 0-100 percentage and a
human-readable message. Nothing here touches the network or the clock.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Mapping, Optional, Union

from ocr_client.models.dto import OrchestrationState

TYPICAL_PROCESSING_SECONDS = 180
POLL_PROGRESS_START = 60
POLL_PROGRESS_CEILING = 90
BATCH_UPLOAD_START = 10
BATCH_UPLOAD_SPAN = 40
BATCH_POLL_SPAN = 30


class ProgressPhase(str, Enum):
    IDLE = "idle"
    REQUESTING_URL = "requesting_url"
    UPLOADING = "uploading"
    PROCESSING_TRIGGER = "processing_trigger"
    PROCESSING_POLL = "processing_poll"
    BATCH_UPLOAD = "batch_upload"
    CREATING_BATCH = "creating_batch"
    BATCH_POLL = "batch_poll"
    COMPLETED = "completed"
    ERROR = "error"


FIXED_PROGRESS: dict[ProgressPhase, int] = {
    ProgressPhase.IDLE: 0,
    ProgressPhase.REQUESTING_URL: 10,
    ProgressPhase.UPLOADING: 30,
    ProgressPhase.PROCESSING_TRIGGER: 50,
    ProgressPhase.CREATING_BATCH: 50,
    ProgressPhase.COMPLETED: 100,
    ProgressPhase.ERROR: 0,
}

STATE_BY_PHASE: dict[ProgressPhase, OrchestrationState] = {
    ProgressPhase.IDLE: OrchestrationState.IDLE,
    ProgressPhase.REQUESTING_URL: OrchestrationState.REQUESTING_URL,
    ProgressPhase.UPLOADING: OrchestrationState.UPLOADING,
    ProgressPhase.PROCESSING_TRIGGER: OrchestrationState.PROCESSING,
    ProgressPhase.PROCESSING_POLL: OrchestrationState.PROCESSING,
    ProgressPhase.BATCH_UPLOAD: OrchestrationState.UPLOADING,
    ProgressPhase.CREATING_BATCH: OrchestrationState.CREATING_BATCH,
    ProgressPhase.BATCH_POLL: OrchestrationState.PROCESSING,
    ProgressPhase.COMPLETED: OrchestrationState.COMPLETED,
    ProgressPhase.ERROR: OrchestrationState.ERROR,
}

Counts = Mapping[str, int]


def _fraction(done: int, total: int) -> float:
    return min(max(done, 0), total) / total


def progress_for(
    phase: Union[ProgressPhase, str],
    elapsed: float = 0,
    counts: Optional[Counts] = None,
) -> float:
    """Progress percentage for a phase.

    Args:
        phase: Fine-grained phase (enum member or its value)
        elapsed: Seconds spent in the polling phase so far
        counts: ``{"current", "total"}`` for batch upload,
            ``{"completed", "total"}`` for batch polling

    Returns:
        Value in [0, 100]
    """
    phase = ProgressPhase(phase)
    counts = counts or {}

    if phase in FIXED_PROGRESS:
        return FIXED_PROGRESS[phase]

    if phase is ProgressPhase.PROCESSING_POLL:
        ramp = (max(elapsed, 0) / TYPICAL_PROCESSING_SECONDS) * (
            POLL_PROGRESS_CEILING - POLL_PROGRESS_START
        )
        return min(POLL_PROGRESS_CEILING, POLL_PROGRESS_START + ramp)

    total = counts.get("total", 0)
    if phase is ProgressPhase.BATCH_UPLOAD:
        if total <= 0:
            return BATCH_UPLOAD_START
        done = counts.get("current", counts.get("completed", 0))
        return math.floor(_fraction(done, total) * BATCH_UPLOAD_SPAN) + BATCH_UPLOAD_START

    # BATCH_POLL
    if total <= 0:
        return POLL_PROGRESS_START
    completed = counts.get("completed", 0)
    return math.floor(_fraction(completed, total) * BATCH_POLL_SPAN) + POLL_PROGRESS_START


def format_elapsed(seconds: float) -> str:
    """Render elapsed time as ``45s`` or ``2m 5s``."""
    seconds = max(0, int(seconds))
    mins, secs = divmod(seconds, 60)
    return f"{mins}m {secs}s" if mins > 0 else f"{secs}s"


def phase_message(
    phase: Union[ProgressPhase, str],
    elapsed: float = 0,
    counts: Optional[Counts] = None,
    *,
    attempt: Optional[int] = None,
    filename: Optional[str] = None,
) -> str:
    phase = ProgressPhase(phase)
    counts = counts or {}
    total = counts.get("total", 0)

    if phase is ProgressPhase.REQUESTING_URL:
        return "Requesting upload URL..."
    if phase is ProgressPhase.UPLOADING:
        return "Uploading file to storage..."
    if phase is ProgressPhase.PROCESSING_TRIGGER:
        return "Starting OCR processing..."
    if phase is ProgressPhase.PROCESSING_POLL:
        if attempt is None:
            return "Checking processing status..."
        return f"Processing document... (attempt {attempt}, time: {format_elapsed(elapsed)})"
    if phase is ProgressPhase.BATCH_UPLOAD:
        current = counts.get("current", 0)
        if current and filename:
            return f"Uploaded file {current} of {total}: {filename}"
        return f"Uploading {total} file(s)..."
    if phase is ProgressPhase.CREATING_BATCH:
        return "Creating processing batch..."
    if phase is ProgressPhase.BATCH_POLL:
        return f"Processing: {counts.get('completed', 0)}/{total} documents completed..."
    if phase is ProgressPhase.COMPLETED:
        return "Processing complete!"
    if phase is ProgressPhase.ERROR:
        return "Processing failed"
    return ""
