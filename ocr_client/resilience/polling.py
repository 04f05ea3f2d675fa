"""Bounded fixed-interval polling for asynchronous backend jobs.

Example:
    >>> config = PollingConfig(interval_seconds=5.0, max_attempts=120)
    >>> result = await poll_until(
    ...     lambda: api.check_status(document_id),
    ...     is_terminal=lambda r: r.status == DocumentStatus.COMPLETED,
    ...     config=config,
    ... )
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from ocr_client.core.exceptions import (
    BaseError,
    PollingTimeoutError,
    PollingTransientError,
    TransportError,
)
from ocr_client.utils.clock import CancellationToken, Clock, SystemClock, elapsed_seconds

logger = logging.getLogger(__name__)

StatusT = TypeVar("StatusT")


@dataclass
class PollingConfig:
    """Configuration for a polling loop.

    Attributes:
        interval_seconds: Fixed wait between two status checks
        max_attempts: Maximum number of status checks (including the first)
        max_elapsed_seconds: Optional wall-clock ceiling; no check starts after it
    """

    interval_seconds: float = 5.0
    max_attempts: int = 120
    max_elapsed_seconds: Optional[float] = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds must not be negative")
        if self.max_elapsed_seconds is not None and self.max_elapsed_seconds <= 0:
            raise ValueError("max_elapsed_seconds must be positive")

    @property
    def budget_seconds(self) -> float:
        """Total wall-clock budget reported on timeout."""
        budget = self.interval_seconds * self.max_attempts
        if self.max_elapsed_seconds is not None:
            return min(budget, self.max_elapsed_seconds)
        return budget


async def poll_until(
    fetch_status: Callable[[], Awaitable[StatusT]],
    is_terminal: Callable[[StatusT], bool],
    is_failure: Optional[Callable[[StatusT], Optional[BaseError]]] = None,
    on_progress: Optional[Callable[[StatusT, int, int], None]] = None,
    *,
    config: Optional[PollingConfig] = None,
    clock: Optional[Clock] = None,
    token: Optional[CancellationToken] = None,
) -> StatusT:
    """Poll ``fetch_status`` until ``is_terminal`` holds.

    Attempt 1 fires immediately; every later attempt waits
    ``config.interval_seconds`` first. After each successful fetch the
    failure predicate is checked, then the terminal predicate; a non-terminal
    status is reported through ``on_progress(status, attempt, elapsed)``.

    Transport errors from ``fetch_status`` are treated as transient and
    retried, except on the last attempt. When ``config.max_elapsed_seconds``
    is set, no new check starts once that much time has passed.

    Args:
        fetch_status: Coroutine factory returning the current status
        is_terminal: True when polling should stop and return the status
        is_failure: Returns the error to raise for a failed status, or None
        on_progress: Callback for each non-terminal status
        config: Interval and attempt budget
        clock: Time source (defaults to SystemClock)
        token: Cancellation signal interrupting waits

    Returns:
        The first terminal status

    Raises:
        PollingTransientError: The last status check failed at transport level
        PollingTimeoutError: Attempts exhausted without a terminal status
        OperationCancelledError: ``token`` was cancelled
        BaseError: Whatever ``is_failure`` returned
    """
    config = config or PollingConfig()
    clock = clock or SystemClock()
    token = token or CancellationToken()
    started_at = clock.now()

    for attempt in range(1, config.max_attempts + 1):
        if attempt > 1:
            await token.sleep(clock, config.interval_seconds)
        token.raise_if_cancelled()
        if (
            config.max_elapsed_seconds is not None
            and clock.now() - started_at >= config.max_elapsed_seconds
        ):
            attempts_made = attempt - 1
            logger.warning(
                f"Polling gave up after {config.max_elapsed_seconds:g}s ({attempts_made} checks)",
                extra={"attempt": attempts_made},
            )
            raise PollingTimeoutError(config.budget_seconds, attempts_made)

        try:
            status = await fetch_status()
        except TransportError as e:
            if attempt == config.max_attempts:
                logger.error(
                    f"Status check failed on final attempt {attempt}/{config.max_attempts}",
                    extra={"attempt": attempt, "error_code": e.error_code},
                )
                raise PollingTransientError(e, attempt) from e
            logger.warning(
                f"Status check {attempt}/{config.max_attempts} failed: {e.message}. "
                f"Retrying in {config.interval_seconds:g}s...",
                extra={"attempt": attempt, "error_code": e.error_code},
            )
            continue

        token.raise_if_cancelled()

        failure = is_failure(status) if is_failure else None
        if failure is not None:
            raise failure
        if is_terminal(status):
            logger.debug(f"Terminal status after {attempt} checks", extra={"attempt": attempt})
            return status

        if on_progress:
            on_progress(status, attempt, elapsed_seconds(clock, started_at))

    logger.warning(
        f"Polling gave up after {config.max_attempts} checks",
        extra={"attempt": config.max_attempts},
    )
    raise PollingTimeoutError(config.budget_seconds, config.max_attempts)
