"""Polling utilities for asynchronous backend jobs."""

from ocr_client.resilience.polling import PollingConfig, poll_until

__all__ = ["PollingConfig", "poll_until"]
