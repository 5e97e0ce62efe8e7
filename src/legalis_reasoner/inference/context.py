"""
Reasoning execution context with timeout and cancellation support.

The engine checks the context between rounds, never inside a rule, so a
round always completes before reasoning stops.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Event
from typing import Callable, Optional


class ReasoningCancelledException(Exception):
    """Raised when reasoning is cancelled between rounds."""
    pass


class ReasoningTimeoutException(Exception):
    """Raised when reasoning exceeds its wall-clock budget."""
    pass


class CancellationToken:
    """Token for cooperative cancellation."""

    def __init__(self):
        self._cancelled = Event()

    def cancel(self):
        """Request cancellation."""
        self._cancelled.set()

    def is_cancelled(self) -> bool:
        """Check if cancellation was requested."""
        return self._cancelled.is_set()

    def check(self):
        """Raise exception if cancelled."""
        if self._cancelled.is_set():
            raise ReasoningCancelledException("Reasoning was cancelled")


@dataclass
class ReasoningContext:
    """
    Execution context for one reason() call.

    Provides timeout and cancellation. should_cancel is an optional plain
    callable for callers that do not want to manage a token.
    """
    timeout_seconds: Optional[float] = None
    cancellation_token: Optional[CancellationToken] = None
    should_cancel: Optional[Callable[[], bool]] = None

    _start_time: Optional[float] = None

    def start(self):
        self._start_time = time.monotonic()

    @property
    def elapsed_seconds(self) -> float:
        if self._start_time is None:
            return 0.0
        return time.monotonic() - self._start_time

    def check_cancelled(self):
        if self.cancellation_token is not None:
            self.cancellation_token.check()
        if self.should_cancel is not None and self.should_cancel():
            raise ReasoningCancelledException("Reasoning was cancelled")

    def check_timeout(self):
        """Check if reasoning has exceeded timeout."""
        if self.timeout_seconds is not None and self._start_time is not None:
            if self.elapsed_seconds > self.timeout_seconds:
                raise ReasoningTimeoutException(
                    f"Reasoning exceeded timeout of {self.timeout_seconds}s"
                )

    def check(self):
        """Check both cancellation and timeout."""
        self.check_cancelled()
        self.check_timeout()
