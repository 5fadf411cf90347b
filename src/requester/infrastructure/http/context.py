"""Cancellation and deadlines for outbound requests."""

from __future__ import annotations

import threading
import time
from typing import Optional

import requests

from requester.infrastructure.http.errors import ContextError, DeadlineExceeded, RequestCancelled


class RequestContext:
    """Cancellation signal and optional deadline shared by every attempt of a call.

    ``cancel()`` may be called from any thread. Waits performed through
    ``sleep()`` return early with an error once the context is cancelled or
    its deadline passes.
    """

    def __init__(self, timeout: Optional[float] = None):
        """Initialize context

        Args:
            timeout: Seconds from now until the deadline (None = no deadline)
        """
        self._cancelled = threading.Event()
        self.deadline: Optional[float] = None
        if timeout is not None:
            self.deadline = time.monotonic() + timeout

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left until the deadline, or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def err(self) -> Optional[ContextError]:
        """The error describing why the context ended, or None while it is live."""
        if self.cancelled:
            return RequestCancelled("request context cancelled")
        if self.deadline is not None and self.remaining() <= 0:
            return DeadlineExceeded("request context deadline exceeded")
        return None

    def sleep(self, seconds: float) -> None:
        """Wait ``seconds`` unless the context ends first.

        Raises:
            RequestCancelled: If the context is cancelled before the wait is over
            DeadlineExceeded: If the deadline passes before the wait is over
        """
        timeout = max(0.0, seconds)
        remaining = self.remaining()
        hits_deadline = remaining is not None and remaining < timeout
        if hits_deadline:
            timeout = remaining

        if self._cancelled.wait(min(timeout, threading.TIMEOUT_MAX)):
            raise RequestCancelled("request context cancelled")
        if hits_deadline:
            raise DeadlineExceeded("request context deadline exceeded")


def attach_context(request: requests.PreparedRequest, context: RequestContext) -> requests.PreparedRequest:
    """Attach ``context`` to ``request`` and return the request."""
    request.context = context
    return request


def context_of(request: requests.PreparedRequest) -> RequestContext:
    """Return the context attached to ``request``, or a context that never ends."""
    context = getattr(request, "context", None)
    if context is None:
        return RequestContext()
    return context
