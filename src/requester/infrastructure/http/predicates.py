"""Retry predicates: decide whether a completed attempt should be retried."""

from __future__ import annotations

import errno
import http.client
from abc import ABC, abstractmethod
from typing import Callable, Iterator, Optional, Union

import requests
import urllib3.exceptions

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})

_RESET_ERRNOS = frozenset({errno.ECONNRESET, errno.ECONNABORTED, errno.EPIPE})

_END_OF_STREAM_ERRORS = (
    EOFError,
    http.client.IncompleteRead,
    urllib3.exceptions.IncompleteRead,
)

_RESET_ERRORS = (
    ConnectionResetError,
    ConnectionAbortedError,
    BrokenPipeError,
)


class ShouldRetryer(ABC):
    """Evaluates whether a request should be attempted again."""

    @abstractmethod
    def should_retry(
        self,
        attempt: int,
        request: requests.PreparedRequest,
        response: Optional[requests.Response],
        error: Optional[BaseException],
    ) -> bool:
        """Decide whether to make another attempt.

        Args:
            attempt: The attempt which just completed, starting at 1. If
                ``attempt=1``, return True when attempt 2 should be made
            request: The request that was sent
            response: The response, if one was received
            error: The error raised by the attempt, if any

        Returns:
            True if the request should be retried
        """


Predicate = Callable[
    [int, requests.PreparedRequest, Optional[requests.Response], Optional[BaseException]],
    bool,
]


class ShouldRetryerFunc(ShouldRetryer):
    """Adapts a plain function to the ShouldRetryer interface."""

    def __init__(self, fn: Predicate):
        self._fn = fn

    def should_retry(self, attempt, request, response, error) -> bool:
        return self._fn(attempt, request, response, error)

    def __call__(self, attempt, request, response, error) -> bool:
        return self.should_retry(attempt, request, response, error)


def _causes(error: BaseException) -> Iterator[BaseException]:
    """Yield error and every exception it wraps.

    requests and urllib3 nest the root cause in exception arguments
    (``ConnectionError(ProtocolError(msg, ConnectionResetError()))``) and in
    ``MaxRetryError.reason``, besides the usual ``__cause__`` chain.
    """
    seen = set()
    stack = [error]
    while stack:
        current = stack.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        linked = [current.__cause__, getattr(current, "reason", None), *current.args]
        stack.extend(e for e in linked if isinstance(e, BaseException))


def _is_timeout(error: BaseException) -> bool:
    if isinstance(error, urllib3.exceptions.NewConnectionError):
        # urllib3 models failed connects as a ConnectTimeoutError subclass
        return False
    return isinstance(
        error,
        (requests.Timeout, TimeoutError, urllib3.exceptions.TimeoutError),
    )


def is_retryable_error(error: BaseException) -> bool:
    """True for end-of-stream, connection reset/aborted, broken pipe and timeouts."""
    for cause in _causes(error):
        if isinstance(cause, _END_OF_STREAM_ERRORS + _RESET_ERRORS):
            return True
        if isinstance(cause, OSError) and cause.errno in _RESET_ERRNOS:
            return True
        if _is_timeout(cause):
            return True
    return False


def is_retryable_status(status_code: int) -> bool:
    """True for 429 and 5xx, except 501 Not Implemented."""
    return status_code == 500 or status_code > 501 or status_code == 429


def default_should_retry(
    attempt: int,
    request: requests.PreparedRequest,
    response: Optional[requests.Response],
    error: Optional[BaseException],
) -> bool:
    """Retry timeouts, dropped connections, 429 and 5xx responses (except 501)."""
    if error is None:
        return response is not None and is_retryable_status(response.status_code)
    # Anything else is some internal or protocol error; retrying won't help
    return is_retryable_error(error)


def only_idempotent_should_retry(
    attempt: int,
    request: requests.PreparedRequest,
    response: Optional[requests.Response],
    error: Optional[BaseException],
) -> bool:
    """Only retry methods intended to be idempotent: GET, HEAD, OPTIONS and TRACE.

    Meant to be combined with other criteria, e.g.::

        all_retryers(default_should_retry, only_idempotent_should_retry)
    """
    return (request.method or "").upper() in IDEMPOTENT_METHODS


def as_should_retryer(
    value: Union[ShouldRetryer, Predicate, None],
) -> Optional[ShouldRetryer]:
    """Accept a ShouldRetryer, a bare function, or None."""
    if value is None or isinstance(value, ShouldRetryer):
        return value
    if callable(value):
        return ShouldRetryerFunc(value)
    raise TypeError(f"expected a ShouldRetryer or callable, got {type(value).__name__}")


def all_retryers(*retryers: Union[ShouldRetryer, Predicate]) -> ShouldRetryer:
    """Combine retryers; the result retries only if every one of them agrees."""
    checks = [as_should_retryer(r) for r in retryers]

    def _all(attempt, request, response, error) -> bool:
        return all(c.should_retry(attempt, request, response, error) for c in checks)

    return ShouldRetryerFunc(_all)
