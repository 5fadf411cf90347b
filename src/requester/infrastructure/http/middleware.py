"""General purpose middleware: request/response dumps and status expectations."""

from __future__ import annotations

import copy
import logging
from typing import Callable, Optional

import requests

from requester.infrastructure.http.doer import Doer, DoerFunc, Middleware
from requester.infrastructure.http.errors import UnexpectedStatusError

logger = logging.getLogger(__name__)

EXPECT_SUCCESS = -1


def _format_headers(headers) -> str:
    return "".join(f"{name}: {value}\r\n" for name, value in headers.items())


def _format_body(body) -> str:
    if body is None:
        return ""
    if isinstance(body, (bytes, bytearray)):
        return bytes(body).decode("utf-8", errors="replace")
    if isinstance(body, str):
        return body
    return f"<{type(body).__name__} body>"


def dump_request(request: requests.PreparedRequest) -> str:
    """Render a request roughly as it appears on the wire."""
    return f"{request.method} {request.url}\r\n{_format_headers(request.headers)}\r\n{_format_body(request.body)}"


def dump_response(response: requests.Response) -> str:
    """Render a response roughly as it appears on the wire.

    The body is read into memory, so it stays readable afterwards.
    """
    status_line = f"HTTP/1.1 {response.status_code} {response.reason or ''}".rstrip()
    return f"{status_line}\r\n{_format_headers(response.headers)}\r\n{_format_body(response.content)}"


def dump(write: Callable[[str], object]) -> Middleware:
    """Write every request and response to ``write``. Intended for debugging.

    ``write`` is called once for the request and once for the response, each
    time with the whole dump as a single string.
    """

    def middleware(next_doer: Doer) -> Doer:
        def send(request: requests.PreparedRequest, **kwargs) -> requests.Response:
            write(dump_request(request))
            response = next_doer.send(request, **kwargs)
            if response is not None:
                try:
                    write(dump_response(response))
                except requests.RequestException as e:
                    write(f"Error dumping response: {e}")
            return response

        return DoerFunc(send)

    return middleware


def dump_to_log(log: Optional[logging.Logger] = None, level: int = logging.DEBUG) -> Middleware:
    """Dump requests and responses to a logger."""
    log = log or logger
    return dump(lambda text: log.log(level, text))


class _StatusExpectation:
    def __init__(self):
        self.code: Optional[int] = None


def _expectation(request: requests.PreparedRequest):
    # Stacked expectations share one holder on the request, so the innermost
    # layer's code is the one every layer checks.
    expectation = getattr(request, "status_expectation", None)
    if expectation is None:
        expectation = _StatusExpectation()
        request = copy.copy(request)
        request.status_expectation = expectation
    return request, expectation


def _check_status(expectation: _StatusExpectation, response: requests.Response) -> requests.Response:
    code = response.status_code
    if expectation.code == EXPECT_SUCCESS:
        if not 200 <= code <= 299:
            raise UnexpectedStatusError(
                f"server returned an unsuccessful status code: {code}", response=response
            )
    elif expectation.code is not None and code != expectation.code:
        raise UnexpectedStatusError(
            f"server returned unexpected status code. expected: {expectation.code}, received: {code}",
            response=response,
        )
    return response


def _expect(code: int) -> Middleware:
    def middleware(next_doer: Doer) -> Doer:
        def send(request: requests.PreparedRequest, **kwargs) -> requests.Response:
            request, expectation = _expectation(request)
            expectation.code = code
            response = next_doer.send(request, **kwargs)
            if response is None:
                return response
            return _check_status(expectation, response)

        return DoerFunc(send)

    return middleware


def expect_code(code: int) -> Middleware:
    """Raise UnexpectedStatusError unless the response has status ``code``.

    The response stays readable through ``error.response``.
    """
    return _expect(code)


def expect_success_code() -> Middleware:
    """Raise UnexpectedStatusError unless the response status is 2xx."""
    return _expect(EXPECT_SUCCESS)
