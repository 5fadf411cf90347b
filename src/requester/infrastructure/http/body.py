"""Request body replay and response body handling.

A request can only be sent more than once if its body can be produced again.
The capability is resolved when the request is built (``body_regenerator_for``)
and attached to the prepared request, so the retry layer only ever asks
``is_replayable`` and ``reset_request``.
"""

from __future__ import annotations

import contextlib
import copy
import io
from typing import Any, Callable, Optional

import requests

from requester.infrastructure.http.errors import BodyRegenerationError, ResponseReadError

BodyRegenerator = Callable[[], Any]

DEFAULT_DRAIN_LIMIT = 4096

_READ_CHUNK_SIZE = 64 * 1024


def body_regenerator_for(body: Any) -> Optional[BodyRegenerator]:
    """Derive a regenerator for a request body, if one can be derived.

    Strings and bytes are immutable and regenerate themselves. In-memory
    buffers yield a fresh buffer holding the bytes that were unread when this
    was called. Files, generators and other streams return None: they cannot
    be replayed.
    """
    if body is None:
        return None
    if isinstance(body, (bytes, str)):
        return lambda: body
    if isinstance(body, bytearray):
        frozen = bytes(body)
        return lambda: frozen
    if isinstance(body, io.BytesIO):
        remaining = body.getvalue()[body.tell():]
        return lambda: io.BytesIO(remaining)
    if isinstance(body, io.StringIO):
        remaining = body.getvalue()[body.tell():]
        return lambda: io.StringIO(remaining)
    return None


def attach_body_regenerator(
    request: requests.PreparedRequest, regenerator: Optional[BodyRegenerator]
) -> requests.PreparedRequest:
    """Attach ``regenerator`` to ``request`` and return the request."""
    request.get_body = regenerator
    return request


def get_body_regenerator(request: requests.PreparedRequest) -> Optional[BodyRegenerator]:
    return getattr(request, "get_body", None)


def has_body(request: requests.PreparedRequest) -> bool:
    """True if the request carries a body that is present and non-empty.

    Streams can't be inspected without consuming them, so they count as
    non-empty.
    """
    body = request.body
    if body is None:
        return False
    if isinstance(body, (bytes, bytearray, str)):
        return len(body) > 0
    return True


def is_replayable(request: requests.PreparedRequest) -> bool:
    """True if the request can be sent again with an identical body."""
    return not has_body(request) or get_body_regenerator(request) is not None


def reset_request(request: requests.PreparedRequest) -> requests.PreparedRequest:
    """Rewind a request for another attempt.

    Returns a shallow copy of ``request`` with a regenerated body; the
    original is left untouched since the transport may still hold it.

    Raises:
        BodyRegenerationError: If the body regenerator fails
    """
    replay = copy.copy(request)
    if has_body(request):
        regenerate = get_body_regenerator(request)
        try:
            replay.body = regenerate()
        except Exception as e:
            raise BodyRegenerationError(f"regenerating request body: {e}", request=request) from e
    return replay


class ErrorCloser:
    """In-memory response stream whose ``close()`` reports a deferred error."""

    def __init__(self, data: bytes, error: BaseException):
        self._buffer = io.BytesIO(data)
        self.error = error

    def read(self, amt: Optional[int] = None) -> bytes:
        return self._buffer.read(amt)

    def readable(self) -> bool:
        return True

    @property
    def closed(self) -> bool:
        return self._buffer.closed

    def close(self) -> None:
        self._buffer.close()
        raise self.error


def _is_buffered(response: requests.Response) -> bool:
    # requests uses False as the "not read yet" sentinel for _content
    return response._content_consumed or response._content is not False


def buffer_response_body(response: requests.Response) -> requests.Response:
    """Read the whole response body into memory.

    Afterwards ``content``, ``text``, ``json()``, ``iter_content()`` and
    ``raw.read()`` all replay the buffered bytes.

    Raises:
        ResponseReadError: If reading fails part way. The bytes read so far
            stay on ``response.content`` and the response is attached to the
            error.
    """
    if response.raw is None or _is_buffered(response):
        return response

    raw = response.raw
    buf = bytearray()
    try:
        for chunk in response.iter_content(chunk_size=_READ_CHUNK_SIZE):
            buf.extend(chunk)
    except Exception as e:
        response._content = bytes(buf)
        response._content_consumed = True
        response.raw = ErrorCloser(response._content, e)
        with contextlib.suppress(Exception):
            raw.close()
        raise ResponseReadError(
            f"reading response body: {e}", response=response, request=response.request
        ) from e

    response._content = bytes(buf)
    response._content_consumed = True
    try:
        raw.close()
    except Exception as e:
        response.raw = ErrorCloser(response._content, e)
    else:
        release_conn = getattr(raw, "release_conn", None)
        if release_conn is not None:
            release_conn()
        response.raw = io.BytesIO(response._content)
    return response


def drain(response: Optional[requests.Response], limit: int = DEFAULT_DRAIN_LIMIT) -> None:
    """Read at most ``limit`` bytes of an unread body, then close the response.

    Lets the connection go back to the pool before the response is abandoned.
    Failures are ignored: this is cleanup, the caller never sees the response.
    """
    if response is None:
        return
    if response.raw is not None and not _is_buffered(response):
        with contextlib.suppress(Exception):
            response.raw.read(limit)
    with contextlib.suppress(Exception):
        response.close()
