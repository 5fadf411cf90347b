"""Exceptions raised by the HTTP layer.

Everything derives from ``requests.RequestException`` so callers handle a
single hierarchy. Errors tied to a response carry it on ``.response``.
"""

from __future__ import annotations

import requests


class ContextError(requests.RequestException):
    """The request context ended before the call completed."""


class RequestCancelled(ContextError):
    """The request context was cancelled."""


class DeadlineExceeded(ContextError):
    """The request context deadline passed."""


class BodyRegenerationError(requests.RequestException):
    """The request body could not be regenerated for another attempt."""


class ResponseReadError(requests.RequestException):
    """Reading the response body failed part way through.

    Whatever was read before the failure stays available on
    ``error.response.content``.
    """


class UnexpectedStatusError(requests.HTTPError):
    """The server answered with a status code the caller did not expect."""
