"""Doers send prepared requests; middleware wraps doers in more doers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

import requests
from requests.adapters import BaseAdapter


class Doer(ABC):
    """Sends one prepared request and returns its response.

    ``requests.Session`` and transport adapters already have this shape and
    are registered as virtual subclasses. Layers of doers form a stack of
    client-side middleware.
    """

    @abstractmethod
    def send(self, request: requests.PreparedRequest, **kwargs) -> requests.Response:
        """Send ``request``.

        Args:
            request: Request to send
            **kwargs: Transport options (timeout, stream, verify, ...) passed
                through to the innermost doer

        Returns:
            The response

        Raises:
            requests.RequestException: If the request could not be completed
        """


Doer.register(requests.Session)
Doer.register(BaseAdapter)


class DoerFunc(Doer):
    """Adapts a plain function to the Doer interface."""

    def __init__(self, fn: Callable[..., requests.Response]):
        self._fn = fn

    def send(self, request: requests.PreparedRequest, **kwargs) -> requests.Response:
        return self._fn(request, **kwargs)


Middleware = Callable[[Doer], Doer]


def wrap(doer: Doer, *middleware: Middleware) -> Doer:
    """Apply middleware to a doer.

    The returned doer invokes the middleware in argument order: the first
    one listed is the outermost layer.
    """
    for m in reversed(middleware):
        doer = m(doer)
    return doer
