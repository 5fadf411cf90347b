"""HTTP client facade: builds replayable requests and sends them through middleware."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from requester.domain.config import AppConfig
from requester.infrastructure.http.body import (
    BodyRegenerator,
    attach_body_regenerator,
    body_regenerator_for,
)
from requester.infrastructure.http.context import RequestContext, attach_context
from requester.infrastructure.http.doer import Doer, Middleware, wrap
from requester.infrastructure.http.middleware import dump_to_log, expect_success_code
from requester.infrastructure.http.retry import retry, retry_config_from_model

logger = logging.getLogger(__name__)


class HTTPClient:
    """Sends requests with a ``requests.Session`` wrapped in middleware.

    Every request built here gets a body regenerator (when its body kind
    allows one) and a RequestContext, so retry middleware can replay it and
    callers can cancel it.
    """

    def __init__(
        self,
        session: Optional[Doer] = None,
        *,
        middleware: Optional[List[Middleware]] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize client

        Args:
            session: Session (or any other Doer) used as the transport
            middleware: Middleware applied to the transport, outermost first
            timeout: Default transport timeout in seconds for each attempt
        """
        self.session = session if session is not None else requests.Session()
        self.middleware: List[Middleware] = list(middleware or [])
        self.timeout = timeout

    def use(self, *middleware: Middleware) -> "HTTPClient":
        """Append middleware; it runs inside the middleware already installed."""
        self.middleware.extend(middleware)
        return self

    @property
    def doer(self) -> Doer:
        return wrap(self.session, *self.middleware)

    def prepare(
        self,
        method: str,
        url: str,
        *,
        data: Any = None,
        headers: Optional[Dict[str, str]] = None,
        get_body: Optional[BodyRegenerator] = None,
        context: Optional[RequestContext] = None,
    ) -> requests.PreparedRequest:
        """Build a prepared request ready to be sent (and resent).

        Args:
            method: HTTP method
            url: Absolute URL
            data: Body handed to requests as-is (str, bytes, file-like, ...)
            headers: Extra headers handed to requests as-is
            get_body: Explicit body regenerator, for bodies that can't be
                replayed automatically
            context: Cancellation/deadline context (a fresh one if None)

        Returns:
            Prepared request with regenerator and context attached
        """
        request = requests.Request(method=method.upper(), url=url, data=data, headers=headers)
        # Plain doers have no session state (cookies, default headers) to merge
        prepare_request = getattr(self.session, "prepare_request", None)
        prepared = prepare_request(request) if prepare_request else request.prepare()
        attach_body_regenerator(prepared, get_body or body_regenerator_for(prepared.body))
        attach_context(prepared, context or RequestContext())
        return prepared

    def send(self, request: requests.PreparedRequest, **kwargs) -> requests.Response:
        """Send a prepared request through the middleware stack."""
        if self.timeout is not None:
            kwargs.setdefault("timeout", self.timeout)
        logger.debug(f"HTTP {request.method} {request.url}")
        return self.doer.send(request, **kwargs)

    def request(
        self,
        method: str,
        url: str,
        *,
        data: Any = None,
        headers: Optional[Dict[str, str]] = None,
        get_body: Optional[BodyRegenerator] = None,
        context: Optional[RequestContext] = None,
        **kwargs,
    ) -> requests.Response:
        """Build and send a request.

        Extra keyword arguments (timeout, stream, verify, ...) go to the transport.
        """
        prepared = self.prepare(
            method, url, data=data, headers=headers, get_body=get_body, context=context
        )
        return self.send(prepared, **kwargs)

    def close(self) -> None:
        close = getattr(self.session, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "HTTPClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def client_from_config(config: AppConfig, session: Optional[Doer] = None) -> HTTPClient:
    """Create an HTTPClient configured from AppConfig

    The stack is, outermost first: success-status check (if enabled), retry,
    request dump (if enabled). The status check sees only the final attempt,
    the dump sees every attempt.
    """
    middleware: List[Middleware] = []
    if config.http.expect_success:
        middleware.append(expect_success_code())
    middleware.append(retry(retry_config_from_model(config.retry)))
    if config.http.dump:
        middleware.append(dump_to_log())
    return HTTPClient(session, middleware=middleware, timeout=config.http.timeout)
