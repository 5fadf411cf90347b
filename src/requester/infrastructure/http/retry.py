"""Retry middleware for doers (requests + tenacity).

tenacity drives the attempts; the retry predicate together with the attempt
bound, and the backoff policy, are adapted into its ``retry`` and ``wait``
strategies.
Between attempts this module does the HTTP-specific work: it drains the
abandoned response so its connection can be reused, rewinds the request body,
and sleeps on the request context so a cancelled call stops waiting.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional, Tuple, Union

import requests
from tenacity import RetryCallState, Retrying
from tenacity.retry import retry_base
from tenacity.wait import wait_base

from requester.domain.config.retry import RetryConfig as RetryConfigModel
from requester.infrastructure.http.backoff import (
    Backoffer,
    ExponentialBackoff,
    as_backoffer,
    default_backoff,
)
from requester.infrastructure.http.body import (
    DEFAULT_DRAIN_LIMIT,
    buffer_response_body,
    drain,
    is_replayable,
    reset_request,
)
from requester.infrastructure.http.context import context_of
from requester.infrastructure.http.doer import Doer, Middleware
from requester.infrastructure.http.errors import BodyRegenerationError
from requester.infrastructure.http.predicates import (
    Predicate,
    ShouldRetryer,
    ShouldRetryerFunc,
    all_retryers,
    as_should_retryer,
    default_should_retry,
    only_idempotent_should_retry,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


@dataclass(frozen=True)
class RetryConfig:
    """Settings for the retry middleware.

    Instances are immutable and safe to share between threads.

    Attributes:
        max_attempts: Number of times to attempt the request. Values below 1
            mean the default of 3
        should_retry: Decides whether a completed attempt is retried. Defaults
            to ``default_should_retry``
        backoff: How long to wait between attempts. Defaults to
            ``default_backoff()``
        read_response: Read the entire response body into memory before
            deciding whether the attempt succeeded, so errors in the middle of
            the body are retried too
        drain_limit: Maximum bytes read from an abandoned response body before
            it is closed
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    should_retry: Union[ShouldRetryer, Predicate, None] = None
    backoff: Union[Backoffer, Callable[[int], float], None] = None
    read_response: bool = False
    drain_limit: int = DEFAULT_DRAIN_LIMIT

    def normalized(self) -> "RetryConfig":
        """Return a copy with every default filled in."""
        return replace(
            self,
            max_attempts=self.max_attempts if self.max_attempts >= 1 else DEFAULT_MAX_ATTEMPTS,
            should_retry=as_should_retryer(self.should_retry) or ShouldRetryerFunc(default_should_retry),
            backoff=as_backoffer(self.backoff) or default_backoff(),
            drain_limit=max(0, self.drain_limit),
        )


def retry_config_from_model(config: RetryConfigModel) -> RetryConfig:
    """Build the runtime retry settings from the validated config model."""
    should_retry: ShouldRetryer = ShouldRetryerFunc(default_should_retry)
    if config.idempotent_only:
        should_retry = all_retryers(default_should_retry, only_idempotent_should_retry)

    backoff = config.backoff
    return RetryConfig(
        max_attempts=config.max_attempts,
        should_retry=should_retry,
        backoff=ExponentialBackoff(
            base_delay=backoff.base_delay,
            multiplier=backoff.multiplier,
            jitter=backoff.jitter,
            max_delay=backoff.max_delay,
        ),
        read_response=config.read_response,
        drain_limit=config.drain_limit,
    )


def _outcome(retry_state: RetryCallState) -> Tuple[Optional[requests.Response], Optional[BaseException]]:
    outcome = retry_state.outcome
    if outcome.failed:
        error = outcome.exception()
        return getattr(error, "response", None), error
    return outcome.result(), None


class retry_if_should_retry(retry_base):
    """Retry strategy consulting a ShouldRetryer while attempts remain.

    This strategy owns the attempt bound: the predicate is never asked about
    the final allowed attempt. Exceptions that aren't ``Exception`` subclasses
    (KeyboardInterrupt, SystemExit, ...) are never retried.
    """

    def __init__(
        self,
        should_retry: ShouldRetryer,
        max_attempts: int,
        current_request: Callable[[], requests.PreparedRequest],
    ):
        self.should_retry = should_retry
        self.max_attempts = max_attempts
        self.current_request = current_request

    def __call__(self, retry_state: RetryCallState) -> bool:
        attempt = retry_state.attempt_number
        if attempt >= self.max_attempts:
            return False
        response, error = _outcome(retry_state)
        if error is not None and not isinstance(error, Exception):
            return False
        return self.should_retry.should_retry(attempt, self.current_request(), response, error)


class wait_backoffer(wait_base):
    """Wait strategy delegating to a Backoffer."""

    def __init__(self, backoffer: Backoffer):
        self.backoffer = backoffer

    def __call__(self, retry_state: RetryCallState) -> float:
        return max(0.0, self.backoffer.backoff(retry_state.attempt_number))


class _RetryCall:
    """Mutable state of one logical call; never shared between calls."""

    def __init__(self, doer: Doer, config: RetryConfig, request: requests.PreparedRequest, kwargs: dict):
        self.doer = doer
        self.config = config
        self.request = request
        self.kwargs = kwargs

    def attempt(self) -> requests.Response:
        response = self.doer.send(self.request, **self.kwargs)
        if self.config.read_response and response is not None:
            buffer_response_body(response)
        return response

    def before_sleep(self, retry_state: RetryCallState) -> None:
        response, error = _outcome(retry_state)
        drain(response, self.config.drain_limit)

        try:
            self.request = reset_request(self.request)
        except BodyRegenerationError as e:
            e.response = response
            raise

        # same wording as tenacity's before_sleep_log, plus the request
        if error is not None:
            verb, value = "raised", f"{error.__class__.__name__}: {error}"
        elif response is not None:
            verb, value = "returned", f"status {response.status_code}"
        else:
            verb, value = "returned", "no response"
        logger.warning(
            f"Retrying HTTP {self.request.method} {self.request.url} "
            f"in {retry_state.next_action.sleep} seconds as it {verb} {value} "
            f"(attempt {retry_state.attempt_number}/{self.config.max_attempts})."
        )

    def sleep(self, seconds: float) -> None:
        context_of(self.request).sleep(seconds)

    def retrying(self) -> Retrying:
        # no stop strategy: retry_if_should_retry ends the loop at max_attempts
        # and the final outcome is returned or re-raised as-is
        return Retrying(
            wait=wait_backoffer(self.config.backoff),
            retry=retry_if_should_retry(
                self.config.should_retry, self.config.max_attempts, lambda: self.request
            ),
            before_sleep=self.before_sleep,
            sleep=self.sleep,
            reraise=True,
        )


class RetryDoer(Doer):
    """Doer that retries the wrapped doer according to a RetryConfig.

    Requests whose body cannot be regenerated are passed straight through,
    since a second attempt would send an exhausted body.
    """

    def __init__(self, next_doer: Doer, config: Optional[RetryConfig] = None):
        self.next = next_doer
        self.config = (config or RetryConfig()).normalized()

    def send(self, request: requests.PreparedRequest, **kwargs) -> requests.Response:
        if not is_replayable(request):
            logger.debug(f"HTTP {request.method} {request.url}: body can't be regenerated, not retrying")
            return self.next.send(request, **kwargs)

        call = _RetryCall(self.next, self.config, request, kwargs)
        return call.retrying()(call.attempt)


def retry(config: Optional[RetryConfig] = None) -> Middleware:
    """Middleware that retries requests.

    The number of attempts, the retry conditions and the wait between attempts
    are configurable. With ``config=None`` the defaults are used: 3 attempts,
    ``default_should_retry`` and ``default_backoff()``.

    Requests with bodies are only retried when a body regenerator is attached
    (see ``requester.infrastructure.http.body``); ``HTTPClient`` attaches one
    automatically for strings, bytes and in-memory buffers.
    """
    normalized = (config or RetryConfig()).normalized()

    def middleware(next_doer: Doer) -> Doer:
        return RetryDoer(next_doer, normalized)

    return middleware
