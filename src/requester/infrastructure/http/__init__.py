"""HTTP doers, middleware and retry"""

from requester.infrastructure.http.backoff import (
    Backoffer,
    BackofferFunc,
    ExponentialBackoff,
    constant_backoff,
    constant_backoff_with_jitter,
    default_backoff,
    no_backoff,
)
from requester.infrastructure.http.client import HTTPClient, client_from_config
from requester.infrastructure.http.context import RequestContext
from requester.infrastructure.http.doer import Doer, DoerFunc, Middleware, wrap
from requester.infrastructure.http.errors import (
    BodyRegenerationError,
    ContextError,
    DeadlineExceeded,
    RequestCancelled,
    ResponseReadError,
    UnexpectedStatusError,
)
from requester.infrastructure.http.middleware import (
    dump,
    dump_to_log,
    expect_code,
    expect_success_code,
)
from requester.infrastructure.http.predicates import (
    ShouldRetryer,
    ShouldRetryerFunc,
    all_retryers,
    default_should_retry,
    only_idempotent_should_retry,
)
from requester.infrastructure.http.retry import RetryConfig, RetryDoer, retry

__all__ = [
    "Backoffer",
    "BackofferFunc",
    "ExponentialBackoff",
    "no_backoff",
    "constant_backoff",
    "constant_backoff_with_jitter",
    "default_backoff",
    "HTTPClient",
    "client_from_config",
    "RequestContext",
    "Doer",
    "DoerFunc",
    "Middleware",
    "wrap",
    "ContextError",
    "RequestCancelled",
    "DeadlineExceeded",
    "BodyRegenerationError",
    "ResponseReadError",
    "UnexpectedStatusError",
    "dump",
    "dump_to_log",
    "expect_code",
    "expect_success_code",
    "ShouldRetryer",
    "ShouldRetryerFunc",
    "all_retryers",
    "default_should_retry",
    "only_idempotent_should_retry",
    "RetryConfig",
    "RetryDoer",
    "retry",
]
