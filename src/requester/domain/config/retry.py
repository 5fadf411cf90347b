"""Retry configuration models."""

from pydantic import BaseModel, Field


class BackoffConfig(BaseModel):
    """Configuration for the wait between attempts.

    Attributes:
        base_delay: Seconds to wait after the first failed attempt (0 = no wait)
        multiplier: Growth factor per attempt (0 = constant delay)
        jitter: Random jitter factor (0.0-1.0)
        max_delay: Upper bound on the delay in seconds (0 = unbounded)
    """

    base_delay: float = Field(1.0, ge=0.0)  # Allow 0 for tests
    multiplier: float = Field(1.6, ge=0.0, le=10.0)
    jitter: float = Field(0.2, ge=0.0, le=1.0)
    max_delay: float = Field(120.0, ge=0.0)


class RetryConfig(BaseModel):
    """Configuration for retry logic.

    Attributes:
        max_attempts: Maximum number of attempts, the first one included
        read_response: Read the whole response body before judging an attempt
        idempotent_only: Only retry GET, HEAD, OPTIONS and TRACE requests
        drain_limit: Bytes read from an abandoned response before closing it
        backoff: Wait between attempts
    """

    max_attempts: int = Field(3, gt=0, le=100)
    read_response: bool = False
    idempotent_only: bool = False
    drain_limit: int = Field(4096, ge=0)
    backoff: BackoffConfig = Field(default_factory=BackoffConfig)
