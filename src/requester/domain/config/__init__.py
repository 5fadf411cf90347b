"""Configuration models with Pydantic validation."""

from requester.domain.config.app import AppConfig
from requester.domain.config.http import HTTPConfig
from requester.domain.config.retry import BackoffConfig, RetryConfig

__all__ = [
    "AppConfig",
    "HTTPConfig",
    "RetryConfig",
    "BackoffConfig",
]
