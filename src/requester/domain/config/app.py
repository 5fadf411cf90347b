"""Main application configuration model."""

from pydantic import BaseModel, ConfigDict, Field

from requester.domain.config.http import HTTPConfig
from requester.domain.config.retry import RetryConfig


class AppConfig(BaseModel):
    """Main application configuration.

    This is the root configuration model that aggregates all configuration sections.
    Validation is performed at load time to fail fast on configuration errors.

    Attributes:
        http: Request sending configuration
        retry: Retry logic configuration
    """

    http: HTTPConfig = Field(default_factory=HTTPConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    model_config = ConfigDict(
        validate_assignment=True,
        extra="forbid",  # Reject unknown fields
        json_schema_extra={
            "example": {
                "http": {
                    "timeout": 30.0,
                    "expect_success": False,
                    "dump": False,
                },
                "retry": {
                    "max_attempts": 3,
                    "read_response": False,
                    "idempotent_only": False,
                    "drain_limit": 4096,
                    "backoff": {
                        "base_delay": 1.0,
                        "multiplier": 1.6,
                        "jitter": 0.2,
                        "max_delay": 120.0,
                    },
                },
            }
        },
    )
