"""HTTP client configuration model."""

from typing import Optional

from pydantic import BaseModel, Field


class HTTPConfig(BaseModel):
    """Configuration for sending requests.

    Attributes:
        timeout: Transport timeout in seconds per attempt (None = no timeout)
        expect_success: Treat non-2xx responses as errors
        dump: Log every request and response at DEBUG level
    """

    timeout: Optional[float] = Field(30.0, gt=0.0)
    expect_success: bool = False
    dump: bool = False
