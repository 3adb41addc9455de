"""Exceptions raised by the agent gateway and resilience layer."""

from typing import Optional


class AgentError(Exception):
    """Base class for agent layer errors."""


class GatewayError(AgentError):
    """Raised when the AI gateway returns an error response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429 or "429" in str(self)


class RateLimitError(GatewayError):
    """Raised on HTTP 429 from the gateway."""

    def __init__(self, message: str = "Rate limit exceeded (429)"):
        super().__init__(message, status_code=429)


class RetryExhaustedError(AgentError):
    """Raised when every retry of a rate-limited call has failed."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class GatewayNotConfiguredError(AgentError):
    """Raised when no API key is available for the gateway."""


class MalformedResponseError(AgentError):
    """Raised when a gateway response carries no candidate text."""


def is_rate_limit_error(error: BaseException) -> bool:
    """True for HTTP 429 responses or any error whose message mentions 429."""
    if isinstance(error, GatewayError):
        return error.is_rate_limited
    return "429" in str(error)
