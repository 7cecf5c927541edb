"""
Agent error taxonomy.

Workflow-level failures propagate to the entry point, which collapses them
into one of three stable user-facing messages (see USER_MESSAGES). Tool-level
failures never appear here: the lookup tool turns them into ordinary
tool-result content.
"""

from enum import Enum


class ErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    UNAUTHENTICATED = "unauthenticated"
    GENERIC = "generic"


USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.RATE_LIMITED: (
        "Service temporarily unavailable due to rate limits. Please try again in a minute."
    ),
    ErrorKind.UNAUTHENTICATED: "Authentication failed. Please check your API configuration.",
    ErrorKind.GENERIC: "Agent failed to process the request. Please try again later.",
}


class AgentError(Exception):
    """Base class for workflow-level failures."""


class RateLimited(AgentError):
    """Upstream throttling (HTTP 429 or equivalent)."""


class Unauthenticated(AgentError):
    """Upstream rejected our credentials (HTTP 401 or equivalent)."""


class RetriesExhausted(AgentError):
    """Every attempt allowed by the retry policy failed with a retryable error."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Max retries exceeded after {attempts} attempts: {last_error}")


class RecursionLimitExceeded(AgentError):
    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Recursion limit of {limit} reached without a final answer")


class UnknownTool(AgentError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Model requested unknown tool {name!r}")


class PersistenceFailure(AgentError):
    """Checkpoint load or save failed."""

    def __init__(self, thread_id: str, operation: str, cause: BaseException) -> None:
        self.thread_id = thread_id
        self.operation = operation
        super().__init__(f"Checkpoint {operation} failed for thread {thread_id}: {cause}")


class AgentFailed(Exception):
    """
    Raised by the entry point. Carries only the user-facing message; the
    underlying exception is chained as __cause__ for logs.
    """

    def __init__(self, kind: ErrorKind) -> None:
        self.kind = kind
        self.message = USER_MESSAGES[kind]
        super().__init__(self.message)


def http_status(exc: BaseException) -> int | None:
    """Best-effort HTTP status of an upstream client exception."""
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def is_rate_limited(exc: BaseException) -> bool:
    return isinstance(exc, RateLimited) or http_status(exc) == 429


def classify(exc: BaseException) -> ErrorKind:
    if isinstance(exc, RetriesExhausted) or is_rate_limited(exc):
        return ErrorKind.RATE_LIMITED
    if isinstance(exc, Unauthenticated) or http_status(exc) == 401:
        return ErrorKind.UNAUTHENTICATED
    return ErrorKind.GENERIC
