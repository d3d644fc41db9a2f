"""Custom exceptions for the Inoreader client."""


class InoreaderError(Exception):
    """Base exception for Inoreader API errors.

    Allows callers (the sync job, the push loop) to catch every upstream
    failure with a single except block while still branching on the
    specific subclasses below.
    """

    pass


class InoreaderAuthError(InoreaderError):
    """Access token rejected and could not be refreshed."""

    pass


class InoreaderRateLimitError(InoreaderError):
    """Upstream answered 429.

    Attributes:
        retry_after: Seconds until the limits reset, when the response said so
    """

    def __init__(self, message: str, retry_after: int | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class InoreaderAPIError(InoreaderError):
    """Non-success response or network failure after retries.

    Attributes:
        status_code: HTTP status of the last response, None for network errors
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
