"""Exceptions raised while fetching and extracting article pages."""


class ExtractionError(Exception):
    """Base exception for extraction errors."""


class NetworkError(ExtractionError):
    """The page could not be downloaded (HTTP error, connection failure)."""


class FetchTimeoutError(NetworkError):
    """The page did not respond within the configured timeout."""


class ContentTooLargeError(ExtractionError):
    """The page exceeds the configured size limit."""


class EmptyContentError(ExtractionError):
    """The page was downloaded but no readable article was found."""
