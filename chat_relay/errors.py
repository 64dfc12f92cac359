class ConfigurationError(RuntimeError):
    """Raised at startup when required configuration is missing."""


class RelayError(Exception):
    """Base for failures that map to an HTTP response with an ``error`` body."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequestError(RelayError):
    status_code = 400


class UploadTooLargeError(RelayError):
    status_code = 413


class UpstreamError(RelayError):
    """The provider could not be reached or returned something unusable.

    ``cause`` is kept for server-side logging only and is never rendered
    into a response body.
    """

    status_code = 500

    def __init__(self, cause: str) -> None:
        super().__init__("upstream request failed")
        self.cause = cause
