"""Pipeline error taxonomy.

Each error carries the HTTP status the API layer should answer with, so routes
can translate any of them with a single ``except PipelineError`` clause.
"""

from fastapi import status


class PipelineError(Exception):
    """Base class for errors that abort a request."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(PipelineError):
    """A chatbot, event, candidate or session target does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateError(PipelineError):
    """The chatbot is not active and the request is not a preview."""

    status_code = status.HTTP_400_BAD_REQUEST


class QuotaExceededError(PipelineError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class ServiceUnavailableError(PipelineError):
    """The answer selector could not be reached or failed."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class BadRequestError(PipelineError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidSessionTokenError(PipelineError):
    status_code = status.HTTP_401_UNAUTHORIZED


class SessionTokenExpiredError(InvalidSessionTokenError):
    """Raised instead of the generic error so clients can refresh the session."""

    def __init__(self, message: str = "TOKEN_EXPIRED"):
        super().__init__(message)
