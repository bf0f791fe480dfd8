"""API exception hierarchy.

The global handler turns these into ErrorResponse bodies using
status_code and error_code.
"""

from switchboard.api.models import ErrorCode


class SwitchboardAPIError(Exception):
    """Base exception for all API errors."""

    status_code: int = 500
    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidRequestError(SwitchboardAPIError):
    status_code = 400
    error_code = ErrorCode.INVALID_REQUEST


class ConversationNotFoundError(SwitchboardAPIError):
    """Raised when no thread exists for the identifier."""

    status_code = 404
    error_code = ErrorCode.CONVERSATION_NOT_FOUND


class ConversationExistsError(SwitchboardAPIError):
    status_code = 409
    error_code = ErrorCode.CONVERSATION_EXISTS


class UpstreamUnavailableError(SwitchboardAPIError):
    """Raised when the store or assistant service cannot be reached."""

    status_code = 502
    error_code = ErrorCode.UPSTREAM_ERROR
