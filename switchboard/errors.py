"""Error hierarchy for Switchboard orchestration.

Every externally visible failure maps to one of these types. The pipeline
turns them into user-facing replies; nothing here is allowed to crash the
process.
"""


class SwitchboardError(Exception):
    """Base exception for all orchestration errors."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConfigurationError(SwitchboardError):
    """Raised when credentials, base URLs or identifiers are missing."""

    pass


class TransientNetworkError(SwitchboardError):
    """Raised on network-level or retryable upstream failures.

    Examples:
        - Connection refused or timed out
        - Expired credentials on the assistant service
        - 5xx or 429 responses once retries are exhausted
    """

    pass


class ClientRequestError(SwitchboardError):
    """Raised on a non-retryable 4xx response from an upstream API."""

    def __init__(
        self,
        message: str,
        status_code: int,
        detail: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.status_code = status_code
        self.detail = detail


class RunTerminalError(SwitchboardError):
    """Raised when an assistant run ends without completing."""

    def __init__(
        self,
        message: str,
        run_id: str,
        status: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.run_id = run_id
        self.status = status


class RunSupersededError(RunTerminalError):
    """Raised when a run was cancelled because a newer prompt replaced it."""

    pass


class RunTimeoutError(RunTerminalError):
    """Raised when a run does not reach a terminal status in time."""

    pass


class MalformedToolArguments(SwitchboardError):
    """Raised when tool-call arguments cannot be parsed into an object."""

    def __init__(
        self,
        function_name: str,
        message: str = "invalid arguments",
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.function_name = function_name


class ThreadCreationError(SwitchboardError):
    """Raised when a conversation thread could not be created atomically."""

    pass


class ThreadNotFoundError(SwitchboardError):
    """Raised when an admin operation targets an unknown conversation."""

    pass


class DeliveryError(SwitchboardError):
    """Raised when a turn could be neither written nor queued."""

    pass


class UpstreamError(TransientNetworkError):
    """Raised when an upstream API keeps answering 5xx or 429."""

    def __init__(
        self,
        message: str,
        status_code: int,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.status_code = status_code
