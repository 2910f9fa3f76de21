"""Custom exceptions for the gateway application."""


class GatewayException(Exception):
    """Base class for gateway exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500
    error: str = "gateway_error"

    def __init__(self, message: str = "Gateway error"):
        self.message = message
        super().__init__(message)

    def to_response(self) -> dict:
        return {"error": self.error, "message": self.message}


class ValidationError(GatewayException):
    """Raised for malformed, oversized or wrongly typed input.

    Never retried. Maps to 400, 413 or 415 depending on the violation.
    """
    status_code = 400
    error = "Validation Error"

    def __init__(self, message: str, status_code: int = 400, error: str | None = None):
        self.status_code = status_code
        if error:
            self.error = error
        super().__init__(message)


class RateLimitedError(GatewayException):
    """Raised when a token bucket rejects a request.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429
    error = "Too many requests"

    def __init__(self, retry_after: int, limit: int = 0, reset_at: str | None = None):
        self.retry_after = retry_after
        self.limit = limit
        self.reset_at = reset_at
        super().__init__("Rate limit exceeded. Please try again later.")

    def to_response(self) -> dict:
        return {
            "error": self.error,
            "message": self.message,
            "retryAfter": self.retry_after,
        }


class CircuitOpenError(GatewayException):
    """Raised when a circuit breaker is open and rejecting calls.

    Not retried: the breaker itself is the gate.
    """
    status_code = 503
    error = "service_unavailable"

    def __init__(self, name: str, retry_after: float = 0.0):
        self.name = name
        self.retry_after = retry_after
        super().__init__(
            f"Circuit breaker [{name}] is OPEN. Service temporarily unavailable."
        )


class TransientRemoteError(GatewayException):
    """Network failure talking to a remote dependency. Retryable."""
    status_code = 502
    error = "remote_unavailable"


class OperationTimeoutError(TransientRemoteError):
    """Raised when a single attempt exceeds its time budget."""
    status_code = 504
    error = "timeout"

    def __init__(self, operation_name: str, timeout: float):
        self.operation_name = operation_name
        self.timeout = timeout
        super().__init__(f"{operation_name} timed out after {int(timeout * 1000)}ms")


class RemoteModelError(GatewayException):
    """Non-2xx response from the remote model.

    Carries the remote's status code and message so the proxy can return
    them verbatim. 5xx, 408 and 429 responses are considered transient.
    """
    error = "remote_error"

    def __init__(self, status_code: int, message: str, details: object | None = None):
        self.status_code = status_code
        self.details = details
        super().__init__(message)

    @property
    def is_transient(self) -> bool:
        return self.status_code >= 500 or self.status_code in (408, 429)

    def to_response(self) -> dict:
        response = {"error": self.message, "status": self.status_code}
        if self.details is not None:
            response["details"] = self.details
        return response


class RetryExhaustedError(GatewayException):
    """Raised when every attempt of a retried operation failed.

    The last underlying error is available as ``last_error`` and ``__cause__``.
    """
    status_code = 503
    error = "high_traffic"

    def __init__(self, operation_name: str, last_error: BaseException):
        self.operation_name = operation_name
        self.last_error = last_error
        super().__init__(
            f"We're experiencing high traffic. {operation_name} failed after "
            f"multiple attempts. ({last_error})"
        )


class TerminalPipelineError(GatewayException):
    """A pipeline stage failed with no fallback defined.

    ``message`` is safe to show to the user; the original cause is kept
    for logs.
    """
    status_code = 502
    error = "pipeline_failed"

    def __init__(
        self,
        stage: str,
        message: str,
        retryable: bool = True,
        trip_id: str | None = None,
    ):
        self.stage = stage
        self.retryable = retryable
        self.trip_id = trip_id
        super().__init__(message)

    def to_response(self) -> dict:
        response = {
            "error": self.error,
            "message": self.message,
            "stage": self.stage,
            "retryable": self.retryable,
        }
        if self.trip_id:
            response["tripId"] = self.trip_id
        return response


class InvalidTransitionError(GatewayException):
    """Raised when a pipeline action is not valid in the current state."""
    status_code = 409
    error = "invalid_transition"


class NotFoundError(GatewayException):
    """Raised when a trip session or itinerary does not exist."""
    status_code = 404
    error = "not_found"


class ConfigurationError(GatewayException):
    """The server is missing configuration it needs (e.g. an API key).

    Never retried.
    """
    status_code = 500
    error = "Server misconfigured"
