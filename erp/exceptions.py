"""Typed exceptions for ERP integration failures.

Transient failures (network, auth, upstream 5xx) raise AdapterError and are
retried by the job runner. Everything else is permanent.
"""


class ERPError(Exception):
    """Base class for ERP integration errors."""


class AdapterError(ERPError):
    """
    Transient failure talking to the ERP.

    Connection errors, timeouts, authentication failures and upstream 5xx.
    Retryable.
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class RequestRejected(ERPError):
    """ERP refused the request (validation or other 4xx). Not retryable."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class MalformedPayload(ERPError):
    """Payload has an unexpected shape or lacks a required identifier. Not retryable."""


class UnknownProvider(ERPError):
    """Provider name does not match any known adapter variant."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown ERP provider: '{name}'")


class AttemptsExhausted(ERPError):
    """Job hit its attempt ceiling while the ERP kept failing transiently."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")
