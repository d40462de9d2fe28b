"""Error taxonomy shared by the backends, the retry layer and the orchestrators.

    TransientBackendError  — HTTP 5xx / 429, retried by the RetryExecutor
    PermanentBackendError  — any other backend failure, fatal to its unit
    ResourceNotFound       — namespace or document absent, causes a skip
    ConfigurationError     — invalid parameters, raised before any network call
    CorruptCheckpoint      — malformed persisted state, treated as empty
    InsufficientSample     — a statistic needs more samples than were given
"""


class BenchmarkError(Exception):
    """Base class for every error raised by the harness."""


class BackendError(BenchmarkError):
    """A remote backend call failed.

    `status` is the HTTP status when the transport exposed one.
    `retry_after_ms` carries an explicit server-provided retry hint.
    """

    def __init__(self, message: str, status: int | None = None, retry_after_ms: float | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.retry_after_ms = retry_after_ms


class TransientBackendError(BackendError):
    pass


class PermanentBackendError(BackendError):
    pass


class ResourceNotFound(BackendError):
    def __init__(self, message: str, status: int | None = 404, retry_after_ms: float | None = None) -> None:
        super().__init__(message, status=status, retry_after_ms=retry_after_ms)


class ConfigurationError(BenchmarkError, ValueError):
    pass


class CorruptCheckpoint(BenchmarkError):
    pass


class InsufficientSample(BenchmarkError, ValueError):
    pass


def is_transient_status(status: int | None) -> bool:
    """True for statuses worth retrying: any 5xx, or 429 Too Many Requests."""
    if status is None:
        return False
    return status >= 500 or status == 429


def classify_status(status: int | None, message: str, retry_after_ms: float | None = None) -> BackendError:
    """Build the taxonomy error matching an HTTP status."""
    if is_transient_status(status):
        return TransientBackendError(message, status=status, retry_after_ms=retry_after_ms)
    if status == 404:
        return ResourceNotFound(message, status=status)
    return PermanentBackendError(message, status=status, retry_after_ms=retry_after_ms)
