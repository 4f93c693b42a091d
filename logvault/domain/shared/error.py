"""Error hierarchy for LogVault.

Error layers:
- LogVaultError: Base class for all LogVault errors
- DomainError: Rule violations detected before or after touching a collaborator
  (bad windows, missing records, integrity violations)
- InfrastructureError: Failures of a collaborator (upstream API, object storage)

Handlers let these propagate to the worker, which records the failure on the
delivery and schedules a retry. Nothing in the core retries on its own.
"""

from collections.abc import Sequence
from uuid import UUID


class LogVaultError(Exception):
    """Base class for all LogVault errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(message)


# =============================================================================
# Domain Errors
# =============================================================================


class DomainError(LogVaultError):
    """Base class for domain errors."""


class NotFoundError(DomainError):
    """Resource not found."""


class SourceNotFoundError(NotFoundError):
    """The source referenced by a pull task does not exist."""


class JobNotFoundError(NotFoundError):
    """The archive job referenced by a task does not exist."""


class ValidationError(DomainError):
    """Input validation failed."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field


class InvalidStateError(DomainError):
    """Operation not allowed in current state."""


class ConflictError(DomainError):
    """Resource already exists or version conflict."""


class WindowTooLargeError(DomainError):
    """Requested window is longer than the upstream allows in one call."""


class NotYetAvailableError(DomainError):
    """Requested window ends too recently for the upstream to serve it."""


class WindowExpiredError(DomainError):
    """Requested window starts before the upstream's own retention horizon."""


class DigestMismatchError(DomainError):
    """Stored content does not hash to the recorded digest."""

    def __init__(self, expected: str, actual: str, key: str | None = None) -> None:
        target = f" for {key}" if key else ""
        super().__init__(f"sha256 mismatch{target}: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual
        self.key = key


class SkippedEvents(DomainError):
    """Raised by a handler to skip specific events without failing the batch."""

    def __init__(self, event_ids: Sequence[UUID], reason: str) -> None:
        super().__init__(reason)
        self.event_ids = list(event_ids)
        self.reason = reason


# =============================================================================
# Infrastructure Errors
# =============================================================================


class InfrastructureError(LogVaultError):
    """Base class for infrastructure/system errors."""


class UpstreamError(InfrastructureError):
    """The log-pull API answered with a non-2xx status or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RateLimitedError(UpstreamError):
    """The log-pull API answered 429."""

    def __init__(self, retry_after: float, body: str = "") -> None:
        super().__init__(
            f"upstream rate limited (retry after {retry_after:g}s)",
            status_code=429,
            body=body,
        )
        self.retry_after = retry_after


class StorageError(InfrastructureError):
    """An upload, download, or delete against an archive store failed."""

    def __init__(self, message: str, provider: str | None = None, key: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.key = key


class ObjectLockUnsupportedError(StorageError):
    """The backend rejected the compliance lock because it has no object-lock configuration."""


class AllProvidersFailedError(StorageError):
    """Every configured archive store rejected the upload."""

    def __init__(self, attempts: Sequence[str], last_error: Exception) -> None:
        super().__init__(
            f"all storage providers failed ({', '.join(attempts)}), last error: {last_error}"
        )
        self.attempts = list(attempts)
        self.last_error = last_error


class ConfigurationError(InfrastructureError):
    """System misconfiguration detected."""
