"""Error taxonomy for quotesync."""


class QuoteSyncError(Exception):
    """Base for all quotesync errors."""

    pass


class SyncUnavailable(QuoteSyncError):
    """Raised when the remote snapshot cannot be fetched.

    The reconciliation pass is aborted with local state untouched; the next
    scheduled tick retries.
    """

    pass


class RemoteError(QuoteSyncError):
    """Raised by a remote source for error responses or malformed bodies."""

    def __init__(self, message: str, status_code: "int | None" = None):
        super().__init__(message)
        self.status_code = status_code


class PushFailed(QuoteSyncError):
    """Raised when a single record could not be confirmed by the remote.

    The record stays ``pending_sync`` and is retried on the next pass.
    """

    def __init__(self, record_id: str, reason: str = ""):
        message = f"Failed to push quote {record_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.record_id = record_id
        self.reason = reason


class InvalidImportFormat(QuoteSyncError, ValueError):
    """Raised when an import payload is not a JSON array of quote objects."""

    pass


class EmptyResult(QuoteSyncError):
    """Raised when no records match a category filter."""

    def __init__(self, category: str):
        super().__init__(f"No quotes found for category: {category}")
        self.category = category


class ConflictNotFound(QuoteSyncError, KeyError):
    """Raised when resolving a conflict id that is not in the registry."""

    def __init__(self, record_id: str):
        super().__init__(record_id)
        self.record_id = record_id

    def __str__(self) -> str:
        return f"No unresolved conflict for quote {self.record_id}"


class RecordNotFound(QuoteSyncError, KeyError):
    """Raised when an operation targets a quote id that is not stored."""

    def __init__(self, record_id: str):
        super().__init__(record_id)
        self.record_id = record_id

    def __str__(self) -> str:
        return f"No quote with id {self.record_id}"


class ConfigError(QuoteSyncError, ValueError):
    """Raised for invalid configuration values."""

    pass
