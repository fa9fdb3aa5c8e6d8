# lambdas/common/errors.py


class LogNotificationError(Exception):
    """Base class for every error raised by the log notification pipeline."""
    pass


class DecompressionError(LogNotificationError, ValueError):
    """The awslogs payload is not valid base64-encoded gzip data."""
    pass


class MalformedPayloadError(LogNotificationError, ValueError):
    """The payload was decompressed but is not a usable UTF-8 JSON document."""
    pass


class EntryParseError(LogNotificationError, ValueError):
    """A single log entry's message could not be parsed or has no stack trace."""

    def __init__(self, message: str, entry_id: str | None = None):
        super().__init__(message)
        self.entry_id = entry_id


class WorkflowTimeoutError(LogNotificationError, TimeoutError):
    """A workflow execution ran past its wall-clock budget."""

    def __init__(self, elapsed_seconds: float, timeout_seconds: float):
        super().__init__(
            f"Workflow execution exceeded its {timeout_seconds:g}s budget "
            f"(elapsed {elapsed_seconds:.2f}s)."
        )
        self.elapsed_seconds = elapsed_seconds
        self.timeout_seconds = timeout_seconds


class FilterPatternError(LogNotificationError, ValueError):
    """Custom exception for filter patterns that cannot be parsed."""
    pass
