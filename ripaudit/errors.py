"""Exception hierarchy for the audit engine."""

from __future__ import annotations


class RipAuditError(Exception):
    """Base exception for all ripaudit errors."""

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class DecoderNotInitializedError(RipAuditError):
    """Raised when the decode backend is used before initialize()."""


class DecodeError(RipAuditError):
    """Raised when a track cannot be decoded into samples."""

    def __init__(
        self, message: str, file_path: str | None = None, details: str | None = None
    ) -> None:
        super().__init__(message, details)
        self.file_path = file_path


class AudioFileNotFoundError(DecodeError):
    """Raised when the resolved path does not exist."""


class FileTooLargeError(DecodeError):
    """Raised when a file exceeds the configured size cap."""

    def __init__(
        self, message: str, file_path: str | None = None, size_mb: float = 0.0
    ) -> None:
        super().__init__(message, file_path)
        self.size_mb = size_mb


class UnsupportedFormatError(DecodeError):
    """Raised when the container or codec is not understood by the decoder."""


class CatalogError(RipAuditError):
    """Raised when the media catalog cannot list or resolve tracks."""


class RateLimitedError(CatalogError):
    """Raised by a catalog when the remote side asks us to slow down."""

    def __init__(
        self, message: str = "Rate limited", retry_after: float | None = None
    ) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class AnalysisCancelled(Exception):
    """Raised inside a worker when the run has been cancelled.

    Not a RipAuditError: the per-track failure boundary must let it through.
    """
