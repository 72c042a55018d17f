"""Exceptions raised by the site document OCR pipeline."""


class SiteScanError(Exception):
    """Base exception for all pipeline errors.

    Args:
        message: Human-readable description of the failure.
        job_id: Identifier of the job that failed, once one is known.
    """

    def __init__(self, message: str, job_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.job_id = job_id


class ValidationError(SiteScanError):
    """Upload rejected before any processing (bad extension, size, or empty)."""


class DecodeError(SiteScanError):
    """Input bytes or bitmap cannot be decoded into a usable image."""


class EngineError(SiteScanError):
    """Transient recognition engine failure (crash, timeout, lost handle)."""


class EngineUnavailableError(SiteScanError):
    """The engine cannot run at all (missing binary, disposed handle); never retried."""


class ExtractionError(SiteScanError):
    """Failure inside a single field extractor; never fails the job."""

    def __init__(self, category: str, message: str) -> None:
        super().__init__(f"{category}: {message}")
        self.category = category


class JobCancelledError(SiteScanError):
    """Cancellation was requested and observed at a stage boundary."""


class JobNotFoundError(SiteScanError, KeyError):
    """No job with the requested identifier is held by the registry."""

    def __str__(self) -> str:
        return self.message


class EngineOverflow(UserWarning):
    """Worker pool ran dry and created a handle beyond its configured bound."""
