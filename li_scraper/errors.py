from __future__ import annotations


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class ApifyError(RuntimeError):
    """Raised when an Apify actor run, status read or dataset read fails."""


class StorageError(RuntimeError):
    """Raised when reading or writing state in SQLite fails."""


class ExportError(RuntimeError):
    """Raised when a workbook export cannot be produced."""


class ScrapeError(RuntimeError):
    """Base class for run-fatal scrape failures."""


class JobStartError(ScrapeError):
    """Raised when the provider does not hand back a job id."""

    def __init__(self, message: str = "Failed to start scrape") -> None:
        super().__init__(message)


class JobFailedError(ScrapeError):
    """Raised when a scrape job ends in a non-success state."""

    def __init__(self, status: str | None, message: str | None = None) -> None:
        self.status = (status or "").strip() or "UNKNOWN"
        super().__init__(message or f"Scrape failed with status: {self.status}")


class JobTimeoutError(JobFailedError):
    """Raised when the poll budget runs out while the job is still running."""


class ScrapeInProgressError(ScrapeError):
    """Raised when another run already holds the profile."""

    def __init__(self, profile_id: str) -> None:
        self.profile_id = profile_id
        super().__init__("Scrape already in progress")


class ProfileNotFoundError(ScrapeError):
    def __init__(self, profile_id: str) -> None:
        self.profile_id = profile_id
        super().__init__("Profile not found")
