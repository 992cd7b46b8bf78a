import asyncio
from enum import Enum


class DatSiteError(Exception):
    """Base exception for datsite errors."""


class MissingParameterError(DatSiteError, ValueError):
    missing_parameter = True

    def __init__(self, msg=None):
        super().__init__(msg or "Missing a required parameter")


# Archive collaborator failures
class ArchiveError(DatSiteError):
    """Raised when an archive read, write or listing fails."""


class ArchiveNotFoundError(ArchiveError):
    pass


class ArchiveExistsError(ArchiveError):
    pass


class ArchiveTimeoutError(ArchiveError):
    pass


class ReadOnlyArchiveError(ArchiveError):
    pass


class InvalidUrlError(DatSiteError, ValueError):
    """Raised when a site identifier has no `scheme://host` part."""


class FetchOutcome(str, Enum):
    TIMEOUT = "timeout"
    FAILED = "failed"


def classify_failure(exc: BaseException) -> FetchOutcome:
    """Return the outcome kind a remote fetch failure is reported as."""
    if isinstance(exc, (ArchiveTimeoutError, TimeoutError, asyncio.TimeoutError)):
        return FetchOutcome.TIMEOUT
    return FetchOutcome.FAILED
