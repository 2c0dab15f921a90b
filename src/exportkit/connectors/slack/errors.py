"""Errors raised while augmenting an export archive."""
from typing import Optional


class ExportError(Exception):
    """Base class for every failure the CLI reports to the user."""


class ArchiveOpenError(ExportError):
    """The source archive is missing or is not a zip file."""


class ArchiveCreateError(ExportError):
    """The target archive could not be created."""


class CopyError(ExportError):
    """An entry could not be copied from the source to the target archive."""


class TransportError(ExportError):
    """The HTTP request failed or returned a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ApiRejectionError(ExportError):
    """Slack answered with ok=false."""

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.error = error


class DecodeError(ExportError):
    """A response body or record did not have the expected shape."""


class WriteError(ExportError):
    """Records could not be serialized into an archive entry."""
