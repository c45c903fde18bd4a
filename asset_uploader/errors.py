"""Exception hierarchy for upload operations."""
from typing import Optional


class UploadError(Exception):
    """Base class for failures that end an upload item in the error state."""


class TransportError(UploadError):
    """Network failure, timeout or non-2xx HTTP status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProtocolError(UploadError):
    """Server answered successfully but the body is unusable."""


class ValidationError(UploadError):
    """File rejected client-side before any request is made."""

    def __init__(self, filename: str, errors):
        self.filename = filename
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class InvalidTransitionError(RuntimeError):
    """Raised when an UploadItem is moved along an edge the state machine lacks."""
