"""Exception hierarchy for mediasync.

Remote failures are non-fatal everywhere except explicit foreground
operations, which raise OperationFailedError with a generic message.
"""


class MediaSyncError(Exception):
    """Base exception for all mediasync errors."""


class RemoteError(MediaSyncError):
    """Base exception for remote document store failures."""


class TransportError(RemoteError):
    """Raised when the remote store cannot be reached or rejects a request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PermissionDeniedError(TransportError):
    """Raised when the remote store denies access (HTTP 401/403)."""


class NotAuthenticatedError(RemoteError):
    """Raised when a remote operation needs a user and none is signed in."""


class MetadataError(MediaSyncError):
    """Raised when the metadata lookup service fails."""


class OperationFailedError(MediaSyncError):
    """Raised when a foreground operation could not be applied anywhere."""
