"""Error taxonomy for user-facing failures."""
from typing import Optional


class SafeWatchError(Exception):
    """Base class for application errors."""


class AuthRequired(SafeWatchError):
    """No session when an authenticated action was attempted. Surfaced as a redirect."""

    def __init__(self, redirect_to: str = "/") -> None:
        super().__init__(f"Authentication required for {redirect_to}")
        self.redirect_to = redirect_to


class UploadFailed(SafeWatchError):
    """Image upload to blob storage failed. Non-fatal for report submission."""


class PersistenceFailed(SafeWatchError):
    """Insert, delete, update or fetch against the data store failed."""

    def __init__(self, operation: str, detail: Optional[str] = None) -> None:
        msg = f"{operation} failed" + (f": {detail}" if detail else "")
        super().__init__(msg)
        self.operation = operation
        self.detail = detail


class WorkflowError(SafeWatchError):
    """Operation not allowed in the report workflow's current state."""
