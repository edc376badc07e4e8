"""Exception hierarchy shared by the resolution and refresh engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .models import ResolvedSet


class ReelBatchError(Exception):
    """Base class for every error raised by the service."""


class MetadataServiceError(ReelBatchError):
    """Raised when the remote metadata service cannot satisfy a request."""


class TransientNetworkFailure(MetadataServiceError):
    """Transport errors and non-404 error responses from the metadata service."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NotFound(MetadataServiceError):
    """The requested movie no longer exists upstream."""

    def __init__(self, movie_id: int):
        super().__init__(f"Movie {movie_id} was not found")
        self.movie_id = movie_id


class ExhaustedRetries(ReelBatchError):
    """Every attempt allowed by the retry policy failed."""

    def __init__(self, attempts: int, cause: BaseException):
        super().__init__(f"Operation failed after {attempts} attempt(s): {cause}")
        self.attempts = attempts
        self.cause = cause


class EmptySelection(ReelBatchError):
    """No title was selected, so the run never started."""

    def __init__(self) -> None:
        super().__init__("Please select at least one movie to search.")


class OperationCancelled(ReelBatchError):
    """A run or refresh was aborted through its cancellation token."""

    def __init__(self, snapshot: "ResolvedSet | None" = None):
        super().__init__("Operation cancelled")
        self.snapshot = snapshot


class AlreadyInCollection(ReelBatchError):
    """The movie being added is already part of the resolved set."""

    def __init__(self, movie_id: int, title: str | None = None):
        label = f'"{title}"' if title else f"Movie {movie_id}"
        super().__init__(f"{label} is already in your list.")
        self.movie_id = movie_id
