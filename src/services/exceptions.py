"""
Shared exceptions for bookmark service operations.

Each exception carries the HTTP status it maps to, so the API layer can render
every service failure with a single exception handler.
"""


class BookmarkServiceError(Exception):
    """Base class for bookmark service failures."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class BookmarkValidationError(BookmarkServiceError):
    """Raised when a required field is missing or blank, or an update is a no-op."""

    status_code = 400


class BookmarkConflictError(BookmarkServiceError):
    """Raised when a bookmark already exists for the (user, post) pair."""

    status_code = 409

    def __init__(self, post_id: str) -> None:
        self.post_id = post_id
        super().__init__("Bookmark already exists")


class BookmarkNotFoundError(BookmarkServiceError):
    """Raised when the bookmark targeted by an update does not exist."""

    status_code = 404

    def __init__(self, post_id: str) -> None:
        self.post_id = post_id
        super().__init__("Bookmark not found")


class BookmarkDependencyError(BookmarkServiceError):
    """
    Raised when the store fails during a read, write, or collection resolution.

    Always raised with ``from`` so ``__cause__`` holds the underlying error.
    """

    status_code = 503


class BookmarkPartialMutationError(BookmarkDependencyError):
    """
    Raised when the row mutation succeeded but the counter write failed.

    The row change stays authoritative; counters have drifted until the
    reconciliation task repairs them.
    """

    def __init__(self, message: str, user_id: int) -> None:
        self.user_id = user_id
        super().__init__(message)
