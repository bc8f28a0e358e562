"""
Exception types raised by the resource library.

Routes translate these into HTTP status codes; the batch engine records
them per item instead of letting them escape.
"""


class LibraryError(Exception):
    """Base class for every error raised by the library package."""


class ResourceNotFoundError(LibraryError):
    """A category, resource id or media index does not exist."""

    def __init__(self, category: str, resource_id: str = "", detail: str = ""):
        self.category = category
        self.resource_id = resource_id
        message = detail or f"resource {resource_id} not found in {category}"
        super().__init__(message)


class ResourceValidationError(LibraryError):
    """A request is missing required fields or asks for something unsupported."""


class MediaConflictError(LibraryError):
    """A media attachment would break the one-video-per-resource rule."""


class PersistenceError(LibraryError):
    """Writing a category document to disk failed."""

    def __init__(self, category: str, cause: OSError):
        self.category = category
        self.cause = cause
        super().__init__(f"failed to write category {category}: {cause}")
