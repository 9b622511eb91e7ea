"""Exception hierarchy for the edit-session core."""

from __future__ import annotations

from typing import Optional


class ListingsError(Exception):
    """Base class for every error raised by the listings package."""


class ValidationError(ListingsError):
    """Caller-correctable input; blocks only the operation that raised it."""


class TaxonomyValidationError(ValidationError):
    """Empty name, unresolved parent, duplicate rejected by the store."""


class InvalidMapUrlError(ValidationError):
    """A pasted map link did not contain a usable coordinate pair."""

    def __init__(self, url: str, short_link: bool = False) -> None:
        self.url = url
        self.short_link = short_link
        if short_link:
            message = "Short map links do not embed coordinates; paste the full place link instead"
        else:
            message = "Could not find a latitude/longitude pair in the map link"
        super().__init__(message)


class NodeBusyError(ListingsError):
    """A mutation is already in flight for this taxonomy node."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Taxonomy node {node_id} has an operation in progress")


class StoreError(ListingsError):
    """Base class for collaborator (remote store) failures."""


class StoreUnavailableError(StoreError):
    """The store could not be reached, timed out, or failed server-side."""


class StoreRejectedError(StoreError):
    """The store answered with a 4xx; ``message`` carries the server text."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"HTTP {status_code}: {message}")


class MediaFetchError(ListingsError):
    """Dereferencing one remote media locator failed."""

    def __init__(self, locator: str, reason: Optional[str] = None) -> None:
        self.locator = locator
        self.reason = reason
        super().__init__(f"Failed to fetch {locator}: {reason or 'unknown error'}")


class MediaCacheUnavailable(ListingsError):
    """The session media cache backend is unreachable; the save must not proceed."""


class SessionStateError(ListingsError):
    """Operation not allowed in the edit session's current mode."""


__all__ = [
    "InvalidMapUrlError",
    "ListingsError",
    "MediaCacheUnavailable",
    "MediaFetchError",
    "NodeBusyError",
    "SessionStateError",
    "StoreError",
    "StoreRejectedError",
    "StoreUnavailableError",
    "TaxonomyValidationError",
    "ValidationError",
]
