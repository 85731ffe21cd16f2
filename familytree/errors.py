"""Exception taxonomy shared by the store, domain, storage and UI layers.

Every error carries a human-readable message; the HTTP layer turns it into
an ``{"error": "..."}`` body and the interaction controller surfaces it on
the open dialog.  Nothing here is retried automatically.
"""

from __future__ import annotations


class FamilyTreeError(Exception):
    """Base class for all application errors."""


class ValidationError(FamilyTreeError):
    """Required input is missing or malformed."""


class NotFoundError(FamilyTreeError):
    """A referenced person, couple, edge or photo does not exist."""


class StorageUnavailableError(FamilyTreeError):
    """Object storage credentials or bucket settings are missing."""


class UploadFailedError(FamilyTreeError):
    """The object store rejected or failed an upload / delete request."""


class InteractionError(FamilyTreeError):
    """A gesture was issued in a state that does not accept it."""
