"""Errors - Exception types raised by the core and the storage layer.

The HTTP and MCP layers map these to client-facing responses.
"""


class LifeLogError(Exception):
    """Base class for all tracker errors."""


class EntryValidationError(LifeLogError):
    """A request is missing required data or carries invalid values.

    Raised before anything is written.
    """


class RecordNotFoundError(LifeLogError):
    """A day entry or sub-record referenced by id does not exist."""


class DuplicateKeyError(LifeLogError):
    """A day entry for the same (domain, user, date) key already exists."""


class WriteConflictError(LifeLogError):
    """Concurrent creation kept winning after every retry. Transient."""


class StorageUnavailableError(LifeLogError):
    """The document store failed or did not answer in time."""
