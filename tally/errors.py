"""Exceptions raised by the ballot and tabulation core.

Every error carries a message that is safe to show to the voter or
administrator who triggered it.
"""


class TallyError(Exception):
    """Base class for errors scoped to a single request."""
    pass


class InvalidCredential(TallyError):
    """Raised for an unknown team code or a wrong admin password."""
    pass


class InvalidInput(TallyError):
    """Raised when a required field is missing or malformed."""
    pass


class IncompleteBallot(TallyError):
    """Raised when a ballot payload does not cover every required entry."""
    pass


class GateLocked(TallyError):
    """Raised when the target phase, round or criterion is closed."""
    pass


class NotFound(TallyError):
    """Raised when a referenced team, voter, phase or criterion is missing."""
    pass


class StorageError(TallyError):
    """Raised when the catalog store rejects a request."""
    pass


class StorageUnavailable(StorageError):
    """Raised for transient store failures. The caller may retry the request."""
    pass
