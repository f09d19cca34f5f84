"""Domain errors raised by the token and upload services.

Services raise these and callers (management commands, admin actions, a
future HTTP layer) decide how to present them. State-machine errors
(``InvalidState``, ``Conflict``) are never retried internally.
"""


class VracError(Exception):
    """Base class for all vrac domain errors."""

    code = "vrac_error"

    def __init__(self, message=""):
        super().__init__(message)
        self.message = message


class Unauthorized(VracError):
    """Missing or invalid credential."""

    code = "unauthorized"


class NotFound(VracError):
    """Unknown token path or no retrievable file."""

    code = "not_found"


class InvalidState(VracError):
    """Operation attempted against a token or file in the wrong state."""

    code = "invalid_state"


class SizeExceeded(VracError):
    """Cumulative upload size went over the token's cap."""

    code = "size_exceeded"


class Conflict(VracError):
    """A concurrent-use race was lost or an upload already exists."""

    code = "conflict"


class StorageFailure(VracError):
    """Blob store or persistence I/O error. Retryable by the caller."""

    code = "storage_failure"
