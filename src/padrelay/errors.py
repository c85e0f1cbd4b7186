"""
Error taxonomy for the relay.

Every failure a caller can observe is a RelayError subclass carrying the
response status the HTTP layer relays for it.
"""


class RelayError(Exception):
    status = 500
    kind = "RelayError"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"error": self.kind, "message": self.message}


class BadRequest(RelayError):
    """Missing or invalid caller input."""

    status = 400
    kind = "BadRequest"


class NotFound(RelayError):
    """No record matches the lookup key."""

    status = 404
    kind = "NotFound"


class Conflict(RelayError):
    """Uniqueness violation on insert."""

    status = 409
    kind = "Conflict"


class ExhaustedRetries(RelayError):
    """Bounded uniqueness search ran out of attempts."""

    status = 500
    kind = "ExhaustedRetries"


class StorageError(RelayError):
    """Backend unreachable or operation rejected."""

    status = 503
    kind = "StorageError"
