"""Error taxonomy shared by the catalog, the test executor and the history store.

Every error carries the HTTP-equivalent status code the command layer
reports back, so callers only ever see ``{message, status_code}``.
"""


class ExplorerError(Exception):
    """Base class for all errors reported to the caller."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_payload(self) -> dict:
        return {"message": self.message, "status_code": self.status_code}


class ValidationError(ExplorerError):
    """Client input is malformed (bad URL, unsupported method, timeout out of range)."""

    status_code = 400


class PermissionDenied(ExplorerError):
    """The caller may not perform the operation."""

    status_code = 403


class NotFoundError(ExplorerError):
    """A route pattern or history entry does not exist."""

    status_code = 404


class RegistryError(ExplorerError):
    """The route registry could not be read or has an unusable shape."""

    status_code = 502


class TransportError(ExplorerError):
    """Network, DNS or timeout failure while sending a test request.

    Raised by transports only. The executor folds it into a failed
    ``TestResult`` so it never reaches the command layer.
    """

    status_code = 0


class PersistenceError(ExplorerError):
    """The history store failed to append, read or delete."""

    status_code = 500
