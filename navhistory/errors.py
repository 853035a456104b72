"""Error kinds surfaced by every navhistory command.

Each error carries a ``kind`` tag so callers across the HTTP or CLI
boundary get a serializable value instead of a traceback.
"""


class AppError(Exception):
    """Base class for errors returned to the caller.

    >>> AppError("boom").to_dict()
    {'type': 'Internal', 'data': 'boom'}
    """

    kind = "Internal"
    code = "INTERNAL_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict:
        return {"type": self.kind, "data": self.message}


class InvalidArgumentError(AppError, ValueError):
    """Bad caller input: page size, top-N, or a path that fails validation.

    >>> InvalidArgumentError("page_size out of range").to_dict()
    {'type': 'Invalid', 'data': 'page_size out of range'}
    """

    kind = "Invalid"
    code = "VALIDATION_ERROR"


class DatabaseError(AppError):
    """Opening, resetting, or querying the history database failed."""

    kind = "Db"
    code = "DB_ERROR"


class InternalError(AppError):
    """Unexpected I/O or serialization failure in config or file operations."""

    kind = "Internal"
    code = "INTERNAL_ERROR"
