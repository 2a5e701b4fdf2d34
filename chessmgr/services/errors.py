"""Domain errors raised by the service layer.

Every error carries a human-readable message; blueprints map the class to an
HTTP status (see ``chessmgr.blueprints.register_error_handlers``).
"""


class ChessManagerError(Exception):
    """Base class for tournament/match/user rule violations."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ChessManagerError):
    """Raised when a referenced tournament, match, user or inscription is absent."""

    status_code = 404


class PreconditionError(ChessManagerError):
    """Raised when an operation is not allowed in the current state."""

    pass


class InvariantError(ChessManagerError):
    """Raised when a request would break a data invariant."""

    pass


class AuthorizationError(ChessManagerError):
    """Raised when the acting user may not mutate the target resource."""

    status_code = 403


__all__ = [
    "ChessManagerError",
    "NotFoundError",
    "PreconditionError",
    "InvariantError",
    "AuthorizationError",
]
