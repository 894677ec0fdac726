class CheckpointError(Exception):
    """Base exception for the checkpoint service.

    Every subclass carries the HTTP status and the message shown to the operator.
    """

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputError(CheckpointError):
    """Raised when a request is missing the probe image or the target id."""

    status_code = 400


class AuthenticationError(CheckpointError):
    """Raised when the bearer token is missing, invalid or expired."""

    status_code = 401


class AuthorizationError(CheckpointError):
    """Raised when the operator is not bound to the requested section."""

    status_code = 403


class NotFoundError(CheckpointError):
    """Raised when a target student or stored photo does not exist."""

    status_code = 404


class OracleError(CheckpointError):
    """Raised when a targeted comparison cannot produce a confidence."""

    status_code = 502


class OracleConfigurationError(CheckpointError):
    """Raised when the comparison oracle credentials are missing."""

    status_code = 503
