class ClientError(Exception):
    """Base exception for the checkpoint capture client."""


class CameraError(ClientError):
    """Raised when the camera cannot be opened or was denied."""


class TransportError(ClientError):
    """Raised when a probe could not be delivered or the reply was unreadable."""
