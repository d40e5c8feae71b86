"""
Relay Errors
============

Exception hierarchy shared by the relay server and client.

Every exception raised by this package derives from RelayError so the
gateway can convert any of them into an ``error`` event without letting
it reach the transport.
"""


class RelayError(Exception):
    """Base class for all relay errors."""
    pass


class SessionStateError(RelayError):
    """Raised when an operation is not valid in the current session state."""
    pass


class AlreadyConnectingError(SessionStateError):
    """Raised when connect is requested while a connect is in progress."""
    pass


class AlreadyOpenError(SessionStateError):
    """Raised when connect is requested while the session is open."""
    pass


class UpstreamError(RelayError):
    """Raised when the conversational API rejects or fails a request."""

    def __init__(self, message: str, code: str = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class CaptureError(RelayError):
    """Raised when a video surface cannot be read."""
    pass


class FrameEncodeError(RelayError):
    """Raised when a captured frame cannot be JPEG-encoded."""
    pass


class MessageFormatError(RelayError):
    """Raised when an inbound transport message fails validation."""
    pass


class TransportError(RelayError):
    """Raised when the client cannot reach or write to the relay server."""
    pass
