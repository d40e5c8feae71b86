"""
Session State Model
===================

Lifecycle states of the single upstream session held per connection.

Transitions:
    IDLE / CLOSED → CONNECTING   connect() requested
    CONNECTING    → OPEN         upstream open acknowledged
    OPEN          → CLOSING      disconnect() in progress
    any           → CLOSED       upstream error, upstream close, or disconnect done
"""

from enum import Enum


class SessionState(str, Enum):
    """
    Discrete states of an upstream session.

    Attributes:
        IDLE: No session has been requested yet
        CONNECTING: Upstream open is in flight
        OPEN: Turns may be submitted
        CLOSING: Handle is being closed
        CLOSED: Session ended; a new connect is allowed
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"

    @property
    def can_connect(self) -> bool:
        """Whether connect() is allowed from this state."""
        return self in (SessionState.IDLE, SessionState.CLOSED)
