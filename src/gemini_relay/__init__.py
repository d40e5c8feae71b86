"""
Gemini Live Relay
=================

Real-time relay between a chat client and the Gemini Live API.

The client captures screen frames into a bounded buffer, packages them
with a text question into a single turn, and ships it over one WebSocket
to the relay server. The server holds exactly one upstream Live session
per connection and streams partial text and turn-completion signals back.

Components:
    - stream: Frame data model and bounded FIFO FrameBuffer
    - capture: Periodic surface sampling and JPEG encoding
    - relay: Upstream session state machine and event channel
    - gateway: Per-connection WebSocket dispatch
    - client: Client-side coordinator and transport

Example:
    uvicorn gemini_relay.main:app --port 5000
"""

__version__ = "1.0.0"
__author__ = "Gemini Live Relay Project"

__all__ = [
    "__version__",
]
