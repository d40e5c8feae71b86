"""
Gateway Module
==============

Per-connection WebSocket handling for the relay server.
"""

from gemini_relay.gateway.connection import ConnectionGateway


__all__ = ["ConnectionGateway"]
