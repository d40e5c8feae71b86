"""
Gemini Live Relay Main Application
==================================

FastAPI entry point for the relay server.

Each accepted WebSocket gets its own ConnectionGateway and SessionRelay,
so every client holds at most one upstream Gemini Live session.

Endpoints:
    GET  /               - Service information
    GET  /health         - Liveness probe
    GET  /api/v1/health  - Liveness probe (versioned path)
    GET  /api/status     - Model, credential presence, live connections
    WS   /ws             - Relay socket (JSON messages)
"""

import argparse
import logging
import signal
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Optional, Set

from fastapi import FastAPI, Request, WebSocket
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gemini_relay.config import Settings, get_settings, load_config, setup_logging
from gemini_relay.gateway import ConnectionGateway
from gemini_relay.relay import GenAILiveClient, SessionRelay, UpstreamClient


logger = logging.getLogger(__name__)


RelayFactory = Callable[[str], SessionRelay]


# =============================================================================
# Relay Factory
# =============================================================================

def build_relay_factory(
    settings: Settings,
    client: Optional[UpstreamClient] = None,
) -> RelayFactory:
    """
    Create a factory producing one SessionRelay per connection.

    Args:
        settings: Loaded settings
        client: Upstream client shared by all relays (defaults to GenAILiveClient)

    Returns:
        Callable taking a connection id and returning a new SessionRelay
    """
    upstream = client or GenAILiveClient(
        api_key=settings.gemini.api_key,
        api_version=settings.gemini.api_version,
    )

    def factory(connection_id: str) -> SessionRelay:
        return SessionRelay(
            client=upstream,
            model=settings.gemini.model,
            max_payload_bytes=settings.frames.max_payload_bytes,
            max_frames_per_request=settings.frames.max_frames_per_request,
            default_system_instruction=settings.gemini.default_system_instruction,
            turn_timeout_seconds=settings.gemini.turn_timeout_seconds,
            connection_id=connection_id,
        )

    return factory


# =============================================================================
# Application Factory
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    relay_factory: Optional[RelayFactory] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use (defaults to get_settings())
        relay_factory: Override for SessionRelay construction

    Returns:
        FastAPI: Configured application
    """
    settings = settings or get_settings()
    gateways: Set[ConnectionGateway] = set()

    def _handle_sigterm(signum, frame):
        logger.info("Received SIGTERM, initiating graceful shutdown...")

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            signal.signal(signal.SIGTERM, _handle_sigterm)
        except ValueError:
            # Only possible from the main thread
            logger.debug("SIGTERM handler not installed (not in main thread)")

        app.state.startup_time = time.time()
        logger.info(f"Starting {settings.service.name} {settings.service.version}")
        logger.info(f"Environment: {settings.service.environment}")
        logger.info(f"Gemini model: {settings.gemini.model}")

        if not settings.has_api_key():
            logger.warning("GEMINI_API_KEY is not set, upstream connects will fail")

        yield

        logger.info("Shutting down gracefully...")
        for gateway in list(gateways):
            await gateway.shutdown()
        gateways.clear()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Gemini Live Relay",
        description="Real-time relay between chat clients and Gemini Live",
        version=settings.service.version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.relay_factory = relay_factory or build_relay_factory(settings)
    app.state.gateways = gateways
    app.state.startup_time = time.time()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # =========================================================================
    # Error Handlers
    # =========================================================================

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = "Route not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(
            {"error": {"message": message, "status": exc.status_code}},
            status_code=exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            {"error": {"message": "Validation Error", "status": 400}},
            status_code=400,
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled error on {request.url.path}: {exc}")
        return JSONResponse(
            {"error": {"message": "Internal Server Error", "status": 500}},
            status_code=500,
        )

    # =========================================================================
    # HTTP Endpoints
    # =========================================================================

    def _health_payload() -> dict:
        return {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(time.time() - app.state.startup_time, 1),
            "environment": settings.service.environment,
            "version": settings.service.version,
        }

    @app.get("/")
    async def root() -> JSONResponse:
        """Service information endpoint."""
        return JSONResponse({
            "service": settings.service.name,
            "message": "Gemini Live Relay API",
            "version": settings.service.version,
            "endpoints": {
                "health": "/health",
                "status": "/api/status",
                "socket": "/ws",
            },
        })

    @app.get("/health")
    async def health() -> JSONResponse:
        """
        Liveness probe - is the process alive?

        Always returns 200 if the service is running.
        """
        return JSONResponse(_health_payload())

    @app.get("/api/v1/health")
    async def health_v1() -> JSONResponse:
        """Liveness probe under the versioned API path."""
        return JSONResponse(_health_payload())

    @app.get("/api/status")
    async def status() -> JSONResponse:
        """Read-only diagnostics: model, credential presence, connections."""
        return JSONResponse({
            "status": "running",
            "mode": "text-only",
            "model": settings.gemini.model,
            "has_api_key": settings.has_api_key(),
            "server": {
                "host": settings.server.host,
                "port": settings.server.port,
                "environment": settings.service.environment,
            },
            "features": {
                "websocket": True,
                "gemini_live": True,
                "frame_processing": True,
            },
            "active_connections": len(gateways),
        })

    # =========================================================================
    # WebSocket Endpoint
    # =========================================================================

    @app.websocket("/ws")
    async def relay_socket(websocket: WebSocket) -> None:
        """One relay session per socket."""
        await websocket.accept()

        connection_id = uuid.uuid4().hex[:8]
        relay = app.state.relay_factory(connection_id)
        gateway = ConnectionGateway(websocket, relay, connection_id)

        gateways.add(gateway)
        try:
            await gateway.run()
        finally:
            gateways.discard(gateway)

    return app


app = create_app()


# =============================================================================
# Main Entry Point
# =============================================================================

def main(argv: Optional[list] = None) -> None:
    """Run the relay server with uvicorn."""
    import uvicorn

    parser = argparse.ArgumentParser(description="Gemini Live relay server")
    parser.add_argument("--host", help="Bind host (overrides config)")
    parser.add_argument("--port", type=int, help="Bind port (overrides config)")
    parser.add_argument("--config", help="Path to config.yaml")
    args = parser.parse_args(argv)

    settings = load_config(args.config)
    if args.host:
        settings.server.host = args.host
    if args.port:
        settings.server.port = args.port

    setup_logging(settings)

    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
