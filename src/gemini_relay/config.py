"""
Gemini Live Relay Configuration
===============================

This module handles configuration loading for the relay server and client.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    GEMINI_API_KEY          -> gemini.api_key
    GEMINI_MODEL            -> gemini.model
    GEMINI_API_VERSION      -> gemini.api_version
    RELAY_TURN_TIMEOUT      -> gemini.turn_timeout_seconds
    MAX_FRAME_SIZE          -> frames.max_payload_bytes
    MAX_FRAMES_PER_REQUEST  -> frames.max_frames_per_request
    FRAME_QUALITY           -> frames.jpeg_quality
    CAPTURE_INTERVAL_MS     -> frames.capture_interval_ms
    HOST                    -> server.host
    PORT                    -> server.port
    SOCKET_CORS_ORIGIN      -> server.cors_origins (comma separated)
    RELAY_ENV               -> service.environment
    RELAY_SERVER_URL        -> client.server_url
    LOG_LEVEL               -> logging.level
    LOG_FORMAT              -> logging.format

Example:
    from gemini_relay.config import get_settings

    settings = get_settings()
    print(settings.gemini.model)
    print(settings.frames.max_payload_bytes)
"""

import os
import logging
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


API_KEY_PLACEHOLDER = "your_api_key_here"

DEFAULT_SYSTEM_INSTRUCTION = (
    "Bạn là một trợ lý AI thông minh có thể xem và phân tích hình ảnh từ màn hình "
    "người dùng. Khi nhận được hình ảnh, hãy mô tả chi tiết và chính xác những gì "
    "bạn thấy. Trả lời bằng tiếng Việt thân thiện, cụ thể và hữu ích."
)


# =============================================================================
# Configuration Models
# =============================================================================

class ServiceConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="gemini-live-relay", description="Service name")
    version: str = Field(default="1.0.0", description="Service version")
    environment: str = Field(default="development", description="Deployment environment")


class ServerConfig(BaseModel):
    """HTTP/WebSocket server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=5000, ge=1, le=65535, description="Bind port")
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Allowed CORS origins",
    )


class GeminiConfig(BaseModel):
    """Upstream Gemini Live API configuration."""

    api_key: str = Field(default="", description="Gemini API key")
    model: str = Field(
        default="gemini-live-2.5-flash-preview",
        description="Live model name",
    )
    api_version: str = Field(default="v1beta", description="API version for the Live endpoint")
    default_system_instruction: str = Field(
        default=DEFAULT_SYSTEM_INSTRUCTION,
        description="System instruction used when the client sends none",
    )
    turn_timeout_seconds: float = Field(
        default=120.0,
        ge=0,
        description="Seconds to wait for turnComplete before reporting an error (0 = disabled)",
    )


class FrameConfig(BaseModel):
    """Frame capture and batching configuration."""

    max_payload_bytes: int = Field(
        default=15 * 1024 * 1024,
        ge=1,
        description="Ceiling on summed frame bytes per turn before degrading to text-only",
    )
    max_frames_per_request: int = Field(
        default=30,
        ge=1,
        description="Maximum frames attached to a single turn",
    )
    buffer_size: int = Field(
        default=30,
        ge=1,
        description="Maximum frames held by the client FrameBuffer",
    )
    jpeg_quality: float = Field(
        default=0.7,
        gt=0,
        le=1.0,
        description="JPEG quality in (0, 1]",
    )
    capture_interval_ms: int = Field(
        default=1000,
        ge=1000,
        le=10000,
        description="Milliseconds between capture ticks",
    )
    max_width: int = Field(default=1280, ge=1, description="Maximum encoded frame width")
    max_height: int = Field(default=720, ge=1, description="Maximum encoded frame height")
    large_frame_warning_bytes: int = Field(
        default=500 * 1024,
        ge=1,
        description="Encoded frame size above which a warning is logged",
    )


class ClientConfig(BaseModel):
    """Client-side connection configuration."""

    server_url: str = Field(
        default="ws://localhost:5000/ws",
        description="WebSocket URL of the relay server",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the relay.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    frames: FrameConfig = Field(default_factory=FrameConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def has_api_key(self) -> bool:
        """Whether a usable API credential is configured."""
        key = self.gemini.api_key.strip()
        return bool(key) and key != API_KEY_PLACEHOLDER


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.debug("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Upstream API
    if env_key := os.environ.get("GEMINI_API_KEY"):
        config_data.setdefault("gemini", {})["api_key"] = env_key
    if env_model := os.environ.get("GEMINI_MODEL"):
        config_data.setdefault("gemini", {})["model"] = env_model
    if env_version := os.environ.get("GEMINI_API_VERSION"):
        config_data.setdefault("gemini", {})["api_version"] = env_version
    if env_timeout := os.environ.get("RELAY_TURN_TIMEOUT"):
        config_data.setdefault("gemini", {})["turn_timeout_seconds"] = float(env_timeout)

    # Frame batching
    if env_size := os.environ.get("MAX_FRAME_SIZE"):
        config_data.setdefault("frames", {})["max_payload_bytes"] = int(env_size)
    if env_count := os.environ.get("MAX_FRAMES_PER_REQUEST"):
        config_data.setdefault("frames", {})["max_frames_per_request"] = int(env_count)
    if env_quality := os.environ.get("FRAME_QUALITY"):
        config_data.setdefault("frames", {})["jpeg_quality"] = float(env_quality)
    if env_interval := os.environ.get("CAPTURE_INTERVAL_MS"):
        config_data.setdefault("frames", {})["capture_interval_ms"] = int(env_interval)

    # Server
    if env_host := os.environ.get("HOST"):
        config_data.setdefault("server", {})["host"] = env_host
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    if env_cors := os.environ.get("SOCKET_CORS_ORIGIN"):
        config_data.setdefault("server", {})["cors_origins"] = [
            origin.strip() for origin in env_cors.split(",") if origin.strip()
        ]
    if env_name := os.environ.get("RELAY_ENV"):
        config_data.setdefault("service", {})["environment"] = env_name

    # Client
    if env_url := os.environ.get("RELAY_SERVER_URL"):
        config_data.setdefault("client", {})["server_url"] = env_url

    # Logging
    if env_log := os.environ.get("LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log
    if env_fmt := os.environ.get("LOG_FORMAT"):
        config_data.setdefault("logging", {})["format"] = env_fmt


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Settings Accessor
# =============================================================================

_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Return the process-wide Settings, loading them on first call.

    Returns:
        Settings: The global configuration object.
    """
    global _settings
    if _settings is None:
        _settings = load_config()
    return _settings


def reset_settings() -> None:
    """Drop the cached Settings so the next get_settings() reloads them."""
    global _settings
    _settings = None
