"""Configuration schema for the signaling relay.

Defines Pydantic models for loading and validating relay configuration
from YAML files and environment variables.
"""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator


class WebSocketConfig(BaseModel):
    """WebSocket transport configuration."""

    enabled: bool = Field(default=True, description="Enable WebSocket transport")
    host: str = Field(default="0.0.0.0", description="Bind host address")  # noqa: S104
    port: int = Field(default=8080, ge=1024, le=65535, description="Bind port")
    max_connections: int = Field(default=1000, ge=1, description="Maximum concurrent connections")
    outbound_queue_size: int = Field(
        default=256, ge=8, description="Outbound event buffer size per connection"
    )
    max_message_bytes: int = Field(
        default=2**20, ge=1024, description="Maximum inbound message size in bytes"
    )


class TransportConfig(BaseModel):
    """Transport layer configuration."""

    websocket: WebSocketConfig = Field(default_factory=WebSocketConfig)


class HTTPConfig(BaseModel):
    """HTTP side server (health, metrics, uploads, static assets)."""

    enabled: bool = Field(default=True, description="Enable HTTP server")
    host: str = Field(default="0.0.0.0", description="Bind host address")  # noqa: S104
    port: int | None = Field(
        default=None,
        ge=1024,
        le=65535,
        description="Bind port (defaults to WebSocket port + 1)",
    )
    public_dir: Path = Field(default=Path("public"), description="Static asset directory")
    music_dir: Path = Field(default=Path("music"), description="Uploaded MP3 directory")
    max_upload_bytes: int = Field(
        default=50 * 1024 * 1024, ge=1, description="Maximum upload size in bytes"
    )


class ChatConfig(BaseModel):
    """Room chat configuration."""

    max_length: int = Field(default=300, ge=1, description="Maximum chat message length")
    display_name: str = Field(
        default="Usuario",
        min_length=1,
        description="Fixed author name attached to every chat message",
    )


class RelayConfig(BaseModel):
    """Root relay configuration."""

    transport: TransportConfig = Field(default_factory=TransportConfig)
    http: HTTPConfig = Field(default_factory=HTTPConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)

    # Operational settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    graceful_shutdown_timeout_s: int = Field(
        default=10,
        ge=1,
        description="Graceful shutdown timeout in seconds",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level name."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}, got '{v}'")
        return v.upper()

    @property
    def http_port(self) -> int:
        """Effective HTTP port."""
        if self.http.port is not None:
            return self.http.port
        return self.transport.websocket.port + 1

    @classmethod
    def from_yaml(cls, path: Path) -> "RelayConfig":
        """Load configuration from YAML file with environment variable overrides.

        Args:
            path: Path to YAML configuration file

        Returns:
            Loaded configuration

        Raises:
            FileNotFoundError: If configuration file doesn't exist
            ValueError: If YAML is invalid or validation fails
        """
        import yaml  # type: ignore[import-untyped]

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Configuration root must be a mapping: {path}")

        return cls.model_validate(_apply_env_overrides(data))

    @classmethod
    def from_yaml_with_defaults(cls, path: Path | None = None) -> "RelayConfig":
        """Load configuration from YAML or use defaults if file doesn't exist.

        Environment overrides apply in both cases.

        Args:
            path: Optional path to YAML configuration file

        Returns:
            Loaded configuration or defaults
        """
        if path is not None and path.exists():
            return cls.from_yaml(path)

        return cls.model_validate(_apply_env_overrides({}))


def _apply_env_overrides(data: dict) -> dict:
    """Apply PORT/HOST/HTTP_PORT/MUSIC_DIR/LOG_LEVEL environment overrides."""
    import os

    if port := os.getenv("PORT"):
        data.setdefault("transport", {}).setdefault("websocket", {})["port"] = int(port)

    if host := os.getenv("HOST"):
        data.setdefault("transport", {}).setdefault("websocket", {})["host"] = host
        data.setdefault("http", {})["host"] = host

    if http_port := os.getenv("HTTP_PORT"):
        data.setdefault("http", {})["port"] = int(http_port)

    if music_dir := os.getenv("MUSIC_DIR"):
        data.setdefault("http", {})["music_dir"] = music_dir

    if log_level := os.getenv("LOG_LEVEL"):
        data["log_level"] = log_level

    return data
