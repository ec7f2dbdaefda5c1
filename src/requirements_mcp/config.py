"""Configuration management for the Product Requirements MCP Server.

Settings come from ``REQUIREMENTS_MCP_*`` environment variables (or a ``.env``
file) and are validated with Pydantic v2. The configuration covers:
1. Protocol metadata - server identification and protocol versions
2. Transport - HTTP endpoint or stdio channel
3. Security - opaque access tokens resolved to actors
4. Behaviour - caches, thresholds and capability flags
"""

from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseSettings):
    """MCP server configuration.

    The server identity and protocol versions are sent to clients during the
    ``initialize`` handshake; everything else tunes the local runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="REQUIREMENTS_MCP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Server Metadata (Required by MCP Protocol) ===

    server_name: str = Field(
        default="product-requirements",
        description="MCP server name used in protocol handshake",
        pattern=r"^[a-z0-9-]+$",
    )

    server_title: str = Field(
        default="Product Requirements MCP Server",
        description="Human readable server title returned in serverInfo",
    )

    server_version: str = Field(
        default="1.0.0",
        description="Server version reported in serverInfo",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9.]+)?$",
    )

    protocol_version: str = Field(
        default="2025-06-18",
        description="Protocol version advertised when the client's version is not supported",
    )

    supported_protocol_versions: list[str] = Field(
        default_factory=lambda: ["2025-03-26", "2025-06-18"],
        description="Protocol versions the server accepts verbatim from clients",
    )

    # === Database Configuration ===

    database_path: Path = Field(
        default=Path("data/requirements.db"),
        description="SQLite database file path",
    )

    database_url: str | None = Field(
        default=None,
        description="Full SQLAlchemy URL; overrides database_path when set",
    )

    # === Transport Configuration ===

    transport: str = Field(
        default="http",
        description="Channel the processor is served on",
        pattern=r"^(stdio|http)$",
    )

    http_host: str = Field(default="127.0.0.1", description="HTTP bind host")

    http_port: int = Field(
        default=8080,
        description="HTTP bind port",
        ge=1024,
        le=65535,
    )

    mcp_path: str = Field(
        default="/api/v1/mcp",
        description="HTTP path accepting JSON-RPC frames",
        pattern=r"^/[A-Za-z0-9/_-]*$",
    )

    # === Security Configuration ===

    api_tokens: dict[str, dict[str, Any]] = Field(
        default_factory=dict,
        description="Opaque bearer token -> actor ({id, username, role})",
        repr=False,
    )

    stdio_token: str | None = Field(
        default=None,
        description="Token presented on behalf of the stdio channel",
        repr=False,
    )

    # === Behaviour ===

    instructions_cache_ttl: int = Field(
        default=300,
        description="Seconds the active prompt is cached for initialize instructions",
        ge=0,
    )

    slow_operation_threshold_ms: int = Field(
        default=100,
        description="Operations at or above this duration emit performance records",
        ge=0,
    )

    collection_limit: int = Field(
        default=1000,
        description="Maximum number of items returned by a collection resource",
        ge=1,
        le=10000,
    )

    enable_tools_list_changed: bool = Field(
        default=True,
        description="Advertise tools.listChanged",
    )

    enable_prompts_list_changed: bool = Field(
        default=True,
        description="Advertise prompts.listChanged",
    )

    # === Development Configuration ===

    debug: bool = Field(default=False, description="Enable debug logging")

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR)$",
    )

    # === Validation Methods ===

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, v: Path) -> Path:
        """Resolve the database path and make sure its directory exists."""
        abs_path = v.absolute()
        abs_path.parent.mkdir(parents=True, exist_ok=True)
        if not abs_path.parent.is_dir():
            raise ValueError(f"Database directory {abs_path.parent} is not accessible")
        return abs_path

    @field_validator("server_name")
    @classmethod
    def validate_server_name(cls, v: str) -> str:
        if len(v) < 3:
            raise ValueError("Server name must be at least 3 characters")
        if len(v) > 50:
            raise ValueError("Server name must not exceed 50 characters")
        return v

    @field_validator("supported_protocol_versions")
    @classmethod
    def validate_supported_versions(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("At least one supported protocol version is required")
        return v

    # === Computed Properties ===

    @property
    def is_development(self) -> bool:
        return self.debug or self.log_level == "DEBUG"

    @property
    def server_info(self) -> dict[str, str]:
        """serverInfo block of the initialize result."""
        return {
            "name": self.server_name,
            "title": self.server_title,
            "version": self.server_version,
        }

    def get_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.database_path}"


# === Global Configuration Instance ===


class _ConfigStore:
    """Internal storage for configuration singleton."""

    _instance: ServerConfig | None = None


def get_config() -> ServerConfig:
    """Get or create the global configuration instance."""
    if _ConfigStore._instance is None:  # type: ignore[reportPrivateUsage]
        _ConfigStore._instance = ServerConfig()  # type: ignore[reportPrivateUsage]
    return _ConfigStore._instance  # type: ignore[reportPrivateUsage]


def set_config(config: ServerConfig) -> None:
    """Install an explicit configuration (used by the app factory and tests)."""
    _ConfigStore._instance = config  # type: ignore[reportPrivateUsage]


def reset_config() -> None:
    """Reset configuration (useful for testing)."""
    _ConfigStore._instance = None  # type: ignore[reportPrivateUsage]
