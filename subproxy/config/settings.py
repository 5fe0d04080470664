"""Configuration management for subproxy."""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration settings for subproxy.

    Every field has a default, so the proxy runs without any configuration.
    """

    model_config = SettingsConfigDict(
        env_prefix="SUBPROXY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Server settings
    host: str = Field(
        default="127.0.0.1",
        description="Host to bind to"
    )
    port: int = Field(
        default=8080,
        description="Port to listen on"
    )
    route_prefix: str = Field(
        default="/api",
        description="Route the proxy is mounted under"
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)"
    )

    # Upstream fetch settings
    timeout: float = Field(
        default=30.0,
        description="Upstream request timeout in seconds"
    )
    connect_timeout: float = Field(
        default=10.0,
        description="Upstream connect timeout in seconds"
    )
    verify_tls: bool = Field(
        default=False,
        description="Validate upstream TLS certificates (off: many subscription hosts are self-signed)"
    )
    follow_redirects: bool = Field(
        default=True,
        description="Follow upstream redirects"
    )

    # Preview settings
    preview_limit: int = Field(
        default=3000,
        description="Characters of the body shown in the browser preview (0 = all)"
    )

    @field_validator("route_prefix")
    @classmethod
    def _normalize_prefix(cls, value: str) -> str:
        value = "/" + value.strip("/")
        if value == "/":
            raise ValueError("route_prefix cannot be the site root")
        return value

    @classmethod
    def load_from_file(cls, config_file: str) -> "Settings":
        """Load settings from a YAML config file.

        Args:
            config_file: Path to YAML config file

        Returns:
            Settings instance
        """
        import yaml

        with open(config_file, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    def public_url(self, host: Optional[str] = None) -> str:
        """Return the proxy base URL as seen by local clients."""
        return f"http://{host or self.host}:{self.port}{self.route_prefix}"
