"""Logging and HTTP server settings."""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class AppConfig:
    """Process-wide settings shared by the CLI and the HTTP app."""

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_date_format: str = "%Y-%m-%d %H:%M:%S"

    # HTTP server (serve command)
    host: str = "127.0.0.1"
    port: int = 8080

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create config from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            host=os.getenv("GMAIL_CONNECTOR_HOST", "127.0.0.1"),
            port=int(os.getenv("GMAIL_CONNECTOR_PORT", "8080")),
        )

    def validate(self) -> None:
        """Validate configuration."""
        levels = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        if self.log_level.upper() not in levels:
            raise ValueError(
                f"LOG_LEVEL must be one of {', '.join(levels)}, got {self.log_level!r}"
            )

        if not 0 < self.port < 65536:
            raise ValueError(f"Port must be between 1 and 65535, got {self.port}")
