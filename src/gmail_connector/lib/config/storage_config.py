"""Storage and file path configuration."""

import os
from dataclasses import dataclass
from pathlib import Path

STORE_BACKENDS = ("sqlite", "keyring", "memory")


@dataclass(frozen=True)
class StorageConfig:
    """Configuration for credential, context and cursor storage."""

    # Base directory
    home_dir: Path

    # Subdirectories (derived from home_dir)
    log_dir: Path

    # SQLite store path
    store_db_path: Path

    # Which KeyValueStore backs the stores
    backend: str = "sqlite"

    # Keyring service prefix (keyring backend only)
    keyring_service: str = "gmail_connector"

    # Security settings
    auto_fix_permissions: bool = True

    @classmethod
    def from_env(cls) -> "StorageConfig":
        """Create config from environment variables."""
        home_dir_str = os.getenv("GMAIL_CONNECTOR_HOME")
        home_dir = Path(home_dir_str) if home_dir_str else Path.home() / ".gmail_connector"

        return cls(
            home_dir=home_dir,
            log_dir=home_dir / "logs",
            store_db_path=home_dir / "connector.db",
            backend=os.getenv("GMAIL_CONNECTOR_STORE", "sqlite").lower(),
            keyring_service=os.getenv("GMAIL_CONNECTOR_KEYRING_SERVICE", "gmail_connector"),
            auto_fix_permissions=os.getenv("AUTO_FIX_PERMISSIONS", "true").lower() == "true",
        )

    def ensure_directories(self) -> None:
        """Create necessary directories with secure permissions."""
        from gmail_connector.lib.utils import ensure_private_directory

        ensure_private_directory(self.home_dir, mode=0o700)
        ensure_private_directory(self.log_dir, mode=0o700)

    def validate(self) -> None:
        """Validate configuration."""
        if self.backend not in STORE_BACKENDS:
            raise ValueError(
                f"Store backend must be one of {list(STORE_BACKENDS)}, got {self.backend}"
            )

        if not self.keyring_service:
            raise ValueError("Keyring service name cannot be empty")
