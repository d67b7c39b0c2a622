"""Configuration management for the Gmail connector."""

from dotenv import load_dotenv

from gmail_connector.lib.config.gmail_config import GmailConfig
from gmail_connector.lib.config.storage_config import StorageConfig
from gmail_connector.lib.config.app_config import AppConfig

# Load environment variables from .env file
load_dotenv()

# Load and validate all configs
gmail_config = GmailConfig.from_env()
storage_config = StorageConfig.from_env()
app_config = AppConfig.from_env()

# Validate
gmail_config.validate()
storage_config.validate()
app_config.validate()

__all__ = [
    "gmail_config",
    "storage_config",
    "app_config",
    "GmailConfig",
    "StorageConfig",
    "AppConfig",
]
