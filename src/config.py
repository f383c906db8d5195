"""
Configuration module for the AWS resource provider.

Loads configuration from environment variables.
Supports plugin-based architecture with plugin-specific configuration.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class DatabaseConfig:
    """PostgreSQL state store configuration."""

    host: str = "localhost"
    port: int = 5432
    database: str = "awsprov"
    user: str = "awsprov"
    password: str = field(default="", repr=False)  # Never log password
    min_pool_size: int = 2
    max_pool_size: int = 10

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        password = os.getenv("DB_PASSWORD", "")
        if not password:
            raise ValueError(
                "DB_PASSWORD environment variable must be set. "
                "Database password cannot be empty."
            )

        return cls(
            host=os.getenv("DB_HOST", "localhost"),
            port=int(os.getenv("DB_PORT", "5432")),
            database=os.getenv("DB_NAME", "awsprov"),
            user=os.getenv("DB_USER", "awsprov"),
            password=password,
            min_pool_size=int(os.getenv("DB_MIN_POOL_SIZE", "2")),
            max_pool_size=int(os.getenv("DB_MAX_POOL_SIZE", "10")),
        )


@dataclass
class AWSConfig:
    """AWS session configuration."""

    region: str = "us-east-1"
    profile: Optional[str] = None
    endpoint_url: Optional[str] = None
    access_key_id: Optional[str] = field(default=None, repr=False)
    secret_access_key: Optional[str] = field(default=None, repr=False)
    max_attempts: int = 5

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            region=os.getenv("AWS_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1")),
            profile=os.getenv("AWS_PROFILE") or None,
            endpoint_url=os.getenv("AWS_ENDPOINT_URL") or None,
            access_key_id=os.getenv("AWS_ACCESS_KEY_ID") or None,
            secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY") or None,
            max_attempts=int(os.getenv("AWS_MAX_ATTEMPTS", "5")),
        )


@dataclass
class RetryConfig:
    """Bounded retry applied to the initial remote call of a create."""

    create_timeout: float = 240.0  # seconds (4 minutes)
    min_delay: float = 1.0
    max_delay: float = 10.0

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            create_timeout=float(os.getenv("CREATE_RETRY_TIMEOUT", "240")),
            min_delay=float(os.getenv("CREATE_RETRY_MIN_DELAY", "1")),
            max_delay=float(os.getenv("CREATE_RETRY_MAX_DELAY", "10")),
        )


@dataclass
class APIConfig:
    """API server configuration."""

    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            host=os.getenv("API_HOST", "0.0.0.0"),
            port=int(os.getenv("API_PORT", "8000")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


@dataclass
class PluginConfig:
    """Plugin system configuration."""

    # List of enabled plugin names (empty = use all registered plugins)
    enabled_resource_plugins: List[str] = field(default_factory=list)
    enabled_input_plugins: List[str] = field(default_factory=list)

    # Plugin-specific configurations keyed by plugin name
    plugin_configs: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        enabled_resources_str = os.getenv("ENABLED_RESOURCE_PLUGINS", "")
        enabled_inputs_str = os.getenv("ENABLED_INPUT_PLUGINS", "")

        enabled_resources = (
            [p.strip() for p in enabled_resources_str.split(",") if p.strip()]
            if enabled_resources_str
            else []
        )
        enabled_inputs = (
            [p.strip() for p in enabled_inputs_str.split(",") if p.strip()]
            if enabled_inputs_str
            else []
        )

        # Load plugin configs from JSON environment variable
        plugin_configs = {}
        if os.getenv("PLUGIN_CONFIGS"):
            try:
                plugin_configs = json.loads(os.getenv("PLUGIN_CONFIGS"))
            except json.JSONDecodeError as e:
                logger.warning(f"Ignoring malformed PLUGIN_CONFIGS: {e}")

        return cls(
            enabled_resource_plugins=enabled_resources,
            enabled_input_plugins=enabled_inputs,
            plugin_configs=plugin_configs,
        )

    def get_plugin_config(self, plugin_name: str) -> Dict[str, Any]:
        """Get configuration for a specific plugin."""
        return self.plugin_configs.get(plugin_name, {})


@dataclass
class Config:
    """Main configuration object."""

    database: DatabaseConfig
    aws: AWSConfig
    retry: RetryConfig
    api: APIConfig
    plugins: PluginConfig

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            database=DatabaseConfig.from_env(),
            aws=AWSConfig.from_env(),
            retry=RetryConfig.from_env(),
            api=APIConfig.from_env(),
            plugins=PluginConfig.from_env(),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            database=DatabaseConfig(),
            aws=AWSConfig(),
            retry=RetryConfig(),
            api=APIConfig(),
            plugins=PluginConfig(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
