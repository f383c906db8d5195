"""
Main entry point for the AWS resource provider server.

This module wires configuration, the state store, the AWS client, the
plugin registry and the input plugins together and serves until stopped.
"""

import asyncio
import logging
import signal
from typing import Any, Dict, List, Optional

from aws import AWSClient
from config import get_config
from db import DatabaseManager
from events import EventBus
from plugins.inputs.base import InputPlugin
from plugins.registry import get_registry, register_builtin_plugins
from provider import Provider, ProviderConfig

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


class Application:
    """Main application that orchestrates the provider and plugins."""

    def __init__(self):
        self.config = get_config()
        self.db: Optional[DatabaseManager] = None
        self.aws: Optional[AWSClient] = None
        self.provider: Optional[Provider] = None
        self.event_bus: Optional[EventBus] = None
        self.input_plugins: List[InputPlugin] = []
        self.running = False

    async def initialize(self):
        """Initialize all components."""
        logger.info("Initializing AWS resource provider")

        # Register built-in plugins
        register_builtin_plugins(self.config.plugins.enabled_resource_plugins)
        registry = get_registry()

        # Initialize database
        db_config = self.config.database
        self.db = DatabaseManager(
            host=db_config.host,
            port=db_config.port,
            database=db_config.database,
            user=db_config.user,
            password=db_config.password,
            min_pool_size=db_config.min_pool_size,
            max_pool_size=db_config.max_pool_size,
        )
        await self.db.connect()
        await self.db.initialize_schema()
        logger.info("Database initialized")

        self.aws = AWSClient(self.config.aws)
        logger.info(f"Using AWS region {self.aws.region}")

        # Initialize event bus
        self.event_bus = EventBus()

        # Config can override plugin settings with the PLUGIN_CONFIGS env var
        plugin_configs: Dict[str, Dict[str, Any]] = {}
        for resource_type in registry.list_resource_plugins():
            plugin_configs[resource_type] = self.config.plugins.get_plugin_config(
                resource_type
            )

        self.provider = Provider(
            db_manager=self.db,
            aws=self.aws,
            registry=registry,
            config=ProviderConfig(plugin_configs=plugin_configs),
            retry=self.config.retry,
            event_bus=self.event_bus,
        )

        # Determine which input plugins to load
        enabled_inputs = self.config.plugins.enabled_input_plugins
        if not enabled_inputs:
            enabled_inputs = registry.list_input_plugins()

        for plugin_name in enabled_inputs:
            if not registry.has_input_plugin(plugin_name):
                logger.warning(f"Input plugin '{plugin_name}' not found, skipping")
                continue

            # Env-loaded config with config overrides
            plugin_config = registry.get_input_plugin_config(plugin_name)
            plugin_config.update(self.config.plugins.get_plugin_config(plugin_name))

            plugin = await registry.get_input_plugin(plugin_name, plugin_config)
            plugin.set_provider(self.provider)
            plugin.set_event_bus(self.event_bus)
            self.input_plugins.append(plugin)
            logger.info(f"Initialized input plugin: {plugin_name}")

        logger.info("All components initialized")

    async def start(self):
        """Start the application."""
        if not self.provider or not self.input_plugins:
            await self.initialize()

        if not self.input_plugins:
            raise RuntimeError("No input plugins enabled, nothing to serve")

        self.running = True
        logger.info("Starting AWS resource provider")

        tasks = [asyncio.create_task(plugin.start()) for plugin in self.input_plugins]

        try:
            await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            logger.info("Application tasks cancelled")

    async def stop(self):
        """Stop the application gracefully."""
        if not self.running and self.db is None:
            return

        logger.info("Stopping AWS resource provider")
        self.running = False

        for plugin in self.input_plugins:
            await plugin.stop()

        if self.db:
            await self.db.close()
            self.db = None

        logger.info("AWS resource provider stopped")


async def main():
    """Main entry point."""
    configure_logging(get_config().api.log_level)
    app = Application()

    # Set up signal handlers for graceful shutdown
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        asyncio.create_task(app.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await app.start()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        await app.stop()


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
