"""
StreamSite Server - Main entry point.

This module starts the server with all components:
- In-memory state store (optionally seeded with default content)
- Backup scheduler (snapshot -> prune -> restore cycles)
- Public HTTP API (uvicorn)

Usage:
    python -m backend.streamsite_server.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - The store is created once and shared by the API and the scheduler
    - Shutdown stops the HTTP server before the scheduler

How to change safely:
    - Add new components with enable/disable flags
    - Test shutdown sequence thoroughly
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import json_log_formatter
import uvicorn

from .api import create_app
from .backup import BackupScheduler
from .config import ServerConfig
from .storage import InMemoryStateStore

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


class Server:
    """StreamSite server orchestrator.

    Manages the lifecycle of all server components:
    - State store
    - Backup scheduler
    - HTTP server

    Example:
        >>> server = Server()
        >>> await server.start()  # Runs until shutdown is requested
        >>> await server.stop()
    """

    def __init__(self, config: ServerConfig | None = None) -> None:
        """Initialize the server.

        Args:
            config: Optional server configuration (loaded from env if not provided)
        """
        self.config = config or ServerConfig.from_env()
        self._running = False
        self._shutdown_event = asyncio.Event()
        self._http_task: asyncio.Task | None = None

        self.store = InMemoryStateStore(seed=self.config.storage.seed_data)
        self.scheduler: BackupScheduler | None = None
        if self.config.backup.enabled:
            self.scheduler = BackupScheduler(
                store=self.store,
                directory=self.config.backup.directory,
                interval_seconds=self.config.backup.interval_seconds,
                initial_delay_seconds=self.config.backup.initial_delay_seconds,
                retention_count=self.config.backup.retention_count,
                restore_after_backup=self.config.backup.restore_after_backup,
            )

        self.app = create_app(self.store, self.scheduler, self.config.http)
        self.http_server = uvicorn.Server(
            uvicorn.Config(
                self.app,
                host=self.config.http.host,
                port=self.config.http.port,
                log_config=None,
            )
        )

    async def start(self) -> None:
        """Start all components and serve HTTP until shutdown is requested."""
        if self._running:
            logger.warning("Server already running")
            return

        logger.info("Starting StreamSite server")
        self.config.log_config()

        try:
            if self.scheduler:
                await self.scheduler.start()

            http_task = asyncio.create_task(self.http_server.serve(), name="http-server")
            self._http_task = http_task
            self._running = True
            logger.info("StreamSite server started successfully")

            # Wait for shutdown signal, or for uvicorn exiting on its own
            shutdown_task = asyncio.create_task(self._shutdown_event.wait())
            await asyncio.wait(
                {http_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
            )
            shutdown_task.cancel()
            if http_task.done():
                http_task.result()

        except Exception as e:
            logger.error(f"Server startup failed: {e}", exc_info=True)
            raise
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop the server gracefully."""
        if not self._running:
            return

        logger.info("Stopping StreamSite server")

        self.http_server.should_exit = True
        if self._http_task is not None:
            await asyncio.gather(self._http_task, return_exceptions=True)
            self._http_task = None

        if self.scheduler:
            await self.scheduler.stop()

        self._running = False
        logger.info("StreamSite server stopped")

    def request_shutdown(self) -> None:
        """Request graceful shutdown."""
        self._shutdown_event.set()
        self.http_server.should_exit = True


def main() -> None:
    """Main entry point."""
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)

    server = Server(config)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def handle_signal(sig: int) -> None:
        logger.info(f"Received signal {sig}, initiating shutdown")
        server.request_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        loop.run_until_complete(server.start())
    except KeyboardInterrupt:
        pass
    finally:
        loop.run_until_complete(server.stop())
        loop.close()


if __name__ == "__main__":
    main()
