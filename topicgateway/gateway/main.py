#!/usr/bin/env python3
"""
Main entry point for running the TopicGateway HTTP server.

Usage:
    # Durable store under ./data on port 8080
    topicgateway --data-dir ./data --port 8080
    
    # Ephemeral in-memory store
    python -m topicgateway.gateway.main --store memory
"""

import argparse
import sys
from typing import Optional, Sequence

import uvicorn
from fastapi import FastAPI

from topicgateway.gateway.app import GatewaySettings, create_app
from topicgateway.store.base import LogStore
from topicgateway.store.disk import DiskLogStore
from topicgateway.store.memory import InMemoryLogStore
from topicgateway.utils.config import Config, ConfigError, get_config
from topicgateway.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='TopicGateway - HTTP produce/consume/poll over an append-only log'
    )
    
    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='YAML configuration file layered over the defaults'
    )
    
    parser.add_argument(
        '--host',
        type=str,
        default=None,
        help='Host to bind to (default: server.host, 0.0.0.0)'
    )
    
    parser.add_argument(
        '--port',
        type=int,
        default=None,
        help='Port to listen on (default: server.port, 8080)'
    )
    
    parser.add_argument(
        '--data-dir',
        type=str,
        default=None,
        help='Data directory for the disk store (default: store.data_dir, ./data)'
    )
    
    parser.add_argument(
        '--store',
        type=str,
        default=None,
        choices=['disk', 'memory'],
        help='Store backend (default: store.backend, disk)'
    )
    
    parser.add_argument(
        '--log-level',
        type=str,
        default=None,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: logging.level, INFO)'
    )
    
    return parser.parse_args(argv)


def apply_args(config: Config, args: argparse.Namespace) -> Config:
    """Layer command-line arguments over the loaded configuration."""
    overrides = {
        "server.host": args.host,
        "server.port": args.port,
        "store.data_dir": args.data_dir,
        "store.backend": args.store,
        "logging.level": args.log_level,
    }
    for key, value in overrides.items():
        if value is not None:
            config.set(key, value)
    return config


def build_store(config: Config) -> LogStore:
    """
    Create the single store instance shared by every request.
    
    Args:
        config: Loaded configuration
    
    Returns:
        Configured LogStore
    
    Raises:
        ValueError: If store.backend is unknown
    """
    backend = config.get("store.backend", "disk")
    
    if backend == "memory":
        return InMemoryLogStore(max_entry_bytes=int(config.get("store.max_entry_bytes")))
    
    if backend == "disk":
        return DiskLogStore(
            data_dir=config.get("store.data_dir", "./data"),
            log_config={
                "max_segment_bytes": int(config.get("store.max_segment_bytes")),
                "max_segment_age_ms": int(config.get("store.max_segment_age_ms")),
                "index_interval_bytes": int(config.get("store.index_interval_bytes")),
                "fsync_on_append": bool(config.get("store.fsync_on_append")),
                "max_entry_bytes": int(config.get("store.max_entry_bytes")),
            },
            disk_io_threads=int(config.get("store.disk_io_threads", 8)),
        )
    
    raise ValueError(f"Unknown store backend: {backend!r}")


def create_app_from_config(config: Optional[Config] = None) -> FastAPI:
    """
    Build the application from configuration.
    
    Usable as a uvicorn factory:
        uvicorn --factory topicgateway.gateway.main:create_app_from_config
    """
    config = config or get_config()
    return create_app(build_store(config), GatewaySettings.from_config(config))


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    try:
        config = apply_args(get_config(args.config), args).validate()
    except (ConfigError, OSError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2
    
    configure_logging(
        log_level=config.get("logging.level", "INFO"),
        log_format=config.get("logging.format", "json"),
        log_output=config.get("logging.output", "stdout"),
    )
    
    host = config.get("server.host", "0.0.0.0")
    port = int(config.get("server.port", 8080))
    
    logger.info(
        "Starting TopicGateway",
        host=host,
        port=port,
        store=config.get("store.backend"),
        data_dir=config.get("store.data_dir"),
    )
    
    try:
        app = create_app_from_config(config)
        uvicorn.run(
            app,
            host=host,
            port=port,
            log_level=str(config.get("logging.level", "INFO")).lower(),
            log_config=None,
            access_log=False,
        )
    except Exception as e:
        logger.error("Gateway error", error=str(e), exc_info=True)
        return 1
    
    return 0


if __name__ == '__main__':
    sys.exit(main())
