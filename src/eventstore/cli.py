"""CLI for the event store — serve the API and manage the database."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click
import uvicorn

from eventstore import __version__
from eventstore.config import ConfigError, StoreConfig, default_config, load_config
from eventstore.core.logging import configure_logging
from eventstore.db import Database

logger = logging.getLogger(__name__)

SERVICE_NAME = "eventstore"


def _load(config_path: Path | None) -> StoreConfig:
    """Load the config at *config_path* or fall back to defaults; exit on errors."""
    if config_path is None:
        return default_config()
    try:
        return load_config(config_path)
    except ConfigError as exc:
        click.echo(f"Invalid configuration: {exc}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """Event store — storage backend for a calendar scheduler."""


@cli.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to eventstore.toml (or a directory containing it)",
)
@click.option("--host", default=None, help="Override server.host")
@click.option("--port", type=int, default=None, help="Override server.port")
def serve(config_path: Path | None, host: str | None, port: int | None) -> None:
    """Serve the event API under uvicorn."""
    from eventstore.api.app import create_app

    config = _load(config_path)
    configure_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_root=config.logging.log_root,
        service_name=SERVICE_NAME,
    )
    bind_host = host or config.server.host
    bind_port = port or config.server.port
    logger.info("Starting event store on %s:%d", bind_host, bind_port)
    uvicorn.run(
        create_app(config),
        host=bind_host,
        port=bind_port,
        log_config=None,
        server_header=False,
    )


@cli.command("init-db")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to eventstore.toml (or a directory containing it)",
)
def init_db(config_path: Path | None) -> None:
    """Create the database if needed and migrate the events table to head."""
    config = _load(config_path)
    configure_logging(level=config.logging.level, fmt=config.logging.format)
    db = Database.from_env(config.db.name)
    asyncio.run(_init_db(db))
    click.echo(f"Database '{db.db_name}' is ready")


async def _init_db(db: Database) -> None:
    from eventstore.migrations import run_migrations

    await db.provision()
    await run_migrations(db.url)


@cli.command("check-config")
@click.argument("config_path", type=click.Path(exists=True, path_type=Path))
def check_config(config_path: Path) -> None:
    """Validate a config file and print the effective settings."""
    config = _load(config_path)
    click.echo(f"server:  {config.server.host}:{config.server.port}")
    click.echo(f"static:  {config.server.static_dir or '-'}")
    click.echo(
        f"db:      {config.db.name} "
        f"(pool {config.db.min_pool_size}..{config.db.max_pool_size})"
    )
    click.echo(f"logging: {config.logging.level} ({config.logging.format})")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
