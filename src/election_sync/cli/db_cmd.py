"""Database migration CLI commands using Alembic programmatically."""

from typing import TYPE_CHECKING

import typer
from loguru import logger

if TYPE_CHECKING:
    from alembic.config import Config

db_app = typer.Typer()

_CONFIG_OPTION = typer.Option("alembic.ini", "--config", "-c", help="Path to alembic.ini")


def _alembic_config(config_path: str) -> "Config":
    """Load the Alembic config, failing clearly when the ini file is missing."""
    from pathlib import Path

    from alembic.config import Config

    if not Path(config_path).is_file():
        typer.echo(f"Alembic config not found: {config_path}", err=True)
        raise typer.Exit(code=1)
    return Config(config_path)


@db_app.command()
def upgrade(
    revision: str = typer.Argument("head", help="Target revision"),
    config_path: str = _CONFIG_OPTION,
) -> None:
    """Apply migrations for sync_runs and synced_records up to the target revision."""
    from alembic import command

    config = _alembic_config(config_path)
    logger.info("Upgrading database to {}", revision)
    command.upgrade(config, revision)
    logger.info("Database upgrade complete")


@db_app.command()
def downgrade(
    revision: str = typer.Argument("-1", help="Target revision"),
    config_path: str = _CONFIG_OPTION,
) -> None:
    """Roll back migrations to the target revision."""
    from alembic import command

    config = _alembic_config(config_path)
    logger.info("Downgrading database to {}", revision)
    command.downgrade(config, revision)
    logger.info("Database downgrade complete")


@db_app.command()
def current(config_path: str = _CONFIG_OPTION) -> None:
    """Show the current database migration revision."""
    from alembic import command

    command.current(_alembic_config(config_path), verbose=True)
