"""Command line entry points for running and migrating BranchStack."""

# purpose: start the API server and manage the branches/events schema
# status: active
# depends_on: branchstack.main, backend/alembic

from __future__ import annotations

import os
from pathlib import Path

import typer
import uvicorn
from alembic import command
from alembic.config import Config

from ..database import DATABASE_URL
from ..logging_config import configure_logging

app = typer.Typer(help="Branch lifecycle service commands")

ALEMBIC_DIR = Path(__file__).resolve().parents[2] / "alembic"


def alembic_config(database_url: str = DATABASE_URL) -> Config:
    config = Config()
    config.set_main_option("script_location", str(ALEMBIC_DIR))
    config.set_main_option("sqlalchemy.url", database_url)
    return config


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Interface to bind"),
    port: int = typer.Option(int(os.getenv("PORT", "8675")), help="Port to listen on"),
    log_level: str = typer.Option(os.getenv("LOG_LEVEL", "INFO"), help="Logging level"),
) -> None:
    """Run the HTTP API; SIGINT/SIGTERM drain provisioning tasks before exit."""

    configure_logging(log_level)
    uvicorn.run("branchstack.main:app", host=host, port=port, log_config=None)


@app.command()
def migrate(
    database_url: str = typer.Option(DATABASE_URL, help="SQLAlchemy URL of the database to migrate"),
    force: bool = typer.Option(
        bool(os.getenv("FORCE_MIGRATIONS")),
        "--force",
        help="Drop the schema and re-run every migration",
    ),
) -> None:
    """Bring the database schema up to date."""

    configure_logging()
    config = alembic_config(database_url)
    if force:
        command.downgrade(config, "base")
    command.upgrade(config, "head")
    typer.echo("Migrations complete!")


def main() -> None:
    app()
