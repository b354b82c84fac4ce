"""PostgreSQL branching through the stock client tools."""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Mapping, Sequence

from sqlalchemy.engine import make_url

from . import Resource, Strategy

# purpose: create and drop postgres databases cloned from a template database
# inputs: target and template database names, configuration with connectionString (password passed via PGPASSWORD)
# outputs: side effects on the postgres server reachable at connectionString
# status: active

logger = logging.getLogger(__name__)

COMMAND_TIMEOUT_SECONDS = int(os.getenv("BRANCHSTACK_COMMAND_TIMEOUT", "3600"))


def _connection_string(configuration: Mapping[str, Any] | None) -> str:
    connection_string = (configuration or {}).get("connectionString")
    if not connection_string:
        raise ValueError("Required field 'connectionString' is missing from configuration")
    return connection_string


def _dry_run(configuration: Mapping[str, Any] | None) -> bool:
    return os.getenv("BRANCHSTACK_DRY_RUN") == "1" or bool((configuration or {}).get("dryRun"))


def _database_name(name: str) -> str:
    # the client tools read a leading dash as an option
    if not name or name.startswith("-"):
        raise ValueError(f"'{name}' is not a valid database name")
    return name


def database_url(connection_string: str, database: str | None = None) -> str:
    """Point a libpq connection URI at a database on the same server, without its password."""

    url = make_url(connection_string).set(drivername="postgresql", password=None)
    if database is not None:
        url = url.set(database=database)
    return url.render_as_string(hide_password=False)


def _tool_env(connection_string: str) -> dict[str, str]:
    """Environment for the client tools; the password travels in PGPASSWORD, never in argv."""

    env = dict(os.environ)
    password = make_url(connection_string).password
    if password:
        env["PGPASSWORD"] = str(password)
    return env


def _run(command: Sequence[str], *, connection_string: str, dry_run: bool) -> None:
    printable = " ".join(command)
    if dry_run:
        logger.info("dry run, skipping: %s", printable)
        return
    logger.info("running: %s", printable)
    try:
        result = subprocess.run(
            list(command),
            capture_output=True,
            text=True,
            timeout=COMMAND_TIMEOUT_SECONDS,
            env=_tool_env(connection_string),
        )
    except subprocess.TimeoutExpired:
        raise RuntimeError(
            f"'{command[0]}' timed out after {COMMAND_TIMEOUT_SECONDS} seconds"
        ) from None
    if result.returncode != 0:
        detail = (result.stderr or result.stdout or "").strip()
        raise RuntimeError(detail or f"'{command[0]}' exited with status {result.returncode}")


def create_branch(
    target: str,
    template: str,
    configuration: Mapping[str, Any] | None = None,
) -> None:
    """Create ``target`` and restore a dump of ``template`` into it."""

    connection_string = _connection_string(configuration)
    target = _database_name(target)
    template = _database_name(template)
    dry_run = _dry_run(configuration)
    logger.info("using pg_dump and pg_restore to create branch '%s' from template '%s'", target, template)

    def run(command: Sequence[str]) -> None:
        _run(command, connection_string=connection_string, dry_run=dry_run)

    run(["createdb", f"--maintenance-db={database_url(connection_string)}", "--", target])
    with tempfile.TemporaryDirectory(prefix="branchstack-") as workdir:
        dump_path = Path(workdir) / "template.dump"
        run(
            [
                "pg_dump",
                "--format=custom",
                "--no-owner",
                f"--file={dump_path}",
                f"--dbname={database_url(connection_string, template)}",
            ]
        )
        run(
            [
                "pg_restore",
                "--no-owner",
                f"--dbname={database_url(connection_string, target)}",
                str(dump_path),
            ]
        )


def delete_branch(target: str, configuration: Mapping[str, Any] | None = None) -> None:
    """Drop the ``target`` database if it exists."""

    connection_string = _connection_string(configuration)
    target = _database_name(target)
    logger.info("using DROP DATABASE to remove database '%s'", target)
    _run(
        ["dropdb", "--if-exists", f"--maintenance-db={database_url(connection_string)}", "--", target],
        connection_string=connection_string,
        dry_run=_dry_run(configuration),
    )


resource = Resource(
    type="postgres",
    strategies={
        "dbDumpRestore": Strategy(create=create_branch, delete=delete_branch),
    },
)
