"""Shellite CLI - Main Entry Point.

Runs SQL against a database and prints the result:

    shellite app.db "SELECT * FROM users"
    echo "SELECT 1 AS one" | shellite app.db
    shellite app.db --mode text "SELECT * FROM users"
    shellite app.db --dump
"""

import asyncio
import json
import logging
import sys
from typing import Optional

import click

from . import __version__, __cli_name__
from ..config import BACKENDS, ConfigLoader
from ..db import Database, ResultMode
from ..faults import Fault, FaultDomain


async def _run(database: str, sql: Optional[str], mode: ResultMode, dump: bool, options) -> object:
    async with Database(database, options) as db:
        if dump:
            return await db.dump()
        return await db.query(sql, mode)


def _fail(fault: Fault, verbose: bool) -> None:
    click.secho(f"✗ {fault}", fg="red", err=True)
    if verbose:
        click.echo(json.dumps(fault.to_dict(), indent=2, default=str), err=True)
    sys.exit(2 if fault.domain is FaultDomain.CONFIG else 1)


def _echo_result(result: object, mode: ResultMode) -> None:
    if result is None:
        return
    if mode is ResultMode.PARSED:
        click.echo(json.dumps(result, indent=2, ensure_ascii=False))
    else:
        click.echo(result, nl=False)


@click.command(name=__cli_name__)
@click.version_option(version=__version__, prog_name=__cli_name__)
@click.argument("database")
@click.argument("sql", required=False)
@click.option(
    "--mode", "-m",
    type=click.Choice([m.value for m in ResultMode]),
    default=ResultMode.PARSED.value,
    show_default=True,
    help="How to render the result",
)
@click.option("--dump", is_flag=True, help="Print the SQL dump of the database")
@click.option("--readonly", is_flag=True, help="Open the database read-only")
@click.option("--wal", is_flag=True, help="Enable WAL journaling")
@click.option("--bin", "bin_", type=str, help="Path of the sqlite3 binary")
@click.option("--backend", type=click.Choice(list(BACKENDS)), help="Execution backend")
@click.option("--timeout", type=int, help="Busy timeout in milliseconds")
@click.option("--config", "-c", "config_paths", multiple=True, help="YAML/JSON config file")
@click.option("--env-file", type=click.Path(dir_okay=False), help=".env file with SHELLITE_* values")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def cli(
    database: str,
    sql: Optional[str],
    mode: str,
    dump: bool,
    readonly: bool,
    wal: bool,
    bin_: Optional[str],
    backend: Optional[str],
    timeout: Optional[int],
    config_paths,
    env_file: Optional[str],
    verbose: bool,
):
    """Run SQL against DATABASE and print the result.

    \b
    DATABASE is a file path, or ":memory:" for a throwaway database.
    SQL is read from standard input when omitted.
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    try:
        loader = ConfigLoader.load(
            paths=list(config_paths),
            env_file=env_file,
            overrides={
                "readonly": readonly or None,
                "wal": wal or None,
                "bin": bin_,
                "backend": backend,
                "timeout": timeout,
            },
        )
        options = loader.get_options()
    except Fault as e:
        _fail(e, verbose)

    if not dump and sql is None:
        sql = click.get_text_stream("stdin").read()
    if not dump and not (sql or "").strip():
        click.secho("✗ No SQL given", fg="red", err=True)
        sys.exit(2)

    result_mode = ResultMode(mode)
    try:
        result = asyncio.run(_run(database, sql, result_mode, dump, options))
    except Fault as e:
        _fail(e, verbose)

    _echo_result(result, ResultMode.TEXT if dump else result_mode)


def main():
    """Entry point for `shellite` command."""
    cli()


if __name__ == '__main__':
    main()
