"""
Tessera CLI

Command-line interface for constructor-tagged data and transaction test
suites.

Commands:
  decode    - Decode a JSON wire node against a prelude schema
  validate  - Check a JSON wire node against the packaged JSON Schema
  unions    - Report union tag/position misalignments in the prelude
  run       - Run a transaction test suite against a JSON-RPC ledger
"""

from __future__ import annotations

import json
import sys
from typing import IO

import click

from .config import load_env, setup_logging
from .spec.codec import CodecError
from .spec.data import SchemaValidationError, node_from_json, validate_instance
from .theurgy.run import new_codec

# ============ Constants ============

VERSION = "0.1.0"


# ============ Banner ============


def _print_banner() -> None:
    click.echo(
        click.style("  ◆ ", fg="cyan")
        + click.style("T E S S E R A", fg="bright_white", bold=True)
        + click.style(f"  v{VERSION}", dim=True)
    )
    click.echo()


# ============ Main CLI Group ============


@click.group(invoke_without_command=True)
@click.version_option(version=VERSION, prog_name="tessera")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Tessera - constructor-tagged data and transaction test runs."""
    load_env()
    setup_logging(verbose)
    if ctx.invoked_subcommand is None:
        _print_banner()
        click.echo(ctx.get_help())


# ============ Top-level Commands ============

from .theurgy.run import run

cli.add_command(run)


def _load_json(source: IO[str]) -> object:
    try:
        return json.load(source)
    except json.JSONDecodeError as exc:
        click.secho(f"Invalid JSON: {exc}", fg="red", err=True)
        sys.exit(2)


def _report_invalid(exc: SchemaValidationError) -> None:
    click.secho(f"Validation failed: {exc}", fg="red", err=True)
    for error in exc.errors:
        click.echo(f"  - {error}", err=True)


# ============ Data ============


@cli.command()
@click.option("--schema", "schema_name", required=True, help="Prelude schema name")
@click.argument("source", type=click.File("r", encoding="utf-8"))
def decode(schema_name: str, source: IO[str]) -> None:
    """Decode a JSON wire node (file or '-') into a record."""
    payload = _load_json(source)
    try:
        record = new_codec().decode(schema_name, node_from_json(payload))
    except SchemaValidationError as exc:
        _report_invalid(exc)
        sys.exit(2)
    except CodecError as exc:
        click.secho(f"Decode failed: {exc}", fg="red", err=True)
        sys.exit(exc.exit_code)
    click.echo(repr(record))


@cli.command()
@click.argument("source", type=click.File("r", encoding="utf-8"))
def validate(source: IO[str]) -> None:
    """Check a JSON wire node (file or '-') against the wire-node schema."""
    payload = _load_json(source)
    try:
        validate_instance(payload)
    except SchemaValidationError as exc:
        _report_invalid(exc)
        sys.exit(2)
    click.echo("Validation passed!")


@cli.command()
def unions() -> None:
    """Report unions whose candidate order disagrees with constructor tags."""
    registry = new_codec().registry
    misalignments = registry.union_misalignments()
    if not misalignments:
        click.secho(f"All unions aligned ({len(registry)} schemas).", fg="green")
        return
    for item in misalignments:
        click.secho(f"  ! {item}", fg="yellow")
    click.echo(f"{len(misalignments)} misaligned union candidate(s)")


# ============ Entry Points ============


def main() -> None:
    """Tessera CLI entry point."""
    if sys.platform == "win32":
        try:
            sys.stdout.reconfigure(encoding="utf-8")  # type: ignore[union-attr]
            sys.stderr.reconfigure(encoding="utf-8")  # type: ignore[union-attr]
        except (AttributeError, OSError):
            pass
    cli()


if __name__ == "__main__":
    main()
