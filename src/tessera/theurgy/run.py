"""
Theurgy Run - Execute a test suite against a JSON-RPC ledger.

A suite is named ``module:attr``. The attribute is a factory called
with ``(ledger, codec)`` that returns the cases to run (or an awaitable
of them). The codec's registry already holds the ledger prelude; suites
register their own schemas on ``codec.registry``.
"""

from __future__ import annotations

import asyncio
import importlib
import inspect
import sys
from typing import Any, Callable, Optional

import click

from ..config import get_keep_going, get_rpc_url
from ..pneuma.rpc import JsonRpcLedger
from ..spec.codec import Codec
from ..spec.prelude import register_prelude
from ..spec.schemas import SchemaRegistry
from .report import log_results
from .sequencer import Sequencer, Status

SuiteFactory = Callable[..., Any]


def load_suite(target: str) -> SuiteFactory:
    """
    Import ``module:attr`` and return the suite factory.

    Raises:
        click.BadParameter: If the target is malformed or not callable
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise click.BadParameter(f"Expected MODULE:ATTR, got {target!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise click.BadParameter(f"Cannot import {module_name!r}: {exc}") from exc

    factory: Any = module
    for part in attr.split("."):
        try:
            factory = getattr(factory, part)
        except AttributeError:
            raise click.BadParameter(f"{module_name!r} has no attribute {attr!r}") from None
    if not callable(factory):
        raise click.BadParameter(f"{target!r} is not callable")
    return factory


def new_codec() -> Codec:
    return Codec(register_prelude(SchemaRegistry()))


async def run_suite(factory: SuiteFactory, sequencer: Sequencer, codec: Codec) -> Status:
    """Build the suite's cases and run them; the ledger is closed afterwards."""
    ledger = sequencer.ledger
    try:
        cases = factory(ledger, codec)
        if inspect.isawaitable(cases):
            cases = await cases
        await sequencer.run(cases)
    finally:
        close = getattr(ledger, "aclose", None)
        if close is not None:
            await close()
    return sequencer.status()


@click.command()
@click.argument("suite")
@click.option(
    "--keep-going/--no-keep-going",
    default=None,
    help="Run independent cases after an unexpected failure (default: TESSERA_KEEP_GOING)",
)
@click.option("--rpc-url", default=None, help="Ledger JSON-RPC URL (default: TESSERA_RPC_URL)")
@click.option("--metrics", "always_print_metrics", is_flag=True, help="Always print budget ratios")
def run(
    suite: str,
    keep_going: Optional[bool],
    rpc_url: Optional[str],
    always_print_metrics: bool,
) -> None:
    """
    Run a transaction test suite.

    SUITE is MODULE:ATTR naming a factory that takes (ledger, codec)
    and returns the test cases.
    """
    factory = load_suite(suite)
    if keep_going is None:
        keep_going = get_keep_going()

    ledger = JsonRpcLedger(url=rpc_url or get_rpc_url())
    sequencer = Sequencer(ledger, keep_going=keep_going)

    error: Optional[Exception] = None
    try:
        status = asyncio.run(run_suite(factory, sequencer, new_codec()))
    except Exception as exc:
        error = exc
        status = Status.FAIL

    log_results(sequencer.outcomes, always_print_metrics=always_print_metrics)

    if error is not None:
        click.secho(f"ERROR: {error}", fg="red", err=True)
        sys.exit(getattr(error, "exit_code", 1))
    if status is Status.FAIL:
        sys.exit(1)
