"""
Theurgy Report - Print sequencer outcomes.

The printed word (SUCCESS / FAIL) is the transaction's own result; the
color is the test status. They disagree when failure was expected.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Optional

import click

from .sequencer import Status, TestOutcome

INDENT = " " * 9

_STATUS_COLORS = {
    Status.SUCCESS: "bright_green",
    Status.FAIL: "red",
    Status.SKIPPED: "yellow",
    Status.IGNORED: "bright_black",
}


@dataclass(frozen=True)
class ProtocolLimits:
    max_tx_size: int = 16384
    max_tx_ex_steps: int = 10_000_000_000
    max_tx_ex_mem: int = 14_000_000


def _indent(text: str) -> str:
    return "\n".join(INDENT + line for line in text.splitlines())


def _status_word(outcome: TestOutcome) -> str:
    if outcome.status is Status.SKIPPED:
        return "SKIPPED"
    if outcome.status is Status.IGNORED:
        return "IGNORED"
    return "SUCCESS" if outcome.tx_succeeded else "   FAIL"


def _log_ratio(ratio: float, message: str, always: bool) -> None:
    if ratio >= 1.0:
        click.secho(f"{INDENT}{message.format(ratio)}", fg="red")
    elif always:
        click.secho(f"{INDENT}{message.format(ratio)}", fg="blue")


def _log_metrics(outcome: TestOutcome, limits: ProtocolLimits, always: bool) -> None:
    metrics = outcome.metrics
    if metrics is None:
        return
    if metrics.ex_units is not None:
        _log_ratio(
            metrics.ex_units.cpu / limits.max_tx_ex_steps,
            "Transaction used {}x steps budget",
            always,
        )
        _log_ratio(
            metrics.ex_units.mem / limits.max_tx_ex_mem,
            "Transaction used {}x mem budget",
            always,
        )
    _log_ratio(metrics.size / limits.max_tx_size, "Transaction was {}x max bytes", always)


def log_results(
    outcomes: Sequence[TestOutcome],
    limits: Optional[ProtocolLimits] = None,
    always_print_metrics: bool = False,
) -> tuple[int, int, int]:
    """
    Print one entry per outcome, then the tally.

    Returns:
        (passed, total, skipped); Ignored cases count as passed
    """
    limits = limits or ProtocolLimits()
    passed = skipped = 0

    for outcome in outcomes:
        line = click.style(_status_word(outcome), fg=_STATUS_COLORS[outcome.status])
        line += f": {outcome.label}"
        if outcome.mismatch:
            line += " (error mismatch)"
        click.echo(line)

        if outcome.status is Status.FAIL:
            if outcome.error is not None:
                click.echo()
                click.echo(_indent(str(outcome.error) or type(outcome.error).__name__))
                click.echo()
            else:
                click.echo(f"{INDENT}Transaction was expected to fail")
                click.echo()
        elif outcome.status is Status.SKIPPED:
            skipped += 1
        else:
            passed += 1

        if outcome.extra_log:
            click.secho(_indent(outcome.extra_log), fg="magenta")
        _log_metrics(outcome, limits, always_print_metrics)

    total = len(outcomes)
    click.echo()
    click.echo(f"{passed}/{total} transactions succeeded, {skipped} skipped")
    return passed, total, skipped


__all__ = ["ProtocolLimits", "log_results"]
