"""
Theurgy Sequencer - Run transaction test cases in order against a ledger.

Each case builds a PendingTransaction. Success-expecting cases are
finalized, signed, submitted and awaited; Fail-expecting cases are
finalized and signed but never submitted, so an unexpected success does
not advance ledger state.

After the first unexpected error:
- without keep-going, the error is re-raised and nothing else runs
- with keep-going, later Success-expecting cases are Skipped while
  Fail-expecting (adversarial) cases still run
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from ..pneuma.ledger import CompletedTransaction, ExUnits, Ledger
from ..pneuma.tx import PendingTransaction, PostFinalizeHook, PreFinalizeHook

logger = logging.getLogger(__name__)

ErrorMatcher = Callable[[BaseException], bool]
Builder = Callable[[], Union[PendingTransaction, Awaitable[PendingTransaction]]]
ExtraLog = Callable[[], Awaitable[str]]


class Status(str, Enum):
    SUCCESS = "Success"
    FAIL = "Fail"
    SKIPPED = "Skipped"
    IGNORED = "Ignored"


# ============ Error matchers ============


def match_any(error: BaseException) -> bool:
    return True


def with_trace(text: str) -> ErrorMatcher:
    """Match errors whose text contains ``text`` (e.g. a script trace)."""

    def match(error: BaseException) -> bool:
        return text in str(error)

    return match


def any_of(*matchers: ErrorMatcher) -> ErrorMatcher:
    def match(error: BaseException) -> bool:
        return any(m(error) for m in matchers)

    return match


# ============ Cases & outcomes ============


@dataclass(frozen=True)
class TxMetrics:
    size: int
    ex_units: Optional[ExUnits] = None

    @classmethod
    def of(cls, tx: CompletedTransaction) -> "TxMetrics":
        return cls(size=tx.size, ex_units=tx.ex_units)


def describe(build: Callable) -> str:
    """Label for a case without one: its source text, else its name."""
    try:
        return inspect.getsource(build).strip()
    except (OSError, TypeError):
        return getattr(build, "__qualname__", repr(build))


@dataclass
class TestCase:
    __test__ = False

    build: Builder
    label: Optional[str] = None
    expect: Status = Status.SUCCESS
    match_error: Optional[ErrorMatcher] = None
    extra_log: Optional[ExtraLog] = None
    pre_finalize: Optional[PreFinalizeHook] = None
    post_finalize: Optional[PostFinalizeHook] = None

    def __post_init__(self) -> None:
        self.expect = Status(self.expect)
        if self.expect is Status.SKIPPED:
            raise ValueError("A case cannot expect to be skipped")
        if self.label is None:
            self.label = describe(self.build)

    @classmethod
    def of(cls, case: Union["TestCase", Builder]) -> "TestCase":
        return case if isinstance(case, TestCase) else cls(build=case)


@dataclass(frozen=True)
class TestOutcome:
    __test__ = False

    label: str
    expected: Status
    status: Status
    error: Optional[BaseException] = None
    mismatch: bool = False
    metrics: Optional[TxMetrics] = None
    extra_log: Optional[str] = None

    @property
    def tx_succeeded(self) -> bool:
        return self.error is None


# ============ Sequencer ============


class Sequencer:
    """
    Ordered test runner over a single ledger.

    Args:
        ledger: Ledger used to sign, submit and await transactions
        keep_going: Keep running independent cases after an unexpected error
    """

    def __init__(self, ledger: Ledger, keep_going: bool = False) -> None:
        self.ledger = ledger
        self.keep_going = keep_going
        self.running = True
        self.outcomes: list[TestOutcome] = []
        self.first_error: Optional[BaseException] = None

    def status(self) -> Status:
        if any(o.status is Status.FAIL for o in self.outcomes):
            return Status.FAIL
        return Status.SUCCESS

    async def run(self, cases: Iterable[Union[TestCase, Builder]]) -> list[TestOutcome]:
        """
        Run every case in order and return the outcomes recorded so far.

        Raises:
            Exception: The first unexpected error, when not keep-going
        """
        for case in cases:
            await self.run_case(TestCase.of(case))
        return self.outcomes

    async def run_case(self, case: TestCase) -> TestOutcome:
        label = case.label or describe(case.build)

        if not self.running and case.expect is Status.SUCCESS:
            return self._record(TestOutcome(label, case.expect, Status.SKIPPED))
        if case.expect is Status.IGNORED:
            return self._record(TestOutcome(label, case.expect, Status.IGNORED))

        try:
            metrics = await self._execute(case)
            extra_log = await case.extra_log() if case.extra_log else None
        except Exception as error:
            return self._on_error(case, label, error)

        status = Status.FAIL if case.expect is Status.FAIL else Status.SUCCESS
        return self._record(
            TestOutcome(label, case.expect, status, metrics=metrics, extra_log=extra_log)
        )

    async def _execute(self, case: TestCase) -> TxMetrics:
        pending = case.build()
        if inspect.isawaitable(pending):
            pending = await pending
        if case.pre_finalize is not None:
            pending.add_pre_finalize_hook(case.pre_finalize)
        if case.post_finalize is not None:
            pending.add_post_finalize_hook(case.post_finalize)

        completed = await pending.finalize()
        metrics = TxMetrics.of(completed)
        signed = await self.ledger.sign(completed)

        if case.expect is Status.SUCCESS:
            tx_hash = await self.ledger.submit(signed)
            await self.ledger.await_tx(tx_hash)
        return metrics

    def _on_error(self, case: TestCase, label: str, error: Exception) -> TestOutcome:
        if case.expect is not Status.FAIL:
            if self.first_error is None:
                self.first_error = error
            self.running = False
            outcome = self._record(TestOutcome(label, case.expect, Status.FAIL, error=error))
            if not self.keep_going:
                raise error
            return outcome

        matcher = case.match_error or match_any
        if matcher(error):
            return self._record(TestOutcome(label, case.expect, Status.SUCCESS, error=error))
        return self._record(
            TestOutcome(label, case.expect, Status.FAIL, error=error, mismatch=True)
        )

    def _record(self, outcome: TestOutcome) -> TestOutcome:
        logger.info("%s: %s", outcome.status.value, (outcome.label.splitlines() or [""])[0])
        self.outcomes.append(outcome)
        return outcome


__all__ = [
    "Builder",
    "ErrorMatcher",
    "Sequencer",
    "Status",
    "TestCase",
    "TestOutcome",
    "TxMetrics",
    "any_of",
    "describe",
    "match_any",
    "with_trace",
]
