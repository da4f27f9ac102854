"""
Execution contexts — separate WHAT (pure logic) from HOW (side effects).

  - Stages describe WHAT should happen → return Result[T]
  - ExecutionContext describes HOW it happens → logging, timing, crash capture

Usage:
    ctx = LoggingExecutionContext(operation="CaSetup")
    result = ctx.execute(lambda: run_setup(request, ...))
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Protocol, TypeVar, runtime_checkable

import structlog

from pki_bootstrap.railway.failure import ErrorCode, FailureDescription
from pki_bootstrap.railway.result import Failure, Result

T = TypeVar("T")
log = structlog.get_logger()


@runtime_checkable
class ExecutionContext(Protocol):
    """
    Protocol for execution contexts.

    Any class implementing execute(computation) satisfies this protocol
    via Python's structural typing — no explicit inheritance needed.
    """

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]:
        """Execute a Result-returning computation within this context."""
        ...


class NoOpExecutionContext:
    """
    Passthrough execution context — runs computation without any wrapper.

    Use for unit tests and for pure logic with no side effects.
    """

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]:
        return computation()


class LoggingExecutionContext:
    """
    Execution context that logs entry, exit, duration, and result state.

    An exception escaping the computation is a programming error: it is logged
    and turned into a TECHNICAL_ERROR failure so the command can still exit
    with a status code instead of a traceback.

        ctx = LoggingExecutionContext(operation="CaSetup")
    """

    def __init__(
        self,
        inner: ExecutionContext | None = None,
        operation: str = "unknown",
    ) -> None:
        self._inner = inner or NoOpExecutionContext()
        self._operation = operation

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]:
        log.info("execution.started", operation=self._operation)
        start = time.monotonic()

        try:
            result = self._inner.execute(computation)
        except Exception as e:
            elapsed = time.monotonic() - start
            log.exception(
                "execution.crashed",
                operation=self._operation,
                elapsed_seconds=round(elapsed, 3),
            )
            return Failure(
                (FailureDescription(ErrorCode.TECHNICAL_ERROR, f"Unexpected error: {e}", e),)
            )

        elapsed = time.monotonic() - start
        log.info(
            "execution.completed",
            operation=self._operation,
            elapsed_seconds=round(elapsed, 3),
            state="SUCCESS" if result.is_success() else "FAILURE",
        )
        return result
