"""
Railway-Oriented Programming (ROP) support for the setup pipeline.

Explicit, composable error handling — no exceptions between stages.

    from pki_bootstrap.railway import Result, ErrorCode

    def check_single_key(blocks: list[bytes]) -> Result[bytes]:
        if len(blocks) != 1:
            return Result.failure(ErrorCode.DECODE_ERROR, "Expected exactly one key")
        return Result.success(blocks[0])

Stages short-circuit through .flat_map(); checks inside a stage accumulate
through Result.collect().
"""

from pki_bootstrap.railway.assertions import ResultAssertions
from pki_bootstrap.railway.execution import (
    ExecutionContext,
    LoggingExecutionContext,
    NoOpExecutionContext,
)
from pki_bootstrap.railway.failure import ErrorCode, FailureDescription, ValidationErrorSet
from pki_bootstrap.railway.result import Failure, Result, Success
from pki_bootstrap.railway.result_failures import ResultFailures

__all__ = [
    "Result",
    "Success",
    "Failure",
    "ErrorCode",
    "FailureDescription",
    "ValidationErrorSet",
    "ExecutionContext",
    "NoOpExecutionContext",
    "LoggingExecutionContext",
    "ResultFailures",
    "ResultAssertions",
]
