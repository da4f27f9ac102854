"""
Result monad — the core of Railway-Oriented Programming.

A Result[T] is either Success(value: T) or Failure(errors: ValidationErrorSet).
Every stage returns Result, never throws. Errors propagate through the failure
track via .flat_map() short-circuiting, so a failing stage stops the ones after it.

    ┌───────────┐   flat_map    ┌───────────┐   flat_map    ┌──────────┐
    │   load    │──Success──────│ validate  │──Success──────│ install  │──→ Result[T]
    │           │               │           │               │          │
    └─────┬─────┘               └─────┬─────┘               └─────┬────┘
          │ Failure                   │ Failure                   │ Failure
          └───────────────────────────┴───────────────────────────┴──→ Result[T]

Within a stage the rule is the opposite: independent checks are gathered with
.collect(), which concatenates every failure instead of keeping the
first one. A Failure therefore always holds a non-empty tuple of
FailureDescription values.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pki_bootstrap.railway.failure import ErrorCode, FailureDescription, ValidationErrorSet

T = TypeVar("T")
U = TypeVar("U")
R = TypeVar("R")


class Result(Generic[T]):
    """
    Railway-Oriented Programming Result monad.

    Two possible states:
      - Success(value: T)  — the happy path
      - Failure(errors: ValidationErrorSet) — the error track

    Usage:
        >>> Result.success(42).map(lambda x: x * 2).value()
        84

        >>> result = Result.failure(ErrorCode.DECODE_ERROR, "bad input")
        >>> result.map(lambda x: x * 2).is_failure()
        True
    """

    # ──────────────────────── Introspection ────────────────────────

    def is_success(self) -> bool:
        return isinstance(self, Success)

    def is_failure(self) -> bool:
        return isinstance(self, Failure)

    def value(self) -> T:
        """
        Extract the success value. Raises ValueError if called on a Failure.

        Prefer .either() or match/case for safe access.
        """
        match self:
            case Success(v):
                return v
            case Failure(errs):
                raise ValueError(f"Cannot get value from a Failure: {errs[0].message}")
        raise TypeError("unreachable")  # pragma: no cover

    def errors(self) -> ValidationErrorSet:
        """
        Extract every failure description. Raises ValueError if called on a Success.
        """
        match self:
            case Failure(errs):
                return errs
            case Success(v):
                raise ValueError(f"Cannot get errors from a Success: {v}")
        raise TypeError("unreachable")  # pragma: no cover

    def error(self) -> FailureDescription:
        """The first failure description, for callers that only need one."""
        return self.errors()[0]

    # ──────────────────────── Core Transformations ────────────────────────

    def either(
        self,
        on_success: Callable[[T], R],
        on_failure: Callable[[ValidationErrorSet], R],
    ) -> R:
        """
        Apply one of two functions depending on the state.

            result.either(
                on_success=lambda report: 0,
                on_failure=lambda errors: 1,
            )
        """
        match self:
            case Success(v):
                return on_success(v)
            case Failure(errs):
                return on_failure(errs)
        raise TypeError("unreachable")  # pragma: no cover

    def map(self, mapper: Callable[[T], U]) -> Result[U]:
        """Transform the success value. Short-circuits on failure."""
        match self:
            case Success(v):
                return Success(mapper(v))
            case Failure(errs):
                return Failure(errs)
        raise TypeError("unreachable")  # pragma: no cover

    def flat_map(self, mapper: Callable[[T], Result[U]]) -> Result[U]:
        """
        Chain a Result-returning function. Short-circuits on failure.

        This is the KEY operator of ROP — it connects railway segments.

            check_readable(paths).flat_map(lambda _: load(request))
        """
        match self:
            case Success(v):
                return mapper(v)
            case Failure(errs):
                return Failure(errs)
        raise TypeError("unreachable")  # pragma: no cover

    def ensure(
        self,
        predicate: Callable[[T], bool],
        error: FailureDescription | ErrorCode,
        message: str = "",
    ) -> Result[T]:
        """
        Validate the success value against a condition.
        Short-circuits on existing failure.

            Result.success(blocks).ensure(
                lambda b: len(b) == 1,
                ErrorCode.DECODE_ERROR, "Expected exactly one key"
            )
        """
        if isinstance(error, ErrorCode):
            error = FailureDescription(code=error, message=message)

        return self.flat_map(
            lambda v: Result.success(v) if predicate(v) else Result.failure_from(error)
        )

    # ──────────────────────── Side Effects ────────────────────────

    def peek(self, action: Callable[[T], Any]) -> Result[T]:
        """Execute a side effect on the success value without altering the Result."""
        match self:
            case Success(v):
                action(v)
        return self

    # ──────────────────────── Static Factories ────────────────────────

    @staticmethod
    def success(value: T) -> Result[T]:
        return Success(value)

    @staticmethod
    def failure_from(*errors: FailureDescription) -> Result[T]:
        """Create a failed Result from one or more FailureDescriptions."""
        return Failure(tuple(errors))

    @staticmethod
    def failure(
        code: ErrorCode,
        message: str,
        exception: BaseException | None = None,
    ) -> Result[T]:
        """
        Create a failed Result with error code, message, and optional exception.

            Result.failure(ErrorCode.INPUT_ACCESS_ERROR, "Could not read file 'key.pem'")
        """
        return Failure((FailureDescription(code=code, message=message, exception=exception),))

    # ──────────────────────── Utility Static Factories ────────────────────────

    @staticmethod
    def from_computation(
        computation: Callable[[], T],
        error_code: ErrorCode,
        error_message: str,
    ) -> Result[T]:
        """
        Create a Result from a computation that may raise.

        The exception text is appended to the message so operators see the cause:

            Result.from_computation(
                lambda: path.read_bytes(),
                ErrorCode.INPUT_ACCESS_ERROR,
                f"Could not read file '{path}'",
            )
        """
        try:
            return Result.success(computation())
        except Exception as e:
            detail = str(e)
            message = f"{error_message}: {detail}" if detail else error_message
            return Result.failure(error_code, message, e)

    @staticmethod
    def collect(results: Iterable[Result[Any]]) -> Result[list[Any]]:
        """
        Collect Results into a Result of list.

        Unlike flat_map this never stops early: every failure is gathered, in
        order, into one Failure.

            Result.collect([check_key(), check_chain(), check_crls()])
        """
        values: list[Any] = []
        errors: list[FailureDescription] = []
        for r in results:
            match r:
                case Success(v):
                    values.append(v)
                case Failure(errs):
                    errors.extend(errs)
        if errors:
            return Failure(tuple(errors))
        return Success(values)

    # ──────────────────────── Dunder methods ────────────────────────

    def __bool__(self) -> bool:
        """Allow truthiness check: `if result: ...` succeeds only on Success."""
        return self.is_success()

    def __repr__(self) -> str:
        match self:
            case Success(v):
                return f"Success({v!r})"
            case Failure(errs):
                inner = ", ".join(f"{e.code.value}: {e.message!r}" for e in errs)
                return f"Failure({inner})"
        raise TypeError("unreachable")  # pragma: no cover

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Result):
            return NotImplemented
        match (self, other):
            case (Success(a), Success(b)):
                return a == b
            case (Failure(a), Failure(b)):
                return _error_keys(a) == _error_keys(b)
            case _:
                return False


def _error_keys(errors: ValidationErrorSet) -> tuple[tuple[ErrorCode, str], ...]:
    return tuple((e.code, e.message) for e in errors)


@dataclass(frozen=True, slots=True)
class Success(Result[T]):
    """The success track — wraps a value of type T."""

    _value: T

    def __init__(self, value: T) -> None:
        if value is None:
            raise TypeError("Success value must not be None")
        object.__setattr__(self, "_value", value)

    def __repr__(self) -> str:
        return f"Success({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Success):
            return self._value == other._value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(("Success", self._value))


# Enable structural pattern matching: case Success(value)
Success.__match_args__ = ("_value",)


@dataclass(frozen=True, slots=True)
class Failure(Result[T]):
    """The failure track — wraps a non-empty ValidationErrorSet."""

    _errors: ValidationErrorSet

    def __init__(self, errors: ValidationErrorSet) -> None:
        if not errors:
            raise TypeError("Failure errors must not be empty")
        object.__setattr__(self, "_errors", tuple(errors))

    def __repr__(self) -> str:
        inner = ", ".join(f"{e.code.value}: {e.message!r}" for e in self._errors)
        return f"Failure({inner})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Failure):
            return _error_keys(self._errors) == _error_keys(other._errors)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(("Failure", _error_keys(self._errors)))


# Enable structural pattern matching: case Failure(errors)
Failure.__match_args__ = ("_errors",)
