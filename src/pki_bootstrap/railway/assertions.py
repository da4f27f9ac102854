"""
Test assertions for Result values.

Usage in tests:
    from pki_bootstrap.railway import ResultAssertions

    def test_loads_bundle():
        certs = ResultAssertions.assert_success(loader.load_certificates(path))
        assert len(certs) == 2

    def test_key_mismatch():
        result = validator.validate(artifacts)
        ResultAssertions.assert_failure(result, ErrorCode.CONSISTENCY_ERROR)
        ResultAssertions.assert_failure_message_contains(result, "not matched")
"""

from __future__ import annotations

from typing import Any, TypeVar

from pki_bootstrap.railway.failure import ErrorCode, ValidationErrorSet
from pki_bootstrap.railway.result import Result

T = TypeVar("T")


def _render(errors: ValidationErrorSet) -> str:
    return "; ".join(f"{e.code.value}: {e.message!r}" for e in errors)


class ResultAssertions:
    """Expressive test assertions for Result values."""

    @staticmethod
    def assert_success(result: Result[T], message: str = "") -> T:
        """Assert the Result is a Success and return the value."""
        context = f" — {message}" if message else ""
        assert result.is_success(), (
            f"Expected Success but got Failure({_render(result.errors())}){context}"
        )
        return result.value()

    @staticmethod
    def assert_failure(
        result: Result[T],
        expected_code: ErrorCode | None = None,
        message: str = "",
    ) -> ValidationErrorSet:
        """
        Assert the Result is a Failure and, optionally, that every error carries the code.

            errors = ResultAssertions.assert_failure(result, ErrorCode.DECODE_ERROR)
        """
        context = f" — {message}" if message else ""
        assert result.is_failure(), (
            f"Expected Failure but got Success({result.value()!r}){context}"
        )
        errors = result.errors()
        if expected_code is not None:
            codes = {e.code for e in errors}
            assert codes == {expected_code}, (
                f"Expected error code {expected_code.value} "
                f"but got {_render(errors)}{context}"
            )
        return errors

    @staticmethod
    def assert_failure_count(result: Result[T], expected_count: int) -> ValidationErrorSet:
        """Assert the Result is a Failure carrying exactly `expected_count` errors."""
        errors = ResultAssertions.assert_failure(result)
        assert len(errors) == expected_count, (
            f"Expected {expected_count} error(s) but got {len(errors)}: {_render(errors)}"
        )
        return errors

    @staticmethod
    def assert_failure_message_contains(result: Result[T], substring: str) -> None:
        """Assert that at least one failure message contains the given substring."""
        errors = ResultAssertions.assert_failure(result)
        assert any(substring.lower() in e.message.lower() for e in errors), (
            f"Expected a failure message containing {substring!r} "
            f"but messages were: {[e.message for e in errors]!r}"
        )

    @staticmethod
    def assert_success_value(result: Result[T], expected_value: Any) -> None:
        value = ResultAssertions.assert_success(result)
        assert value == expected_value, (
            f"Expected success value {expected_value!r} but got {value!r}"
        )
