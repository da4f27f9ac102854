"""
Convenience factory methods for the failures raised by the setup stages.

Usage:
    from pki_bootstrap.railway.result_failures import ResultFailures

    # Instead of:
    Result.failure(ErrorCode.INPUT_ACCESS_ERROR, "Could not read file 'key.pem'")

    # Write:
    ResultFailures.unreadable_file(path)
"""

from __future__ import annotations

from pathlib import Path

from pki_bootstrap.railway.failure import ErrorCode
from pki_bootstrap.railway.result import Result


class ResultFailures:
    """Factory methods for common failure types."""

    @staticmethod
    def unreadable_file(path: Path | str) -> Result:
        """Input file missing or not readable by the current user."""
        return Result.failure(ErrorCode.INPUT_ACCESS_ERROR, f"Could not read file '{path}'")

    @staticmethod
    def decode_error(message: str, exception: BaseException | None = None) -> Result:
        return Result.failure(ErrorCode.DECODE_ERROR, message, exception)

    @staticmethod
    def consistency_error(message: str) -> Result:
        return Result.failure(ErrorCode.CONSISTENCY_ERROR, message)

    @staticmethod
    def configuration_error(message: str, exception: BaseException | None = None) -> Result:
        return Result.failure(ErrorCode.CONFIGURATION_ERROR, message, exception)

    @staticmethod
    def installation_error(message: str, exception: BaseException | None = None) -> Result:
        return Result.failure(ErrorCode.INSTALLATION_ERROR, message, exception)

    @staticmethod
    def not_found(resource_type: str, identifier: str) -> Result:
        return Result.failure(
            ErrorCode.NOT_FOUND,
            f"Could not find {resource_type} for '{identifier}'",
        )

    @staticmethod
    def external_service_error(message: str, exception: BaseException | None = None) -> Result:
        return Result.failure(ErrorCode.EXTERNAL_SERVICE_ERROR, message, exception)
