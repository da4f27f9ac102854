"""
Failure description — structured error information for the failure track.

Every stage of the CA setup reports problems as FailureDescription values.
A Failure carries one or more of them (a ValidationErrorSet), so an operator
sees every finding of a stage in a single pass.

The ErrorCode taxonomy follows the stages of the setup flow, which lets the
command line tell "check your input files" apart from "check your host
configuration".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, unique


@unique
class ErrorCode(Enum):
    """Structured error codes for the failure track."""

    INPUT_ACCESS_ERROR = "INPUT_ACCESS_ERROR"
    """Input file missing or unreadable, reported before any parsing."""

    DECODE_ERROR = "DECODE_ERROR"
    """Malformed PEM framing or an undecodable certificate, key or CRL."""

    CONSISTENCY_ERROR = "CONSISTENCY_ERROR"
    """Key/certificate mismatch, unresolved issuer, unattributed CRL."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """Host configuration could not be read or a setting not resolved."""

    INSTALLATION_ERROR = "INSTALLATION_ERROR"
    """A destination file could not be written."""

    NOT_FOUND = "NOT_FOUND"
    """Remote resource doesn't exist."""

    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    """CA service call failed or answered unexpectedly."""

    TECHNICAL_ERROR = "TECHNICAL_ERROR"
    """Unexpected failure, usually a programming error."""


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor carrying error code, message, optional exception, and timestamp.

    >>> desc = FailureDescription(ErrorCode.CONSISTENCY_ERROR, "Key mismatch")
    >>> desc.code
    <ErrorCode.CONSISTENCY_ERROR: 'CONSISTENCY_ERROR'>
    >>> desc.message
    'Key mismatch'
    """

    code: ErrorCode
    message: str
    exception: BaseException | None = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


type ValidationErrorSet = tuple[FailureDescription, ...]
