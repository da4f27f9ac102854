"""Tests for FailureDescription and ErrorCode."""

import pytest

from pki_bootstrap.railway import ErrorCode, FailureDescription


class TestErrorCode:
    def test_setup_stage_codes_exist(self):
        stage_codes = {
            ErrorCode.INPUT_ACCESS_ERROR,
            ErrorCode.DECODE_ERROR,
            ErrorCode.CONSISTENCY_ERROR,
            ErrorCode.CONFIGURATION_ERROR,
            ErrorCode.INSTALLATION_ERROR,
        }
        assert stage_codes <= set(ErrorCode)

    def test_service_codes_exist(self):
        service_codes = {
            ErrorCode.NOT_FOUND,
            ErrorCode.EXTERNAL_SERVICE_ERROR,
            ErrorCode.TECHNICAL_ERROR,
        }
        assert service_codes <= set(ErrorCode)

    def test_error_code_values_are_their_names(self):
        for code in ErrorCode:
            assert code.value == code.name


class TestFailureDescription:
    def test_creation_with_code_and_message(self):
        desc = FailureDescription(ErrorCode.CONSISTENCY_ERROR, "Key mismatch")
        assert desc.code == ErrorCode.CONSISTENCY_ERROR
        assert desc.message == "Key mismatch"
        assert desc.exception is None
        assert desc.timestamp is not None

    def test_creation_with_exception(self):
        ex = OSError("disk full")
        desc = FailureDescription(ErrorCode.INSTALLATION_ERROR, "write failed", ex)
        assert desc.exception is ex

    def test_immutability(self):
        desc = FailureDescription(ErrorCode.DECODE_ERROR, "test")
        with pytest.raises(AttributeError):
            desc.message = "changed"  # type: ignore

    def test_timestamp_is_utc(self):
        desc = FailureDescription(ErrorCode.DECODE_ERROR, "test")
        assert desc.timestamp.tzinfo is not None
