"""Tests for exception types and error codes.

Verifies:
- Every error code has a diagnostic severity
- Error codes serialize to their own names
- Exception defaults and attributes
"""

import pytest

from epubkit.diagnostics import Severity
from epubkit.errors import (
    ERROR_CODE_TO_SEVERITY,
    ArchiveError,
    ContractViolationError,
    EpubError,
    EpubErrorCode,
)


class TestErrorCodes:
    """Tests for error codes and their severities."""

    def test_all_codes_have_severity(self):
        """Every error code maps to a severity."""
        for code in EpubErrorCode:
            assert code in ERROR_CODE_TO_SEVERITY

    @pytest.mark.parametrize("code", list(EpubErrorCode))
    def test_code_value_is_its_name(self, code):
        """Each code's value equals its name."""
        assert code.value == code.name
        assert code.value.startswith("E_")


class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_archive_error_defaults(self):
        """ArchiveError defaults to an unreadable archive code."""
        exc = ArchiveError()

        assert exc.code == EpubErrorCode.E_ARCHIVE_INVALID
        assert exc.message == "Invalid archive"
        assert exc.severity == Severity.CRITICAL
        assert str(exc) == "Invalid archive"

    def test_archive_error_unsafe(self):
        """Unsafe archive errors carry their code."""
        exc = ArchiveError(EpubErrorCode.E_ARCHIVE_UNSAFE, "Path traversal in archive: ../x")

        assert exc.code.value == "E_ARCHIVE_UNSAFE"
        assert isinstance(exc, EpubError)

    def test_contract_violation(self):
        """ContractViolation carries its message."""
        exc = ContractViolationError("read_text returned int for mimetype, expected str or None")

        assert exc.code == EpubErrorCode.E_CONTRACT_VIOLATION
        assert exc.severity == Severity.CRITICAL
        assert "read_text returned int" in str(exc)

    def test_errors_are_catchable_as_base(self):
        """All errors derive from the base error."""
        with pytest.raises(EpubError) as info:
            raise ContractViolationError()

        assert info.value.message == "Contract violation"
