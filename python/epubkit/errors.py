"""Exception definitions.

Malformed EPUB content is never raised: it is reported as a Diagnostic and the
offending piece is treated as absent. Exceptions are reserved for archives that
cannot be opened at all and for collaborators that break their contract.
"""

from enum import Enum

from epubkit.diagnostics import Severity


class EpubErrorCode(str, Enum):
    """Standardized error codes.

    Format: E_CATEGORY_NAME
    """

    # Archive errors (raised by ZipFileProvider.open)
    E_ARCHIVE_INVALID = "E_ARCHIVE_INVALID"
    E_ARCHIVE_UNSAFE = "E_ARCHIVE_UNSAFE"

    # Programming errors
    E_CONTRACT_VIOLATION = "E_CONTRACT_VIOLATION"


# Error code to diagnostic severity mapping, used when an error is surfaced in a Result
ERROR_CODE_TO_SEVERITY: dict[EpubErrorCode, Severity] = {
    EpubErrorCode.E_ARCHIVE_INVALID: Severity.CRITICAL,
    EpubErrorCode.E_ARCHIVE_UNSAFE: Severity.CRITICAL,
    EpubErrorCode.E_CONTRACT_VIOLATION: Severity.CRITICAL,
}


class EpubError(Exception):
    """Base exception for epubkit errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        severity: Diagnostic severity (derived from code)
    """

    def __init__(self, code: EpubErrorCode, message: str):
        self.code = code
        self.message = message
        self.severity = ERROR_CODE_TO_SEVERITY.get(code, Severity.CRITICAL)
        super().__init__(message)


class ArchiveError(EpubError):
    """The archive is not a zip, or breaks the archive safety limits."""

    def __init__(
        self,
        code: EpubErrorCode = EpubErrorCode.E_ARCHIVE_INVALID,
        message: str = "Invalid archive",
    ):
        super().__init__(code, message)


class ContractViolationError(EpubError):
    """A collaborator returned something outside its declared contract."""

    def __init__(
        self,
        message: str = "Contract violation",
        code: EpubErrorCode = EpubErrorCode.E_CONTRACT_VIOLATION,
    ):
        super().__init__(code, message)
