"""Parse error definitions.

Every error the library raises is a QuireError carrying a stable code and a
category, so callers can tell a broken package apart from broken storage
or undecodable bytes.
"""

from enum import Enum


class ParseErrorCode(str, Enum):
    """Standardized error codes.

    Format: E_CATEGORY_NAME
    """

    # Structural errors: the package is missing something mandatory
    E_INVALID_PACKAGE = "E_INVALID_PACKAGE"
    E_MISSING_ROOTFILE = "E_MISSING_ROOTFILE"
    E_ARCHIVE_UNSAFE = "E_ARCHIVE_UNSAFE"

    # I/O errors from the container
    E_RESOURCE_NOT_FOUND = "E_RESOURCE_NOT_FOUND"
    E_READ_FAILED = "E_READ_FAILED"
    E_POSITIONS_UNAVAILABLE = "E_POSITIONS_UNAVAILABLE"

    # Decoding errors: the bytes are there but can't be interpreted
    E_DECODING_FAILED = "E_DECODING_FAILED"


# Error code to category mapping
ERROR_CODE_TO_CATEGORY: dict[ParseErrorCode, str] = {
    ParseErrorCode.E_INVALID_PACKAGE: "structural",
    ParseErrorCode.E_MISSING_ROOTFILE: "structural",
    ParseErrorCode.E_ARCHIVE_UNSAFE: "structural",
    ParseErrorCode.E_RESOURCE_NOT_FOUND: "io",
    ParseErrorCode.E_READ_FAILED: "io",
    ParseErrorCode.E_POSITIONS_UNAVAILABLE: "io",
    ParseErrorCode.E_DECODING_FAILED: "decoding",
}


class QuireError(Exception):
    """Base exception for parse errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        category: "structural", "io" or "decoding" (derived from code)
    """

    def __init__(self, code: ParseErrorCode, message: str):
        self.code = code
        self.message = message
        self.category = ERROR_CODE_TO_CATEGORY.get(code, "structural")
        super().__init__(message)


class InvalidPackageError(QuireError):
    """A mandatory package structure is missing or malformed."""

    def __init__(
        self, message: str = "Invalid package", code: ParseErrorCode = ParseErrorCode.E_INVALID_PACKAGE
    ):
        super().__init__(code, message)


class ArchiveUnsafeError(QuireError):
    """The archive failed a safety check (traversal, bomb, too many entries)."""

    def __init__(self, message: str = "Unsafe archive"):
        super().__init__(ParseErrorCode.E_ARCHIVE_UNSAFE, message)


class ReadError(QuireError):
    """The container could not deliver the requested bytes."""

    def __init__(
        self, message: str = "Read failed", code: ParseErrorCode = ParseErrorCode.E_READ_FAILED
    ):
        super().__init__(code, message)


class ResourceNotFoundError(ReadError):
    """No resource exists at the requested href."""

    def __init__(self, href: str):
        self.href = href
        super().__init__(f"Resource not found: {href}", ParseErrorCode.E_RESOURCE_NOT_FOUND)


class PositionsUnavailableError(ReadError):
    """Positions could not be computed for a resource."""

    def __init__(self, message: str = "Positions unavailable"):
        super().__init__(message, ParseErrorCode.E_POSITIONS_UNAVAILABLE)


class DecodingError(QuireError):
    """Bytes were read but could not be decoded (bad XML, bad key)."""

    def __init__(self, message: str = "Decoding failed"):
        super().__init__(ParseErrorCode.E_DECODING_FAILED, message)
