"""Error types raised while decoding FCS files.

Every failure surfaces as an exception derived from :class:`FcsError`.
Content problems also derive from ``ValueError`` and I/O problems from
``OSError``, so callers that already catch the builtin types keep working.

Hierarchy
---------
FcsError
  FcsIOError            read/seek failure, unexpected end of file
  FormatError           HEADER / TEXT container problems
    UnsupportedVersionError
    MalformedHeaderError
    InvalidOffsetError
    TruncatedSegmentError
  ValidationError       keyword set or DATA description problems
    MissingKeywordError
    UnknownKeywordError
    DuplicateKeywordError
    UnsupportedModeError
    UnsupportedDataTypeError
    UnsupportedByteOrderError
    EmptyDataError
"""

from __future__ import annotations

from typing import Optional


class FcsError(Exception):
    """Base class. ``source`` names the file or stream being decoded."""

    def __init__(self, message: str, *, source: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.source = source

    def __str__(self) -> str:
        if self.source:
            return f"{self.source}: {self.message}"
        return self.message


class FcsIOError(FcsError, OSError):
    pass


class FormatError(FcsError, ValueError):
    pass


class UnsupportedVersionError(FormatError):
    pass


class MalformedHeaderError(FormatError):
    pass


class InvalidOffsetError(FormatError):
    pass


class TruncatedSegmentError(FormatError):
    pass


class ValidationError(FcsError, ValueError):
    pass


class MissingKeywordError(ValidationError):
    def __init__(self, keyword: str, *, source: Optional[str] = None):
        super().__init__(f"required keyword {keyword} is missing", source=source)
        self.keyword = keyword


class UnknownKeywordError(ValidationError):
    def __init__(self, keyword: str, *, source: Optional[str] = None):
        super().__init__(f"keyword {keyword} is not a valid keyword", source=source)
        self.keyword = keyword


class DuplicateKeywordError(ValidationError):
    def __init__(self, keyword: str, *, source: Optional[str] = None):
        super().__init__(f"keyword {keyword} appears more than once in TEXT", source=source)
        self.keyword = keyword


class UnsupportedModeError(ValidationError):
    def __init__(self, mode: str, *, source: Optional[str] = None):
        super().__init__(f"data mode {mode!r} not supported (only list mode 'L')", source=source)
        self.mode = mode


class UnsupportedDataTypeError(ValidationError):
    def __init__(self, datatype: str, *, source: Optional[str] = None):
        super().__init__(f"$DATATYPE {datatype!r} not supported (expected I, F or D)", source=source)
        self.datatype = datatype


class UnsupportedByteOrderError(ValidationError):
    def __init__(self, byte_order: str, datatype: str, *, source: Optional[str] = None):
        super().__init__(
            f"$BYTEORD {byte_order!r} not supported for $DATATYPE {datatype!r}",
            source=source,
        )
        self.byte_order = byte_order
        self.datatype = datatype


class EmptyDataError(ValidationError):
    pass


def with_source(exc: FcsError, source: Optional[str]) -> FcsError:
    """Attach ``source`` to ``exc`` unless one is already set."""
    if exc.source is None and source is not None:
        exc.source = source
    return exc
