from __future__ import annotations

import logging
from typing import BinaryIO, Sequence, Tuple

from flowfairy.errors import (
    FcsIOError,
    InvalidOffsetError,
    MalformedHeaderError,
    UnsupportedVersionError,
)
from flowfairy.models.flowdata import Header

logger = logging.getLogger(__name__)

SUPPORTED_VERSIONS: Tuple[str, ...] = ("FCS3.0", "FCS3.1")

HEADER_SIZE = 58
_VERSION_WIDTH = 6
_SPACER = b"    "
_OFFSET_WIDTH = 8
# Positional; part of the file format.
_OFFSET_FIELDS = (
    "txt_start",
    "txt_end",
    "data_start",
    "data_end",
    "analysis_start",
    "analysis_end",
)
_U64_MAX = 2**64 - 1


def read_exact(handle: BinaryIO, n: int, what: str) -> bytes:
    """Read exactly ``n`` bytes or raise :class:`FcsIOError`."""
    try:
        buf = handle.read(n)
    except OSError as e:
        raise FcsIOError(f"read of {what} failed: {e}") from e
    if buf is None or len(buf) != n:
        got = 0 if buf is None else len(buf)
        raise FcsIOError(f"unexpected end of file reading {what} (wanted {n} bytes, got {got})")
    return bytes(buf)


class HeaderReader:
    """
    Parser for the fixed HEADER segment.

    Layout (byte-exact):
      0-5    version tag, e.g. "FCS3.1"
      6-9    four spaces
      10-57  six right-justified, space-padded 8-byte decimal offsets:
             TEXT start/end, DATA start/end, ANALYSIS start/end
    """

    def __init__(self, supported_versions: Sequence[str] = SUPPORTED_VERSIONS):
        self.supported_versions = tuple(supported_versions)

    def read(self, handle: BinaryIO) -> Header:
        version = self._parse_version(read_exact(handle, _VERSION_WIDTH, "HEADER version"))

        spacer = read_exact(handle, len(_SPACER), "HEADER spacer")
        if spacer != _SPACER:
            raise MalformedHeaderError(f"expected four spaces after version, got {spacer!r}")

        offsets = {}
        for name in _OFFSET_FIELDS:
            field = read_exact(handle, _OFFSET_WIDTH, f"HEADER {name}")
            offsets[name] = self._parse_offset(field, name)

        header = Header(version=version, **offsets)
        self._check_order(header)
        logger.debug(
            "header %s: TEXT %d-%d, DATA %d-%d, ANALYSIS %d-%d",
            header.version,
            header.txt_start,
            header.txt_end,
            header.data_start,
            header.data_end,
            header.analysis_start,
            header.analysis_end,
        )
        return header

    def _parse_version(self, raw: bytes) -> str:
        try:
            version = raw.decode("ascii")
        except UnicodeDecodeError:
            raise UnsupportedVersionError(f"version tag is not ASCII: {raw!r}") from None
        if version not in self.supported_versions:
            raise UnsupportedVersionError(
                f"FCS version {version!r} not supported (supported: {', '.join(self.supported_versions)})"
            )
        return version

    @staticmethod
    def _parse_offset(raw: bytes, name: str) -> int:
        try:
            text = raw.decode("ascii").strip()
        except UnicodeDecodeError:
            raise InvalidOffsetError(f"{name} offset is not ASCII: {raw!r}") from None
        # ascii only here, so isdigit() means 0-9
        if not text or not text.isdigit():
            raise InvalidOffsetError(f"{name} offset is not a decimal number: {raw!r}")
        value = int(text)
        if value > _U64_MAX:
            raise InvalidOffsetError(f"{name} offset overflows 64 bits: {text}")
        return value

    @staticmethod
    def _check_order(header: Header) -> None:
        if header.txt_start > header.txt_end:
            raise MalformedHeaderError(
                f"TEXT start {header.txt_start} is after TEXT end {header.txt_end}"
            )
        # a zero DATA offset means "see $BEGINDATA/$ENDDATA" (offset wider than 8 digits)
        if header.data_start and header.data_start < header.txt_end:
            raise MalformedHeaderError(
                f"DATA start {header.data_start} is before TEXT end {header.txt_end}"
            )
        if header.data_start and header.data_end and header.data_start > header.data_end:
            raise MalformedHeaderError(
                f"DATA start {header.data_start} is after DATA end {header.data_end}"
            )
