"""TEXT segment tokenizer.

The TEXT segment is a run of keyword/value pairs separated by a delimiter
byte that is declared by the first byte of the segment::

    /$BEGINANALYSIS/0/$BEGINDATA/8256/ ... /$P1N/FSC-A/

A literal delimiter inside a value is written as two consecutive delimiter
bytes (``a//b`` decodes to ``a/b``).

Tokenizing is split in two layers:

- :class:`DelimitedScanner` works on an in-memory buffer only, with an
  explicit ACCUMULATING / TERMINATED state for the escape handling.
- :class:`MetadataParser` does the seek/read against the file handle and
  turns scanner output into a :class:`~flowfairy.models.flowdata.Metadata`.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import BinaryIO, Dict, List, Optional, Tuple

from flowfairy.errors import DuplicateKeywordError, FcsIOError, TruncatedSegmentError
from flowfairy.models.flowdata import Header, Metadata

logger = logging.getLogger(__name__)


class ScanState(Enum):
    ACCUMULATING = "accumulating"
    TERMINATED = "terminated"


class DelimitedScanner:
    """
    Cursor over a delimiter-separated byte buffer.

    complete:
      - True: the buffer holds the whole segment; a chunk that runs into the
              end of the buffer without a delimiter simply ends there.
      - False: the underlying file ended early; needing a byte past the end
               of the buffer raises TruncatedSegmentError.
    """

    def __init__(self, buffer: bytes, delimiter: int, *, start: int = 0, complete: bool = True):
        if not 0 <= int(delimiter) <= 255:
            raise ValueError(f"delimiter must be a single byte value, got {delimiter}")
        self._buf = bytes(buffer)
        self._delim = int(delimiter)
        self._delim_byte = bytes([self._delim])
        self._pos = int(start)
        self._complete = bool(complete)
        self.state = ScanState.TERMINATED

    @property
    def position(self) -> int:
        return self._pos

    @property
    def delimiter(self) -> int:
        return self._delim

    @property
    def at_end(self) -> bool:
        return self._pos >= len(self._buf)

    @property
    def complete(self) -> bool:
        return self._complete

    def peek(self) -> Optional[int]:
        if self.at_end:
            return None
        return self._buf[self._pos]

    def read_chunk(self) -> bytes:
        """Bytes up to the next delimiter; the delimiter is consumed, not returned."""
        if self.at_end:
            if self._complete:
                return b""
            raise TruncatedSegmentError(f"TEXT segment ends at byte {self._pos} in the middle of a pair")
        idx = self._buf.find(self._delim_byte, self._pos)
        if idx < 0:
            if not self._complete:
                raise TruncatedSegmentError(
                    f"TEXT segment ends at byte {len(self._buf)} before the next delimiter"
                )
            chunk = self._buf[self._pos:]
            self._pos = len(self._buf)
            return chunk
        chunk = self._buf[self._pos:idx]
        self._pos = idx + 1
        return chunk

    def read_value(self) -> bytes:
        """
        Read one logical value, folding escaped (doubled) delimiters into it.

        After each chunk the next byte is peeked: another delimiter means the
        chunk boundary was an escape, so one literal delimiter is kept and the
        next chunk is appended. Anything else (or end of buffer) terminates.
        """
        parts: List[bytes] = [self.read_chunk()]
        self.state = ScanState.ACCUMULATING
        while self.state is ScanState.ACCUMULATING:
            if self.peek() == self._delim:
                self._pos += 1
                parts.append(self._delim_byte)
                parts.append(self.read_chunk())
            else:
                self.state = ScanState.TERMINATED
        return b"".join(parts)


def clean_token(raw: bytes) -> Tuple[str, bool]:
    """UTF-8 decode and strip. Undecodable bytes give ``("", False)``."""
    try:
        return raw.decode("utf-8").strip(), True
    except UnicodeDecodeError:
        return "", False


def parse_text_segment(
    segment: bytes,
    *,
    version: str = "",
    limit: Optional[int] = None,
    complete: bool = True,
    reject_duplicates: bool = False,
) -> Metadata:
    """
    Tokenize raw TEXT segment bytes (first byte = delimiter).

    limit:
      Pairs are read while the scanner position (relative to the first byte)
      is below ``limit``. Defaults to ``len(segment) - 1``, i.e. the last byte
      is the closing delimiter.
    """
    if not segment:
        raise FcsIOError("TEXT segment is empty; cannot read delimiter")
    delimiter = segment[0]
    if limit is None:
        limit = len(segment) - 1

    scanner = DelimitedScanner(segment, delimiter, start=1, complete=complete)
    keywords: List[str] = []
    values: Dict[str, str] = {}
    warnings: List[str] = []

    while scanner.position < limit:
        key_start = scanner.position
        keyword, key_ok = clean_token(scanner.read_chunk())
        # an incomplete buffer raises from read_value() instead
        if scanner.at_end and scanner.complete:
            if keyword:
                raise TruncatedSegmentError(f"keyword {keyword} at byte {key_start} has no value")
            break
        value, value_ok = clean_token(scanner.read_value())

        if not key_ok:
            warnings.append(f"undecodable keyword bytes at TEXT byte {key_start}; pair skipped")
        elif not value_ok:
            warnings.append(f"undecodable value for {keyword}; stored as empty string")

        if not keyword:
            continue
        if keyword in values:
            if reject_duplicates:
                raise DuplicateKeywordError(keyword)
            warnings.append(f"duplicate keyword {keyword}: keeping last value")
        keywords.append(keyword)
        values[keyword] = value

    for w in warnings:
        logger.warning(w)
    logger.debug("TEXT: delimiter=%r, %d keywords", bytes([delimiter]), len(keywords))

    return Metadata(
        version=version,
        delimiter=delimiter,
        keywords=tuple(keywords),
        values=values,
        warnings=tuple(warnings),
    )


class MetadataParser:
    """Reads the TEXT segment named by a :class:`Header` and tokenizes it."""

    def __init__(self, *, reject_duplicates: bool = False):
        self.reject_duplicates = bool(reject_duplicates)

    def read(self, handle: BinaryIO, header: Header) -> Metadata:
        # end offsets are inclusive in FCS
        wanted = header.txt_end - header.txt_start + 1
        try:
            handle.seek(header.txt_start)
            segment = handle.read(wanted)
        except OSError as e:
            raise FcsIOError(f"cannot read TEXT segment at byte {header.txt_start}: {e}") from e
        segment = bytes(segment or b"")
        if not segment:
            raise FcsIOError(f"unexpected end of file reading TEXT delimiter at byte {header.txt_start}")

        limit = header.txt_end - header.txt_start
        return parse_text_segment(
            segment,
            version=header.version,
            limit=limit,
            complete=len(segment) >= limit,
            reject_duplicates=self.reject_duplicates,
        )
