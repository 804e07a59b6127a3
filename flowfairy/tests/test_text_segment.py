"""Tests for the TEXT segment scanner and metadata parser."""

from __future__ import annotations

import io

import pytest

from _fcs_builder import ACQUISITION_PAIRS, build_fcs, encode_text, standard_pairs
from flowfairy.errors import DuplicateKeywordError, FcsIOError, TruncatedSegmentError
from flowfairy.ingest.header import HeaderReader
from flowfairy.ingest.readers_fcs import FcsReader
from flowfairy.ingest.text_segment import (
    DelimitedScanner,
    MetadataParser,
    ScanState,
    clean_token,
    parse_text_segment,
)

SLASH = ord("/")


# -----------------------------------------------------------------------
# DelimitedScanner (no I/O)
# -----------------------------------------------------------------------


def test_chunk_stops_at_delimiter() -> None:
    sc = DelimitedScanner(b"$PAR/6/", SLASH)
    assert sc.read_chunk() == b"$PAR"
    assert sc.position == 5
    assert sc.read_value() == b"6"
    assert sc.at_end


def test_escaped_delimiter_folds_into_value() -> None:
    sc = DelimitedScanner(b"a//b/c/", SLASH)
    assert sc.read_value() == b"a/b"
    assert sc.state is ScanState.TERMINATED
    assert sc.read_chunk() == b"c"


def test_two_escapes_in_a_row() -> None:
    sc = DelimitedScanner(b"a////b/next/", SLASH)
    assert sc.read_value() == b"a//b"
    assert sc.read_chunk() == b"next"


def test_escape_at_start_of_value() -> None:
    sc = DelimitedScanner(b"//x/", SLASH)
    assert sc.read_value() == b"/x"


def test_value_terminated_by_end_of_buffer() -> None:
    sc = DelimitedScanner(b"x/", SLASH)
    assert sc.read_value() == b"x"
    assert sc.peek() is None
    assert sc.state is ScanState.TERMINATED


def test_chunk_without_delimiter_in_complete_buffer() -> None:
    sc = DelimitedScanner(b"tail", SLASH)
    assert sc.read_chunk() == b"tail"
    assert sc.at_end


def test_incomplete_buffer_raises_truncated() -> None:
    sc = DelimitedScanner(b"$TOT/12", SLASH, complete=False)
    assert sc.read_chunk() == b"$TOT"
    with pytest.raises(TruncatedSegmentError):
        sc.read_value()


def test_incomplete_buffer_at_end_raises() -> None:
    sc = DelimitedScanner(b"$TOT/", SLASH, complete=False)
    sc.read_chunk()
    with pytest.raises(TruncatedSegmentError):
        sc.read_chunk()


def test_non_printable_delimiter() -> None:
    sc = DelimitedScanner(b"$MODE\x0cL\x0c\x0cH\x0c", 0x0C)
    assert sc.read_chunk() == b"$MODE"
    assert sc.read_value() == b"L\x0cH"


def test_delimiter_must_be_a_byte() -> None:
    with pytest.raises(ValueError):
        DelimitedScanner(b"", 256)


def test_clean_token() -> None:
    assert clean_token(b"  FSC-A \t") == ("FSC-A", True)
    assert clean_token(b"\xff\xfe") == ("", False)
    assert clean_token("Zelle µm".encode("utf-8")) == ("Zelle µm", True)


# -----------------------------------------------------------------------
# parse_text_segment
# -----------------------------------------------------------------------


def test_parse_pairs_in_order() -> None:
    meta = parse_text_segment(b"/$A/1/$B/x//y/$C/3/", version="FCS3.1")
    assert meta.version == "FCS3.1"
    assert meta.delimiter == SLASH
    assert meta.keywords == ("$A", "$B", "$C")
    assert meta.values == {"$A": "1", "$B": "x/y", "$C": "3"}
    assert meta.warnings == ()


def test_escape_does_not_disturb_segmentation() -> None:
    pairs = [("$COM", "a/b//c"), ("$SRC", "blood"), ("$OP", "/lead")]
    meta = parse_text_segment(encode_text(pairs))
    assert meta.keywords == ("$COM", "$SRC", "$OP")
    assert meta.values["$COM"] == "a/b//c"
    assert meta.values["$SRC"] == "blood"
    assert meta.values["$OP"] == "/lead"


def test_surrounding_whitespace_trimmed() -> None:
    meta = parse_text_segment(b"/ $A / 1 /$B/  two words  /")
    assert meta.keywords == ("$A", "$B")
    assert meta.values["$B"] == "two words"


def test_empty_keyword_pair_dropped() -> None:
    meta = parse_text_segment(b"/$A/1/  /junk/$B/2/")
    assert meta.keywords == ("$A", "$B")
    assert "junk" not in meta.values.values()


def test_empty_value_kept() -> None:
    meta = parse_text_segment(b"/$A//$B/2/")
    assert meta.values == {"$A": "", "$B": "2"}
    assert meta.keywords == ("$A", "$B")


def test_duplicate_keywords_last_wins() -> None:
    meta = parse_text_segment(b"/$A/1/$B/2/$A/3/")
    assert meta.keywords == ("$A", "$B", "$A")
    assert meta.values["$A"] == "3"
    assert any("duplicate keyword $A" in w for w in meta.warnings)


def test_duplicate_keywords_rejected_on_request() -> None:
    with pytest.raises(DuplicateKeywordError) as exc:
        parse_text_segment(b"/$A/1/$A/3/", reject_duplicates=True)
    assert exc.value.keyword == "$A"


def test_invalid_utf8_value_becomes_empty() -> None:
    meta = parse_text_segment(b"/$A/\xff\xfe/$B/2/")
    assert meta.values == {"$A": "", "$B": "2"}
    assert any("undecodable value for $A" in w for w in meta.warnings)


def test_invalid_utf8_keyword_drops_pair() -> None:
    meta = parse_text_segment(b"/\xff/1/$B/2/")
    assert meta.keywords == ("$B",)
    assert len(meta.warnings) == 1


def test_keyword_without_value_is_truncated() -> None:
    with pytest.raises(TruncatedSegmentError):
        parse_text_segment(b"/$A/1/$B/")


def test_limit_stops_reading() -> None:
    seg = b"/$A/1/$B/2/"
    meta = parse_text_segment(seg, limit=6)
    assert meta.keywords == ("$A",)


def test_empty_segment_is_io_error() -> None:
    with pytest.raises(FcsIOError):
        parse_text_segment(b"")


# -----------------------------------------------------------------------
# MetadataParser against a file handle
# -----------------------------------------------------------------------


NAMES = ["FSC-A", "SSC-A", "FITC-A", "PE-A", "APC-A", "Time"]


def _six_parameter_file() -> bytes:
    pairs = standard_pairs(NAMES, 2, datatype="F", byte_order="1,2,3,4")
    return build_fcs(pairs, b"\x00" * (4 * 2 * len(NAMES)))


def test_six_parameter_keyword_order() -> None:
    raw = _six_parameter_file()
    meta = FcsReader().read_metadata(io.BytesIO(raw))

    required = [
        "$BEGINANALYSIS", "$ENDANALYSIS", "$BEGINSTEXT", "$ENDSTEXT",
        "$BEGINDATA", "$ENDDATA", "$MODE", "$DATATYPE",
        "$BYTEORD", "$PAR", "$NEXTDATA", "$TOT",
    ]
    per_param = [f"$P{n}{a}" for n in range(1, 7) for a in "NBERS"]
    acquisition = [k for k, _ in ACQUISITION_PAIRS]
    assert list(meta.keywords) == required + per_param + acquisition
    assert meta.values["$P3N"] == "FITC-A"
    assert meta.par == 6


def test_parser_reads_text_from_header_offsets() -> None:
    raw = _six_parameter_file()
    stream = io.BytesIO(raw)
    header = HeaderReader().read(stream)
    meta = MetadataParser().read(stream, header)
    assert meta.version == "FCS3.1"
    assert meta.get_int("$BEGINDATA") == header.data_start
    assert meta.get_int("$ENDDATA") == header.data_end


def test_file_ending_inside_text_is_truncated() -> None:
    raw = _six_parameter_file()
    stream = io.BytesIO(raw)
    header = HeaderReader().read(stream)
    cut = io.BytesIO(raw[: header.txt_start + (header.txt_end - header.txt_start) // 2])
    with pytest.raises(TruncatedSegmentError):
        MetadataParser().read(cut, header)


def test_text_start_past_end_of_file() -> None:
    raw = _six_parameter_file()
    header = HeaderReader().read(io.BytesIO(raw))
    with pytest.raises(FcsIOError):
        MetadataParser().read(io.BytesIO(raw[: header.txt_start]), header)
