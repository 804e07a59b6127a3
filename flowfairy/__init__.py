"""flowfairy -- a reader for Flow Cytometry Standard (FCS 3.0 / 3.1) files.

This package provides:
- HEADER parsing (version tag and segment byte offsets)
- TEXT segment tokenizing, including doubled-delimiter escapes
- Keyword validation against the FCS 3.x vocabulary
- List-mode DATA decoding (I, F, D datatypes; little/big endian)
- Per-parameter event arrays, exportable to numpy / pandas

Key principles:
- All-or-nothing: a decode either returns a complete FlowData or raises FcsError
- No silent data loss: unsupported datatypes and byte orders are errors
- Non-fatal oddities are reported in FlowData.warnings

Main subpackages:
- ingest: Stage readers and the FcsReader entry point
- models: Data models (Header, Metadata, Parameter, FlowData)
"""
from .errors import (
    FcsError,
    FcsIOError,
    FormatError,
    ValidationError,
)
from .ingest.readers_fcs import FcsReader, FcsReaderConfig, decode, read_fcs
from .models import FlowData, Header, Metadata, Parameter

__all__ = [
    "FcsError",
    "FcsIOError",
    "FormatError",
    "ValidationError",
    "FcsReader",
    "FcsReaderConfig",
    "decode",
    "read_fcs",
    "FlowData",
    "Header",
    "Metadata",
    "Parameter",
]
