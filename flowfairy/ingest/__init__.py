"""Ingest package - the FCS decode pipeline.

Stages, in the order they touch the file:
- HeaderReader: fixed 58-byte HEADER (version + segment offsets)
- MetadataParser: TEXT segment keyword/value pairs
- KeywordValidator: required/optional/parameter keyword vocabulary
- DataDecoder: list-mode DATA segment to a flat float64 array
- ParameterAssembler: flat array to one Parameter per $PnN

FcsReader runs all stages on one handle and returns FlowData.
"""
from .data_segment import DataDecoder, ParameterAssembler
from .header import HeaderReader
from .keywords import KeywordValidator
from .readers_fcs import FcsReader, FcsReaderConfig, decode, read_fcs
from .text_segment import DelimitedScanner, MetadataParser

__all__ = [
    "DataDecoder",
    "ParameterAssembler",
    "HeaderReader",
    "KeywordValidator",
    "FcsReader",
    "FcsReaderConfig",
    "decode",
    "read_fcs",
    "DelimitedScanner",
    "MetadataParser",
]
