from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import BinaryIO, List, Optional, Tuple, Union

from flowfairy.errors import FcsError, FcsIOError, with_source
from flowfairy.ingest.data_segment import DataDecoder, ParameterAssembler
from flowfairy.ingest.header import SUPPORTED_VERSIONS, HeaderReader
from flowfairy.ingest.keywords import KeywordValidator
from flowfairy.ingest.text_segment import MetadataParser
from flowfairy.models.flowdata import FlowData, Header, Metadata

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FcsReaderConfig:
    """
    Reader configuration for FCS 3.x list-mode files.

    supported_versions:
      Version tags accepted in the first 6 header bytes.
    strict_keywords:
      - True: any keyword outside the FCS 3.x vocabulary raises UnknownKeywordError.
      - False: unknown keywords are kept and reported in FlowData.warnings.
    reject_duplicate_keywords:
      - True: a keyword written twice in TEXT raises DuplicateKeywordError.
      - False: both occurrences stay in Metadata.keywords, the last value wins.
    read_only_events:
      Mark Parameter.events arrays non-writeable.
    """
    supported_versions: Tuple[str, ...] = SUPPORTED_VERSIONS
    strict_keywords: bool = True
    reject_duplicate_keywords: bool = False
    read_only_events: bool = True


class FcsReader:
    """
    Reader for FCS 3.0 / 3.1 files.

    One call decodes one data set, in strict stage order on a single handle:
    HEADER -> TEXT -> keyword validation -> DATA -> per-parameter assembly.
    Either a complete FlowData is returned or an FcsError is raised.
    """

    def __init__(self, config: Optional[FcsReaderConfig] = None):
        self.config = config or FcsReaderConfig()

    def read(self, file_path: Union[str, Path]) -> FlowData:
        path = Path(file_path).expanduser().resolve()
        if not path.exists():
            raise FileNotFoundError(str(path))
        with open(path, "rb") as handle:
            return self.decode(handle, name=str(path))

    def read_metadata(self, source: Union[str, Path, BinaryIO], name: Optional[str] = None) -> Metadata:
        """HEADER + TEXT + keyword validation only; DATA is not touched."""
        if isinstance(source, (str, Path)):
            path = Path(source).expanduser().resolve()
            if not path.exists():
                raise FileNotFoundError(str(path))
            with open(path, "rb") as handle:
                return self.read_metadata(handle, name=str(path))

        name = name or _stream_name(source)
        try:
            header = self._read_header(source)
            metadata, warnings = self._read_text(source, header)
        except FcsError as e:
            raise with_source(e, name)
        except (OSError, EOFError) as e:
            raise FcsIOError(str(e), source=name) from e
        return _with_warnings(metadata, warnings)

    def decode(self, handle: BinaryIO, name: Optional[str] = None) -> FlowData:
        name = name or _stream_name(handle)
        try:
            header = self._read_header(handle)
            metadata, warnings = self._read_text(handle, header)

            decoder = DataDecoder()
            lay = decoder.layout(metadata)
            if header.data_start and lay.begin != header.data_start:
                msg = f"$BEGINDATA={lay.begin} disagrees with header DATA start {header.data_start}; using $BEGINDATA"
                logger.warning("%s: %s", name, msg)
                warnings.append(msg)

            flat = decoder.read_layout(handle, lay)
            parameters = ParameterAssembler(read_only=self.config.read_only_events).assemble(flat, metadata)
        except FcsError as e:
            raise with_source(e, name)
        except (OSError, EOFError) as e:
            raise FcsIOError(str(e), source=name) from e

        metadata = _with_warnings(metadata, warnings)
        logger.debug("%s: decoded %d parameters x %d events", name, len(parameters), metadata.tot)
        return FlowData(
            metadata=metadata,
            parameters=parameters,
            source=name,
            warnings=metadata.warnings,
        )

    def _read_header(self, handle: BinaryIO) -> Header:
        handle.seek(0)
        return HeaderReader(self.config.supported_versions).read(handle)

    def _read_text(self, handle: BinaryIO, header: Header) -> Tuple[Metadata, List[str]]:
        cfg = self.config
        metadata = MetadataParser(reject_duplicates=cfg.reject_duplicate_keywords).read(handle, header)
        report = KeywordValidator(strict=cfg.strict_keywords).validate(metadata)
        warnings = list(metadata.warnings)
        for keyword in report.unknown:
            warnings.append(f"unknown keyword {keyword} kept (non-strict mode)")
        return metadata, warnings


def _stream_name(handle: object) -> str:
    name = getattr(handle, "name", None)
    return str(name) if isinstance(name, (str, Path)) else "<stream>"


def _with_warnings(metadata: Metadata, warnings: List[str]) -> Metadata:
    if tuple(warnings) == metadata.warnings:
        return metadata
    return replace(metadata, warnings=tuple(warnings))


def decode(handle: BinaryIO, name: Optional[str] = None, config: Optional[FcsReaderConfig] = None) -> FlowData:
    """Decode one FCS data set from a seekable binary handle."""
    return FcsReader(config).decode(handle, name=name)


def read_fcs(file_path: Union[str, Path], config: Optional[FcsReaderConfig] = None) -> FlowData:
    """Open ``file_path`` and decode it."""
    return FcsReader(config).read(file_path)
