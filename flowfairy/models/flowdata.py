from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple

import numpy as np
import pandas as pd

from flowfairy.errors import MissingKeywordError


def is_decimal(text: str) -> bool:
    """Non-empty run of ASCII 0-9 only (``str.isdigit`` also accepts ``"²"``)."""
    return bool(text) and all("0" <= c <= "9" for c in text)


@dataclass(frozen=True)
class Header:
    """
    Fixed 58-byte preamble of an FCS file.

    Offsets are byte positions from the start of the file, exactly as written
    in the header fields (FCS end offsets point at the last byte of a segment).
    ANALYSIS offsets are both zero when the segment is absent.
    """
    version: str
    txt_start: int
    txt_end: int
    data_start: int
    data_end: int
    analysis_start: int = 0
    analysis_end: int = 0

    @property
    def analysis_present(self) -> bool:
        return self.analysis_start != 0 or self.analysis_end != 0


@dataclass(frozen=True)
class Metadata:
    """
    Parsed TEXT segment.

    Notes
    - keywords keeps file order; a keyword written twice appears twice.
    - values keeps the last value seen for each keyword.
    - warnings collects non-fatal parse notes (duplicates, undecodable bytes, ...).
    """
    version: str
    delimiter: int
    keywords: Tuple[str, ...]
    values: Dict[str, str]
    warnings: Tuple[str, ...] = ()

    def __contains__(self, keyword: object) -> bool:
        return keyword in self.values

    def get(self, keyword: str, default: Optional[str] = None) -> Optional[str]:
        return self.values.get(keyword, default)

    def require(self, keyword: str) -> str:
        value = self.values.get(keyword)
        if value is None:
            raise MissingKeywordError(keyword)
        return value

    def get_int(self, keyword: str) -> int:
        """Value of ``keyword`` as a non-negative integer.

        A missing or non-numeric value counts as missing.
        """
        raw = self.values.get(keyword)
        if raw is None or not is_decimal(raw):
            raise MissingKeywordError(keyword)
        return int(raw)

    @staticmethod
    def parameter_keyword(index: int, attribute: str) -> str:
        """``$P<index><attribute>``, e.g. ``parameter_keyword(3, "N") -> "$P3N"``."""
        return f"$P{int(index)}{attribute}"

    @property
    def par(self) -> int:
        return self.get_int("$PAR")

    @property
    def tot(self) -> int:
        return self.get_int("$TOT")


@dataclass(frozen=True)
class Parameter:
    """One measured channel: display name plus its events in acquisition order."""
    id: str
    events: np.ndarray

    def __len__(self) -> int:
        return int(self.events.shape[0])


@dataclass(frozen=True)
class FlowData:
    """
    Result of decoding one FCS data set.

    parameters are in ascending $PnN index order; every parameter holds
    exactly $TOT events (float64).
    """
    metadata: Metadata
    parameters: Tuple[Parameter, ...]
    source: str = "<stream>"
    warnings: Tuple[str, ...] = ()

    def __iter__(self) -> Iterator[Parameter]:
        return iter(self.parameters)

    @property
    def n_parameters(self) -> int:
        return len(self.parameters)

    @property
    def n_events(self) -> int:
        if not self.parameters:
            return 0
        return len(self.parameters[0])

    @property
    def parameter_ids(self) -> Tuple[str, ...]:
        return tuple(p.id for p in self.parameters)

    def get_parameter(self, parameter_id: str) -> Parameter:
        """First parameter whose id equals ``parameter_id``."""
        for p in self.parameters:
            if p.id == parameter_id:
                return p
        raise KeyError(f"No parameter named '{parameter_id}' in {self.source}.")

    def events(self, parameter_id: str) -> np.ndarray:
        return self.get_parameter(parameter_id).events

    def to_numpy(self) -> np.ndarray:
        """Events as a float64 matrix of shape ``(n_events, n_parameters)``."""
        if not self.parameters:
            return np.empty((0, 0), dtype=np.float64)
        return np.column_stack([p.events for p in self.parameters]).astype(np.float64, copy=False)

    def to_dataframe(self) -> pd.DataFrame:
        """One float64 column per parameter, columns in parameter order.

        Duplicate parameter names are kept as duplicate columns.
        """
        return pd.DataFrame(self.to_numpy(), columns=list(self.parameter_ids))
