from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import BinaryIO, Dict, List, Tuple

import numpy as np

from flowfairy.errors import (
    EmptyDataError,
    FcsIOError,
    UnsupportedByteOrderError,
    UnsupportedDataTypeError,
    UnsupportedModeError,
)
from flowfairy.models.flowdata import Metadata, Parameter

logger = logging.getLogger(__name__)

LIST_MODE = "L"

# $DATATYPE -> {$BYTEORD token -> numpy dtype}. "I" is always read little-endian.
_INTEGER_DTYPE = np.dtype("<i4")
_FLOAT_DTYPES: Dict[str, Dict[str, np.dtype]] = {
    "F": {
        "1,2,3,4": np.dtype("<f4"),
        "4,3,2,1": np.dtype(">f4"),
    },
    "D": {
        "1,2,3,4,5,6,7,8": np.dtype("<f8"),
        "8,7,6,5,4,3,2,1": np.dtype(">f8"),
    },
}


@dataclass(frozen=True)
class DataLayout:
    """What the TEXT segment says about the DATA segment."""
    datatype: str
    byte_order: str
    n_parameters: int
    n_events: int
    begin: int
    dtype: np.dtype

    @property
    def capacity(self) -> int:
        return self.n_parameters * self.n_events

    @property
    def n_bytes(self) -> int:
        return self.capacity * int(self.dtype.itemsize)


def resolve_dtype(datatype: str, byte_order: str) -> np.dtype:
    """numpy dtype for a ($DATATYPE, $BYTEORD) pair, or raise."""
    if datatype == "I":
        return _INTEGER_DTYPE
    orders = _FLOAT_DTYPES.get(datatype)
    if orders is None:
        raise UnsupportedDataTypeError(datatype)
    dtype = orders.get(byte_order)
    if dtype is None:
        raise UnsupportedByteOrderError(byte_order, datatype)
    return dtype


class DataDecoder:
    """
    Decoder for list-mode DATA segments.

    Values are stored parameter-major: all $TOT events of parameter 1, then
    parameter 2, and so on (flat index = param_index * TOT + event_index).
    The result is always a flat float64 array of length PAR * TOT.
    """

    def layout(self, metadata: Metadata) -> DataLayout:
        mode = (metadata.get("$MODE") or "").strip()
        if mode != LIST_MODE:
            raise UnsupportedModeError(mode)

        n_par = metadata.par
        n_tot = metadata.tot
        if n_par * n_tot == 0:
            raise EmptyDataError(f"no data: $PAR={n_par}, $TOT={n_tot}")

        datatype = (metadata.get("$DATATYPE") or "").strip()
        byte_order = (metadata.get("$BYTEORD") or "").strip()
        dtype = resolve_dtype(datatype, byte_order)

        return DataLayout(
            datatype=datatype,
            byte_order=byte_order,
            n_parameters=n_par,
            n_events=n_tot,
            begin=metadata.get_int("$BEGINDATA"),
            dtype=dtype,
        )

    def read(self, handle: BinaryIO, metadata: Metadata) -> np.ndarray:
        return self.read_layout(handle, self.layout(metadata))

    def read_layout(self, handle: BinaryIO, lay: DataLayout) -> np.ndarray:
        logger.debug(
            "DATA: type=%s byteord=%s dtype=%s capacity=%d at byte %d",
            lay.datatype,
            lay.byte_order,
            lay.dtype.str,
            lay.capacity,
            lay.begin,
        )
        try:
            available = max(handle.seek(0, io.SEEK_END) - lay.begin, 0)
        except (OSError, OverflowError) as e:
            raise FcsIOError(f"cannot size DATA segment at byte {lay.begin}: {e}") from e
        # $PAR * $TOT comes from TEXT; never allocate past the end of the file
        if lay.n_bytes > available:
            raise FcsIOError(
                f"unexpected end of file in DATA segment: expected {lay.n_bytes} bytes "
                f"({lay.capacity} values) at byte {lay.begin}, {available} available"
            )
        try:
            handle.seek(lay.begin)
            raw = handle.read(lay.n_bytes)
        except (OSError, OverflowError) as e:
            raise FcsIOError(f"cannot read DATA segment at byte {lay.begin}: {e}") from e
        raw = bytes(raw or b"")
        if len(raw) != lay.n_bytes:
            raise FcsIOError(
                f"unexpected end of file in DATA segment: expected {lay.n_bytes} bytes "
                f"({lay.capacity} values), got {len(raw)}"
            )
        return self.decode(raw, lay)

    @staticmethod
    def decode(raw: bytes, lay: DataLayout) -> np.ndarray:
        arr = np.frombuffer(raw, dtype=lay.dtype, count=lay.capacity)
        return arr.astype(np.float64)


class ParameterAssembler:
    """Splits the flat decoded array into one :class:`Parameter` per $PnN."""

    def __init__(self, *, read_only: bool = True):
        self.read_only = bool(read_only)

    def assemble(self, flat: np.ndarray, metadata: Metadata) -> Tuple[Parameter, ...]:
        n_par = metadata.par
        n_tot = metadata.tot
        if flat.shape[0] != n_par * n_tot:
            raise ValueError(f"flat data has {flat.shape[0]} values, expected {n_par} * {n_tot}")

        params: List[Parameter] = []
        for index in range(1, n_par + 1):
            name = metadata.require(Metadata.parameter_keyword(index, "N"))
            lo = (index - 1) * n_tot
            events = flat[lo:lo + n_tot]
            if self.read_only:
                events.setflags(write=False)
            params.append(Parameter(id=name, events=events))
        return tuple(params)
