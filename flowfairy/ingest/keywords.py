from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, List, Tuple

from flowfairy.errors import MissingKeywordError, UnknownKeywordError
from flowfairy.models.flowdata import Metadata, is_decimal

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Vocabularies
# ---------------------------------------------------------------------------

REQUIRED_KEYWORDS: FrozenSet[str] = frozenset(
    {
        "$BEGINANALYSIS",  # byte offset, start of ANALYSIS
        "$BEGINDATA",  # byte offset, start of DATA
        "$BEGINSTEXT",  # byte offset, start of supplemental TEXT
        "$BYTEORD",
        "$DATATYPE",  # I, F, D (A is deprecated)
        "$ENDANALYSIS",
        "$ENDDATA",
        "$ENDSTEXT",
        "$MODE",  # L = list mode
        "$NEXTDATA",  # byte offset of the next data set
        "$PAR",  # parameters per event
        "$TOT",  # events in the data set
    }
)

OPTIONAL_KEYWORDS: FrozenSet[str] = frozenset(
    {
        "$ABRT",  # events lost to electronic coincidence
        "$BTIM",
        "$CELLS",
        "$COM",
        "$CSMODE",
        "$CSVBITS",
        "$CYT",
        "$CYTSN",
        "$DATE",
        "$ETIM",
        "$EXP",
        "$FIL",
        "$GATE",
        "$GATING",
        "$INST",
        "$LAST_MODIFIED",
        "$LAST_MODIFIER",
        "$LOST",  # events lost while the computer was busy
        "$OP",
        "$ORIGINALITY",
        "$PLATEID",
        "$PLATENAME",
        "$PROJ",
        "$SMNO",
        "$SPILLOVER",
        "$SRC",
        "$SYS",
        "$TIMESTEP",
        "$TR",
        "$VOL",
        "$WELLID",
    }
)

PARAMETER_PREFIXES: FrozenSet[str] = frozenset({"P", "R"})  # parameter / region attribute
PARAMETER_SUFFIXES: FrozenSet[str] = frozenset("BENRDFGLOPSTVIW")


def is_parameter_keyword(keyword: str, max_digits: int) -> bool:
    """
    True for ``[$]{P|R}<1..max_digits digits><suffix letter>...``, e.g. ``$P12N``.

    Matched from the start only: vendor attributes such as ``$P1NAME`` or
    ``$P1DISPLAY`` count as parameter keywords.
    """
    body = keyword[1:] if keyword.startswith("$") else keyword
    if not body or body[0] not in PARAMETER_PREFIXES:
        return False
    end = 1
    while end < len(body) and "0" <= body[end] <= "9":
        end += 1
    n_digits = end - 1
    if not (1 <= n_digits <= max_digits) or end == len(body):
        return False
    return body[end] in PARAMETER_SUFFIXES


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KeywordReport:
    """Outcome of a non-strict validation pass."""
    unknown: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.unknown


class KeywordValidator:
    """
    Checks a parsed keyword set against the FCS 3.x vocabulary.

    strict:
      - True: the first keyword outside required/optional/parameter pattern
              raises UnknownKeywordError.
      - False: such keywords are collected in the returned report instead.
    Missing required keywords always raise.
    """

    def __init__(self, *, strict: bool = True):
        self.strict = bool(strict)

    def validate(self, metadata: Metadata) -> KeywordReport:
        present = set(metadata.keywords)
        for keyword in sorted(REQUIRED_KEYWORDS):
            if keyword not in present:
                raise MissingKeywordError(keyword)

        n_par = metadata.get("$PAR")
        if n_par is None or not is_decimal(n_par):
            raise MissingKeywordError("$PAR")
        max_digits = len(n_par)

        unknown: List[str] = []
        for keyword in metadata.keywords:
            if keyword in REQUIRED_KEYWORDS or keyword in OPTIONAL_KEYWORDS:
                continue
            if is_parameter_keyword(keyword, max_digits):
                continue
            if self.strict:
                raise UnknownKeywordError(keyword)
            if keyword not in unknown:
                unknown.append(keyword)

        if unknown:
            logger.warning("ignoring %d unknown keywords: %s", len(unknown), ", ".join(unknown))
        return KeywordReport(unknown=tuple(unknown))
