# ==============================================
# Timestamp Classifier
# ==============================================
#
# PURPOSE:
#   Decide whether one raw field value represents an instant, and if so
#   compute its CanonicalTimestamp. Pure and total: every input yields
#   either a CanonicalTimestamp or None, nothing is raised.
#
# RULES (first match wins):
# -------------------------
#   1. CanonicalTimestamp      → returned unchanged
#   2. datetime / date         → exact conversion (naive = UTC)
#   3. number                  → magnitude threshold table
#   4. string                  → flexible date parsing (a full calendar date
#                                must be present), then numeric parse → rule 3
#   5. anything else           → None
#
# THRESHOLD TABLES:
# -----------------
#   Two historical heuristics disagree for numbers in [4e9, 1e11]. Both
#   are kept as named tables; PRIMARY_THRESHOLDS is the default.
#
#   PRIMARY_THRESHOLDS   v > 4e12 → reject
#                        v > 1e12 → milliseconds
#                        1e9 < v < 4e9 → seconds
#                        otherwise → reject
#
#   LEGACY_THRESHOLDS    v > 1e14 → milliseconds
#                        v < 1e11 → seconds
#                        otherwise → milliseconds
#
# ==============================================

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from dateutil import parser as date_parser

from .canonical import CanonicalTimestamp
from .type_detector import TypeDetector, ValueKind

logger = logging.getLogger(__name__)

# Primary table
MAX_PLAUSIBLE_MILLIS = 4e12   # ~2096 when read as milliseconds
MILLIS_FLOOR = 1e12           # ~2001 when read as milliseconds
SECONDS_FLOOR = 1e9           # ~2001 when read as seconds
SECONDS_CEILING = 4e9         # ~2096 when read as seconds

# Legacy table
LEGACY_MILLIS_FLOOR = 1e14
LEGACY_SECONDS_CEILING = 1e11

# Two fill-in defaults differing in year, month and day. A string whose
# parse changes with the default is missing part of its date.
_PARSE_DEFAULTS = (datetime(1970, 1, 1), datetime(1971, 2, 2))


class Interpretation(Enum):
    SECONDS = "seconds"
    MILLISECONDS = "milliseconds"
    REJECT = "reject"


@dataclass(frozen=True)
class MagnitudeBand:
    """Open interval (lower, upper); None means unbounded on that side."""
    lower: Optional[float]
    upper: Optional[float]
    interpretation: Interpretation

    def contains(self, value: float) -> bool:
        if self.lower is not None and not value > self.lower:
            return False
        if self.upper is not None and not value < self.upper:
            return False
        return True


@dataclass(frozen=True)
class ThresholdTable:
    name: str
    bands: Tuple[MagnitudeBand, ...]
    default: Interpretation

    def interpret(self, value: float) -> Interpretation:
        for band in self.bands:
            if band.contains(value):
                return band.interpretation
        return self.default


PRIMARY_THRESHOLDS = ThresholdTable(
    name="primary",
    bands=(
        MagnitudeBand(MAX_PLAUSIBLE_MILLIS, None, Interpretation.REJECT),
        MagnitudeBand(MILLIS_FLOOR, None, Interpretation.MILLISECONDS),
        MagnitudeBand(SECONDS_FLOOR, SECONDS_CEILING, Interpretation.SECONDS),
    ),
    default=Interpretation.REJECT,
)

LEGACY_THRESHOLDS = ThresholdTable(
    name="legacy",
    bands=(
        MagnitudeBand(LEGACY_MILLIS_FLOOR, None, Interpretation.MILLISECONDS),
        MagnitudeBand(None, LEGACY_SECONDS_CEILING, Interpretation.SECONDS),
    ),
    default=Interpretation.MILLISECONDS,
)

THRESHOLD_TABLES: Dict[str, ThresholdTable] = {
    PRIMARY_THRESHOLDS.name: PRIMARY_THRESHOLDS,
    LEGACY_THRESHOLDS.name: LEGACY_THRESHOLDS,
}


def get_thresholds(name: str) -> ThresholdTable:
    """
    Look up a threshold table by name.

    Raises:
        KeyError: for an unknown table name
    """
    try:
        return THRESHOLD_TABLES[name.strip().lower()]
    except KeyError:
        raise KeyError(
            f"unknown threshold table {name!r}; expected one of {sorted(THRESHOLD_TABLES)}"
        ) from None


def classify(
    value: Any,
    thresholds: ThresholdTable = PRIMARY_THRESHOLDS,
) -> Optional[CanonicalTimestamp]:
    """
    Classify a raw value as a timestamp.

    Args:
        value: Any field value read from a document
        thresholds: Magnitude table used for numeric values

    Returns:
        The canonical instant, or None when the value is not a timestamp
    """
    handler = _HANDLERS[TypeDetector.detect(value)]
    return handler(value, thresholds)


def _identity(value: CanonicalTimestamp, thresholds: ThresholdTable) -> CanonicalTimestamp:
    return value


def _reject(value: Any, thresholds: ThresholdTable) -> None:
    return None


def _from_datetime(value: datetime, thresholds: ThresholdTable) -> Optional[CanonicalTimestamp]:
    try:
        return CanonicalTimestamp.from_datetime(value)
    except (ValueError, OverflowError):
        return None


def _from_number(value: Any, thresholds: ThresholdTable) -> Optional[CanonicalTimestamp]:
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    if not math.isfinite(number):
        return None

    interpretation = thresholds.interpret(number)
    try:
        if interpretation is Interpretation.MILLISECONDS:
            return CanonicalTimestamp.from_millis(number)
        if interpretation is Interpretation.SECONDS:
            return CanonicalTimestamp.from_seconds(number)
    except (ValueError, OverflowError):
        return None

    logger.debug("number %r rejected by %s thresholds", value, thresholds.name)
    return None


def _parse_date_text(text: str) -> Optional[datetime]:
    """Parse a date-time string, or None unless it names a full calendar date."""
    try:
        first, second = (date_parser.parse(text, default=default) for default in _PARSE_DEFAULTS)
    except Exception:
        # dateutil raises several unrelated error types on malformed input
        return None

    # "12:30", "Monday", "May" or "5" borrow their missing parts from the default
    if first != second:
        return None
    return first


def _from_string(value: str, thresholds: ThresholdTable) -> Optional[CanonicalTimestamp]:
    text = value.strip()
    if not text:
        return None

    parsed = _parse_date_text(text)
    if parsed is not None:
        result = _from_datetime(parsed, thresholds)
        if result is not None:
            return result

    number = TypeDetector.leading_number(text)
    if number is None:
        return None
    return _from_number(number, thresholds)


_HANDLERS: Dict[ValueKind, Callable[[Any, ThresholdTable], Optional[CanonicalTimestamp]]] = {
    ValueKind.TIMESTAMP: _identity,
    ValueKind.DATETIME: _from_datetime,
    ValueKind.NUMBER: _from_number,
    ValueKind.STRING: _from_string,
    ValueKind.NULL: _reject,
    ValueKind.BOOLEAN: _reject,
    ValueKind.SERVER_TIMESTAMP: _reject,
    ValueKind.MAPPING: _reject,
    ValueKind.SEQUENCE: _reject,
    ValueKind.UNKNOWN: _reject,
}
