# ==============================================
# Canonical Timestamp Values
# ==============================================
#
# PURPOSE:
#   The single in-memory representation of an instant that every
#   timestamp field is normalized to, plus the "server timestamp"
#   marker used when no usable instant can be recovered.
#
# CLASSES:
# --------
# - CanonicalTimestamp (frozen dataclass)
#     seconds: int        → whole seconds since the Unix epoch (UTC)
#     nanoseconds: int    → fraction of the second, 0 <= n < 1e9
#
#     Constructors: from_millis, from_seconds, from_datetime, from_iso
#     Conversions:  to_datetime, to_millis, isoformat
#
#     Two values for the same instant compare (and hash) equal no
#     matter which input encoding produced them.
#
# - ServerTimestamp (Enum) / SERVER_TIMESTAMP
#     Placeholder resolved by the store to its own clock at write time.
#
# ==============================================

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Union

from dateutil.parser import isoparse

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

NANOS_PER_SECOND = 1_000_000_000
NANOS_PER_MILLI = 1_000_000
NANOS_PER_MICRO = 1_000

# Range representable as a datetime (0001-01-01 .. 9999-12-31T23:59:59)
MIN_SECONDS = -62135596800
MAX_SECONDS = 253402300799


class ServerTimestamp(Enum):
    """Marker for "the store's current time", resolved when written."""
    MARKER = "server_timestamp"

    def __str__(self) -> str:
        return "<server timestamp>"


SERVER_TIMESTAMP = ServerTimestamp.MARKER


@dataclass(frozen=True, order=True)
class CanonicalTimestamp:
    """An instant in UTC, stored as epoch seconds plus a nanosecond fraction."""

    seconds: int
    nanoseconds: int = 0

    def __post_init__(self):
        if not 0 <= self.nanoseconds < NANOS_PER_SECOND:
            raise ValueError(f"nanoseconds out of range: {self.nanoseconds}")
        if not MIN_SECONDS <= self.seconds <= MAX_SECONDS:
            raise ValueError(f"timestamp out of range: {self.seconds} seconds")

    @classmethod
    def from_millis(cls, millis: Union[int, float]) -> "CanonicalTimestamp":
        """
        Build from milliseconds since the epoch, flooring to a whole millisecond.

        Raises:
            ValueError: if the value is not finite or outside the datetime range
        """
        if isinstance(millis, float) and not math.isfinite(millis):
            raise ValueError(f"not a finite number: {millis}")
        seconds, remainder = divmod(math.floor(millis), 1000)
        return cls(int(seconds), int(remainder) * NANOS_PER_MILLI)

    @classmethod
    def from_seconds(cls, seconds: Union[int, float]) -> "CanonicalTimestamp":
        return cls.from_millis(seconds * 1000)

    @classmethod
    def from_datetime(cls, value: Union[datetime, date]) -> "CanonicalTimestamp":
        """
        Convert a datetime (or a plain date, taken as midnight) exactly.
        Naive values are interpreted as UTC.
        """
        if not isinstance(value, datetime):
            value = datetime.combine(value, time())
        if value.tzinfo is None or value.utcoffset() is None:
            value = value.replace(tzinfo=timezone.utc)
        delta = value - EPOCH
        return cls(
            delta.days * 86400 + delta.seconds,
            delta.microseconds * NANOS_PER_MICRO,
        )

    @classmethod
    def from_iso(cls, text: str) -> "CanonicalTimestamp":
        """Parse a strict ISO-8601 string."""
        return cls.from_datetime(isoparse(text))

    def to_datetime(self) -> datetime:
        """Aware UTC datetime (microsecond precision)."""
        return EPOCH + timedelta(
            seconds=self.seconds,
            microseconds=self.nanoseconds // NANOS_PER_MICRO,
        )

    def to_millis(self) -> int:
        return self.seconds * 1000 + self.nanoseconds // NANOS_PER_MILLI

    def isoformat(self) -> str:
        return self.to_datetime().isoformat().replace("+00:00", "Z")

    def __str__(self) -> str:
        return self.isoformat()
