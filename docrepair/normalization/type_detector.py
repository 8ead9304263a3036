import math
import re
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from .canonical import CanonicalTimestamp, ServerTimestamp


class ValueKind(Enum):
    NULL = "null"
    BOOLEAN = "bool"
    NUMBER = "number"
    STRING = "str"
    TIMESTAMP = "timestamp"
    DATETIME = "datetime"
    SERVER_TIMESTAMP = "server_timestamp"
    MAPPING = "object"
    SEQUENCE = "array"
    UNKNOWN = "unknown"


class TypeDetector:
    # Leading numeric prefix, the way a lenient float parser reads "85%" or "12.5kg"
    LEADING_NUMBER_PATTERN = re.compile(
        r'^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?'
    )

    @classmethod
    def detect(cls, value: Any) -> ValueKind:
        if value is None:
            return ValueKind.NULL

        if isinstance(value, ServerTimestamp):
            return ValueKind.SERVER_TIMESTAMP

        # bool is an int subclass, so it has to be tagged first
        if isinstance(value, bool):
            return ValueKind.BOOLEAN

        if isinstance(value, CanonicalTimestamp):
            return ValueKind.TIMESTAMP

        if isinstance(value, (datetime, date)):
            return ValueKind.DATETIME

        if isinstance(value, (int, float, Decimal)):
            return ValueKind.NUMBER

        if isinstance(value, str):
            return ValueKind.STRING

        if isinstance(value, Mapping):
            return ValueKind.MAPPING

        if isinstance(value, (list, tuple)):
            return ValueKind.SEQUENCE

        return ValueKind.UNKNOWN

    @classmethod
    def is_truthy(cls, value: Any) -> bool:
        """Loose truthiness: null, false, 0, NaN and "" are all empty."""
        kind = cls.detect(value)

        if kind is ValueKind.NULL:
            return False

        if kind is ValueKind.BOOLEAN:
            return value

        if kind is ValueKind.NUMBER:
            if isinstance(value, float) and math.isnan(value):
                return False
            return value != 0

        if kind is ValueKind.STRING:
            return value != ""

        return True

    @classmethod
    def leading_number(cls, text: str) -> Optional[float]:
        match = cls.LEADING_NUMBER_PATTERN.match(text.strip())
        if not match:
            return None
        try:
            return float(match.group(0))
        except (ValueError, OverflowError):
            return None
