# ==============================================
# FieldNormalizer
# ==============================================
#
# PURPOSE:
#   Map a raw document to its normalized form plus the set of fields
#   that actually changed, using the rule set selected by the
#   document kind.
#
# RULE SETS:
# ----------
#   capture     timestamp, created_at, updated_at, captured_at → timestamps
#               (server time when unparseable); image_path, user_id → trimmed text
#
#   prediction  timestamp → timestamp (server time when unparseable);
#               variety → trimmed text (default "Unknown");
#               description → trimmed text (default "");
#               accuracy → ratio in [0, 1]
#
#   generic     any key containing "time"/"date" or ending in "_at" with a
#               non-empty value → timestamp, replaced only when parseable
#
# OUTPUT:
# -------
#   NormalizationResult.document  full normalized view of the document
#   NormalizationResult.updates   only the fields that differ (partial update)
#
# ==============================================

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .canonical import SERVER_TIMESTAMP, CanonicalTimestamp
from .timestamps import PRIMARY_THRESHOLDS, ThresholdTable, classify
from .type_detector import TypeDetector, ValueKind

logger = logging.getLogger(__name__)

RATIO_EPSILON = 1e-6

CAPTURE_TIMESTAMP_FIELDS = ("timestamp", "created_at", "updated_at", "captured_at")
CAPTURE_TEXT_FIELDS = ("image_path", "user_id")
PREDICTION_TIMESTAMP_FIELDS = ("timestamp",)

TIMESTAMP_NAME_MARKERS = ("time", "date")
TIMESTAMP_NAME_SUFFIX = "_at"


class NormalizationError(ValueError):
    """A rule met a value it cannot coerce."""


class DocumentKind(Enum):
    CAPTURE = "capture"
    PREDICTION = "prediction"
    GENERIC = "generic"

    @classmethod
    def parse(cls, value: Union["DocumentKind", str, None]) -> "DocumentKind":
        """Resolve a kind name; anything unrecognized falls back to GENERIC."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.GENERIC


COLLECTION_KINDS = {
    "captures": DocumentKind.CAPTURE,
    "predictions": DocumentKind.PREDICTION,
}


def kind_for_collection(collection_name: str) -> DocumentKind:
    return COLLECTION_KINDS.get(collection_name.strip().lower(), DocumentKind.GENERIC)


def is_timestamp_field_name(name: str) -> bool:
    lowered = name.lower()
    return any(marker in lowered for marker in TIMESTAMP_NAME_MARKERS) or name.endswith(TIMESTAMP_NAME_SUFFIX)


@dataclass
class NormalizationResult:
    document: Dict[str, Any]
    updates: Dict[str, Any] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return bool(self.updates)


def timestamps_equal(stored: Any, candidate: Any) -> bool:
    """
    Instant equality for timestamp-valued fields.

    Two CanonicalTimestamps are equal when they denote the same instant.
    The server marker is only equal to itself; any other pairing (a raw
    number or string against a canonical value) is a difference.
    """
    if stored is SERVER_TIMESTAMP or candidate is SERVER_TIMESTAMP:
        return stored is candidate
    if isinstance(stored, CanonicalTimestamp) and isinstance(candidate, CanonicalTimestamp):
        return stored == candidate
    return False


def normalize_text(value: Any, default: str = "") -> Tuple[str, bool]:
    """
    Stringify and trim a free-text value.

    Args:
        value: Stored value (any kind)
        default: Replacement for empty values (null, "", 0, false)

    Returns:
        (text, changed)

    Raises:
        NormalizationError: for nested values
    """
    kind = TypeDetector.detect(value)
    if kind in (ValueKind.MAPPING, ValueKind.SEQUENCE, ValueKind.UNKNOWN):
        raise NormalizationError(f"cannot coerce {kind.value} value to text")

    source = _stringify(value, kind) if TypeDetector.is_truthy(value) else default
    text = source.strip()
    changed = not (kind is ValueKind.STRING and value == text)
    return text, changed


def normalize_ratio(value: Any) -> Tuple[float, bool]:
    """
    Coerce a score into [0, 1].

    Values above 1 are read as percentages. Invalid input becomes 0.
    A stored number within RATIO_EPSILON of the result is left alone.

    Returns:
        (ratio, changed)

    Raises:
        NormalizationError: for nested values
    """
    kind = TypeDetector.detect(value)
    if kind in (ValueKind.MAPPING, ValueKind.SEQUENCE, ValueKind.UNKNOWN):
        raise NormalizationError(f"cannot interpret {kind.value} value as a ratio")

    stored = None
    if kind is ValueKind.NUMBER:
        try:
            stored = float(value)
        except OverflowError:
            stored = math.inf if value > 0 else -math.inf
        number = stored
    elif kind is ValueKind.STRING:
        number = TypeDetector.leading_number(value)
    else:
        number = None

    if number is None or math.isnan(number):
        number = 0.0

    if number > 1:
        number = number / 100
    ratio = max(0.0, min(1.0, number))

    if stored is not None and math.isfinite(stored):
        changed = abs(stored - ratio) > RATIO_EPSILON
    else:
        changed = True
    return ratio, changed


def _stringify(value: Any, kind: ValueKind) -> str:
    if kind is ValueKind.STRING:
        return value
    if kind is ValueKind.BOOLEAN:
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class RuleSet:
    """
    Base for per-kind rules. Subclasses implement _apply() by calling the
    _timestamp / _text / _ratio helpers, which record changed fields.
    """

    kind = DocumentKind.GENERIC

    def __init__(self, thresholds: ThresholdTable = PRIMARY_THRESHOLDS):
        self.thresholds = thresholds

    def apply(self, raw: Mapping[str, Any]) -> NormalizationResult:
        if not isinstance(raw, Mapping):
            raise NormalizationError(f"document must be a mapping, got {type(raw).__name__}")

        result = NormalizationResult(document=dict(raw))
        self._apply(raw, result)
        return result

    def _apply(self, raw: Mapping[str, Any], result: NormalizationResult) -> None:
        raise NotImplementedError

    def _set(self, result: NormalizationResult, name: str, value: Any) -> None:
        result.document[name] = value
        result.updates[name] = value

    def _timestamp(
        self,
        raw: Mapping[str, Any],
        result: NormalizationResult,
        name: str,
        fallback: bool = True,
    ) -> None:
        current = raw[name]
        parsed = classify(current, self.thresholds)

        if parsed is None:
            if not fallback:
                return
            logger.debug("%s: %r is not a recognisable timestamp, using server time", name, current)
            candidate = SERVER_TIMESTAMP
        else:
            candidate = parsed

        if not timestamps_equal(current, candidate):
            self._set(result, name, candidate)

    def _text(
        self,
        raw: Mapping[str, Any],
        result: NormalizationResult,
        name: str,
        default: str = "",
    ) -> None:
        text, changed = normalize_text(raw[name], default)
        if changed:
            self._set(result, name, text)

    def _ratio(self, raw: Mapping[str, Any], result: NormalizationResult, name: str) -> None:
        ratio, changed = normalize_ratio(raw[name])
        if changed:
            self._set(result, name, ratio)


class CaptureRules(RuleSet):
    kind = DocumentKind.CAPTURE

    def _apply(self, raw, result):
        for name in CAPTURE_TIMESTAMP_FIELDS:
            if name in raw:
                self._timestamp(raw, result, name)

        for name in CAPTURE_TEXT_FIELDS:
            if name in raw and TypeDetector.is_truthy(raw[name]):
                self._text(raw, result, name)


class PredictionRules(RuleSet):
    kind = DocumentKind.PREDICTION

    def _apply(self, raw, result):
        for name in PREDICTION_TIMESTAMP_FIELDS:
            if name in raw:
                self._timestamp(raw, result, name)

        if "variety" in raw:
            self._text(raw, result, "variety", default="Unknown")

        if "accuracy" in raw:
            self._ratio(raw, result, "accuracy")

        if "description" in raw:
            self._text(raw, result, "description")


class GenericRules(RuleSet):
    kind = DocumentKind.GENERIC

    def _apply(self, raw, result):
        for name, value in raw.items():
            if is_timestamp_field_name(name) and TypeDetector.is_truthy(value):
                self._timestamp(raw, result, name, fallback=False)


RULE_SETS = {
    DocumentKind.CAPTURE: CaptureRules,
    DocumentKind.PREDICTION: PredictionRules,
    DocumentKind.GENERIC: GenericRules,
}


class FieldNormalizer:
    """
    Applies the rule set for a document kind. Stateless apart from the
    threshold table shared by every rule set it builds.
    """

    def __init__(self, thresholds: ThresholdTable = PRIMARY_THRESHOLDS):
        self.thresholds = thresholds
        self._rule_sets = {kind: rules(thresholds) for kind, rules in RULE_SETS.items()}

    def rules_for(self, kind: Union[DocumentKind, str]) -> RuleSet:
        return self._rule_sets[DocumentKind.parse(kind)]

    def normalize(self, kind: Union[DocumentKind, str], raw: Mapping[str, Any]) -> NormalizationResult:
        """
        Normalize one document.

        Args:
            kind: Document kind (or its name); unknown kinds use the generic rules
            raw: The document's fields

        Returns:
            NormalizationResult with the full document and the changed fields

        Raises:
            NormalizationError: when a rule cannot coerce a value
        """
        return self.rules_for(kind).apply(raw)


def normalize(
    kind: Union[DocumentKind, str],
    raw: Mapping[str, Any],
    thresholds: Optional[ThresholdTable] = None,
) -> NormalizationResult:
    return FieldNormalizer(thresholds or PRIMARY_THRESHOLDS).normalize(kind, raw)
