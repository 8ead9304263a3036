# ==============================================
# TOPIC 1: NORMALIZATION
# ==============================================
#
# This package decides what the canonical form of a field is.
# Pure functions only; nothing here touches the store.
#
# Modules:
# --------
# - canonical.py         → CanonicalTimestamp value + SERVER_TIMESTAMP marker
# - type_detector.py     → Tag raw values with a ValueKind
# - timestamps.py        → Classify a value as a timestamp (threshold tables)
# - field_normalizer.py  → Per-kind rule sets producing partial updates
#
# ==============================================

from .canonical import SERVER_TIMESTAMP, CanonicalTimestamp, ServerTimestamp
from .type_detector import TypeDetector, ValueKind
from .timestamps import (
    LEGACY_THRESHOLDS,
    PRIMARY_THRESHOLDS,
    THRESHOLD_TABLES,
    Interpretation,
    MagnitudeBand,
    ThresholdTable,
    classify,
    get_thresholds,
)
from .field_normalizer import (
    DocumentKind,
    FieldNormalizer,
    NormalizationError,
    NormalizationResult,
    kind_for_collection,
    normalize,
    normalize_ratio,
    normalize_text,
    timestamps_equal,
)

__all__ = [
    "SERVER_TIMESTAMP",
    "CanonicalTimestamp",
    "ServerTimestamp",
    "TypeDetector",
    "ValueKind",
    "LEGACY_THRESHOLDS",
    "PRIMARY_THRESHOLDS",
    "THRESHOLD_TABLES",
    "Interpretation",
    "MagnitudeBand",
    "ThresholdTable",
    "classify",
    "get_thresholds",
    "DocumentKind",
    "FieldNormalizer",
    "NormalizationError",
    "NormalizationResult",
    "kind_for_collection",
    "normalize",
    "normalize_ratio",
    "normalize_text",
    "timestamps_equal",
]
