# ==============================================
# Records (Data Classes)
# ==============================================
#
# PURPOSE:
#   Data classes passed between the planner, the committer and the
#   summary. Separating them from the logic keeps the planner and
#   committer free of each other.
#
# CLASSES:
# --------
# - RawDocument (frozen dataclass)
#     id: Any                → the store's native document key (opaque)
#     fields: dict           → field name → value, read-only snapshot
#
# - ChangeRecord (dataclass)
#     document_id            → key of the document to update
#     original: dict         → fields as scanned
#     normalized: dict       → full normalized view
#     updates: dict          → only the fields that differ (write payload)
#     changed: bool
#
# - RunStatistics (dataclass)
#     scanned / updated / unchanged / failed counters plus an ordered
#     list of (document_id, error message). Returned by the planner and
#     threaded explicitly to the summary; there is no shared instance.
#
# ==============================================

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple


@dataclass(frozen=True)
class RawDocument:
    id: Any
    fields: Dict[str, Any]


@dataclass
class ChangeRecord:
    document_id: Any
    original: Dict[str, Any]
    normalized: Dict[str, Any]
    updates: Dict[str, Any]
    changed: bool = True


@dataclass
class RunStatistics:
    scanned: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    errors: List[Tuple[Any, str]] = field(default_factory=list)

    def record_failure(self, document_id: Any, message: str) -> None:
        self.failed += 1
        self.errors.append((document_id, message))

    def apply_commit(self, report) -> None:
        """
        Fold a CommitReport in: documents whose chunk failed move from
        "updated" to "failed".
        """
        for document_id, message in report.failed:
            self.updated = max(0, self.updated - 1)
            self.record_failure(document_id, message)

    def merge(self, other: "RunStatistics") -> "RunStatistics":
        """Return a new RunStatistics holding the sum of both."""
        return RunStatistics(
            scanned=self.scanned + other.scanned,
            updated=self.updated + other.updated,
            unchanged=self.unchanged + other.unchanged,
            failed=self.failed + other.failed,
            errors=self.errors + other.errors,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scanned": self.scanned,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "failed": self.failed,
            "errors": [
                {"document_id": str(document_id), "error": message}
                for document_id, message in self.errors
            ],
        }
