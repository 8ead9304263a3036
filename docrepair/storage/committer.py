# ==============================================
# BatchCommitter
# ==============================================
#
# PURPOSE:
#   Write planned changes back in bounded chunks. Each chunk is one
#   atomic write group. A failed chunk fails only its own documents;
#   the remaining chunks are still attempted.
#
# WHY CHUNKS:
#   Stores cap the number of writes in one atomic batch (500 is the
#   usual ceiling), so a collection-wide update has to be split.
#
# CLASS: BatchCommitter
# ---------------------
#   - commit(collection_name, records) -> CommitReport
#       Chunks follow the order of `records`. No retries, no reordering.
#       Re-committing report.failed_records after a partial failure
#       converges to the same end state as one clean run, because only
#       the normalized fields are written.
#
# ==============================================

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Sequence, Tuple, TypeVar

from ..analysis.records import ChangeRecord
from .base import DocumentStore, StoreError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 500

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Consecutive slices of at most `size` items, in order."""
    if size < 1:
        raise ValueError(f"chunk size must be a positive integer, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


@dataclass
class CommitReport:
    committed: List[Any] = field(default_factory=list)
    failed: List[Tuple[Any, str]] = field(default_factory=list)
    failed_records: List[ChangeRecord] = field(default_factory=list)
    chunks_total: int = 0
    chunks_failed: int = 0

    @property
    def ok(self) -> bool:
        return self.chunks_failed == 0

    def to_dict(self):
        return {
            "committed": len(self.committed),
            "failed": len(self.failed),
            "chunks_total": self.chunks_total,
            "chunks_failed": self.chunks_failed,
        }


class BatchCommitter:
    def __init__(self, store: DocumentStore, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size < 1:
            raise ValueError(f"chunk size must be a positive integer, got {chunk_size}")
        self.store = store
        self.chunk_size = chunk_size

    def commit(self, collection_name: str, records: Sequence[ChangeRecord]) -> CommitReport:
        """
        Apply the updates of `records` to `collection_name`.

        Args:
            collection_name: Target collection
            records: Planned changes, in snapshot order

        Returns:
            CommitReport listing committed and failed document ids
        """
        chunks = list(chunked(records, self.chunk_size))
        report = CommitReport(chunks_total=len(chunks))

        for index, chunk in enumerate(chunks, start=1):
            group = self.store.new_write_group(collection_name)
            try:
                for record in chunk:
                    group.add_update(record.document_id, record.updates)
                group.commit()
            except StoreError as e:
                report.chunks_failed += 1
                message = f"chunk {index}/{len(chunks)} failed: {e}"
                for record in chunk:
                    report.failed.append((record.document_id, message))
                    report.failed_records.append(record)
                logger.error("Batch %d/%d failed: %s", index, len(chunks), e)
                continue

            report.committed.extend(record.document_id for record in chunk)
            logger.info("Committed batch %d/%d (%d writes)", index, len(chunks), len(chunk))

        return report
