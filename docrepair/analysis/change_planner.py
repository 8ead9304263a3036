# ==============================================
# ChangePlanner
# ==============================================
#
# PURPOSE:
#   Walk a collection snapshot, normalize every document and sort it
#   into exactly one of: changed (ChangeRecord), unchanged, failed.
#   Never writes to the store.
#
# CONTRACT:
# ---------
#   plan(snapshot, kind) -> (list[ChangeRecord], RunStatistics)
#
#   - scanned is incremented for every document examined
#   - an exception raised by a rule fails that document only; the
#     scan always continues to the next one
#
# ==============================================

import logging
from typing import Iterable, List, Optional, Tuple, Union

from ..normalization.field_normalizer import DocumentKind, FieldNormalizer
from .records import ChangeRecord, RawDocument, RunStatistics

logger = logging.getLogger(__name__)


class ChangePlanner:
    def __init__(self, normalizer: Optional[FieldNormalizer] = None):
        self.normalizer = normalizer or FieldNormalizer()

    def plan(
        self,
        snapshot: Iterable[RawDocument],
        kind: Union[DocumentKind, str],
    ) -> Tuple[List[ChangeRecord], RunStatistics]:
        """
        Plan the changes for one collection snapshot.

        Args:
            snapshot: Documents as scanned from the store
            kind: Rule set to apply

        Returns:
            (change records in snapshot order, statistics for this snapshot)
        """
        kind = DocumentKind.parse(kind)
        records: List[ChangeRecord] = []
        stats = RunStatistics()

        for document in snapshot:
            stats.scanned += 1
            try:
                result = self.normalizer.normalize(kind, document.fields)
            except Exception as e:
                message = str(e) or type(e).__name__
                stats.record_failure(document.id, message)
                logger.error("Document %s: %s", document.id, message)
                continue

            if result.changed:
                records.append(ChangeRecord(
                    document_id=document.id,
                    original=dict(document.fields),
                    normalized=result.document,
                    updates=result.updates,
                ))
                stats.updated += 1
                logger.debug("Document %s: %d field(s) to update", document.id, len(result.updates))
            else:
                stats.unchanged += 1

        return records, stats


def plan(
    snapshot: Iterable[RawDocument],
    kind: Union[DocumentKind, str],
    normalizer: Optional[FieldNormalizer] = None,
) -> Tuple[List[ChangeRecord], RunStatistics]:
    return ChangePlanner(normalizer).plan(snapshot, kind)
