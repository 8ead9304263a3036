import logging
import time
from typing import Callable, List, Optional, Set

from ..analysis.records import RawDocument
from .base import BackupError, DocumentStore, StoreError
from .committer import DEFAULT_CHUNK_SIZE, chunked

logger = logging.getLogger(__name__)

BACKUP_INFIX = "_backup_"


def _now_millis() -> int:
    return int(time.time() * 1000)


class BackupStage:
    """
    Copies a collection into a sibling `<name>_backup_<millis>` collection
    before it is modified. Reads the source, never writes to it.
    """

    def __init__(
        self,
        store: DocumentStore,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.store = store
        self.chunk_size = chunk_size
        self._clock = clock or _now_millis
        self._issued: Set[str] = set()

    def backup_name(self, collection_name: str) -> str:
        """A name not handed out before by this stage."""
        stamp = self._clock()
        name = f"{collection_name}{BACKUP_INFIX}{stamp}"
        while name in self._issued:
            stamp += 1
            name = f"{collection_name}{BACKUP_INFIX}{stamp}"
        self._issued.add(name)
        return name

    def backup(self, collection_name: str, snapshot: Optional[List[RawDocument]] = None) -> str:
        """
        Copy every document of `collection_name`.

        Args:
            collection_name: Source collection
            snapshot: Documents already scanned; scanned here when omitted

        Returns:
            Name of the backup collection

        Raises:
            BackupError: when any chunk cannot be written
        """
        if snapshot is None:
            snapshot = self.store.scan_collection(collection_name)

        name = self.backup_name(collection_name)
        logger.info("Creating backup: %s", name)

        chunks = list(chunked(snapshot, self.chunk_size))
        for index, chunk in enumerate(chunks, start=1):
            group = self.store.new_write_group(name)
            for document in chunk:
                group.add_set(document.id, document.fields)
            try:
                group.commit()
            except StoreError as e:
                raise BackupError(
                    f"backup batch {index}/{len(chunks)} of '{name}' failed: {e}"
                ) from e
            logger.debug("Backup batch %d/%d committed", index, len(chunks))

        logger.info("Backup created: %s (%d documents)", name, len(snapshot))
        return name
