from typing import Any, Dict, List

from ..analysis.records import RawDocument


class StoreError(Exception):
    """The store rejected or could not complete an operation."""


class CollectionNotFoundError(StoreError):
    pass


class BackupError(StoreError):
    pass


class WriteGroup:
    """
    A bounded set of document writes committed as one atomic operation.
    Nothing reaches the store before commit().
    """

    def add_update(self, document_id: Any, fields: Dict[str, Any]) -> None:
        """Merge fields into an existing document; other fields are left as they are."""
        raise NotImplementedError

    def add_set(self, document_id: Any, fields: Dict[str, Any]) -> None:
        """Write the document with exactly these fields, creating it if needed."""
        raise NotImplementedError

    def commit(self) -> None:
        """Apply every queued write, or none of them. Raises StoreError on failure."""
        raise NotImplementedError

    def __len__(self) -> int:
        raise NotImplementedError


class DocumentStore:
    def scan_collection(self, name: str) -> List[RawDocument]:
        raise NotImplementedError

    def count_documents(self, name: str) -> int:
        raise NotImplementedError

    def collection_exists(self, name: str) -> bool:
        raise NotImplementedError

    def new_write_group(self, collection_name: str) -> WriteGroup:
        raise NotImplementedError
