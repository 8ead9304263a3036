# ==============================================
# TOPIC 3: STORAGE
# ==============================================
#
# This package handles every interaction with the document store:
# scanning collections, committing chunked updates and backups.
#
# Modules:
# --------
# - base.py          → DocumentStore / WriteGroup contracts, StoreError family
# - mongo_client.py  → MongoDB binding of the contract
# - committer.py     → Chunked, failure-isolated commit of planned changes
# - backup.py        → Copy a collection to a timestamped sibling
#
# ==============================================

from .base import BackupError, CollectionNotFoundError, DocumentStore, StoreError, WriteGroup
from .mongo_client import MongoDocumentStore, MongoWriteGroup
from .committer import DEFAULT_CHUNK_SIZE, BatchCommitter, CommitReport, chunked
from .backup import BackupStage

__all__ = [
    "BackupError",
    "CollectionNotFoundError",
    "DocumentStore",
    "StoreError",
    "WriteGroup",
    "MongoDocumentStore",
    "MongoWriteGroup",
    "DEFAULT_CHUNK_SIZE",
    "BatchCommitter",
    "CommitReport",
    "chunked",
    "BackupStage",
]
