# ==============================================
# Pytest Configuration and Fixtures
# ==============================================
#
# Shared fixtures for all tests, including an in-memory
# DocumentStore so the pipeline can run without MongoDB.
#
# FIXTURES:
# ---------
# - store                → empty InMemoryDocumentStore
# - populated_store      → store with captures + predictions + users
# - capture_document     → raw capture with mixed timestamp encodings
# - prediction_document  → raw prediction needing every rule
#
# ==============================================

import copy
from typing import Any, Dict, List, Set

import pytest

from docrepair.analysis.records import RawDocument
from docrepair.normalization.canonical import SERVER_TIMESTAMP, CanonicalTimestamp
from docrepair.storage.base import CollectionNotFoundError, DocumentStore, StoreError, WriteGroup

SERVER_NOW = CanonicalTimestamp.from_iso("2026-01-01T00:00:00Z")


class InMemoryWriteGroup(WriteGroup):
    def __init__(self, store: "InMemoryDocumentStore", collection_name: str):
        self.store = store
        self.collection_name = collection_name
        self.operations: List[tuple] = []

    def add_update(self, document_id, fields):
        self.operations.append(("update", document_id, copy.deepcopy(fields)))

    def add_set(self, document_id, fields):
        self.operations.append(("set", document_id, copy.deepcopy(fields)))

    def commit(self):
        self.store.commit_count += 1
        if self.store.commit_count in self.store.failing_commits:
            raise StoreError(f"injected failure on commit {self.store.commit_count}")

        collection = self.store.collections.get(self.collection_name, {})
        for kind, document_id, _ in self.operations:
            if kind == "update" and document_id not in collection:
                raise StoreError(f"no document to update: {document_id}")

        # All checks passed; apply atomically
        collection = self.store.collections.setdefault(self.collection_name, {})
        for kind, document_id, fields in self.operations:
            resolved = {
                name: SERVER_NOW if value is SERVER_TIMESTAMP else value
                for name, value in fields.items()
            }
            if kind == "update":
                collection[document_id].update(resolved)
            else:
                collection[document_id] = resolved
        self.store.committed_groups.append((self.collection_name, len(self.operations)))

    def __len__(self):
        return len(self.operations)


class InMemoryDocumentStore(DocumentStore):
    """
    Dict-backed store. `failing_commits` holds 1-based commit numbers that
    raise StoreError; `unreachable` holds collections whose scan fails.
    """

    def __init__(self, collections: Dict[str, Dict[Any, dict]] = None):
        self.collections: Dict[str, Dict[Any, dict]] = copy.deepcopy(collections or {})
        self.failing_commits: Set[int] = set()
        self.unreachable: Set[str] = set()
        self.commit_count = 0
        self.committed_groups: List[tuple] = []
        self.connected = False

    def connect(self):
        self.connected = True

    def disconnect(self):
        self.connected = False

    def collection_exists(self, name):
        return name in self.collections

    def scan_collection(self, name):
        if name in self.unreachable:
            raise StoreError(f"collection '{name}' is unreachable")
        if name not in self.collections:
            raise CollectionNotFoundError(f"Collection '{name}' does not exist.")
        return [
            RawDocument(id=document_id, fields=copy.deepcopy(fields))
            for document_id, fields in self.collections[name].items()
        ]

    def count_documents(self, name):
        if name in self.unreachable:
            raise StoreError(f"collection '{name}' is unreachable")
        return len(self.collections.get(name, {}))

    def new_write_group(self, collection_name):
        return InMemoryWriteGroup(self, collection_name)

    def dump(self) -> Dict[str, Dict[Any, dict]]:
        return copy.deepcopy(self.collections)


# ==============================================
# Test Fixtures
# ==============================================

@pytest.fixture
def capture_document():
    return {
        "timestamp": 1700000000,
        "created_at": "2023-11-14T22:13:20Z",
        "updated_at": 1700000000000,
        "captured_at": CanonicalTimestamp.from_seconds(1700000000),
        "image_path": "  /captures/img_001.jpg ",
        "user_id": "user-42",
        "label": "leaf",
    }


@pytest.fixture
def prediction_document():
    return {
        "timestamp": "not a date",
        "variety": "  Arabica ",
        "accuracy": 87.5,
        "description": "  hello  ",
        "model": "v2",
    }


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def populated_store(capture_document, prediction_document):
    return InMemoryDocumentStore({
        "captures": {
            "c1": capture_document,
            "c2": {"timestamp": CanonicalTimestamp.from_seconds(1700000000), "user_id": "u2"},
            "c3": {"timestamp": "1700000000000", "image_path": "a.jpg"},
        },
        "predictions": {
            "p1": prediction_document,
            "p2": {"timestamp": CanonicalTimestamp.from_seconds(1700000000),
                   "variety": "Robusta", "accuracy": 0.42, "description": "ok"},
            "p3": {"accuracy": {"nested": True}},
        },
        "users": {
            "u1": {"last_login_time": 1700000000, "name": " Ann "},
        },
    })
