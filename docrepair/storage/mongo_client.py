# ==============================================
# MongoDocumentStore
# ==============================================
#
# PURPOSE:
#   MongoDB binding of the DocumentStore contract: full collection
#   scans, document counts and atomic write groups.
#
# CLASS: MongoDocumentStore
# -------------------------
#   Stateful: holds the connection to MongoDB.
#
#   Constructor:
#   ------------
#   - __init__(host, port, database, user=None, password=None,
#              uri=None, use_transactions=True)
#
#   Methods:
#   --------
#   - connect() / disconnect()
#   - scan_collection(name) -> list[RawDocument]
#       All documents in _id order. BSON dates come back as
#       CanonicalTimestamp values.
#   - count_documents(name) -> int
#   - collection_exists(name) -> bool
#   - new_write_group(name) -> MongoWriteGroup
#
#   Context Manager:
#   ----------------
#   - __enter__ / __exit__ for `with MongoDocumentStore(...) as store:` usage.
#
# CLASS: MongoWriteGroup
# ----------------------
#   Queues UpdateOne / ReplaceOne operations and sends them as one
#   ordered bulk_write, inside a transaction when enabled (transactions
#   need a replica set or sharded cluster).
#
# VALUE CONVERSION:
# -----------------
#   read:   datetime → CanonicalTimestamp
#           bson Timestamp → CanonicalTimestamp
#           Decimal128 → decimal.Decimal (a plain number downstream)
#   write:  CanonicalTimestamp → aware UTC datetime (BSON date)
#           decimal.Decimal → Decimal128
#           SERVER_TIMESTAMP in an update → $currentDate
#
# ==============================================

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
from urllib.parse import quote_plus

from bson.decimal128 import Decimal128
from bson.errors import BSONError
from bson.timestamp import Timestamp
from pymongo import ASCENDING, ReplaceOne, UpdateOne
from pymongo import MongoClient as PyMongoClient
from pymongo.errors import ConnectionFailure, OperationFailure, PyMongoError

from ..analysis.records import RawDocument
from ..normalization.canonical import SERVER_TIMESTAMP, CanonicalTimestamp
from .base import CollectionNotFoundError, DocumentStore, StoreError, WriteGroup

logger = logging.getLogger(__name__)


def to_bson(value: Any) -> Any:
    """Convert canonical values into what pymongo can encode."""
    if isinstance(value, CanonicalTimestamp):
        return value.to_datetime()
    if isinstance(value, Decimal):
        return Decimal128(value)
    if value is SERVER_TIMESTAMP:
        return datetime.now(timezone.utc)
    if isinstance(value, dict):
        return {key: to_bson(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_bson(item) for item in value]
    return value


def from_bson(value: Any) -> Any:
    """Convert decoded BSON into canonical values (dates become CanonicalTimestamp)."""
    if isinstance(value, datetime):
        return CanonicalTimestamp.from_datetime(value)
    if isinstance(value, Timestamp):
        return CanonicalTimestamp.from_datetime(value.as_datetime())
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, dict):
        return {key: from_bson(item) for key, item in value.items()}
    if isinstance(value, list):
        return [from_bson(item) for item in value]
    return value


def build_update(fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build a partial-update document. SERVER_TIMESTAMP fields are resolved
    by the server through $currentDate, everything else goes to $set.
    """
    to_set = {}
    current_date = {}
    for name, value in fields.items():
        if value is SERVER_TIMESTAMP:
            current_date[name] = {"$type": "date"}
        else:
            to_set[name] = to_bson(value)

    update: Dict[str, Any] = {}
    if to_set:
        update["$set"] = to_set
    if current_date:
        update["$currentDate"] = current_date
    return update


class MongoWriteGroup(WriteGroup):
    def __init__(self, store: "MongoDocumentStore", collection_name: str):
        self._store = store
        self.collection_name = collection_name
        self._operations: List[Any] = []

    def add_update(self, document_id, fields):
        update = build_update(fields)
        if update:
            self._operations.append(UpdateOne({"_id": document_id}, update))

    def add_set(self, document_id, fields):
        document = to_bson(dict(fields))
        document.pop("_id", None)
        self._operations.append(ReplaceOne({"_id": document_id}, document, upsert=True))

    def commit(self):
        if not self._operations:
            return

        client = self._store.require_client()
        collection = client[self._store.database][self.collection_name]
        try:
            if self._store.use_transactions:
                with client.start_session() as session:
                    with session.start_transaction():
                        collection.bulk_write(self._operations, ordered=True, session=session)
            else:
                collection.bulk_write(self._operations, ordered=True)
        except (PyMongoError, BSONError) as e:
            raise StoreError(
                f"write of {len(self._operations)} operation(s) to '{self.collection_name}' failed: {e}"
            ) from e

    def __len__(self):
        return len(self._operations)


class MongoDocumentStore(DocumentStore):
    def __init__(
        self,
        host: str = "localhost",
        port: int = 27017,
        database: str = "docrepair",
        user: Optional[str] = None,
        password: Optional[str] = None,
        uri: Optional[str] = None,
        use_transactions: bool = True,
    ):
        # Store connection params. Don't connect yet.
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.uri = uri
        self.use_transactions = use_transactions
        self.client = None

    def connection_uri(self) -> str:
        if self.uri:
            return self.uri
        if self.user and self.password:
            credentials = f"{quote_plus(self.user)}:{quote_plus(self.password)}@"
            return f"mongodb://{credentials}{self.host}:{self.port}/{self.database}"
        return f"mongodb://{self.host}:{self.port}/{self.database}"

    def connect(self):
        """
        Establish the connection and ping the server.

        Raises:
            StoreError: when the server is unreachable, rejects the credentials,
                or the connection settings (such as MONGO_URI) are malformed
        """
        try:
            self.client = PyMongoClient(self.connection_uri(), tz_aware=True)
            self.client.admin.command("ping")
            logger.info("Connected to MongoDB database '%s'.", self.database)
        except ConnectionFailure as e:
            self.client = None
            raise StoreError(f"Could not connect to MongoDB: {e}") from e
        except OperationFailure as e:
            self.client = None
            raise StoreError(f"MongoDB authentication failed: {e}") from e
        except PyMongoError as e:
            # ConfigurationError, InvalidURI and friends
            self.client = None
            raise StoreError(f"Invalid MongoDB configuration: {e}") from e

    def disconnect(self):
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB.")
            self.client = None

    def require_client(self):
        if not self.client:
            raise StoreError("Not connected to MongoDB.")
        return self.client

    def _collection(self, name: str):
        return self.require_client()[self.database][name]

    def collection_exists(self, name):
        try:
            return name in self.require_client()[self.database].list_collection_names()
        except PyMongoError as e:
            raise StoreError(f"Could not list collections: {e}") from e

    def scan_collection(self, name):
        if not self.collection_exists(name):
            raise CollectionNotFoundError(f"Collection '{name}' does not exist.")

        documents = []
        try:
            for doc in self._collection(name).find({}).sort("_id", ASCENDING):
                document_id = doc.pop("_id")
                documents.append(RawDocument(id=document_id, fields=from_bson(doc)))
        except PyMongoError as e:
            raise StoreError(f"Scan of '{name}' failed: {e}") from e
        return documents

    def count_documents(self, name):
        try:
            return self._collection(name).count_documents({})
        except PyMongoError as e:
            raise StoreError(f"Count of '{name}' failed: {e}") from e

    def new_write_group(self, collection_name):
        return MongoWriteGroup(self, collection_name)

    def __enter__(self):
        # For `with MongoDocumentStore(...) as store:` usage.
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
