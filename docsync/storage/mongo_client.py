# ==============================================
# MongoSource
# ==============================================
#
# PURPOSE:
#   The document-store side of an import. Wraps one MongoDB
#   connection (one data source) and exposes exactly what the
#   import engine needs from it.
#
# WHY THIS CLASS EXISTS:
#   The importer never talks to pymongo directly. Everything it
#   consumes goes through these five operations, so a run can be
#   driven against any source that offers the same methods.
#
# CLASS: MongoSource
# ------------------
#   Stateful: holds the MongoDB client for one data source run.
#
#   Constructor:
#   ------------
#   - __init__(connection_string, server_selection_timeout_ms=10000,
#              connect_timeout_ms=10000, connect_attempts=3,
#              retry_backoff=1.0)
#       Store connection params. Don't connect yet.
#
#   Methods:
#   --------
#   - connect() -> None
#       Ping the server, retrying with exponential backoff.
#       Raises SourceConnectionError once attempts are exhausted.
#       The database is the one named in the connection string.
#
#   - list_collections() -> list[str]
#       Raises SourceConnectionError when the listing fails.
#   - infer_schema(collection_name, sample_size=100) -> CollectionSchema
#       $sample aggregation, analyzed by SchemaSampler.
#   - count_documents(collection_name, filter) -> int
#   - stream_documents(collection_name, filter, batch_size) -> Iterator[dict]
#       Lazy, single pass. The cursor is closed when the generator ends.
#       Both raise SourceReadError when the server errors mid-read.
#   - disconnect() -> None
#
#   Context Manager:
#   ----------------
#   - __enter__ / __exit__ for `with MongoSource(...) as source:` usage.
#
# ==============================================

from typing import Any, Dict, Iterator, List, Optional

import structlog
from pymongo import MongoClient as PyMongoClient
from pymongo.errors import ConfigurationError, ConnectionFailure, PyMongoError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from docsync.analysis import CollectionSchema, infer_schema_from_documents
from docsync.errors import SchemaInferenceError, SourceConnectionError, SourceReadError

logger = structlog.get_logger()


class MongoSource:
    def __init__(
        self,
        connection_string: str,
        server_selection_timeout_ms: int = 10000,
        connect_timeout_ms: int = 10000,
        connect_attempts: int = 3,
        retry_backoff: float = 1.0
    ):
        self.connection_string = connection_string
        self.server_selection_timeout_ms = server_selection_timeout_ms
        self.connect_timeout_ms = connect_timeout_ms
        self.connect_attempts = max(1, connect_attempts)
        self.retry_backoff = retry_backoff  # seconds, doubled per attempt
        self.client = None  # pymongo client once connected
        self.database = None

    def connect(self) -> None:
        if not self.connection_string:
            raise SourceConnectionError("Data source has no connection string")

        retrying = Retrying(
            stop=stop_after_attempt(self.connect_attempts),
            wait=wait_exponential(multiplier=self.retry_backoff, max=10),
            retry=retry_if_exception_type(ConnectionFailure),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    self._open()
        except ConfigurationError as e:
            raise SourceConnectionError(
                f"Invalid connection string, a database name is required: {e}"
            ) from e
        except PyMongoError as e:
            logger.error("Could not connect to MongoDB", error=str(e))
            raise SourceConnectionError(f"Could not connect to MongoDB: {e}") from e

        logger.info("Connected to MongoDB", database=self.database.name)

    def _open(self) -> None:
        client = PyMongoClient(
            self.connection_string,
            serverSelectionTimeoutMS=self.server_selection_timeout_ms,
            connectTimeoutMS=self.connect_timeout_ms,
        )
        try:
            client.admin.command("ping")
            database = client.get_default_database()
        except PyMongoError:
            client.close()
            raise
        self.client = client
        self.database = database

    def disconnect(self) -> None:
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")
            self.client = None
            self.database = None

    def _db(self):
        if self.database is None:
            raise SourceConnectionError("Not connected to MongoDB.")
        return self.database

    def list_collections(self) -> List[str]:
        try:
            names = self._db().list_collection_names()
        except PyMongoError as e:
            raise SourceConnectionError(f"Could not list collections: {e}") from e
        return [name for name in names if not name.startswith("system.")]

    def infer_schema(self, collection_name: str, sample_size: int = 100) -> CollectionSchema:
        try:
            documents = list(
                self._db()[collection_name].aggregate([{"$sample": {"size": sample_size}}])
            )
        except PyMongoError as e:
            raise SchemaInferenceError(collection_name, str(e)) from e

        return infer_schema_from_documents(collection_name, documents)

    def count_documents(self, collection_name: str, filter: Optional[Dict[str, Any]] = None) -> int:
        try:
            return self._db()[collection_name].count_documents(filter or {})
        except PyMongoError as e:
            raise SourceReadError(collection_name, str(e)) from e

    def stream_documents(
        self,
        collection_name: str,
        filter: Optional[Dict[str, Any]] = None,
        batch_size: int = 1000
    ) -> Iterator[Dict[str, Any]]:
        cursor = self._db()[collection_name].find(filter or {}).batch_size(batch_size)
        try:
            for document in cursor:
                yield document
        except PyMongoError as e:
            raise SourceReadError(collection_name, str(e)) from e
        finally:
            cursor.close()

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
