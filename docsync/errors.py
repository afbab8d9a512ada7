# ==============================================
# Errors
# ==============================================
#
# PURPOSE:
#   One exception per failure kind of an import run. Each kind
#   has a fixed recovery policy:
#
#   ┌──────────────────────────┬──────────────────────────────────────┐
#   │ SourceConnectionError    │ fatal to the run                     │
#   │ SchemaInferenceError     │ fails the collection, then the run   │
#   │ SourceReadError          │ fails the collection, then the run   │
#   │ FlattenError             │ document skipped, counted as failed  │
#   │ BulkWriteError           │ batch retried row by row             │
#   │ RowWriteError            │ savepoint rollback, counted failed   │
#   │ MetadataRegistrationError│ logged, never fails the import       │
#   │ TableCreationError       │ fatal to the collection              │
#   └──────────────────────────┴──────────────────────────────────────┘
#
# ==============================================

from typing import Any, Optional


class DocSyncError(Exception):
    """Base class for every error raised by the import engine."""


class SourceConnectionError(DocSyncError):
    """The document store could not be reached."""


class SchemaInferenceError(DocSyncError):
    """Sampling a collection to infer its schema failed."""

    def __init__(self, collection_name: str, message: str):
        super().__init__(f"Schema inference failed for '{collection_name}': {message}")
        self.collection_name = collection_name


class SourceReadError(DocSyncError):
    """Counting or reading the documents of a collection failed."""

    def __init__(self, collection_name: str, message: str):
        super().__init__(f"Reading '{collection_name}' failed: {message}")
        self.collection_name = collection_name


class FlattenError(DocSyncError):
    """A single document could not be turned into a row."""

    def __init__(self, document_id: Optional[Any], message: str):
        super().__init__(f"Cannot flatten document {document_id}: {message}")
        self.document_id = document_id


class BulkWriteError(DocSyncError):
    """The multi-row upsert for a batch was rejected."""

    def __init__(self, table_name: str, batch_size: int, message: str):
        super().__init__(f"Bulk upsert of {batch_size} rows into {table_name} failed: {message}")
        self.table_name = table_name
        self.batch_size = batch_size


class RowWriteError(DocSyncError):
    """A single-row upsert failed during the row-by-row fallback."""

    def __init__(self, document_id: Optional[Any], message: str):
        super().__init__(f"Upsert of document {document_id} failed: {message}")
        self.document_id = document_id


class MetadataRegistrationError(DocSyncError):
    """Writing a table metadata entry to the catalog failed."""


class TableCreationError(DocSyncError):
    """Creating a destination table failed."""

    def __init__(self, table_name: str, message: str):
        super().__init__(f"Cannot create table {table_name}: {message}")
        self.table_name = table_name
