# ==============================================
# TableManager
# ==============================================
#
# PURPOSE:
#   Make sure the destination table for one collection exists and
#   is discoverable in the table_metadata catalog.
#
# WHY THIS CLASS EXISTS:
#   A table is created once, the first time its collection is
#   imported, and is never altered afterwards. Later runs write
#   into whatever columns it has; fields that appeared since the
#   table was created only live in _source_document.
#
# CLASS: TableManager
# -------------------
#   Stateful: holds the destination client and metadata store.
#
#   Constructor:
#   ------------
#   - __init__(destination: MySQLClient,
#              metadata_store: TableMetadataStore,
#              schema_name: str = "mongodb_import")
#
#   Methods:
#   --------
#   - ensure_table(physical_name, fields, source_id, owner_id,
#                  collection_name) -> TargetTable
#       Table absent  → CREATE TABLE, then register metadata.
#       Table present → no DDL; keep only columns that exist,
#                       backfill metadata if it is missing.
#       DDL failure raises TableCreationError.
#       Metadata failures are logged and never raised.
#
#   - build_create_table(schema_name, table_name, columns) -> str
#
# TABLE LAYOUT:
# -------------
#   _id              VARCHAR(24) PRIMARY KEY
#   <planned columns, one per top-level field>
#   _imported_at     DATETIME(6)
#   _source_document JSON   (the whole original document)
#
# ==============================================

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

import pymysql
import structlog

from docsync.errors import MetadataRegistrationError, TableCreationError
from docsync.normalization import ColumnSpec, plan_columns, qualified_name, quote_identifier, row_columns
from docsync.normalization.type_mapper import (
    ID_FIELD,
    ID_COLUMN_TYPE,
    IMPORTED_AT_COLUMN,
    IMPORTED_AT_COLUMN_TYPE,
    SOURCE_DOCUMENT_COLUMN,
    SOURCE_DOCUMENT_COLUMN_TYPE,
)

logger = structlog.get_logger()


@dataclass
class TargetTable:
    """A destination table and the document fields that have a column in it."""
    schema_name: str
    table_name: str
    columns: List[ColumnSpec] = field(default_factory=list)
    created: bool = False  # True when this call issued the CREATE TABLE

    @property
    def qualified_name(self) -> str:
        return qualified_name(self.schema_name, self.table_name)

    @property
    def row_columns(self) -> List[str]:
        return row_columns(self.columns)


def build_create_table(schema_name: str, table_name: str, columns: Sequence[ColumnSpec]) -> str:
    lines = [f"  {quote_identifier(ID_FIELD)} {ID_COLUMN_TYPE} NOT NULL PRIMARY KEY"]
    for column in columns:
        lines.append(f"  {quote_identifier(column.column_name)} {column.sql_type} NULL")
    lines.append(f"  {quote_identifier(IMPORTED_AT_COLUMN)} {IMPORTED_AT_COLUMN_TYPE} NULL")
    lines.append(f"  {quote_identifier(SOURCE_DOCUMENT_COLUMN)} {SOURCE_DOCUMENT_COLUMN_TYPE} NULL")
    body = ",\n".join(lines)
    return (
        f"CREATE TABLE IF NOT EXISTS {qualified_name(schema_name, table_name)} (\n"
        f"{body}\n"
        f") CHARACTER SET utf8mb4"
    )


class TableManager:
    def __init__(self, destination, metadata_store, schema_name: str = "mongodb_import"):
        self.destination = destination
        self.metadata_store = metadata_store
        self.schema_name = schema_name

    def ensure_table(
        self,
        physical_name: str,
        fields: Iterable,
        source_id: int,
        owner_id: Optional[int],
        collection_name: str
    ) -> TargetTable:
        """
        Create the destination table if needed and return its layout.

        Args:
            physical_name: Table name from generate_table_name()
            fields: FieldDescriptors inferred for the collection
            source_id: Owning data source id
            owner_id: Owning user id (may be None)
            collection_name: Logical name recorded in table_metadata

        Returns:
            TargetTable whose columns all physically exist
        """
        fields = list(fields)
        self.destination.ensure_database(self.schema_name)

        if not self.destination.table_exists(self.schema_name, physical_name):
            columns = plan_columns(fields)
            ddl = build_create_table(self.schema_name, physical_name, columns)
            try:
                self.destination.execute(ddl)
            except pymysql.MySQLError as e:
                logger.error("Table creation failed", table=physical_name, error=str(e))
                raise TableCreationError(physical_name, str(e)) from e

            logger.info(
                "Created destination table",
                schema=self.schema_name,
                table=physical_name,
                columns=len(columns),
            )
            self._register(source_id, owner_id, physical_name, collection_name)
            return TargetTable(self.schema_name, physical_name, columns, created=True)

        # Existing table: schema is frozen, write only into columns it has
        existing = self.destination.get_current_columns(self.schema_name, physical_name)
        columns = plan_columns(fields, existing_columns=existing.keys())
        dropped = len(plan_columns(fields)) - len(columns)
        if dropped:
            logger.info(
                "Fields without a column kept in _source_document only",
                table=physical_name,
                fields=dropped,
            )
        self._backfill(source_id, owner_id, physical_name, collection_name)
        return TargetTable(self.schema_name, physical_name, columns, created=False)

    def _register(self, source_id, owner_id, physical_name: str, collection_name: str) -> None:
        try:
            self.metadata_store.register(
                data_source_id=source_id,
                owner_id=owner_id,
                schema_name=self.schema_name,
                physical_table_name=physical_name,
                logical_name=collection_name,
            )
        except MetadataRegistrationError as e:
            logger.warning("Table metadata registration failed", table=physical_name, error=str(e))

    def _backfill(self, source_id, owner_id, physical_name: str, collection_name: str) -> None:
        try:
            if self.metadata_store.exists(self.schema_name, physical_name):
                return
        except MetadataRegistrationError as e:
            logger.warning("Table metadata lookup failed", table=physical_name, error=str(e))
            return

        logger.info("Backfilling table metadata", table=physical_name)
        self._register(source_id, owner_id, physical_name, collection_name)
