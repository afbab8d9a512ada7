# ==============================================
# TableMetadataStore
# ==============================================
#
# PURPOSE:
#   Keep the `table_metadata` catalog: one entry per imported
#   table, so tools that build models on top of the imported data
#   can find which tables came from which data source.
#
# WHY THIS CLASS EXISTS:
#   Physical table names are generated (sanitized collection name
#   plus the data source id). The catalog maps them back to the
#   collection they came from.
#
# CLASS: TableMetadataStore
# -------------------------
#   Stateful: holds the catalog MySQLClient.
#
#   Methods:
#   --------
#   - exists(schema_name, physical_table_name) -> bool
#   - register(data_source_id, owner_id, schema_name,
#              physical_table_name, logical_name) -> None
#       Idempotent: (schema_name, physical_table_name) is unique,
#       re-registering refreshes the logical name.
#   - list_for_data_source(data_source_id) -> list[TableMetadataEntry]
#
#   Every driver error is raised as MetadataRegistrationError.
#
# ==============================================

from typing import List, Optional

import pymysql

from docsync.errors import MetadataRegistrationError
from .models import TableMetadataEntry


class TableMetadataStore:
    def __init__(self, client):
        self.client = client

    def exists(self, schema_name: str, physical_table_name: str) -> bool:
        try:
            row = self.client.fetch_one(
                "SELECT COUNT(*) AS cnt FROM table_metadata "
                "WHERE schema_name = %s AND physical_table_name = %s",
                (schema_name, physical_table_name)
            )
        except pymysql.MySQLError as e:
            raise MetadataRegistrationError(f"Metadata lookup failed: {e}") from e
        return bool(row and row["cnt"])

    def register(
        self,
        data_source_id: int,
        owner_id: Optional[int],
        schema_name: str,
        physical_table_name: str,
        logical_name: str
    ) -> None:
        try:
            self.client.execute(
                "INSERT INTO table_metadata "
                "(data_source_id, owner_id, schema_name, physical_table_name, logical_name) "
                "VALUES (%s, %s, %s, %s, %s) "
                "ON DUPLICATE KEY UPDATE logical_name = VALUES(logical_name)",
                (data_source_id, owner_id, schema_name, physical_table_name, logical_name)
            )
        except pymysql.MySQLError as e:
            raise MetadataRegistrationError(
                f"Cannot register {schema_name}.{physical_table_name}: {e}"
            ) from e

    def list_for_data_source(self, data_source_id: int) -> List[TableMetadataEntry]:
        rows = self.client.fetch_all(
            "SELECT id, data_source_id, owner_id, schema_name, physical_table_name, "
            "logical_name, created_at FROM table_metadata "
            "WHERE data_source_id = %s ORDER BY id",
            (data_source_id,)
        )
        return [TableMetadataEntry.from_row(row) for row in rows]
