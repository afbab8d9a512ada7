# ==============================================
# BatchWriter
# ==============================================
#
# PURPOSE:
#   Write one batch of documents into a destination table as a
#   single multi-row upsert, and fall back to row-by-row writes
#   when that statement fails.
#
# WHY THIS CLASS EXISTS:
#   One malformed value anywhere in a batch makes the whole
#   multi-row statement fail. Without a fallback every other
#   document of that batch would be lost.
#
# ALGORITHM:
# ----------
#   1. Flatten every document on its own. Failures are logged and
#      counted as failed, the rest continue.
#   2. BEGIN; INSERT ... VALUES (..),(..) ON DUPLICATE KEY UPDATE; COMMIT
#   3. If step 2 fails → ROLLBACK, then:
#        BEGIN
#        for each row:
#            SAVEPOINT sp_row_i
#            single-row upsert
#            RELEASE SAVEPOINT sp_row_i       (ok)
#            ROLLBACK TO SAVEPOINT sp_row_i   (failed, counted)
#        COMMIT
#
#   success_count + failed_count == len(documents), always.
#
# ==============================================

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Sequence, Tuple

import pymysql
import structlog

from docsync.errors import BulkWriteError, FlattenError, RowWriteError
from docsync.normalization import DocumentFlattener, quote_identifier
from docsync.normalization.type_mapper import ID_FIELD

logger = structlog.get_logger()


@dataclass
class BatchResult:
    success_count: int = 0
    failed_count: int = 0
    used_fallback: bool = False

    @property
    def total(self) -> int:
        return self.success_count + self.failed_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success_count": self.success_count,
            "failed_count": self.failed_count,
            "used_fallback": self.used_fallback,
        }


def build_upsert(table, row_count: int) -> str:
    """Multi-row INSERT ... ON DUPLICATE KEY UPDATE for `row_count` rows."""
    columns = [quote_identifier(c) for c in table.row_columns]
    placeholders = "(" + ", ".join(["%s"] * len(columns)) + ")"
    values = ", ".join([placeholders] * row_count)
    key = quote_identifier(ID_FIELD)
    update_clause = ", ".join(f"{c} = VALUES({c})" for c in columns if c != key)
    return (
        f"INSERT INTO {table.qualified_name} ({', '.join(columns)}) "
        f"VALUES {values} "
        f"ON DUPLICATE KEY UPDATE {update_clause}"
    )


class BatchWriter:
    def __init__(self, destination):
        self.destination = destination

    def write_batch(self, table, documents: Sequence[Mapping[str, Any]]) -> BatchResult:
        """
        Upsert a batch of documents into `table`.

        Args:
            table: TargetTable returned by TableManager.ensure_table()
            documents: Raw documents from the source cursor

        Returns:
            BatchResult with success and failure counts
        """
        result = BatchResult()
        rows = self._flatten_all(table, documents, result)
        if not rows:
            return result

        try:
            self._write_bulk(table, rows)
            result.success_count += len(rows)
            return result
        except BulkWriteError as e:
            logger.warning(
                "Bulk upsert failed, retrying row by row",
                table=table.table_name,
                rows=len(rows),
                error=str(e),
            )

        result.used_fallback = True
        succeeded, failed = self._write_rows(table, rows)
        result.success_count += succeeded
        result.failed_count += failed
        return result

    def _flatten_all(self, table, documents, result: BatchResult) -> List[Dict[str, Any]]:
        flattener = DocumentFlattener(table.columns)
        imported_at = datetime.now(timezone.utc).replace(tzinfo=None)
        rows = []
        for document in documents:
            try:
                rows.append(flattener.flatten(document, imported_at))
            except FlattenError as e:
                logger.warning("Failed to flatten document", document_id=e.document_id, error=str(e))
                result.failed_count += 1
        return rows

    def _params(self, table, rows: Sequence[Dict[str, Any]]) -> Tuple[Any, ...]:
        names = table.row_columns
        return tuple(row.get(name) for row in rows for name in names)

    def _write_bulk(self, table, rows: List[Dict[str, Any]]) -> None:
        query = build_upsert(table, len(rows))
        self.destination.begin()
        try:
            self.destination.execute(query, self._params(table, rows), commit=False)
            self.destination.commit()
        except pymysql.MySQLError as e:
            self.destination.rollback()
            raise BulkWriteError(table.table_name, len(rows), str(e)) from e

    def _write_rows(self, table, rows: List[Dict[str, Any]]) -> Tuple[int, int]:
        query = build_upsert(table, 1)
        succeeded = 0
        failed = 0

        self.destination.begin()
        try:
            for i, row in enumerate(rows):
                savepoint = f"sp_row_{i}"
                self.destination.savepoint(savepoint)
                try:
                    self.destination.execute(query, self._params(table, [row]), commit=False)
                except pymysql.MySQLError as e:
                    self.destination.rollback_to_savepoint(savepoint)
                    error = RowWriteError(row.get(ID_FIELD), str(e))
                    logger.warning("Row upsert failed", table=table.table_name, error=str(error))
                    failed += 1
                    continue
                self.destination.release_savepoint(savepoint)
                succeeded += 1
            self.destination.commit()
        except pymysql.MySQLError:
            self.destination.rollback()
            raise

        return succeeded, failed
