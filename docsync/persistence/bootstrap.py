"""
Catalog table DDL.

The catalog lives in the configured MySQL database (MYSQL_DATABASE),
next to, but separate from, the schema imported tables are written to.
"""

import structlog

logger = structlog.get_logger()

DATA_SOURCES_DDL = """
CREATE TABLE IF NOT EXISTS data_sources (
  id INT AUTO_INCREMENT PRIMARY KEY,
  name VARCHAR(255) NOT NULL,
  connection_string TEXT NOT NULL,
  owner_id INT NULL,
  sync_status VARCHAR(32) NOT NULL DEFAULT 'pending',
  last_sync_at DATETIME(6) NULL,
  sync_error_message TEXT NULL,
  total_records_synced BIGINT NOT NULL DEFAULT 0,
  created_at DATETIME(6) NOT NULL DEFAULT CURRENT_TIMESTAMP(6)
) CHARACTER SET utf8mb4
"""

TABLE_METADATA_DDL = """
CREATE TABLE IF NOT EXISTS table_metadata (
  id INT AUTO_INCREMENT PRIMARY KEY,
  data_source_id INT NOT NULL,
  owner_id INT NULL,
  schema_name VARCHAR(64) NOT NULL,
  physical_table_name VARCHAR(64) NOT NULL,
  logical_name VARCHAR(255) NOT NULL,
  created_at DATETIME(6) NOT NULL DEFAULT CURRENT_TIMESTAMP(6),
  UNIQUE KEY uq_table_metadata_table (schema_name, physical_table_name),
  KEY ix_table_metadata_source (data_source_id)
) CHARACTER SET utf8mb4
"""

SYNC_HISTORY_DDL = """
CREATE TABLE IF NOT EXISTS sync_history (
  id INT AUTO_INCREMENT PRIMARY KEY,
  data_source_id INT NOT NULL,
  collection_name VARCHAR(255) NOT NULL,
  table_name VARCHAR(64) NOT NULL,
  sync_type VARCHAR(32) NOT NULL,
  status VARCHAR(32) NOT NULL,
  records_synced BIGINT NOT NULL DEFAULT 0,
  records_failed BIGINT NOT NULL DEFAULT 0,
  started_at DATETIME(6) NOT NULL,
  completed_at DATETIME(6) NULL,
  duration_ms BIGINT NULL,
  error_message TEXT NULL,
  KEY ix_sync_history_source_started (data_source_id, started_at)
) CHARACTER SET utf8mb4
"""

CATALOG_DDL = {
    "data_sources": DATA_SOURCES_DDL,
    "table_metadata": TABLE_METADATA_DDL,
    "sync_history": SYNC_HISTORY_DDL,
}


def ensure_catalog_tables(client) -> None:
    """Create every catalog table that does not exist yet."""
    for name, ddl in CATALOG_DDL.items():
        client.execute(ddl)
        logger.debug("Catalog table ready", table=name)
