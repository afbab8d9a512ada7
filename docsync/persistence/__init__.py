# ==============================================
# TOPIC 4: PERSISTENCE
# ==============================================
#
# This package owns the catalog tables in the MySQL catalog
# database. They outlive any single run: which data sources
# exist, which tables were imported for them, and the history
# of every collection import.
#
# Modules:
# --------
# - models.py            → DataSource, TableMetadataEntry, SyncHistoryRecord
# - bootstrap.py         → ensure_catalog_tables()
# - data_source_store.py → DataSourceStore
# - metadata_store.py    → TableMetadataStore
# - sync_history.py      → SyncHistoryStore
#
# ==============================================

from .models import (
    DataSource,
    SyncHistoryRecord,
    SyncStatus,
    SyncType,
    TableMetadataEntry,
    terminal_status,
    utcnow,
)
from .bootstrap import ensure_catalog_tables
from .data_source_store import DataSourceStore
from .metadata_store import TableMetadataStore
from .sync_history import SyncHistoryStore

__all__ = [
    "DataSource",
    "SyncHistoryRecord",
    "SyncStatus",
    "SyncType",
    "TableMetadataEntry",
    "terminal_status",
    "utcnow",
    "ensure_catalog_tables",
    "DataSourceStore",
    "TableMetadataStore",
    "SyncHistoryStore",
]
