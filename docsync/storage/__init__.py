# ==============================================
# TOPIC 3: STORAGE
# ==============================================
#
# This package talks to both databases: MongoDB as the source of
# documents and MySQL as the destination of rows.
#
# Modules:
# --------
# - mongo_client.py  → MongoSource (list, sample, count, stream)
# - mysql_client.py  → MySQLClient (SQL, transactions, savepoints)
# - table_manager.py → TargetTable, TableManager.ensure_table()
# - batch_writer.py  → BatchResult, BatchWriter.write_batch()
#
# ==============================================

from .mongo_client import MongoSource
from .mysql_client import MySQLClient
from .table_manager import TargetTable, TableManager, build_create_table
from .batch_writer import BatchResult, BatchWriter, build_upsert

__all__ = [
    "MongoSource",
    "MySQLClient",
    "TargetTable",
    "TableManager",
    "build_create_table",
    "BatchResult",
    "BatchWriter",
    "build_upsert",
]
