# ==============================================
# MySQLClient
# ==============================================
#
# PURPOSE:
#   Manages one MySQL connection and every SQL primitive the
#   import engine needs: DDL, parameterized statements, explicit
#   transactions, savepoints and table introspection.
#
# WHY THIS CLASS EXISTS:
#   The batch writer depends on precise transaction control (one
#   transaction per batch, one savepoint per row in the fallback
#   path). pymysql gives us that, but only if autocommit is off
#   and nothing else commits behind our back. This class owns
#   that discipline.
#
# CLASS: MySQLClient
# ------------------
#   Stateful: holds connection to MySQL.
#
#   Constructor:
#   ------------
#   - __init__(host, port, user, password, database, connect_timeout=10)
#       Store connection params. Don't connect yet.
#
#   Methods:
#   --------
#   - connect() / disconnect()
#   - ensure_database(name) -> None         CREATE DATABASE IF NOT EXISTS
#   - table_exists(schema, table) -> bool   INFORMATION_SCHEMA.TABLES
#   - get_current_columns(schema, table) -> dict[str, str]
#   - begin() / commit() / rollback()
#   - savepoint(name) / release_savepoint(name) / rollback_to_savepoint(name)
#   - execute(query, params=None, commit=True) -> int (affected rows)
#   - insert(query, params=None) -> int (AUTO_INCREMENT id)
#   - fetch_all(query, params=None) -> list[dict]
#   - fetch_one(query, params=None) -> dict | None
#
#   Context Manager:
#   ----------------
#   - __enter__ / __exit__ for `with MySQLClient(...) as db:` usage.
#
# ==============================================

from typing import Any, Dict, List, Optional, Sequence, cast

import pymysql
import pymysql.cursors
import structlog

from docsync.config import MySQLConfig
from docsync.normalization import quote_identifier

logger = structlog.get_logger()


class MySQLClient:
    def __init__(self, host, port, user, password, database, connect_timeout=10):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.database = database
        self.connect_timeout = connect_timeout
        self.connection = None

    @classmethod
    def from_config(cls, config: MySQLConfig) -> "MySQLClient":
        return cls(
            host=config.host,
            port=config.port,
            user=config.user,
            password=config.password,
            database=config.database,
            connect_timeout=config.connect_timeout,
        )

    def connect(self) -> None:
        # Establish connection to MySQL, create database if it doesn't exist
        self.connection = pymysql.connect(
            host=self.host,
            port=self.port,
            user=self.user,
            password=self.password,
            charset="utf8mb4",
            autocommit=False,
            connect_timeout=self.connect_timeout,
        )
        self.ensure_database(self.database)
        self.connection.select_db(self.database)

    def disconnect(self) -> None:
        # Close connection cleanly
        if self.connection:
            self.connection.close()
            self.connection = None

    def _require_connection(self):
        if self.connection is None:
            raise RuntimeError("Not connected to MySQL")
        return self.connection

    def ensure_database(self, name: str) -> None:
        self.execute(f"CREATE DATABASE IF NOT EXISTS {quote_identifier(name)} CHARACTER SET utf8mb4")

    def table_exists(self, schema_name: str, table_name: str) -> bool:
        row = self.fetch_one(
            "SELECT COUNT(*) AS cnt FROM INFORMATION_SCHEMA.TABLES "
            "WHERE TABLE_SCHEMA = %s AND TABLE_NAME = %s",
            (schema_name, table_name)
        )
        if row is None:
            raise RuntimeError("COUNT query returned no rows")
        return row["cnt"] > 0

    def get_current_columns(self, schema_name: str, table_name: str) -> Dict[str, str]:
        # Query INFORMATION_SCHEMA to get current column names and types
        rows = self.fetch_all(
            "SELECT COLUMN_NAME, DATA_TYPE FROM INFORMATION_SCHEMA.COLUMNS "
            "WHERE TABLE_SCHEMA = %s AND TABLE_NAME = %s ORDER BY ORDINAL_POSITION",
            (schema_name, table_name)
        )
        return {str(row["COLUMN_NAME"]): str(row["DATA_TYPE"]) for row in rows}

    # --- Transactions ---

    def begin(self) -> None:
        self._require_connection().begin()

    def commit(self) -> None:
        self._require_connection().commit()

    def rollback(self) -> None:
        self._require_connection().rollback()

    def savepoint(self, name: str) -> None:
        self.execute(f"SAVEPOINT {quote_identifier(name)}", commit=False)

    def release_savepoint(self, name: str) -> None:
        self.execute(f"RELEASE SAVEPOINT {quote_identifier(name)}", commit=False)

    def rollback_to_savepoint(self, name: str) -> None:
        self.execute(f"ROLLBACK TO SAVEPOINT {quote_identifier(name)}", commit=False)

    # --- Statements ---

    def execute(self, query: str, params: Optional[Sequence[Any]] = None, commit: bool = True) -> int:
        # Execute a statement; inside an explicit transaction pass commit=False
        connection = self._require_connection()
        with connection.cursor() as cursor:
            if params:
                affected = cursor.execute(query, tuple(params))
            else:
                affected = cursor.execute(query)
        if commit:
            connection.commit()
        return affected

    def insert(self, query: str, params: Optional[Sequence[Any]] = None) -> int:
        # Execute a single INSERT, commit, and return the generated id
        connection = self._require_connection()
        with connection.cursor() as cursor:
            cursor.execute(query, tuple(params) if params else None)
            row_id = cursor.lastrowid
        connection.commit()
        return row_id

    def fetch_all(self, query: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        # Execute SELECT and return rows as dicts
        connection = self._require_connection()
        with connection.cursor(pymysql.cursors.DictCursor) as cursor:
            if params is not None:
                cursor.execute(query, tuple(params))
            else:
                cursor.execute(query)
            return cast(List[Dict[str, Any]], list(cursor.fetchall()))

    def fetch_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        rows = self.fetch_all(query, params)
        return rows[0] if rows else None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
