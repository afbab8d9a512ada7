# ==============================================
# Pytest Configuration and Fixtures
# ==============================================
#
# This file contains shared fixtures for all tests.
# No live database is needed: both stores are replaced by
# in-memory fakes that speak the same methods as the real clients.
#
# FAKES:
# ------
# - FakeSource        → MongoSource (collections are plain lists)
# - FakeDestination   → MySQLClient (parses the CREATE TABLE / INSERT
#                       statements we emit, honours transactions and
#                       savepoints, checks values against
#                       column types, rejects "poison" values)
# - FakeCatalogClient → MySQLClient as used by the catalog stores
#                       (records statements, returns canned rows)
# - FakeMetadataStore, FakeDataSourceStore, RecordingHistoryStore
# - RecordingChannel / FailingChannel → progress channels
# - FakeClock
#
# ==============================================

import json
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import pymysql
import pytest
from bson import ObjectId

from docsync.analysis import infer_schema_from_documents
from docsync.errors import MetadataRegistrationError, SchemaInferenceError, SourceConnectionError
from docsync.persistence import DataSource, SyncHistoryStore, SyncStatus, TableMetadataEntry


# ==============================================
# Clock
# ==============================================

class FakeClock:
    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


# ==============================================
# Document source
# ==============================================

class FakeSource:
    def __init__(
        self,
        collections: Dict[str, List[dict]],
        fail_connect: bool = False,
        fail_schema: Optional[set] = None,
    ):
        self.collections = collections
        self.fail_connect = fail_connect
        self.fail_schema = fail_schema or set()
        self.connected = False
        self.disconnected = False
        self.stream_calls: List[Dict[str, Any]] = []

    def connect(self) -> None:
        if self.fail_connect:
            raise SourceConnectionError("Could not connect to MongoDB: refused")
        self.connected = True

    def disconnect(self) -> None:
        self.disconnected = True

    def list_collections(self) -> List[str]:
        return list(self.collections)

    def infer_schema(self, collection_name: str, sample_size: int = 100):
        if collection_name in self.fail_schema:
            raise SchemaInferenceError(collection_name, "cursor killed")
        return infer_schema_from_documents(collection_name, self.collections[collection_name][:sample_size])

    def _matches(self, document: dict, query: dict) -> bool:
        for field_name, condition in query.items():
            value = document.get(field_name)
            if value is None or not value > condition["$gt"]:
                return False
        return True

    def count_documents(self, collection_name: str, filter: Optional[dict] = None) -> int:
        return sum(1 for d in self.collections[collection_name] if self._matches(d, filter or {}))

    def stream_documents(self, collection_name: str, filter: Optional[dict] = None, batch_size: int = 1000):
        self.stream_calls.append({"collection": collection_name, "filter": filter, "batch_size": batch_size})
        for document in self.collections[collection_name]:
            if self._matches(document, filter or {}):
                yield document


def make_documents(count: int, **extra) -> List[dict]:
    """`count` simple documents with distinct ObjectIds."""
    return [
        {"_id": ObjectId(), "name": f"item-{i}", "qty": i, "price": i * 1.5, **extra}
        for i in range(count)
    ]


# ==============================================
# Destination
# ==============================================

_CREATE_RE = re.compile(r"CREATE TABLE IF NOT EXISTS `([^`]+)`\.`([^`]+)` \(\n(.*)\n\)", re.S)
_INSERT_RE = re.compile(r"INSERT INTO `([^`]+)`\.`([^`]+)` \(([^)]*)\) VALUES")
_COLUMN_RE = re.compile(r"^\s*`([^`]+)` (\S+)", re.M)
_VARCHAR_RE = re.compile(r"VARCHAR\((\d+)\)")


def check_column_value(column: str, sql_type: str, value: Any) -> None:
    """Raise DataError where strict-mode MySQL would refuse `value` for `sql_type`."""
    if value is None or sql_type == "TEXT":
        return
    if sql_type.startswith("DATETIME"):
        if not isinstance(value, datetime):
            raise pymysql.err.DataError(1292, f"Incorrect datetime value: '{value}' for column '{column}'")
    elif sql_type in ("BIGINT", "DOUBLE", "BOOLEAN"):
        if isinstance(value, str):
            try:
                float(value)
            except ValueError:
                raise pymysql.err.DataError(
                    1366, f"Incorrect {sql_type.lower()} value: '{value}' for column '{column}'"
                ) from None
    elif sql_type == "JSON":
        try:
            json.loads(value)
        except (TypeError, ValueError):
            raise pymysql.err.DataError(3140, f"Invalid JSON text for column '{column}'") from None
    else:
        match = _VARCHAR_RE.fullmatch(sql_type)
        if match and len(str(value)) > int(match.group(1)):
            raise pymysql.err.DataError(1406, f"Data too long for column '{column}'")


class FakeDestination:
    """
    In-memory MySQLClient.

    Column types come from the CREATE TABLE we emit, and every INSERT
    value is checked against them the way strict-mode MySQL does.
    Values listed in `poison` also make any INSERT that carries them
    fail with a DataError.
    """

    def __init__(self, poison=(), fail_ddl: bool = False):
        self.poison = set(poison)
        self.fail_ddl = fail_ddl
        self.databases = set()
        self.tables: Dict[tuple, Dict[str, Any]] = {}
        self.log: List[str] = []
        self.ddl: List[str] = []
        self.entered = 0
        self.exited = 0
        self._snapshot = None
        self._savepoints: Dict[str, Any] = {}

    # context manager, like MySQLClient
    def __enter__(self):
        self.entered += 1
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.exited += 1

    # helpers for tests
    def create_table(self, schema: str, table: str, columns: List[str],
                     types: Optional[Dict[str, str]] = None) -> None:
        """Columns without a type accept anything, like TEXT."""
        types = types or {}
        self.tables[(schema, table)] = {
            "columns": list(columns),
            "types": {c: types.get(c, "TEXT") for c in columns},
            "rows": {},
        }

    def rows(self, schema: str, table: str) -> Dict[str, dict]:
        return self.tables[(schema, table)]["rows"]

    @property
    def bulk_inserts(self) -> int:
        return sum(1 for entry in self.log if entry.startswith("INSERT"))

    # introspection
    def ensure_database(self, name: str) -> None:
        self.databases.add(name)

    def table_exists(self, schema_name: str, table_name: str) -> bool:
        return (schema_name, table_name) in self.tables

    def get_current_columns(self, schema_name: str, table_name: str) -> Dict[str, str]:
        types = self.tables[(schema_name, table_name)]["types"]
        return {c: t.lower() for c, t in types.items()}

    # transactions
    def _copy_rows(self):
        return {key: dict(table["rows"]) for key, table in self.tables.items()}

    def _restore(self, snapshot) -> None:
        for key, rows in snapshot.items():
            self.tables[key]["rows"] = dict(rows)

    def begin(self) -> None:
        self.log.append("BEGIN")
        self._snapshot = self._copy_rows()
        self._savepoints = {}

    def commit(self) -> None:
        self.log.append("COMMIT")
        self._snapshot = None
        self._savepoints = {}

    def rollback(self) -> None:
        self.log.append("ROLLBACK")
        if self._snapshot is not None:
            self._restore(self._snapshot)
        self._snapshot = None
        self._savepoints = {}

    def savepoint(self, name: str) -> None:
        self.log.append(f"SAVEPOINT {name}")
        self._savepoints[name] = self._copy_rows()

    def release_savepoint(self, name: str) -> None:
        self.log.append(f"RELEASE {name}")
        del self._savepoints[name]

    def rollback_to_savepoint(self, name: str) -> None:
        self.log.append(f"ROLLBACK TO {name}")
        self._restore(self._savepoints[name])

    # statements
    def execute(self, query: str, params=None, commit: bool = True) -> int:
        if query.startswith("CREATE TABLE"):
            return self._create(query)
        if query.startswith("INSERT INTO"):
            return self._upsert(query, tuple(params or ()))
        raise AssertionError(f"unexpected statement: {query}")

    def _create(self, query: str) -> int:
        if self.fail_ddl:
            raise pymysql.err.OperationalError(1142, "CREATE command denied")
        match = _CREATE_RE.match(query)
        assert match, query
        schema, table, body = match.groups()
        self.ddl.append(query)
        if (schema, table) not in self.tables:
            definitions = _COLUMN_RE.findall(body)
            self.create_table(schema, table, [name for name, _ in definitions], dict(definitions))
        return 0

    def _upsert(self, query: str, params: tuple) -> int:
        match = _INSERT_RE.match(query)
        assert match, query
        schema, table, column_sql = match.groups()
        columns = re.findall(r"`([^`]+)`", column_sql)
        assert "ON DUPLICATE KEY UPDATE" in query
        assert len(params) % len(columns) == 0
        self.log.append(f"INSERT {len(params) // len(columns)}")

        target = self.tables[(schema, table)]
        unknown = [c for c in columns if c not in target["columns"]]
        if unknown:
            raise pymysql.err.OperationalError(1054, f"Unknown column '{unknown[0]}'")

        rows = [
            dict(zip(columns, params[i:i + len(columns)]))
            for i in range(0, len(params), len(columns))
        ]
        for row in rows:
            for column, value in row.items():
                if isinstance(value, str) and value in self.poison:
                    raise pymysql.err.DataError(1292, f"Incorrect value: '{value}'")
                check_column_value(column, target["types"][column], value)

        for row in rows:
            existing = target["rows"].get(row["_id"], {})
            target["rows"][row["_id"]] = {**existing, **row}
        return len(rows)


# ==============================================
# Catalog
# ==============================================

class FakeCatalogClient:
    """Records statements; returns `rows` for every SELECT."""

    def __init__(self, rows: Optional[List[dict]] = None, rowcount: int = 1, error: Exception = None):
        self.rows = rows or []
        self.rowcount = rowcount
        self.error = error
        self.statements: List[tuple] = []
        self.next_id = 1

    def _maybe_fail(self) -> None:
        if self.error is not None:
            raise self.error

    def execute(self, query: str, params=None, commit: bool = True) -> int:
        self._maybe_fail()
        self.statements.append((query, tuple(params) if params else ()))
        return self.rowcount

    def insert(self, query: str, params=None) -> int:
        self._maybe_fail()
        self.statements.append((query, tuple(params) if params else ()))
        row_id = self.next_id
        self.next_id += 1
        return row_id

    def fetch_all(self, query: str, params=None) -> List[dict]:
        self._maybe_fail()
        self.statements.append((query, tuple(params) if params else ()))
        return list(self.rows)

    def fetch_one(self, query: str, params=None) -> Optional[dict]:
        rows = self.fetch_all(query, params)
        return rows[0] if rows else None


class FakeMetadataStore:
    def __init__(self, fail: bool = False):
        self.entries: Dict[tuple, TableMetadataEntry] = {}
        self.fail = fail
        self.register_calls = 0

    def exists(self, schema_name: str, physical_table_name: str) -> bool:
        return (schema_name, physical_table_name) in self.entries

    def register(self, data_source_id, owner_id, schema_name, physical_table_name, logical_name) -> None:
        self.register_calls += 1
        if self.fail:
            raise MetadataRegistrationError("catalog is read-only")
        self.entries[(schema_name, physical_table_name)] = TableMetadataEntry(
            data_source_id=data_source_id,
            owner_id=owner_id,
            schema_name=schema_name,
            physical_table_name=physical_table_name,
            logical_name=logical_name,
        )

    def list_for_data_source(self, data_source_id: int) -> List[TableMetadataEntry]:
        return [e for e in self.entries.values() if e.data_source_id == data_source_id]


class FakeDataSourceStore:
    def __init__(self, *data_sources: DataSource):
        self.data_sources = {ds.id: ds for ds in data_sources}
        self.updates: List[tuple] = []

    def get(self, data_source_id: int) -> Optional[DataSource]:
        return self.data_sources.get(data_source_id)

    def update_sync_status(self, data_source_id: int, status: SyncStatus, **fields) -> None:
        self.updates.append((status, fields))
        data_source = self.data_sources[data_source_id]
        data_source.sync_status = status
        for name, value in fields.items():
            setattr(data_source, name, value)


class RecordingHistoryStore(SyncHistoryStore):
    """The real store on a FakeCatalogClient, keeping every record it creates."""

    def __init__(self, clock=None):
        super().__init__(FakeCatalogClient(), clock=clock or FakeClock())
        self.records = []

    def create(self, *args, **kwargs):
        record = super().create(*args, **kwargs)
        self.records.append(record)
        return record


# ==============================================
# Progress
# ==============================================

class RecordingChannel:
    def __init__(self):
        self.events: List[tuple] = []

    def publish(self, target, event, payload) -> None:
        self.events.append((target, event, payload))

    @property
    def payloads(self) -> List[dict]:
        return [payload for _, _, payload in self.events]


class FailingChannel:
    def __init__(self):
        self.calls = 0

    def publish(self, target, event, payload) -> None:
        self.calls += 1
        raise ConnectionError("socket closed")


# ==============================================
# Fixtures
# ==============================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def destination():
    return FakeDestination()


@pytest.fixture
def metadata_store():
    return FakeMetadataStore()


@pytest.fixture
def history_store(clock):
    return RecordingHistoryStore(clock)


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def data_source():
    return DataSource(id=7, name="shop", connection_string="mongodb://localhost:27017/shop", owner_id=42)


@pytest.fixture
def sample_document():
    """A document exercising every kind."""
    return {
        "_id": ObjectId("65a1b2c3d4e5f6a7b8c9d0e1"),
        "name": "Widget",
        "qty": 3,
        "price": 9.99,
        "active": True,
        "created_at": datetime(2024, 1, 15, 10, 30),
        "owner": ObjectId("65a1b2c3d4e5f6a7b8c9d0ff"),
        "tags": ["a", "b"],
        "address": {"city": "Pune", "zip": "411001"},
        "note": None,
    }
