# ==============================================
# DataSourceStore
# ==============================================
#
# PURPOSE:
#   Read data sources and record the outcome of each import run
#   on them (`data_sources` catalog table).
#
# CLASS: DataSourceStore
# ----------------------
#   Stateful: holds the catalog MySQLClient.
#
#   Methods:
#   --------
#   - create(name, connection_string, owner_id=None) -> DataSource
#   - get(data_source_id) -> DataSource | None
#   - update_sync_status(data_source_id, status, **fields) -> None
#       fields: last_sync_at, sync_error_message, total_records_synced
#
# ==============================================

from typing import Any, Optional

from .models import DataSource, SyncStatus

_UPDATABLE_FIELDS = ("last_sync_at", "sync_error_message", "total_records_synced")


class DataSourceStore:
    def __init__(self, client):
        self.client = client

    def create(self, name: str, connection_string: str, owner_id: Optional[int] = None) -> DataSource:
        data_source_id = self.client.insert(
            "INSERT INTO data_sources (name, connection_string, owner_id, sync_status) "
            "VALUES (%s, %s, %s, %s)",
            (name, connection_string, owner_id, SyncStatus.PENDING.value)
        )
        return DataSource(
            id=data_source_id,
            name=name,
            connection_string=connection_string,
            owner_id=owner_id,
        )

    def get(self, data_source_id: int) -> Optional[DataSource]:
        row = self.client.fetch_one(
            "SELECT id, name, connection_string, owner_id, sync_status, last_sync_at, "
            "sync_error_message, total_records_synced FROM data_sources WHERE id = %s",
            (data_source_id,)
        )
        return DataSource.from_row(row) if row else None

    def update_sync_status(self, data_source_id: int, status: SyncStatus, **fields: Any) -> None:
        """
        Set the sync status of a data source, plus any of the run outcome fields.

        Args:
            data_source_id: Data source to update
            status: New SyncStatus
            **fields: last_sync_at, sync_error_message and/or total_records_synced

        Raises:
            ValueError: On a field that is not part of the run outcome
        """
        unknown = set(fields) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update data source fields: {sorted(unknown)}")

        assignments = ["sync_status = %s"]
        params: list = [status.value]
        for name in _UPDATABLE_FIELDS:
            if name in fields:
                assignments.append(f"{name} = %s")
                params.append(fields[name])
        params.append(data_source_id)

        self.client.execute(
            f"UPDATE data_sources SET {', '.join(assignments)} WHERE id = %s",
            params
        )
