# ==============================================
# TypeMapper
# ==============================================
#
# PURPOSE:
#   Map inferred document field kinds to MySQL column types, and
#   decide which fields of a collection become real columns.
#
# ENUMS:
# ------
# - FieldKind(Enum): string, integer, double, boolean, date,
#                    objectid, array, object, null, mixed
#
# FUNCTIONS:
# ----------
# - map_type(kind) -> str
#       Fixed table, never raises:
#         string   → TEXT
#         integer  → BIGINT
#         double   → DOUBLE
#         boolean  → BOOLEAN
#         date     → DATETIME(6)
#         objectid → VARCHAR(24)
#         array    → JSON
#         object   → JSON
#         null     → TEXT
#         mixed    → TEXT   (anything unrecognised lands here too)
#
# - plan_columns(fields) -> list[ColumnSpec]
#       Which inferred fields get a column:
#         - never "_id" (it is the primary key)
#         - never a dotted path (nested values stay in _source_document)
#         - first field wins when two names sanitize to the same identifier
#
# ==============================================

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Iterable, List, Optional, Union

import structlog

from .identifier import sanitize_identifier

if TYPE_CHECKING:
    from docsync.analysis.schema_sampler import FieldDescriptor

logger = structlog.get_logger()

ID_FIELD = "_id"
IMPORTED_AT_COLUMN = "_imported_at"
SOURCE_DOCUMENT_COLUMN = "_source_document"


class FieldKind(Enum):
    """Inferred kind of a document field."""
    STRING = "string"
    INTEGER = "integer"
    DOUBLE = "double"
    BOOLEAN = "boolean"
    DATE = "date"
    OBJECTID = "objectid"
    ARRAY = "array"
    OBJECT = "object"
    NULL = "null"
    MIXED = "mixed"


TYPE_MAP = {
    FieldKind.STRING: "TEXT",
    FieldKind.INTEGER: "BIGINT",
    FieldKind.DOUBLE: "DOUBLE",
    FieldKind.BOOLEAN: "BOOLEAN",
    FieldKind.DATE: "DATETIME(6)",
    FieldKind.OBJECTID: "VARCHAR(24)",
    FieldKind.ARRAY: "JSON",
    FieldKind.OBJECT: "JSON",
    FieldKind.NULL: "TEXT",
    FieldKind.MIXED: "TEXT",
}

ID_COLUMN_TYPE = "VARCHAR(24)"
IMPORTED_AT_COLUMN_TYPE = "DATETIME(6)"
SOURCE_DOCUMENT_COLUMN_TYPE = "JSON"


def to_kind(value: Union[FieldKind, str, None]) -> FieldKind:
    """Coerce a kind or its string value; unknown strings become MIXED."""
    if isinstance(value, FieldKind):
        return value
    try:
        return FieldKind(str(value).lower())
    except ValueError:
        return FieldKind.MIXED


def map_type(kind: Union[FieldKind, str, None]) -> str:
    """Return the MySQL column type for an inferred kind."""
    return TYPE_MAP.get(to_kind(kind), "TEXT")


@dataclass(frozen=True)
class ColumnSpec:
    """One document field that is stored in its own column."""
    field_name: str   # original top-level key in the document
    column_name: str  # sanitized identifier
    kind: FieldKind

    @property
    def sql_type(self) -> str:
        return map_type(self.kind)


def plan_columns(
    fields: Iterable["FieldDescriptor"],
    existing_columns: Optional[Iterable[str]] = None
) -> List[ColumnSpec]:
    """
    Decide the column set for a collection.

    Args:
        fields: Inferred fields in first-seen order
        existing_columns: When given, only columns already present in
                          the table are kept (the table is never altered)

    Returns:
        Ordered list of ColumnSpec
    """
    allowed = set(existing_columns) if existing_columns is not None else None
    columns: List[ColumnSpec] = []
    seen = set()

    for field in fields:
        name = field.field_name
        if name == ID_FIELD or "." in name:
            continue

        column_name = sanitize_identifier(name)
        if column_name in seen or column_name in (IMPORTED_AT_COLUMN, SOURCE_DOCUMENT_COLUMN, ID_FIELD):
            logger.info("Skipping duplicate column", column=column_name, field=name)
            continue
        seen.add(column_name)

        if allowed is not None and column_name not in allowed:
            continue

        columns.append(ColumnSpec(field_name=name, column_name=column_name, kind=to_kind(field.kind)))

    return columns
