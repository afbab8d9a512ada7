from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from bson import json_util
from bson.decimal128 import Decimal128

from docsync.errors import FlattenError
from .type_detector import TypeDetector
from .type_mapper import (
    ColumnSpec,
    FieldKind,
    ID_FIELD,
    IMPORTED_AT_COLUMN,
    SOURCE_DOCUMENT_COLUMN,
)

_PRIMITIVES = (str, int, float, bool, Decimal)


def row_columns(columns: Sequence[ColumnSpec]) -> List[str]:
    """Column order of every row produced by DocumentFlattener."""
    return [ID_FIELD, IMPORTED_AT_COLUMN, SOURCE_DOCUMENT_COLUMN] + [c.column_name for c in columns]


def to_extended_json(value: Any) -> str:
    return json_util.dumps(value)


class DocumentFlattener:
    """
    Turns a document into a flat row for the destination table.

    Top-level fields that have a column are coerced by their inferred kind;
    everything, including nested fields and fields without a column, stays
    available in the _source_document JSON column.
    """

    def __init__(self, columns: Sequence[ColumnSpec], type_detector: Optional[TypeDetector] = None):
        self.columns = list(columns)
        self.type_detector = type_detector or TypeDetector()

    def flatten(self, document: Mapping[str, Any], imported_at: Optional[datetime] = None) -> Dict[str, Any]:
        if not isinstance(document, Mapping):
            raise FlattenError(None, f"expected a document, got {type(document).__name__}")

        document_id = document.get(ID_FIELD)
        if document_id is None:
            raise FlattenError(None, "document has no _id")

        try:
            source_document = to_extended_json(document)
        except (TypeError, ValueError) as exc:
            raise FlattenError(document_id, str(exc)) from exc

        row: Dict[str, Any] = {
            ID_FIELD: str(document_id),
            IMPORTED_AT_COLUMN: imported_at or datetime.now(timezone.utc).replace(tzinfo=None),
            SOURCE_DOCUMENT_COLUMN: source_document,
        }

        for column in self.columns:
            try:
                row[column.column_name] = self._coerce(document.get(column.field_name), column.kind)
            except (TypeError, ValueError) as exc:
                raise FlattenError(document_id, f"field '{column.field_name}': {exc}") from exc

        return row

    def _coerce(self, value: Any, kind: FieldKind) -> Any:
        if value is None:
            return None

        if kind == FieldKind.DATE:
            # Unparseable dates are NULL here, the raw value stays in _source_document
            return self.type_detector.parse_datetime(value)

        if isinstance(value, Decimal128):
            value = value.to_decimal()

        if kind == FieldKind.DOUBLE and isinstance(value, Decimal):
            return float(value)

        if kind == FieldKind.OBJECTID:
            return str(value)

        if kind in (FieldKind.ARRAY, FieldKind.OBJECT):
            return to_extended_json(value)

        return self._passthrough(value)

    def _passthrough(self, value: Any) -> Any:
        if isinstance(value, _PRIMITIVES):
            return value
        return to_extended_json(value)


def flatten_document(
    document: Mapping[str, Any],
    columns: Sequence[ColumnSpec],
    imported_at: Optional[datetime] = None
) -> Dict[str, Any]:
    """Convenience wrapper around DocumentFlattener."""
    return DocumentFlattener(columns).flatten(document, imported_at)
