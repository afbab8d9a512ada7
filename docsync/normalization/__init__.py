# ==============================================
# TOPIC 1: NORMALIZATION
# ==============================================
#
# This package turns loosely-typed document data into things a
# relational table accepts: identifiers, column types and rows.
#
# Modules:
# --------
# - identifier.py         → Sanitize names, build table names, quote
# - type_mapper.py        → FieldKind → column type, column planning
# - type_detector.py      → Detect the kind of a BSON value, parse dates
# - document_flattener.py → Document → flat row + _source_document
#
# ==============================================

from .identifier import sanitize_identifier, generate_table_name, quote_identifier, qualified_name
from .type_mapper import FieldKind, ColumnSpec, map_type, plan_columns
from .type_detector import TypeDetector
from .document_flattener import DocumentFlattener, flatten_document, row_columns

__all__ = [
    "sanitize_identifier",
    "generate_table_name",
    "quote_identifier",
    "qualified_name",
    "FieldKind",
    "ColumnSpec",
    "map_type",
    "plan_columns",
    "TypeDetector",
    "DocumentFlattener",
    "flatten_document",
    "row_columns",
]
