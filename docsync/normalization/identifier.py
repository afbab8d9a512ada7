# ==============================================
# Identifier Sanitizer
# ==============================================
#
# PURPOSE:
#   Convert document field names and collection names into valid,
#   collision-safe MySQL identifiers.
#
# WHY THIS MODULE EXISTS:
#   Documents carry arbitrary keys: "First Name", "2ndAddress",
#   "price$usd", 200-character keys. A relational column cannot.
#   Every name is forced into [a-z0-9_] so the same input always
#   yields the same identifier, across runs and across processes.
#
# FUNCTIONS:
# ----------
#   - sanitize_identifier(name: str) -> str
#       lowercase → replace chars outside [a-z0-9_] with "_"
#       → prefix "_" if it starts with a digit → truncate to 63.
#
#   - generate_table_name(collection_name: str, data_source_id: int) -> str
#       "<sanitized>_data_source_<id>", never longer than 63 chars.
#       The suffix keeps two sources importing "orders" apart.
#
#   - quote_identifier(identifier: str) -> str
#       Always backtick-quote. No reserved word table needed.
#
# RULES:
# ------
#   1. "User Name"   → "user_name"
#   2. "2fa_enabled" → "_2fa_enabled"
#   3. "price$usd"   → "price_usd"
#   4. ""            → "_"
#
# ==============================================

import re

MAX_IDENTIFIER_LENGTH = 63

_INVALID_CHARS = re.compile(r"[^a-z0-9_]")


def sanitize_identifier(name: str) -> str:
    """
    Convert any name into a lowercase [a-z0-9_] identifier.

    Args:
        name: Raw field or collection name

    Returns:
        Identifier of at most 63 characters that does not start with a digit
    """
    sanitized = _INVALID_CHARS.sub("_", str(name).lower())

    if not sanitized:
        return "_"

    if sanitized[0].isdigit():
        sanitized = f"_{sanitized}"

    return sanitized[:MAX_IDENTIFIER_LENGTH]


def generate_table_name(collection_name: str, data_source_id: int) -> str:
    """
    Build the physical table name for one collection of one data source.

    Args:
        collection_name: Collection name as reported by the source
        data_source_id: Numeric id of the owning data source

    Returns:
        Unique, deterministic table name
    """
    suffix = f"_data_source_{data_source_id}"
    base = sanitize_identifier(collection_name)
    return base[:MAX_IDENTIFIER_LENGTH - len(suffix)] + suffix


def quote_identifier(identifier: str) -> str:
    """Backtick-quote an identifier for MySQL."""
    return "`" + identifier.replace("`", "``") + "`"


def qualified_name(schema_name: str, table_name: str) -> str:
    """`schema`.`table`"""
    return f"{quote_identifier(schema_name)}.{quote_identifier(table_name)}"
