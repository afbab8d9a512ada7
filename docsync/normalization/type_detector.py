import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from bson import ObjectId
from bson.decimal128 import Decimal128

from .type_mapper import FieldKind


class TypeDetector:
    """Classify BSON values into FieldKinds and parse date-like values."""

    ISO_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}([T ]\d{2}:\d{2}(:\d{2}(\.\d+)?)?)?(Z|[+-]\d{2}:?\d{2})?$")

    DATETIME_FORMATS = [
        "%Y-%m-%dT%H:%M:%SZ",
        "%Y-%m-%dT%H:%M:%S.%fZ",
        "%Y-%m-%d %H:%M:%S",
        "%Y-%m-%d",
        "%d/%m/%Y",
        "%m/%d/%Y",
        "%Y/%m/%d",
        "%d-%m-%Y",
        "%m-%d-%Y",
    ]

    @classmethod
    def detect(cls, value: Any) -> FieldKind:
        if value is None:
            return FieldKind.NULL

        # bool is a subclass of int, check it first
        if isinstance(value, bool):
            return FieldKind.BOOLEAN

        if isinstance(value, int):
            return FieldKind.INTEGER

        if isinstance(value, (float, Decimal, Decimal128)):
            return FieldKind.DOUBLE

        if isinstance(value, str):
            return FieldKind.STRING

        if isinstance(value, datetime):
            return FieldKind.DATE

        if isinstance(value, ObjectId):
            return FieldKind.OBJECTID

        if isinstance(value, (list, tuple)):
            return FieldKind.ARRAY

        if isinstance(value, dict):
            return FieldKind.OBJECT

        return FieldKind.MIXED

    @classmethod
    def parse_datetime(cls, value: Any) -> Optional[datetime]:
        """
        Parse a date-kind value into a naive UTC datetime.

        Accepts datetimes, ISO-8601 strings, the known string formats
        and epoch milliseconds. Returns None when nothing matches.
        """
        if isinstance(value, datetime):
            return cls._to_naive_utc(value)

        if isinstance(value, bool):
            return None

        if isinstance(value, (int, float)):
            try:
                return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)
            except (OverflowError, OSError, ValueError):
                return None

        if isinstance(value, str):
            text = value.strip()
            if cls.ISO_PATTERN.match(text):
                try:
                    return cls._to_naive_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
                except ValueError:
                    pass
            for fmt in cls.DATETIME_FORMATS:
                try:
                    return datetime.strptime(text, fmt)
                except ValueError:
                    continue

        return None

    @staticmethod
    def _to_naive_utc(value: datetime) -> datetime:
        if value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)
