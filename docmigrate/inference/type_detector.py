# ==============================================
# TypeDetector
# ==============================================
#
# PURPOSE:
#   Classify raw document values. Documents carry no schema, so every
#   value is dispatched on a closed tag set instead of ad-hoc
#   isinstance checks scattered through the checkers.
#
# ENUM: ValueTag
# --------------
#   NULL, BOOL, NUMBER, STRING, DATE, ARRAY, OBJECT
#
# CLASS: TypeDetector
# -------------------
#   Stateless — all methods are classmethods.
#
#   - detect(value) -> str
#       Fine-grained type: "null", "bool", "int", "float", "uuid",
#       "ip", "datetime", "str", "array", "object".
#
#   - tag(value) -> ValueTag
#       Closed tag for the value (detect() folded onto ValueTag).
#
#   - parse_datetime(value) -> datetime | None
#       Native datetimes / dates and date-shaped strings → naive UTC.
#
#   - looks_like_date(text) -> bool
#       True for strings shaped like a date even when they do not parse
#       ("2023-13-45").
#
#   - is_numeric(value) -> bool
#       Finite int/float, booleans excluded.
#
# ==============================================

import ipaddress
import math
import re
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class ValueTag(Enum):
    NULL = "null"
    BOOL = "boolean"
    NUMBER = "number"
    STRING = "string"
    DATE = "date"
    ARRAY = "array"
    OBJECT = "object"


# Fine-grained type → closed tag
TAG_FOR_TYPE = {
    "null": ValueTag.NULL,
    "bool": ValueTag.BOOL,
    "int": ValueTag.NUMBER,
    "float": ValueTag.NUMBER,
    "uuid": ValueTag.STRING,
    "ip": ValueTag.STRING,
    "str": ValueTag.STRING,
    "datetime": ValueTag.DATE,
    "array": ValueTag.ARRAY,
    "object": ValueTag.OBJECT,
}


class TypeDetector:
    UUID_PATTERN = re.compile(
        r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$',
        re.IGNORECASE
    )

    # Cheap gate before any strptime attempt
    DATE_SHAPE = re.compile(r'^\d{1,4}[-/.]\d{1,2}[-/.]\d{1,4}')

    LOOKS_LIKE_DATE = (
        re.compile(r'\d{4}[-/]\d{1,2}[-/]\d{1,2}'),
        re.compile(r'\d{1,2}[-/]\d{1,2}[-/]\d{4}'),
    )

    DATETIME_FORMATS = [
        "%Y-%m-%dT%H:%M:%SZ",
        "%Y-%m-%dT%H:%M:%S.%fZ",
        "%Y-%m-%d %H:%M:%S",
        "%Y-%m-%d %H:%M:%S.%f",
        "%Y-%m-%d",
        "%d/%m/%Y",
        "%m/%d/%Y",
        "%Y/%m/%d",
        "%d-%m-%Y",
        "%m-%d-%Y",
        "%d.%m.%Y",
    ]

    @classmethod
    def detect(cls, value: Any) -> str:
        if value is None:
            return "null"

        if isinstance(value, bool):
            return "bool"

        if isinstance(value, int):
            return "int"

        if isinstance(value, (float, Decimal)):
            return "float"

        if isinstance(value, (list, tuple)):
            return "array"

        if isinstance(value, dict):
            return "object"

        if isinstance(value, (datetime, date)):
            return "datetime"

        if isinstance(value, str):
            value_stripped = value.strip()

            if cls._is_uuid(value_stripped):
                return "uuid"

            if cls._is_ip_address(value_stripped):
                return "ip"

            if cls.parse_datetime(value_stripped) is not None:
                return "datetime"

            return "str"

        # Driver-specific scalars (ObjectId, Binary, ...) are rendered as text
        return "str"

    @classmethod
    def tag(cls, value: Any) -> ValueTag:
        return TAG_FOR_TYPE[cls.detect(value)]

    @classmethod
    def is_numeric(cls, value: Any) -> bool:
        if isinstance(value, bool):
            return False
        if isinstance(value, int):
            return True
        if isinstance(value, (float, Decimal)):
            return math.isfinite(value)
        return False

    @classmethod
    def parse_datetime(cls, value: Any) -> Optional[datetime]:
        """
        Parse a value into a naive UTC datetime.

        Args:
            value: datetime, date or string

        Returns:
            The parsed datetime, or None if the value is not a date
        """
        if isinstance(value, datetime):
            return cls._to_naive_utc(value)
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        if not isinstance(value, str):
            return None

        text = value.strip()
        if not cls.DATE_SHAPE.match(text):
            return None

        iso_text = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
        try:
            return cls._to_naive_utc(datetime.fromisoformat(iso_text))
        except ValueError:
            pass

        for fmt in cls.DATETIME_FORMATS:
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
        return None

    @classmethod
    def looks_like_date(cls, text: str) -> bool:
        if any(pattern.search(text) for pattern in cls.LOOKS_LIKE_DATE):
            return True
        return "T" in text and text.rstrip().endswith("Z") and any(c.isdigit() for c in text)

    @classmethod
    def _to_naive_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    @classmethod
    def _is_ip_address(cls, value: str) -> bool:
        # Plain integers are valid IPv4 for ipaddress; require dotted/colon form
        if "." not in value and ":" not in value:
            return False
        try:
            ipaddress.ip_address(value)
            return True
        except ValueError:
            return False

    @classmethod
    def _is_uuid(cls, value: str) -> bool:
        return bool(cls.UUID_PATTERN.match(value))
