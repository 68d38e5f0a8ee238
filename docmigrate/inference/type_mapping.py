# ==============================================
# Relational type recommendation
# ==============================================
#
# PURPOSE:
#   Map observed document types onto relational column types
#   (SQL Server flavoured).
#
#   Single observed type:
#     "bool"     → "BIT"
#     "int"      → "INT" (32-bit range) / "BIGINT"
#     "float"    → "DECIMAL(18,2|4|6)" by decimal places seen
#     "uuid"     → "UNIQUEIDENTIFIER"
#     "datetime" → "DATETIME2"
#     "ip"       → "NVARCHAR(45)"
#     "str"      → "NVARCHAR(50|100|255|1000|4000)" / "NVARCHAR(MAX)"
#     nested     → "NVARCHAR(MAX)" (JSON text)
#
#   Mixed types widen:
#     int + float         → DECIMAL
#     bool + numbers      → numeric type
#     anything + string   → sized NVARCHAR
#     otherwise           → NVARCHAR(MAX)
#
# FUNCTIONS:
# ----------
# - sized_nvarchar(max_length, limit) -> str
# - recommend_relational_type(stats, limit) -> str
# - widening_type_for_tags(tags, max_length, limit) -> str
# - type_family(sql_type) -> str
# - wider_type(a, b) -> str
#
# ==============================================

import re
from typing import Iterable, Optional, Set

from .field_stats import FieldStats
from .type_detector import ValueTag

STRING_BOUNDARIES = (50, 100, 255, 1000, 4000)

INT32_MIN = -2 ** 31
INT32_MAX = 2 ** 31 - 1

UNBOUNDED_TEXT = "NVARCHAR(MAX)"

_PARAMS = re.compile(r"^\s*([A-Za-z0-9_ ]+?)\s*(?:\((.*)\))?\s*$")


def sized_nvarchar(max_length: int, limit: int = 4000) -> str:
    """
    Smallest convenient NVARCHAR boundary that fits max_length.

    Args:
        max_length: Longest observed value
        limit: Largest bounded size allowed

    Returns:
        "NVARCHAR(n)" or "NVARCHAR(MAX)" when nothing within the limit fits
    """
    for boundary in STRING_BOUNDARIES:
        if boundary > limit:
            break
        if max_length <= boundary:
            return f"NVARCHAR({boundary})"
    if max_length <= limit:
        return f"NVARCHAR({limit})"
    return UNBOUNDED_TEXT


def _decimal_type(max_scale: int) -> str:
    if max_scale <= 2:
        return "DECIMAL(18,2)"
    if max_scale <= 4:
        return "DECIMAL(18,4)"
    return "DECIMAL(18,6)"


def _int_type(min_int: Optional[int], max_int: Optional[int]) -> str:
    if min_int is None or max_int is None:
        return "BIGINT"
    if min_int >= INT32_MIN and max_int <= INT32_MAX:
        return "INT"
    return "BIGINT"


def recommend_relational_type(stats: FieldStats, limit: int = 4000) -> str:
    """
    Recommend a column type from a field's observed types.

    Args:
        stats: Accumulated field statistics
        limit: Largest bounded NVARCHAR size

    Returns:
        A relational column type string
    """
    observed = {t for t in stats.type_counts if t != "null"}

    if not observed:
        return UNBOUNDED_TEXT
    if observed & {"array", "object"}:
        return UNBOUNDED_TEXT

    if len(observed) == 1:
        only = next(iter(observed))
        if only == "bool":
            return "BIT"
        if only == "int":
            return _int_type(stats.min_int, stats.max_int)
        if only == "float":
            return _decimal_type(stats.max_scale)
        if only == "uuid":
            return "UNIQUEIDENTIFIER"
        if only == "datetime":
            return "DATETIME2"
        if only == "ip":
            return "NVARCHAR(45)"
        return sized_nvarchar(stats.max_length, limit)

    if observed <= {"int", "float", "bool"}:
        if "float" in observed:
            return _decimal_type(stats.max_scale)
        return _int_type(stats.min_int, stats.max_int)

    if observed & {"str", "uuid", "ip", "datetime"}:
        return sized_nvarchar(stats.max_length, limit)

    return UNBOUNDED_TEXT


def widening_type_for_tags(tags: Iterable[ValueTag], max_length: int, limit: int = 4000) -> str:
    """
    Widest reasonable type for a field whose values disagree on type.

    Args:
        tags: Observed non-null tags
        max_length: Longest textual rendering of any value
        limit: Largest bounded NVARCHAR size

    Returns:
        A relational column type string
    """
    tag_set: Set[ValueTag] = {t for t in tags if t is not ValueTag.NULL}
    if not tag_set or tag_set & {ValueTag.ARRAY, ValueTag.OBJECT}:
        return UNBOUNDED_TEXT
    if tag_set <= {ValueTag.NUMBER, ValueTag.BOOL}:
        return "DECIMAL(18,6)"
    if tag_set == {ValueTag.DATE}:
        return "DATETIME2"
    return sized_nvarchar(max_length, limit)


def type_family(sql_type: str) -> str:
    """
    Strip size/precision parameters: "NVARCHAR(100)" → "NVARCHAR".
    """
    match = _PARAMS.match(sql_type)
    if not match:
        return sql_type.strip().upper()
    return match.group(1).strip().upper()


def _params(sql_type: str) -> Optional[str]:
    match = _PARAMS.match(sql_type)
    return match.group(2) if match else None


def wider_type(first: str, second: str) -> str:
    """
    Pick the wider of two types from the same family.

    NVARCHAR(MAX) beats any size, larger sizes beat smaller ones,
    DECIMAL keeps the larger scale. Different families fall back to
    NVARCHAR(MAX).
    """
    if first == second:
        return first
    if type_family(first) != type_family(second):
        return UNBOUNDED_TEXT

    first_params, second_params = _params(first), _params(second)
    if first_params is None or second_params is None:
        return first if first_params is None else second
    if first_params.upper() == "MAX":
        return first
    if second_params.upper() == "MAX":
        return second

    first_parts = [p.strip() for p in first_params.split(",")]
    second_parts = [p.strip() for p in second_params.split(",")]
    try:
        first_key = [int(p) for p in first_parts]
        second_key = [int(p) for p in second_parts]
    except ValueError:
        return first
    return first if first_key[::-1] >= second_key[::-1] else second
