# ==============================================
# Identifier naming
# ==============================================
#
#   "order-lines"  → "order_lines"
#   "2024sales"    → "Table_2024sales" / "Col_2024sales"
#   ""             → "UnnamedTable" / "UnnamedColumn"
#   longer than 128 characters → truncated
#
# ==============================================

import re

MAX_IDENTIFIER_LENGTH = 128

_NON_WORD = re.compile(r"\W")


def _sanitize(name: str, digit_prefix: str, fallback: str) -> str:
    cleaned = _NON_WORD.sub("_", name.strip())
    if not cleaned.strip("_"):
        return fallback
    if cleaned[0].isdigit():
        cleaned = digit_prefix + cleaned
    return cleaned[:MAX_IDENTIFIER_LENGTH]


def table_name(name: str) -> str:
    return _sanitize(name, "Table_", "UnnamedTable")


def column_name(name: str) -> str:
    return _sanitize(name, "Col_", "UnnamedColumn")


def pascal_case(name: str) -> str:
    """
    "shipping_address" → "ShippingAddress", "address" → "Address"
    """
    parts = [p for p in re.split(r"[^0-9A-Za-z]+", name) if p]
    if not parts:
        return "Unnamed"
    return "".join(p[:1].upper() + p[1:] for p in parts)


def constraint_name(prefix: str, table: str, *columns: str) -> str:
    return "_".join((prefix, table) + columns)[:MAX_IDENTIFIER_LENGTH]


def parent_key_column(parent_table: str) -> str:
    return column_name(f"{parent_table}Id")
