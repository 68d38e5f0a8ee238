# ==============================================
# Serialization helpers
# ==============================================
#
# PURPOSE:
#   Convert result dataclasses into plain JSON-ready structures.
#   Report writers own the output format; this only lowers the
#   in-memory objects (enums, datetimes, sets, tuples) to primitives.
#
# FUNCTION:
# ---------
# - to_plain(value: Any) -> Any
#
# ==============================================

import dataclasses
import math
from datetime import date, datetime
from enum import Enum
from typing import Any


def to_plain(value: Any) -> Any:
    """
    Recursively convert a value into JSON-compatible primitives.

    Dataclass fields declared with ``metadata={"serialize": False}``
    are left out.

    Args:
        value: Any result object, container or primitive

    Returns:
        Dicts, lists, strings, numbers, booleans or None
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: to_plain(getattr(value, f.name))
            for f in dataclasses.fields(value)
            if f.metadata.get("serialize", True)
        }
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted(to_plain(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)
