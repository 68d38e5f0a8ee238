# ==============================================
# FieldStats
# ==============================================
#
# PURPOSE:
#   Data class that holds all observed statistics for a single field
#   at one object level (root document, nested object or array element).
#   This is the "evidence" the inferencer turns into a FieldInfo.
#
# CLASS: FieldStats (dataclass)
# -----------------------------
#   Attributes:
#   -----------
#   - name: str                     → Field key at its level
#   - presence_count: int           → How many objects contain this field
#   - type_counts: dict[str, int]   → {"int": 45, "str": 3, "null": 2}
#   - null_count: int               → How many times value was None
#   - distinct_values: set          → Canonical keys of distinct scalar values (capped)
#   - max_length: int               → Longest textual rendering of a scalar value
#   - max_scale: int                → Most decimal places seen on a float
#   - min_int / max_int             → Integer range (for INT vs BIGINT)
#   - sample_values: list           → Small list of sample values
#
#   Computed Properties:
#   --------------------
#   - dominant_type -> str | None   (nulls excluded)
#   - tags -> set[ValueTag]
#   - non_null_count -> int
#
#   Methods:
#   --------
#   - update(value: Any, detected_type: str) -> None
#   - selectivity(sample_count: int) -> float
#   - to_dict() -> dict
#
# ==============================================

import json
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set

from .type_detector import TAG_FOR_TYPE, ValueTag


@dataclass
class FieldStats:
    """
    Holds observed statistics for a single field across many objects.
    """

    # --- Core identity ---
    name: str

    # --- Counters ---
    presence_count: int = 0  # How many objects contained the key

    type_counts: Dict[str, int] = field(default_factory=dict)
    # Counts of fine-grained types: {"int": 45, "str": 3, "array": 5}

    null_count: int = 0

    # --- Uniqueness tracking ---
    distinct_values: Set[str] = field(default_factory=set)
    max_distinct_tracked: int = 100_000

    # --- Shape info ---
    max_length: int = 0
    max_scale: int = 0
    min_int: Optional[int] = None
    max_int: Optional[int] = None

    # --- Debugging / inspection ---
    sample_values: List[Any] = field(default_factory=list)
    max_samples: int = 5

    # ======================================
    # Update logic
    # ======================================
    def update(self, value: Any, detected_type: str) -> None:
        """
        Update statistics based on a newly observed value.

        Args:
            value: The field value to record
            detected_type: Fine-grained type from TypeDetector.detect()
        """
        self.presence_count += 1
        self.type_counts[detected_type] = self.type_counts.get(detected_type, 0) + 1

        if value is None:
            self.null_count += 1
            return

        # Nested values are profiled by their own StructureProfile
        if detected_type in ("array", "object"):
            return

        if len(self.distinct_values) < self.max_distinct_tracked:
            self.distinct_values.add(_distinct_key(value, detected_type))

        text = value if isinstance(value, str) else str(value)
        self.max_length = max(self.max_length, len(text))

        if detected_type == "int":
            self.min_int = value if self.min_int is None else min(self.min_int, value)
            self.max_int = value if self.max_int is None else max(self.max_int, value)
        elif detected_type == "float":
            self.max_scale = max(self.max_scale, _decimal_places(value))

        if len(self.sample_values) < self.max_samples:
            self.sample_values.append(value)

    # ======================================
    # Computed properties
    # ======================================
    @property
    def dominant_type(self) -> Optional[str]:
        """
        Most frequently observed non-null type.

        Returns:
            The type string with the highest count (ties broken by name),
            or None if only nulls were seen.
        """
        candidates = [(count, t) for t, count in self.type_counts.items() if t != "null"]
        if not candidates:
            return None
        candidates.sort(key=lambda item: (-item[0], item[1]))
        return candidates[0][1]

    @property
    def tags(self) -> Set[ValueTag]:
        return {TAG_FOR_TYPE[t] for t in self.type_counts}

    @property
    def non_null_count(self) -> int:
        return self.presence_count - self.null_count

    def selectivity(self, sample_count: int) -> float:
        """
        Distinct values / sample_count over the processed sample.

        Args:
            sample_count: Number of objects observed at this level

        Returns:
            A value between 0.0 and 1.0
        """
        if sample_count <= 0:
            return 0.0
        return min(1.0, len(self.distinct_values) / sample_count)

    # ======================================
    # Serialization
    # ======================================
    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "presence_count": self.presence_count,
            "type_counts": dict(self.type_counts),
            "null_count": self.null_count,
            "distinct_count": len(self.distinct_values),
            "max_length": self.max_length,
            "max_scale": self.max_scale,
            "min_int": self.min_int,
            "max_int": self.max_int,
        }


def _distinct_key(value: Any, detected_type: str) -> str:
    try:
        return f"{detected_type}:{json.dumps(value, sort_keys=True)}"
    except (TypeError, ValueError):
        return f"{detected_type}:{value!r}"


def _decimal_places(value: Any) -> int:
    if isinstance(value, Decimal):
        exponent = value.as_tuple().exponent
        return -exponent if isinstance(exponent, int) and exponent < 0 else 0
    text = repr(float(value))
    if "e" in text or "E" in text:
        return 6
    if "." not in text:
        return 0
    return len(text.split(".", 1)[1].rstrip("0"))
