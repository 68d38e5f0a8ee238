# ==============================================
# Schema model (Data Classes)
# ==============================================
#
# PURPOSE:
#   Data classes that represent the OUTPUT of schema inference.
#   The quality checkers read field paths from here and the relational
#   mapper turns these into tables.
#
# ENUMS:
# ------
# - ChildTableKind(Enum): ARRAY, NESTED_OBJECT
#
# CLASSES:
# --------
# - FieldInfo           → One field at one object level
# - ChildTableSchema    → Array / nested object candidate for a child table
# - DocumentSchema      → One schema variant (bucket) of a container
# - ContainerProfile    → All variants + sampling bookkeeping for a container
#
# INVARIANTS:
# -----------
# - DocumentSchema.prevalence == sample_count / ContainerProfile.total_sampled
# - Sum of prevalence over a container's schemas <= 1.0
#
# ==============================================

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from docmigrate.errors import AnalysisWarning, WarningKind
from docmigrate.serialization import to_plain

from .type_detector import TAG_FOR_TYPE, ValueTag


class ChildTableKind(Enum):
    ARRAY = "Array"
    NESTED_OBJECT = "NestedObject"


@dataclass
class FieldInfo:
    """
    Inferred description of one field.

    `is_required` here only reflects what the sample showed (never null,
    never missing). The mapper takes nullability from null analysis.
    """

    name: str
    path: str  # Dot path from the document root ("address.city")
    detected_types: Set[ValueTag] = field(default_factory=set)
    type_counts: Dict[str, int] = field(default_factory=dict)
    recommended_type: str = "NVARCHAR(MAX)"
    is_required: bool = False
    is_nested: bool = False
    max_length: int = 0
    selectivity: float = 0.0
    presence_count: int = 0
    null_count: int = 0

    @property
    def dominant_tag(self) -> Optional[ValueTag]:
        non_null = {t: c for t, c in self.type_counts.items() if t != "null"}
        if not non_null:
            return None
        tag_counts: Dict[ValueTag, int] = {}
        for fine_type, count in non_null.items():
            tag = TAG_FOR_TYPE[fine_type]
            tag_counts[tag] = tag_counts.get(tag, 0) + count
        return sorted(tag_counts.items(), key=lambda item: (-item[1], item[0].value))[0][0]

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)


@dataclass
class ChildTableSchema:
    """
    A nested object (1-to-1) or array (1-to-many) found under a parent.
    """

    name: str  # Key at the parent level ("items")
    source_path: str  # Dot path from the document root ("orders.items")
    kind: ChildTableKind
    depth: int  # 1 for fields directly under the document root
    parent_key_field: str
    fields: Dict[str, FieldInfo] = field(default_factory=dict)
    children: Dict[str, "ChildTableSchema"] = field(default_factory=dict)
    row_count: int = 0  # Objects / elements observed
    parent_count: int = 0  # Parents that carried this structure
    is_scalar_array: bool = False

    @property
    def average_rows_per_parent(self) -> float:
        if self.parent_count == 0:
            return 0.0
        return self.row_count / self.parent_count

    @property
    def max_depth(self) -> int:
        if not self.children:
            return self.depth
        return max(child.max_depth for child in self.children.values())

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)


@dataclass
class DocumentSchema:
    schema_name: str
    fields: Dict[str, FieldInfo] = field(default_factory=dict)
    child_tables: Dict[str, ChildTableSchema] = field(default_factory=dict)
    sample_count: int = 0
    prevalence: float = 0.0
    field_paths: List[str] = field(default_factory=list)
    nested_fields: Dict[str, FieldInfo] = field(default_factory=dict)
    # Dot path → FieldInfo for every path reachable through nested objects

    def field_at(self, path: str) -> Optional[FieldInfo]:
        if path in self.fields:
            return self.fields[path]
        return self.nested_fields.get(path)

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)


@dataclass
class ContainerProfile:
    """
    Everything the inferencer learned about one container.

    `sample` holds the accepted documents (the read-only arena every
    checker iterates); it is left out of serialized output.
    """

    container: str
    schemas: List[DocumentSchema] = field(default_factory=list)
    total_sampled: int = 0
    skipped_count: int = 0
    warnings: List[AnalysisWarning] = field(default_factory=list)
    sample: Any = field(default=None, repr=False, metadata={"serialize": False})

    @property
    def primary_schema(self) -> Optional[DocumentSchema]:
        return self.schemas[0] if self.schemas else None

    @property
    def analyzed_count(self) -> int:
        return self.total_sampled - self.skipped_count

    @property
    def skip_rate(self) -> float:
        if self.total_sampled == 0:
            return 0.0
        return self.skipped_count / self.total_sampled

    @property
    def is_partial(self) -> bool:
        return any(w.kind is WarningKind.PARTIAL_ANALYSIS for w in self.warnings)

    @property
    def max_nesting_depth(self) -> int:
        depth = 0
        for schema in self.schemas:
            for child in schema.child_tables.values():
                depth = max(depth, child.max_depth)
        return depth

    def field_paths(self) -> List[str]:
        """All checker paths across every schema variant, in first-seen order."""
        seen: Dict[str, None] = {}
        for schema in self.schemas:
            for path in schema.field_paths:
                seen.setdefault(path, None)
        return list(seen)

    def field_at(self, path: str) -> Optional[FieldInfo]:
        for schema in self.schemas:
            info = schema.field_at(path)
            if info is not None:
                return info
        return None

    def top_level_fields(self) -> List[str]:
        seen: Dict[str, None] = {}
        for schema in self.schemas:
            for name in schema.fields:
                seen.setdefault(name, None)
        return list(seen)

    def to_dict(self) -> Dict[str, Any]:
        data = to_plain(self)
        data["skip_rate"] = round(self.skip_rate, 4)
        data["is_partial"] = self.is_partial
        data["max_nesting_depth"] = self.max_nesting_depth
        return data
