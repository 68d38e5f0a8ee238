# ==============================================
# Mapping models (Data Classes)
# ==============================================
#
# PURPOSE:
#   The relational target proposed for each container: tables,
#   columns, transformations, keys, indexes and shared tables.
#
# ENUMS:
# ------
# - TransformationType(Enum): Flatten, Split, TypeConvert, MergeVariant
# - ChildTableType(Enum): Array, NestedObject, ManyToMany
# - IndexType(Enum): Clustered, NonClustered
#
# CLASSES:
# --------
# - FieldMapping               → One source field → one target column
# - TransformationStep         → One required data transformation
# - LinkingTableRecommendation → Junction table for a many-to-many array
# - ChildTableMapping          → Array / nested object → its own table
# - IndexRecommendation        → Suggested index (priority 1 = highest)
# - ForeignKeyConstraint       → Child → parent reference
# - UniqueConstraint           → De-facto natural key
# - SharedSchemaUsage          → One (container, path) using a shared table
# - SharedSchema               → Structure reused across the run
# - ContainerMapping           → Everything proposed for one container
#
# ==============================================

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from docmigrate.serialization import to_plain


class TransformationType(Enum):
    FLATTEN = "Flatten"
    SPLIT = "Split"
    TYPE_CONVERT = "TypeConvert"
    MERGE_VARIANT = "MergeVariant"


class ChildTableType(Enum):
    ARRAY = "Array"
    NESTED_OBJECT = "NestedObject"
    MANY_TO_MANY = "ManyToMany"


class IndexType(Enum):
    CLUSTERED = "Clustered"
    NON_CLUSTERED = "NonClustered"


@dataclass
class FieldMapping:
    source_field: str  # Dot path, or "$generated" / "$parent" for synthetic columns
    target_column: str
    target_type: str
    source_types: List[str] = field(default_factory=list)
    is_nullable: bool = True
    is_primary_key: bool = False
    is_partition_key: bool = False
    transformation: Optional[TransformationType] = None
    notes: str = ""

    @property
    def is_identity(self) -> bool:
        return "IDENTITY" in self.target_type.upper()


@dataclass
class TransformationStep:
    transformation_type: TransformationType
    source_path: str
    target: str
    description: str


@dataclass
class LinkingTableRecommendation:
    table_name: str
    parent_table: str
    parent_key_column: str
    referenced_entity: str
    reference_columns: List[str] = field(default_factory=list)
    relationship_fields: List[str] = field(default_factory=list)
    description: str = ""


@dataclass
class ChildTableMapping:
    source_container: str
    source_path: str
    name: str  # Key at the parent level
    child_type: ChildTableType
    target_table: str
    parent_table: str
    parent_key_column: str
    parent_key_type: str
    parent_primary_key: str
    depth: int = 1
    primary_key: str = "Id"
    field_mappings: List[FieldMapping] = field(default_factory=list)
    children: List["ChildTableMapping"] = field(default_factory=list)
    rows_per_parent: float = 0.0
    shared_schema_id: Optional[str] = None
    linking_table: Optional[LinkingTableRecommendation] = None

    @property
    def data_columns(self) -> List[FieldMapping]:
        """Columns carried over from the source (no synthetic keys)."""
        return [m for m in self.field_mappings if not m.source_field.startswith("$")]

    @property
    def is_many_to_many(self) -> bool:
        return self.child_type is ChildTableType.MANY_TO_MANY

    def walk(self) -> Iterator["ChildTableMapping"]:
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class IndexRecommendation:
    table: str
    name: str
    index_type: IndexType
    columns: List[str]
    priority: int  # 1 = primary key ... 4 = query driven
    justification: str = ""
    estimated_ru_impact: float = 0.0
    is_unique: bool = False  # backs a UniqueConstraint


@dataclass
class ForeignKeyConstraint:
    name: str
    child_table: str
    child_column: str
    parent_table: str
    parent_column: str
    on_delete: str = "CASCADE"
    on_update: str = "NO ACTION"
    justification: str = ""


@dataclass
class UniqueConstraint:
    name: str
    table: str
    columns: List[str]
    justification: str = ""

    @property
    def is_composite(self) -> bool:
        return len(self.columns) > 1


@dataclass
class SharedSchemaUsage:
    container: str
    field_path: str
    parent_table: str
    parent_key_column: str
    parent_primary_key: str


@dataclass
class SharedSchema:
    schema_id: str
    schema_name: str
    target_table: str
    structure: Tuple[Tuple[str, str], ...]  # sorted (column, type family) pairs
    field_mappings: List[FieldMapping] = field(default_factory=list)
    usages: List[SharedSchemaUsage] = field(default_factory=list)

    @property
    def usage_count(self) -> int:
        return len({(u.container, u.field_path) for u in self.usages})

    @property
    def source_containers(self) -> List[str]:
        return list(dict.fromkeys(u.container for u in self.usages))

    @property
    def source_field_paths(self) -> List[str]:
        return [f"{u.container}.{u.field_path}" for u in self.usages]

    def to_dict(self) -> Dict[str, Any]:
        data = to_plain(self)
        data.update(
            usage_count=self.usage_count,
            source_containers=self.source_containers,
            source_field_paths=self.source_field_paths,
        )
        return data


@dataclass
class ContainerMapping:
    source_container: str
    target_table: str
    primary_key: str
    field_mappings: List[FieldMapping] = field(default_factory=list)
    child_tables: List[ChildTableMapping] = field(default_factory=list)
    transformations: List[TransformationStep] = field(default_factory=list)
    indexes: List[IndexRecommendation] = field(default_factory=list)
    foreign_keys: List[ForeignKeyConstraint] = field(default_factory=list)
    unique_constraints: List[UniqueConstraint] = field(default_factory=list)
    estimated_rows: int = 0

    def all_child_tables(self) -> List[ChildTableMapping]:
        return [mapping for child in self.child_tables for mapping in child.walk()]

    def column_for(self, path: str) -> Optional[FieldMapping]:
        return next((m for m in self.field_mappings if m.source_field == path), None)

    @property
    def max_depth(self) -> int:
        return max((child.depth for child in self.all_child_tables()), default=0)

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)
