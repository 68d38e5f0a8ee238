# ==============================================
# SchemaDeduplicator
# ==============================================
#
# PURPOSE:
#   Find child tables with the same structure anywhere in the run
#   (e.g. the same `address` object in customers and orders) and
#   point all of them at one shared table.
#
# STRUCTURE & HASH:
#   structure = sorted (column name lowercased, type family) pairs
#               of the source columns (synthetic keys excluded)
#   encoding  = compact JSON of the structure (a faithful encoding)
#   schema id = "shared_" + sha256(encoding) prefix, lengthened on
#               the rare prefix clash so different encodings never
#               share an id
#
#   NVARCHAR(50) and NVARCHAR(100) share the NVARCHAR family, so they
#   hash the same; the shared column takes the wider size.
#
# ELIGIBILITY:
#   Leaf child tables only (no nested child tables of their own);
#   ManyToMany junctions are never shared.
#
# CLASSES:
# --------
# - SharedSchemaRegistry → encoding → candidates, owned by one merge phase
# - SchemaDeduplicator   → deduplicate(mappings) -> list[SharedSchema]
#
# ==============================================

import hashlib
import json
import logging
from dataclasses import dataclass, field, replace
from functools import reduce
from typing import Dict, Iterable, List, Set, Tuple

from docmigrate.inference.type_mapping import type_family, wider_type

from .models import ChildTableMapping, ContainerMapping, FieldMapping, SharedSchema, SharedSchemaUsage
from .naming import column_name, pascal_case, table_name

logger = logging.getLogger(__name__)

SHARED_ID_PREFIX = "shared_"
HASH_PREFIX_LENGTH = 12

Structure = Tuple[Tuple[str, str], ...]


def structure_of(child: ChildTableMapping) -> Structure:
    return tuple(sorted((m.target_column.lower(), type_family(m.target_type)) for m in child.data_columns))


def canonical_encoding(structure: Structure) -> str:
    return json.dumps([list(pair) for pair in sorted(structure)], separators=(",", ":"))


def structural_hash(structure: Structure) -> str:
    return hashlib.sha256(canonical_encoding(structure).encode("utf-8")).hexdigest()


@dataclass
class _RegistryEntry:
    schema_id: str
    structure: Structure
    children: List[ChildTableMapping] = field(default_factory=list)


class SharedSchemaRegistry:
    """
    Map from canonical structure encoding to the child tables using it.

    Not thread-safe: one merge phase owns it.
    """

    def __init__(self):
        self._entries: Dict[str, _RegistryEntry] = {}  # encoding → entry (insertion ordered)
        self._encoding_by_id: Dict[str, str] = {}

    def register(self, child: ChildTableMapping) -> str:
        """
        Record a child table under its structure.

        Returns:
            The schema id for the child's structure
        """
        structure = structure_of(child)
        encoding = canonical_encoding(structure)
        entry = self._entries.get(encoding)
        if entry is None:
            entry = _RegistryEntry(schema_id=self._new_id(encoding, structure), structure=structure)
            self._entries[encoding] = entry
        entry.children.append(child)
        return entry.schema_id

    def entries(self) -> List[_RegistryEntry]:
        return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def _new_id(self, encoding: str, structure: Structure) -> str:
        digest = structural_hash(structure)
        length = HASH_PREFIX_LENGTH
        schema_id = SHARED_ID_PREFIX + digest[:length]
        while schema_id in self._encoding_by_id and self._encoding_by_id[schema_id] != encoding:
            length += 4
            schema_id = SHARED_ID_PREFIX + digest[:length]
            if length >= len(digest):
                schema_id = f"{SHARED_ID_PREFIX}{digest}_{len(self._encoding_by_id)}"
                break
        self._encoding_by_id[schema_id] = encoding
        return schema_id


class SchemaDeduplicator:
    """
    Resolves structurally identical child tables to shared tables.
    """

    def __init__(self, min_usage: int = 2):
        self.min_usage = min_usage

    def deduplicate(self, mappings: Iterable[ContainerMapping]) -> List[SharedSchema]:
        """
        Register every eligible child table and emit the shared schemas.

        Child tables that end up shared get `shared_schema_id` and the
        shared `target_table`; their parent key column is renamed when
        one parent table references the structure more than once.

        Args:
            mappings: Every container mapping of the run

        Returns:
            SharedSchemas used at least min_usage times, in first-seen order
        """
        mappings = list(mappings)
        registry = SharedSchemaRegistry()
        for mapping in mappings:
            for child in mapping.all_child_tables():
                if self._eligible(child):
                    registry.register(child)

        taken: Set[str] = set()
        for mapping in mappings:
            taken.add(mapping.target_table.lower())
            taken.update(child.target_table.lower() for child in mapping.all_child_tables())

        shared_schemas = []
        for entry in registry.entries():
            usages = {(child.source_container, child.source_path) for child in entry.children}
            if len(usages) < self.min_usage:
                continue
            shared = self._build(entry, taken)
            shared_schemas.append(shared)
            logger.info(
                "Shared schema %s (%s): %d usage(s) across %s",
                shared.schema_id, shared.target_table, shared.usage_count, ", ".join(shared.source_containers),
            )
        return shared_schemas

    def _eligible(self, child: ChildTableMapping) -> bool:
        return not child.is_many_to_many and not child.children and bool(child.data_columns)

    def _build(self, entry: _RegistryEntry, taken: Set[str]) -> SharedSchema:
        first = entry.children[0]
        schema_name = pascal_case(first.name)
        target = _unique_table(table_name(f"Shared_{schema_name}"), taken)

        parent_counts: Dict[str, int] = {}
        for child in entry.children:
            parent_counts[child.parent_table] = parent_counts.get(child.parent_table, 0) + 1

        key_columns: List[FieldMapping] = []
        usages: List[SharedSchemaUsage] = []
        for child in entry.children:
            key = child.parent_key_column
            if parent_counts[child.parent_table] > 1:
                key = column_name(f"{child.parent_table}_{child.name}Id")
            child.parent_key_column = key
            child.shared_schema_id = entry.schema_id
            child.target_table = target
            if all(k.target_column != key for k in key_columns):
                key_columns.append(
                    FieldMapping(
                        source_field="$parent",
                        target_column=key,
                        target_type=child.parent_key_type,
                        is_nullable=True,
                        notes=f"References {child.parent_table}.{child.parent_primary_key}",
                    )
                )
            usages.append(
                SharedSchemaUsage(
                    container=child.source_container,
                    field_path=child.source_path,
                    parent_table=child.parent_table,
                    parent_key_column=key,
                    parent_primary_key=child.parent_primary_key,
                )
            )

        primary_key = next(m for m in first.field_mappings if m.is_primary_key)
        return SharedSchema(
            schema_id=entry.schema_id,
            schema_name=schema_name,
            target_table=target,
            structure=entry.structure,
            field_mappings=[replace(primary_key)] + key_columns + self._merge_columns(entry.children),
            usages=usages,
        )

    def _merge_columns(self, children: List[ChildTableMapping]) -> List[FieldMapping]:
        by_name: Dict[str, List[FieldMapping]] = {}
        for child in children:
            for column in child.data_columns:
                by_name.setdefault(column.target_column.lower(), []).append(column)

        merged = []
        for columns in by_name.values():
            first = columns[0]
            merged.append(
                replace(
                    first,
                    source_field=first.source_field.rsplit(".", 1)[-1],
                    target_type=reduce(wider_type, (c.target_type for c in columns)),
                    source_types=sorted({t for c in columns for t in c.source_types}),
                    is_nullable=any(c.is_nullable for c in columns),
                    notes="",
                )
            )
        return merged


def _unique_table(name: str, taken: Set[str]) -> str:
    candidate = name
    suffix = 2
    while candidate.lower() in taken:
        candidate = f"{name}_{suffix}"
        suffix += 1
    taken.add(candidate.lower())
    return candidate
