# ==============================================
# RelationalMapper
# ==============================================
#
# PURPOSE:
#   Turn one container's inferred schema plus its quality report
#   into a proposed relational layout: a root table, child tables,
#   keys, indexes and the transformations a migration would need.
#
# WHY THIS CLASS EXISTS:
#   Inference says what the documents look like; quality analysis
#   says how trustworthy each field is. This class combines both:
#   nullability comes from null analysis, widened types from type
#   consistency, string sizes from length analysis.
#
# CLASS: RelationalMapper
# -----------------------
#   Constructor:
#   ------------
#   - __init__(options: AnalysisOptions)
#
#   Methods:
#   --------
#   - map_container(profile, report, metadata) -> ContainerMapping
#       RULE 1: PRIMARY KEY
#         id field (NOT NULL) when present, else Id BIGINT IDENTITY
#       RULE 2: SMALL NESTED OBJECTS → FLATTEN
#         <= flatten_max_fields scalar fields, nothing nested below
#         → parent_child columns on the parent table
#       RULE 3: OTHER NESTED OBJECTS / ARRAYS → SPLIT
#         → child table with Id + {ParentTable}Id columns
#         → arrays of scalars get a single "value" column
#         → relationship-like arrays become ManyToMany junctions
#       RULE 4: SCALARS → COLUMNS
#         type refined by type / length / date results,
#         NOT NULL exactly when null analysis recommends it
#       RULE 5: OTHER SCHEMA VARIANTS
#         their extra scalar fields become nullable columns
#
#   - link_child_tables(mappings, shared_schemas) -> None
#       Runs after deduplication: primary key indexes, foreign keys
#       (ON DELETE CASCADE) and foreign key indexes for every child
#       table. ManyToMany junctions get no foreign key.
#
# ==============================================

import logging
from typing import Iterable, List, Optional, Set

from docmigrate.config import AnalysisOptions
from docmigrate.inference.schema import ChildTableKind, ChildTableSchema, ContainerProfile, FieldInfo
from docmigrate.inference.schema_inferencer import SCALAR_VALUE_FIELD
from docmigrate.inference.type_detector import ValueTag
from docmigrate.inference.type_mapping import UNBOUNDED_TEXT, type_family
from docmigrate.quality.models import ContainerQualityReport, DuplicateKeyType
from docmigrate.sources.base import ContainerMetadata

from .models import (
    ChildTableMapping,
    ChildTableType,
    ContainerMapping,
    FieldMapping,
    ForeignKeyConstraint,
    IndexRecommendation,
    IndexType,
    LinkingTableRecommendation,
    SharedSchema,
    TransformationStep,
    TransformationType,
    UniqueConstraint,
)
from .naming import column_name, constraint_name, parent_key_column, pascal_case, table_name

logger = logging.getLogger(__name__)

SYNTHETIC_KEY = "Id"
SYNTHETIC_KEY_TYPE = "BIGINT IDENTITY(1,1)"
GENERATED_SOURCE = "$generated"
PARENT_SOURCE = "$parent"

# Longest NVARCHAR SQL Server accepts in a clustered key
MAX_KEY_TEXT_TYPE = "NVARCHAR(450)"

MANY_TO_MANY_KEYWORDS = (
    "assignment", "membership", "tag", "category", "role",
    "permission", "link", "association", "relation",
)
MAX_RELATIONSHIP_FIELDS = 3

NESTED_TAGS = (ValueTag.ARRAY, ValueTag.OBJECT)

# Share of the average RU rate credited to each kind of index
PARTITION_INDEX_RU_SHARE = 0.10
COMPOSITE_INDEX_RU_SHARE = 0.05
QUERY_INDEX_RU_SHARE = 0.05


def _key_type(target_type: str) -> str:
    """Column type a foreign key needs to reference a key column."""
    return target_type.upper().replace("IDENTITY(1,1)", "").strip()


class _ColumnNames:
    """Case-insensitive column name registry for one table."""

    def __init__(self):
        self._used: Set[str] = set()

    def claim(self, name: str) -> str:
        candidate = name
        suffix = 2
        while candidate.lower() in self._used:
            candidate = f"{name}_{suffix}"
            suffix += 1
        self._used.add(candidate.lower())
        return candidate


class RelationalMapper:
    """
    Proposes relational tables for a profiled container.
    """

    def __init__(self, options: Optional[AnalysisOptions] = None):
        self.options = options or AnalysisOptions()

    # ======================================
    # Container
    # ======================================
    def map_container(
        self,
        profile: ContainerProfile,
        report: Optional[ContainerQualityReport] = None,
        metadata: Optional[ContainerMetadata] = None,
    ) -> ContainerMapping:
        """
        Map one container onto relational tables.

        Args:
            profile: Inferred container profile
            report: Quality report of the same container
            metadata: Partition key, document count, declared indexes

        Returns:
            ContainerMapping (foreign keys are added later by link_child_tables)
        """
        metadata = metadata or ContainerMetadata(name=profile.container)
        report = report or ContainerQualityReport(container=profile.container)
        schema = profile.primary_schema
        table = table_name(profile.container)
        partition_field = metadata.partition_key_field
        names = _ColumnNames()

        # Step 1: primary key
        id_info = schema.fields.get(self.options.id_field) if schema else None
        if id_info is not None and id_info.dominant_tag not in NESTED_TAGS + (None,):
            pk = self._column(id_info, self.options.id_field, report, partition_field, names)
            pk.is_primary_key = True
            pk.is_nullable = False
            if pk.target_type == UNBOUNDED_TEXT:
                pk.target_type = MAX_KEY_TEXT_TYPE
                pk.notes = _join_notes(pk.notes, "Key column capped at 450 characters")
        else:
            id_info = None
            pk = FieldMapping(
                source_field=GENERATED_SOURCE,
                target_column=names.claim(SYNTHETIC_KEY),
                target_type=SYNTHETIC_KEY_TYPE,
                is_nullable=False,
                is_primary_key=True,
                notes="Synthetic primary key; documents carry no usable id field",
            )

        mapping = ContainerMapping(
            source_container=profile.container,
            target_table=table,
            primary_key=pk.target_column,
            field_mappings=[pk],
            estimated_rows=metadata.document_count if metadata.document_count is not None else profile.analyzed_count,
        )
        self._note_type_conversion(mapping, pk, table)

        # Step 2: fields of the dominant schema
        for name, info in (schema.fields.items() if schema else ()):
            if id_info is not None and name == self.options.id_field:
                continue
            child = schema.child_tables.get(name)
            if child is not None and info.dominant_tag in NESTED_TAGS:
                if self._can_flatten(child):
                    mapping.field_mappings.extend(
                        self._flatten(child, table, report, partition_field, names, mapping.transformations, profile)
                    )
                else:
                    mapping.child_tables.append(
                        self._map_child(profile.container, child, table, pk, report, mapping.transformations)
                    )
                continue
            column = self._column(info, name, report, partition_field, names)
            mapping.field_mappings.append(column)
            self._note_type_conversion(mapping, column, table)

        # Step 3: fields only other schema variants carry
        self._merge_variants(profile, mapping, report, partition_field, names)

        # Step 4: keys and indexes that do not depend on other containers
        self._add_root_indexes(mapping, profile, report, metadata)

        logger.info(
            "Container '%s': mapped to %s with %d column(s) and %d child table(s)",
            profile.container, table, len(mapping.field_mappings), len(mapping.all_child_tables()),
        )
        return mapping

    # ======================================
    # Columns
    # ======================================
    def _column(
        self,
        info: FieldInfo,
        path: str,
        report: ContainerQualityReport,
        partition_field: Optional[str],
        names: _ColumnNames,
        column: Optional[str] = None,
    ) -> FieldMapping:
        target_type = info.recommended_type
        transformation = None
        notes = ""

        type_result = report.type_result(path)
        if info.is_nested:
            target_type = UNBOUNDED_TEXT
            notes = "Nested beyond the mapped depth; stored as JSON text"
        elif type_result is not None and not type_result.is_consistent:
            target_type = type_result.recommended_type
            transformation = TransformationType.TYPE_CONVERT
            mix = ", ".join(f"{tag} {count}" for tag, count in type_result.type_distribution.items())
            notes = f"Mixed types ({mix}); converted to {target_type}"
        elif type_family(target_type) == "NVARCHAR":
            length_result = report.length_result(path)
            if length_result is not None:
                target_type = length_result.recommended_type

        date_result = report.date_result(path)
        if date_result is not None and date_result.invalid_count and type_family(target_type) == "DATETIME2":
            transformation = TransformationType.TYPE_CONVERT
            notes = _join_notes(notes, f"{date_result.invalid_count} unparseable date(s) must be fixed or nulled")

        null_result = report.null_result(path)
        if null_result is not None:
            nullable = not null_result.is_recommended_required
            if not nullable and null_result.null_count + null_result.missing_count:
                notes = _join_notes(
                    notes,
                    f"{null_result.null_count + null_result.missing_count} null/missing value(s) need a default",
                )
        else:
            nullable = not info.is_required

        return FieldMapping(
            source_field=path,
            target_column=names.claim(column or column_name(info.name)),
            target_type=target_type,
            source_types=sorted(tag.value for tag in info.detected_types),
            is_nullable=nullable,
            is_partition_key=partition_field is not None and path == partition_field,
            transformation=transformation,
            notes=notes,
        )

    def _note_type_conversion(self, mapping: ContainerMapping, column: FieldMapping, table: str) -> None:
        if column.transformation is TransformationType.TYPE_CONVERT:
            mapping.transformations.append(
                TransformationStep(
                    transformation_type=TransformationType.TYPE_CONVERT,
                    source_path=column.source_field,
                    target=f"{table}.{column.target_column}",
                    description=column.notes,
                )
            )

    # ======================================
    # Flattening
    # ======================================
    def _can_flatten(self, child: ChildTableSchema) -> bool:
        return (
            child.kind is ChildTableKind.NESTED_OBJECT
            and not child.children
            and 0 < len(child.fields) <= self.options.flatten_max_fields
            and not any(info.is_nested for info in child.fields.values())
        )

    def _flatten(
        self,
        child: ChildTableSchema,
        table: str,
        report: ContainerQualityReport,
        partition_field: Optional[str],
        names: _ColumnNames,
        steps: List[TransformationStep],
        profile: Optional[ContainerProfile] = None,
    ) -> List[FieldMapping]:
        columns = []
        prefix = child.source_path.replace(".", "_")
        for sub_name, sub_info in child.fields.items():
            path = f"{child.source_path}.{sub_name}"
            # Document-level statistics know how often the parent object itself was absent
            info = profile.field_at(path) if profile is not None else None
            column = self._column(
                info or sub_info, path, report, partition_field, names, column=column_name(f"{prefix}_{sub_name}")
            )
            if info is None and report.null_result(path) is None:
                column.is_nullable = True
            column.transformation = column.transformation or TransformationType.FLATTEN
            columns.append(column)

        steps.append(
            TransformationStep(
                transformation_type=TransformationType.FLATTEN,
                source_path=child.source_path,
                target=", ".join(f"{table}.{c.target_column}" for c in columns),
                description=f"Flatten nested object '{child.source_path}' into {len(columns)} column(s) of {table}",
            )
        )
        return columns

    # ======================================
    # Child tables
    # ======================================
    def _map_child(
        self,
        container: str,
        child: ChildTableSchema,
        parent_table: str,
        parent_pk: FieldMapping,
        report: ContainerQualityReport,
        steps: List[TransformationStep],
    ) -> ChildTableMapping:
        key_column = parent_key_column(parent_table)
        mapping = ChildTableMapping(
            source_container=container,
            source_path=child.source_path,
            name=child.name,
            child_type=ChildTableType.ARRAY if child.kind is ChildTableKind.ARRAY else ChildTableType.NESTED_OBJECT,
            target_table=table_name(f"{parent_table}_{child.name}"),
            parent_table=parent_table,
            parent_key_column=key_column,
            parent_key_type=_key_type(parent_pk.target_type),
            parent_primary_key=parent_pk.target_column,
            depth=child.depth,
            rows_per_parent=child.average_rows_per_parent,
        )
        if child.kind is ChildTableKind.ARRAY:
            link = self._linking_table(child, parent_table, key_column)
            if link is not None:
                mapping.child_type = ChildTableType.MANY_TO_MANY
                mapping.linking_table = link
                mapping.target_table = link.table_name

        names = _ColumnNames()
        pk = FieldMapping(
            source_field=GENERATED_SOURCE,
            target_column=names.claim(SYNTHETIC_KEY),
            target_type=SYNTHETIC_KEY_TYPE,
            is_nullable=False,
            is_primary_key=True,
            notes="Synthetic primary key",
        )
        mapping.field_mappings.append(pk)
        mapping.field_mappings.append(
            FieldMapping(
                source_field=PARENT_SOURCE,
                target_column=names.claim(key_column),
                target_type=mapping.parent_key_type,
                is_nullable=False,
                notes=f"References {parent_table}.{parent_pk.target_column}",
            )
        )

        for name, info in child.fields.items():
            grandchild = child.children.get(name)
            if grandchild is not None and info.dominant_tag in NESTED_TAGS:
                if self._can_flatten(grandchild):
                    mapping.field_mappings.extend(
                        self._flatten(grandchild, mapping.target_table, report, None, names, steps)
                    )
                else:
                    mapping.children.append(
                        self._map_child(container, grandchild, mapping.target_table, pk, report, steps)
                    )
                continue
            column = self._column(info, info.path, report, None, names)
            if name == SCALAR_VALUE_FIELD and child.is_scalar_array:
                column.source_field = child.source_path
            mapping.field_mappings.append(column)
            if column.transformation is TransformationType.TYPE_CONVERT:
                steps.append(
                    TransformationStep(
                        transformation_type=TransformationType.TYPE_CONVERT,
                        source_path=info.path,
                        target=f"{mapping.target_table}.{column.target_column}",
                        description=column.notes,
                    )
                )

        steps.append(self._split_step(mapping))
        return mapping

    def _split_step(self, mapping: ChildTableMapping) -> TransformationStep:
        if mapping.child_type is ChildTableType.MANY_TO_MANY:
            link = mapping.linking_table
            description = (
                f"Extract '{mapping.source_path}' into junction table {mapping.target_table} "
                f"linking {mapping.parent_table} to {link.referenced_entity}"
            )
        elif mapping.child_type is ChildTableType.ARRAY:
            description = (
                f"Extract array '{mapping.source_path}' into {mapping.target_table}, one row per element "
                f"(~{mapping.rows_per_parent:.1f} per {mapping.parent_table} row)"
            )
        else:
            description = f"Extract nested object '{mapping.source_path}' into 1-to-1 table {mapping.target_table}"
        return TransformationStep(
            transformation_type=TransformationType.SPLIT,
            source_path=mapping.source_path,
            target=mapping.target_table,
            description=description,
        )

    def _linking_table(
        self,
        child: ChildTableSchema,
        parent_table: str,
        key_column: str,
    ) -> Optional[LinkingTableRecommendation]:
        lowered = child.name.lower()
        suffix_ids = lowered.endswith("ids") and len(lowered) > 3
        if not suffix_ids and not any(keyword in lowered for keyword in MANY_TO_MANY_KEYWORDS):
            return None

        if child.is_scalar_array:
            if not suffix_ids:
                return None
            entity = pascal_case(child.name[:-3])
            references = [SCALAR_VALUE_FIELD]
            relationship_fields: List[str] = []
        else:
            scalar_fields = [name for name, info in child.fields.items() if not info.is_nested and name not in child.children]
            references = [n for n in scalar_fields if n.lower().endswith("id") and n.lower() != "id"]
            relationship_fields = [n for n in scalar_fields if n not in references and n.lower() != "id"]
            if not references or len(relationship_fields) > MAX_RELATIONSHIP_FIELDS:
                return None
            entity = pascal_case(references[0][:-2])

        junction = table_name(f"{parent_table}_{entity}_Junction")
        return LinkingTableRecommendation(
            table_name=junction,
            parent_table=parent_table,
            parent_key_column=key_column,
            referenced_entity=entity,
            reference_columns=[column_name(r) for r in references],
            relationship_fields=relationship_fields,
            description=(
                f"Many-to-many between {parent_table} and {entity}: composite key "
                f"({key_column}, {column_name(references[0])}), foreign key to {entity} once that table exists"
            ),
        )

    # ======================================
    # Schema variants
    # ======================================
    def _merge_variants(
        self,
        profile: ContainerProfile,
        mapping: ContainerMapping,
        report: ContainerQualityReport,
        partition_field: Optional[str],
        names: _ColumnNames,
    ) -> None:
        primary = profile.primary_schema
        mapped = {m.source_field for m in mapping.field_mappings} | {c.source_path for c in mapping.child_tables}
        for variant in profile.schemas[1:]:
            added, skipped = [], []
            for name, info in variant.fields.items():
                if name in primary.fields or name in mapped:
                    continue
                if info.dominant_tag in NESTED_TAGS:
                    skipped.append(name)
                    continue
                column = self._column(info, name, report, partition_field, names)
                column.is_nullable = True
                column.notes = _join_notes(column.notes, f"Only present in {variant.schema_name}")
                mapping.field_mappings.append(column)
                mapped.add(name)
                added.append(name)

            if not added and not skipped:
                continue
            description = f"{variant.schema_name} ({variant.prevalence:.1%} of sample)"
            if added:
                description += f" adds {', '.join(added)}; mapped as nullable columns"
            if skipped:
                description += f"{';' if added else ''} nested field(s) {', '.join(skipped)} need manual mapping"
            mapping.transformations.append(
                TransformationStep(
                    transformation_type=TransformationType.MERGE_VARIANT,
                    source_path=variant.schema_name,
                    target=mapping.target_table,
                    description=description,
                )
            )

    # ======================================
    # Indexes & unique constraints
    # ======================================
    def _add_root_indexes(
        self,
        mapping: ContainerMapping,
        profile: ContainerProfile,
        report: ContainerQualityReport,
        metadata: ContainerMetadata,
    ) -> None:
        table = mapping.target_table
        average_ru = metadata.performance.average_ru_per_second if metadata.performance else 0.0

        mapping.indexes.append(
            IndexRecommendation(
                table=table,
                name=constraint_name("PK", table),
                index_type=IndexType.CLUSTERED,
                columns=[mapping.primary_key],
                priority=1,
                justification="Primary key",
            )
        )

        # Partition key
        partition_field = metadata.partition_key_field
        if partition_field:
            column = mapping.column_for(partition_field)
            if column is None:
                logger.debug("Container '%s': partition key '%s' has no root column", profile.container, partition_field)
            elif not column.is_primary_key:
                mapping.indexes.append(
                    IndexRecommendation(
                        table=table,
                        name=constraint_name("IX", table, column.target_column),
                        index_type=IndexType.NON_CLUSTERED,
                        columns=[column.target_column],
                        priority=2,
                        justification="Partition key of the source container; the usual filter and grouping column",
                        estimated_ru_impact=round(average_ru * PARTITION_INDEX_RU_SHARE, 2),
                    )
                )

        # De-facto natural keys
        for result in report.duplicate_results:
            if result.key_type is DuplicateKeyType.PARTITION_KEY or result.documents_considered == 0:
                continue
            if result.duplicate_percentage > self.options.unique_candidate_max_duplicate:
                continue
            columns = [mapping.column_for(f) for f in result.key_fields]
            if any(c is None for c in columns):
                continue
            column_names = [c.target_column for c in columns]
            if column_names == [mapping.primary_key]:
                continue
            name = constraint_name("UK", table, *column_names)
            justification = (
                f"No duplicates of {result.key_label} in {result.documents_considered} sampled documents"
                if result.duplicate_group_count == 0
                else f"{result.duplicate_percentage:.2%} duplicates of {result.key_label}; deduplicate first"
            )
            mapping.unique_constraints.append(
                UniqueConstraint(name=name, table=table, columns=column_names, justification=justification)
            )
            mapping.indexes.append(
                IndexRecommendation(
                    table=table,
                    name=name,
                    index_type=IndexType.NON_CLUSTERED,
                    columns=column_names,
                    priority=3,
                    justification=f"Candidate unique key ({result.key_type.value})",
                    is_unique=True,
                )
            )

        # Composite indexes declared on the source
        for paths in metadata.composite_indexes:
            columns = [mapping.column_for(p.strip().lstrip("/").replace("/", ".")) for p in paths]
            if not columns or any(c is None for c in columns):
                continue
            column_names = [c.target_column for c in columns]
            mapping.indexes.append(
                IndexRecommendation(
                    table=table,
                    name=constraint_name("IX", table, "Composite", *column_names),
                    index_type=IndexType.NON_CLUSTERED,
                    columns=column_names,
                    priority=3,
                    justification="Composite index declared on the source container",
                    estimated_ru_impact=round(average_ru * COMPOSITE_INDEX_RU_SHARE, 2),
                )
            )

        # Selective fields the workload filters on
        leading = {index.columns[0] for index in mapping.indexes}
        for path in metadata.referenced_query_fields():
            column = mapping.column_for(path)
            info = profile.field_at(path)
            if column is None or column.target_column in leading or info is None:
                continue
            if info.selectivity < self.options.index_selectivity_threshold:
                continue
            leading.add(column.target_column)
            mapping.indexes.append(
                IndexRecommendation(
                    table=table,
                    name=constraint_name("IX", table, column.target_column),
                    index_type=IndexType.NON_CLUSTERED,
                    columns=[column.target_column],
                    priority=4,
                    justification=f"Filtered on by the workload; selectivity {info.selectivity:.2f}",
                    estimated_ru_impact=round(average_ru * QUERY_INDEX_RU_SHARE, 2),
                )
            )

    # ======================================
    # Foreign keys (after deduplication)
    # ======================================
    def link_child_tables(self, mappings: Iterable[ContainerMapping], shared_schemas: Iterable[SharedSchema] = ()) -> None:
        """
        Add primary key indexes, foreign keys and foreign key indexes
        for every child table. Call once, after shared schemas are resolved.
        """
        shared_ids = {shared.schema_id for shared in shared_schemas}
        emitted: Set[str] = set()  # index names already recommended

        for mapping in mappings:
            for child in mapping.all_child_tables():
                if child.shared_schema_id is not None and child.shared_schema_id not in shared_ids:
                    logger.warning("Child table %s references unknown shared schema %s", child.source_path, child.shared_schema_id)

                pk_index = constraint_name("PK", child.target_table)
                if pk_index not in emitted:
                    emitted.add(pk_index)
                    mapping.indexes.append(
                        IndexRecommendation(
                            table=child.target_table,
                            name=pk_index,
                            index_type=IndexType.CLUSTERED,
                            columns=[child.primary_key],
                            priority=1,
                            justification="Synthetic primary key",
                        )
                    )

                fk_index = constraint_name("IX", child.target_table, child.parent_key_column)
                if fk_index not in emitted:
                    emitted.add(fk_index)
                    mapping.indexes.append(
                        IndexRecommendation(
                            table=child.target_table,
                            name=fk_index,
                            index_type=IndexType.NON_CLUSTERED,
                            columns=[child.parent_key_column],
                            priority=2,
                            justification=f"Joins back to {child.parent_table}",
                        )
                    )

                if child.is_many_to_many:
                    continue

                mapping.foreign_keys.append(
                    ForeignKeyConstraint(
                        name=constraint_name("FK", child.target_table, child.parent_key_column),
                        child_table=child.target_table,
                        child_column=child.parent_key_column,
                        parent_table=child.parent_table,
                        parent_column=child.parent_primary_key,
                        on_delete="CASCADE",
                        justification=f"Rows of {child.target_table} belong to one {child.parent_table} row",
                    )
                )


def _join_notes(first: str, second: str) -> str:
    if not first:
        return second
    return f"{first}; {second}"
