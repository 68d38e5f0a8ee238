# ==============================================
# TOPIC 3: RELATIONAL MAPPING
# ==============================================
#
# This package proposes the relational target for every container
# and rates how hard the migration will be.
#
# Three-step process:
#   Step 1 (Per container): profile + quality report → ContainerMapping
#   Step 2 (Merge):         shared structures → SharedSchemas, then
#                           foreign keys and child indexes
#   Step 3 (Scoring):       mappings + quality → MigrationComplexity
#
# Modules:
# --------
# - models.py             → Mapping data classes and enums
# - naming.py             → Table / column / constraint identifiers
# - relational_mapper.py  → RelationalMapper (tables, keys, indexes)
# - deduplicator.py       → SchemaDeduplicator + SharedSchemaRegistry
# - complexity.py         → ComplexityScorer
# - ddl.py                → SQL Server script rendering
#
# ==============================================

from .complexity import ComplexityFactor, ComplexityScorer, MigrationComplexity
from .ddl import render_ddl
from .deduplicator import SchemaDeduplicator, SharedSchemaRegistry, structural_hash
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
    SharedSchemaUsage,
    TransformationStep,
    TransformationType,
    UniqueConstraint,
)
from .relational_mapper import RelationalMapper

__all__ = [
    "ComplexityFactor",
    "ComplexityScorer",
    "MigrationComplexity",
    "render_ddl",
    "SchemaDeduplicator",
    "SharedSchemaRegistry",
    "structural_hash",
    "ChildTableMapping",
    "ChildTableType",
    "ContainerMapping",
    "FieldMapping",
    "ForeignKeyConstraint",
    "IndexRecommendation",
    "IndexType",
    "LinkingTableRecommendation",
    "SharedSchema",
    "SharedSchemaUsage",
    "TransformationStep",
    "TransformationType",
    "UniqueConstraint",
    "RelationalMapper",
]
