# ==============================================
# TOPIC 1: TYPE DETECTION & SCHEMA INFERENCE
# ==============================================
#
# This package observes a bounded document sample and builds the
# schema profile every later stage works from.
#
# Modules:
# --------
# - type_detector.py      → Tagged value model (ValueTag) + TypeDetector
# - field_stats.py        → Statistics for one field at one object level
# - type_mapping.py       → Observed types → relational column types
# - schema.py             → FieldInfo, ChildTableSchema, DocumentSchema, ContainerProfile
# - schema_inferencer.py  → Walk documents, bucket variants, build the profile
#
# ==============================================

from .field_stats import FieldStats
from .schema import ChildTableKind, ChildTableSchema, ContainerProfile, DocumentSchema, FieldInfo
from .schema_inferencer import SCALAR_VALUE_FIELD, SchemaInferencer, StructureProfile
from .type_detector import TAG_FOR_TYPE, TypeDetector, ValueTag
from .type_mapping import (
    recommend_relational_type,
    sized_nvarchar,
    type_family,
    wider_type,
    widening_type_for_tags,
)

__all__ = [
    "TypeDetector",
    "ValueTag",
    "TAG_FOR_TYPE",
    "FieldStats",
    "FieldInfo",
    "ChildTableKind",
    "ChildTableSchema",
    "DocumentSchema",
    "ContainerProfile",
    "SchemaInferencer",
    "StructureProfile",
    "SCALAR_VALUE_FIELD",
    "recommend_relational_type",
    "sized_nvarchar",
    "type_family",
    "wider_type",
    "widening_type_for_tags",
]
