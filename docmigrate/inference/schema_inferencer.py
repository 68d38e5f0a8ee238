# ==============================================
# SchemaInferencer
# ==============================================
#
# PURPOSE:
#   Observe a bounded sample of documents from one container and
#   build its ContainerProfile: schema variants, per-field type
#   evidence, selectivity and child-table candidates.
#
# WHY THIS CLASS EXISTS:
#   Document stores have no declared schema. Everything the quality
#   checkers and the relational mapper know about a container comes
#   from what this class observed in the sample.
#
# CLASSES:
# --------
#   StructureProfile
#     Accumulates FieldStats for one object level. Nested objects and
#     arrays get their own StructureProfile (one level per recursion),
#     array elements are capped at max_array_elements per document.
#
#   SchemaInferencer
#     - __init__(options: AnalysisOptions, type_detector: TypeDetector = None)
#     - infer(container, documents, cancellation=None) -> ContainerProfile
#
#   Process (infer):
#   ----------------
#     1. Pull at most sample_size documents
#     2. Skip (and count) documents that are not traversable objects
#     3. Bucket each document by its top-level key set (Jaccard similarity)
#     4. Observe the document into its bucket's StructureProfile
#     5. Turn buckets into DocumentSchema (Schema_1 = most common)
#     6. Flag partial analysis when the skip rate is above threshold
#
# ==============================================

import logging
from itertools import islice
from typing import Any, Dict, Iterable, List, Optional, Set

from docmigrate.cancellation import CancellationToken
from docmigrate.config import AnalysisOptions
from docmigrate.errors import AnalysisWarning, InputError, WarningKind
from docmigrate.sample import SampleSet

from .field_stats import FieldStats
from .schema import ChildTableKind, ChildTableSchema, ContainerProfile, DocumentSchema, FieldInfo
from .type_detector import TypeDetector
from .type_mapping import recommend_relational_type

logger = logging.getLogger(__name__)

# Column name used for arrays of scalars
SCALAR_VALUE_FIELD = "value"

# Anything deeper than this is treated as a cycle / hostile input
MAX_TRAVERSAL_DEPTH = 100

# Synthetic primary key name used below the root table
CHILD_KEY_FIELD = "Id"


def _join(prefix: str, key: str) -> str:
    if not prefix:
        return key
    return f"{prefix}.{key}"


class StructureProfile:
    """
    Field statistics for one object level.
    """

    def __init__(self, path: str, depth: int, options: AnalysisOptions, type_detector: TypeDetector):
        self.path = path
        self.depth = depth
        self.options = options
        self.type_detector = type_detector
        self.row_count = 0  # Objects / elements observed at this level
        self.parent_count = 0  # Parents that carried this structure
        self.scalar_rows = 0  # Elements that were not objects
        self.fields: Dict[str, FieldStats] = {}
        self.nested: Dict[str, "StructureProfile"] = {}
        self.kind_counts: Dict[ChildTableKind, int] = {}

    def observe_object(self, obj: Dict[str, Any], skip: Iterable[str] = ()) -> None:
        """
        Observe one object at this level.

        Args:
            obj: The object to walk
            skip: Keys to ignore (store system properties)
        """
        self.row_count += 1
        for key, value in obj.items():
            if key in skip:
                continue
            detected_type = self.type_detector.detect(value)
            self._stats_for(key).update(value, detected_type)

            if detected_type == "object":
                self._observe_nested(key, ChildTableKind.NESTED_OBJECT, [value])
            elif detected_type == "array":
                elements = list(islice(value, self.options.max_array_elements))
                self._observe_nested(key, ChildTableKind.ARRAY, elements)

    def observe_element(self, value: Any) -> None:
        """Observe one array element (object or scalar)."""
        if isinstance(value, dict):
            self.observe_object(value)
            return
        self.row_count += 1
        self.scalar_rows += 1
        # Arrays of arrays stay as JSON text in the value column
        self._stats_for(SCALAR_VALUE_FIELD).update(value, self.type_detector.detect(value))

    @property
    def kind(self) -> ChildTableKind:
        if not self.kind_counts:
            return ChildTableKind.NESTED_OBJECT
        return sorted(self.kind_counts.items(), key=lambda item: (-item[1], item[0].value))[0][0]

    def _stats_for(self, key: str) -> FieldStats:
        stats = self.fields.get(key)
        if stats is None:
            stats = FieldStats(name=key)
            self.fields[key] = stats
        return stats

    def _observe_nested(self, key: str, kind: ChildTableKind, items: List[Any]) -> None:
        if self.depth >= self.options.max_nesting_depth:
            return
        child = self.nested.get(key)
        if child is None:
            child = StructureProfile(_join(self.path, key), self.depth + 1, self.options, self.type_detector)
            self.nested[key] = child
        child.parent_count += 1
        child.kind_counts[kind] = child.kind_counts.get(kind, 0) + 1
        for item in items:
            child.observe_element(item)


class _SchemaBucket:
    def __init__(self, profile: StructureProfile):
        self.keys: Set[str] = set()
        self.profile = profile
        self.order = 0


class SchemaInferencer:
    """
    Builds a ContainerProfile from a document sample.
    """

    def __init__(self, options: Optional[AnalysisOptions] = None, type_detector: Optional[TypeDetector] = None):
        self.options = options or AnalysisOptions()
        self.type_detector = type_detector or TypeDetector()

    def infer(
        self,
        container: str,
        documents: Iterable[Any],
        cancellation: Optional[CancellationToken] = None,
    ) -> ContainerProfile:
        """
        Infer the schema profile of one container.

        Args:
            container: Container name
            documents: Ordered document sample (consumed once)
            cancellation: Optional cancellation token

        Returns:
            ContainerProfile with schemas sorted by prevalence

        Raises:
            InputError: if the sample is empty or holds no traversable document
        """
        profile = ContainerProfile(container=container)
        ignored = set(self.options.ignored_fields)
        buckets: List[_SchemaBucket] = []
        accepted: List[dict] = []

        for document in islice(documents, self.options.sample_size):
            profile.total_sampled += 1
            if cancellation is not None and profile.total_sampled % 100 == 0:
                cancellation.raise_if_cancelled()

            try:
                self._check_traversable(document)
            except InputError as e:
                profile.skipped_count += 1
                logger.debug("Container '%s': skipped document #%d (%s)", container, profile.total_sampled, e)
                continue

            keys = {key for key in document if key not in ignored}
            bucket = self._bucket_for(buckets, keys)
            bucket.profile.observe_object(document, skip=ignored)
            accepted.append(document)

        if profile.total_sampled == 0:
            raise InputError(f"Container '{container}' returned no documents")
        if not accepted:
            raise InputError(
                f"Container '{container}': none of the {profile.total_sampled} sampled documents is a traversable object"
            )

        if profile.skip_rate > self.options.skip_rate_threshold:
            message = (
                f"{profile.skipped_count} of {profile.total_sampled} documents "
                f"({profile.skip_rate:.1%}) were not traversable; findings are based on partial analysis"
            )
            profile.warnings.append(AnalysisWarning(WarningKind.PARTIAL_ANALYSIS, container, message))
            logger.warning("Container '%s': %s", container, message)
        elif profile.skipped_count:
            logger.info("Container '%s': skipped %d non-traversable document(s)", container, profile.skipped_count)

        profile.schemas = self._build_schemas(buckets, profile.total_sampled)
        profile.sample = SampleSet.from_documents(container, accepted, self.options.id_field)

        logger.info(
            "Container '%s': inferred %d schema(s) from %d documents",
            container, len(profile.schemas), len(accepted),
        )
        return profile

    # ======================================
    # Bucketing
    # ======================================
    def _bucket_for(self, buckets: List[_SchemaBucket], keys: Set[str]) -> _SchemaBucket:
        best: Optional[_SchemaBucket] = None
        best_score = -1.0
        for bucket in buckets:
            score = _jaccard(keys, bucket.keys)
            if score >= self.options.schema_variant_similarity and score > best_score:
                best, best_score = bucket, score

        if best is None:
            best = _SchemaBucket(StructureProfile("", 0, self.options, self.type_detector))
            best.order = len(buckets)
            buckets.append(best)
        best.keys |= keys
        return best

    def _check_traversable(self, document: Any) -> None:
        if not isinstance(document, dict):
            raise InputError(f"expected an object, got {type(document).__name__}")

        stack = [(document, 0)]
        while stack:
            node, depth = stack.pop()
            if depth > MAX_TRAVERSAL_DEPTH:
                raise InputError("structure is cyclic or nested too deeply")
            if isinstance(node, dict):
                children = []
                for key, value in node.items():
                    if not isinstance(key, str):
                        raise InputError(f"non-string key {key!r}")
                    children.append(value)
            else:
                children = node
            for value in children:
                if isinstance(value, (dict, list, tuple)):
                    stack.append((value, depth + 1))

    # ======================================
    # Building schemas
    # ======================================
    def _build_schemas(self, buckets: List[_SchemaBucket], total_sampled: int) -> List[DocumentSchema]:
        ordered = sorted(buckets, key=lambda b: (-b.profile.row_count, b.order))
        schemas = []
        for index, bucket in enumerate(ordered, start=1):
            root = bucket.profile
            schema = DocumentSchema(
                schema_name=f"Schema_{index}",
                sample_count=root.row_count,
                prevalence=root.row_count / total_sampled if total_sampled else 0.0,
            )
            for name, stats in root.fields.items():
                schema.fields[name] = self._field_info(stats, name, root.row_count)

            parent_key = self.options.id_field if self.options.id_field in root.fields else CHILD_KEY_FIELD
            for name, nested in root.nested.items():
                schema.child_tables[name] = self._child_schema(name, nested, parent_key)

            self._collect_paths(root, "", 1, root.row_count, schema)
            schemas.append(schema)
        return schemas

    def _field_info(self, stats: FieldStats, path: str, row_count: int) -> FieldInfo:
        dominant = stats.dominant_type
        return FieldInfo(
            name=stats.name,
            path=path,
            detected_types=stats.tags,
            type_counts=dict(stats.type_counts),
            recommended_type=recommend_relational_type(stats, self.options.max_string_length_for_varchar),
            is_required=row_count > 0 and stats.null_count == 0 and stats.presence_count == row_count,
            is_nested=dominant in ("array", "object"),
            max_length=stats.max_length,
            selectivity=stats.selectivity(row_count),
            presence_count=stats.presence_count,
            null_count=stats.null_count,
        )

    def _child_schema(self, name: str, profile: StructureProfile, parent_key_field: str) -> ChildTableSchema:
        kind = profile.kind
        child = ChildTableSchema(
            name=name,
            source_path=profile.path,
            kind=kind,
            depth=profile.depth,
            parent_key_field=parent_key_field,
            row_count=profile.row_count,
            parent_count=profile.parent_count,
            is_scalar_array=(
                kind is ChildTableKind.ARRAY
                and profile.scalar_rows > 0
                and profile.scalar_rows == profile.row_count
            ),
        )
        for field_name, stats in profile.fields.items():
            child.fields[field_name] = self._field_info(stats, _join(profile.path, field_name), profile.row_count)
        for nested_name, nested in profile.nested.items():
            child.children[nested_name] = self._child_schema(nested_name, nested, CHILD_KEY_FIELD)
        return child

    def _collect_paths(
        self,
        profile: StructureProfile,
        prefix: str,
        depth: int,
        document_count: int,
        schema: DocumentSchema,
    ) -> None:
        # Dot paths through nested objects only; array contents are not addressable per document
        for name, stats in profile.fields.items():
            path = _join(prefix, name)
            schema.field_paths.append(path)
            if prefix:
                schema.nested_fields[path] = self._field_info(stats, path, document_count)

            nested = profile.nested.get(name)
            if (
                nested is not None
                and nested.kind is ChildTableKind.NESTED_OBJECT
                and depth < self.options.max_field_path_depth
            ):
                self._collect_paths(nested, path, depth + 1, document_count, schema)


def _jaccard(first: Set[str], second: Set[str]) -> float:
    if not first and not second:
        return 1.0
    union = first | second
    return len(first & second) / len(union)
