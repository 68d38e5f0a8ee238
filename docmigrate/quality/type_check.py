# ==============================================
# Type consistency
# ==============================================
#
# Per field path, over present non-null values:
#   type_distribution  → {"string": 95, "number": 5}
#   dominant_type      → most frequent tag (ties broken by tag name)
#   is_consistent      → dominant share >= type_dominance_threshold
#
# Inconsistent fields keep a bounded set of mismatch samples and get
# a widening recommendation (mixed string/number → NVARCHAR).
#
# ==============================================

from typing import Dict, List, Optional, Tuple

from docmigrate.inference.type_detector import TypeDetector, ValueTag
from docmigrate.inference.type_mapping import widening_type_for_tags
from docmigrate.sample import MISSING

from .base import CheckContext, preview, run_per_field
from .models import CheckOutput, TypeConsistencyResult, TypeMismatchSample

CHECK_NAME = "type"


def check_type_consistency(context: CheckContext) -> CheckOutput:
    options = context.options
    sample = context.sample

    def analyze(path: str) -> Optional[TypeConsistencyResult]:
        distribution: Dict[ValueTag, int] = {}
        samples_by_tag: Dict[ValueTag, List[Tuple[str, str]]] = {}
        max_length = 0

        for doc_id, value in sample.values(path):
            if value is MISSING or value is None:
                continue
            tag = TypeDetector.tag(value)
            distribution[tag] = distribution.get(tag, 0) + 1
            bucket = samples_by_tag.setdefault(tag, [])
            if len(bucket) < options.max_sample_records:
                bucket.append((doc_id, preview(value)))
            if tag not in (ValueTag.ARRAY, ValueTag.OBJECT):
                max_length = max(max_length, len(value if isinstance(value, str) else str(value)))

        if not distribution:
            return None

        total = sum(distribution.values())
        dominant, dominant_count = sorted(distribution.items(), key=lambda item: (-item[1], item[0].value))[0]
        dominance = dominant_count / total
        is_consistent = dominance >= options.type_dominance_threshold

        mismatches: List[TypeMismatchSample] = []
        if dominance < 1.0:
            for tag in sorted(samples_by_tag, key=lambda t: t.value):
                if tag is dominant:
                    continue
                for doc_id, value_preview in samples_by_tag[tag]:
                    if len(mismatches) >= options.max_sample_records:
                        break
                    mismatches.append(
                        TypeMismatchSample(
                            document_id=doc_id,
                            actual_type=tag.value,
                            expected_type=dominant.value,
                            value_preview=value_preview,
                        )
                    )

        if is_consistent:
            info = context.profile.field_at(path)
            recommended = info.recommended_type if info is not None else widening_type_for_tags(
                [dominant], max_length, options.max_string_length_for_varchar
            )
        else:
            recommended = widening_type_for_tags(
                distribution.keys(), max_length, options.max_string_length_for_varchar
            )

        return TypeConsistencyResult(
            field=path,
            type_distribution={tag.value: count for tag, count in sorted(distribution.items(), key=lambda i: i[0].value)},
            dominant_type=dominant.value,
            dominance=dominance,
            is_consistent=is_consistent,
            recommended_type=recommended,
            mismatch_samples=mismatches,
        )

    return run_per_field(context, CHECK_NAME, context.profile.field_paths(), analyze)
