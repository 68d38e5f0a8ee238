# ==============================================
# String length analysis
# ==============================================
#
# For every field with at least min_string_values string values:
#   min / max / average length
#   median, P95, P99 by nearest rank: rank = ceil(p/100 * n), 1-based
#   histogram over fixed buckets (0-10 ... 4001-8000, >8000)
#   recommended type:
#     P99 <= max_string_length_for_varchar → sized NVARCHAR over the max
#     otherwise                            → NVARCHAR(MAX)
#
# ==============================================

import math
from typing import Dict, List, Optional, Sequence, Tuple

from docmigrate.inference.type_mapping import UNBOUNDED_TEXT, sized_nvarchar
from docmigrate.sample import MISSING

from .base import CheckContext, preview, run_per_field
from .models import CheckOutput, LengthSample, StringLengthResult

CHECK_NAME = "length"

# (label, inclusive upper bound); None = unbounded
HISTOGRAM_BUCKETS: Tuple[Tuple[str, Optional[int]], ...] = (
    ("0-10", 10),
    ("11-50", 50),
    ("51-100", 100),
    ("101-255", 255),
    ("256-500", 500),
    ("501-1000", 1000),
    ("1001-2000", 2000),
    ("2001-4000", 4000),
    ("4001-8000", 8000),
    (">8000", None),
)

LONGEST_PREVIEW_LENGTH = 100


def nearest_rank(sorted_values: Sequence[int], percentile: float) -> int:
    """
    Nearest-rank percentile of an ascending sequence.

    Examples:
        nearest_rank([1, 2, 3, 4], 50) → 2
        nearest_rank([1, 2, 3, 4], 99) → 4
    """
    if not sorted_values:
        raise ValueError("nearest_rank() needs at least one value")
    rank = max(1, math.ceil(percentile / 100 * len(sorted_values)))
    return sorted_values[min(rank, len(sorted_values)) - 1]


def length_histogram(lengths: Sequence[int]) -> Dict[str, int]:
    histogram = {label: 0 for label, _ in HISTOGRAM_BUCKETS}
    for length in lengths:
        for label, upper in HISTOGRAM_BUCKETS:
            if upper is None or length <= upper:
                histogram[label] += 1
                break
    return histogram


def check_string_lengths(context: CheckContext) -> CheckOutput:
    options = context.options
    sample = context.sample
    limit = options.max_string_length_for_varchar

    def analyze(path: str) -> Optional[StringLengthResult]:
        entries: List[Tuple[str, str]] = [
            (doc_id, value)
            for doc_id, value in sample.values(path)
            if value is not MISSING and isinstance(value, str)
        ]
        if len(entries) < options.min_string_values:
            return None

        lengths = sorted(len(value) for _, value in entries)
        p99 = nearest_rank(lengths, 99)
        max_length = lengths[-1]
        recommended = sized_nvarchar(max_length, limit) if p99 <= limit else UNBOUNDED_TEXT

        longest = sorted(entries, key=lambda entry: -len(entry[1]))[: options.max_sample_records]
        return StringLengthResult(
            field=path,
            value_count=len(lengths),
            min_length=lengths[0],
            max_length=max_length,
            average_length=sum(lengths) / len(lengths),
            median_length=nearest_rank(lengths, 50),
            p95_length=nearest_rank(lengths, 95),
            p99_length=p99,
            histogram=length_histogram(lengths),
            recommended_type=recommended,
            exceeds_varchar_limit=max_length > limit,
            longest_samples=[
                LengthSample(document_id=doc_id, length=len(value), preview=preview(value, LONGEST_PREVIEW_LENGTH))
                for doc_id, value in longest
            ],
        )

    return run_per_field(context, CHECK_NAME, context.profile.field_paths(), analyze)
