# ==============================================
# Null analysis
# ==============================================
#
# Per field path:
#   null_count     → key present, value null
#   missing_count  → key (or a parent object) absent
#   non_null_count → everything else
#   null_count + missing_count + non_null_count == total_documents
#
# Severity uses the combined null + missing rate (both become NULL
# in the target column):
#   >= null_threshold_critical → Critical
#   >= null_threshold_warning  → Warning
#   else                       → Info
#
# is_recommended_required = combined rate < null_threshold_warning
#
# ==============================================

from docmigrate.sample import MISSING

from .base import CheckContext, run_per_field
from .models import CheckOutput, NullAnalysisResult, Severity

CHECK_NAME = "null"

_BLANK_LITERALS = {"null", "none", "nil"}


def null_severity(rate: float, critical: float, warning: float) -> Severity:
    if rate >= critical:
        return Severity.CRITICAL
    if rate >= warning:
        return Severity.WARNING
    return Severity.INFO


def check_nulls(context: CheckContext) -> CheckOutput:
    options = context.options
    sample = context.sample
    total = len(sample)

    def analyze(path: str) -> NullAnalysisResult:
        null_count = missing_count = blank_count = 0
        sample_ids = []
        for doc_id, value in sample.values(path):
            if value is MISSING:
                missing_count += 1
            elif value is None:
                null_count += 1
            else:
                if isinstance(value, str) and (not value.strip() or value.strip().lower() in _BLANK_LITERALS):
                    blank_count += 1
                continue
            if len(sample_ids) < options.max_sample_records:
                sample_ids.append(doc_id)

        combined = (null_count + missing_count) / total if total else 0.0
        return NullAnalysisResult(
            field=path,
            total_documents=total,
            null_count=null_count,
            missing_count=missing_count,
            blank_count=blank_count,
            is_recommended_required=combined < options.null_threshold_warning,
            severity=null_severity(combined, options.null_threshold_critical, options.null_threshold_warning),
            sample_document_ids=sample_ids,
        )

    return run_per_field(context, CHECK_NAME, context.profile.field_paths(), analyze)
