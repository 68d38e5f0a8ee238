# ==============================================
# Date validation
# ==============================================
#
# Candidate fields:
#   - any value is a native datetime / date
#   - any string value parses as a date, or looks like one
#   - numeric fields named like timestamps (createdAt, ts, epoch, ...)
#     → read as epoch seconds, or milliseconds above 1e11
#
# Per candidate field:
#   invalid  → date-looking string that does not parse (Critical)
#   too_old  → parsed value < min_reasonable_date      (Warning)
#   future   → parsed value > max_reasonable_date      (Warning)
#
# ==============================================

import re
from datetime import datetime, timedelta
from typing import Any, List, Optional, Tuple

from docmigrate.inference.type_detector import TypeDetector, ValueTag
from docmigrate.sample import MISSING

from .base import CheckContext, preview, run_per_field
from .models import CheckOutput, DateSample, DateValidationResult, Severity

CHECK_NAME = "date"

INVALID = "Invalid"
FUTURE = "Future"
TOO_OLD = "TooOld"

# createdAt, updated_at, ts, timestamp, epochMillis ...
TIMESTAMP_NAME = re.compile(r"(^ts$|timestamp|epoch|_at$|[a-z]At$)")

# Epoch values above this are read as milliseconds
EPOCH_MILLIS_CUTOFF = 1e10

_EPOCH = datetime(1970, 1, 1)


def is_timestamp_name(path: str) -> bool:
    leaf = path.rsplit(".", 1)[-1]
    return bool(TIMESTAMP_NAME.search(leaf))


def epoch_to_datetime(value: float) -> Optional[datetime]:
    seconds = value / 1000 if abs(value) > EPOCH_MILLIS_CUTOFF else value
    try:
        return _EPOCH + timedelta(seconds=seconds)
    except OverflowError:
        return None


def _is_candidate(values: List[Tuple[str, Any]], numeric_timestamps: bool) -> bool:
    for _, value in values:
        if isinstance(value, str):
            if TypeDetector.parse_datetime(value) is not None or TypeDetector.looks_like_date(value):
                return True
        elif TypeDetector.tag(value) is ValueTag.DATE:
            return True
        elif numeric_timestamps and TypeDetector.is_numeric(value):
            return True
    return False


def _parse(value: Any, numeric_timestamps: bool) -> Tuple[bool, Optional[datetime]]:
    """
    Returns:
        (considered, parsed) - considered is False for values this
        check does not judge (nested values, plain numbers on
        non-timestamp fields, booleans)
    """
    if isinstance(value, str):
        parsed = TypeDetector.parse_datetime(value.strip())
        # Free text that merely sits in a date field is not judged
        return parsed is not None or TypeDetector.looks_like_date(value), parsed
    if TypeDetector.tag(value) is ValueTag.DATE:
        return True, TypeDetector.parse_datetime(value)
    if numeric_timestamps and TypeDetector.is_numeric(value):
        return True, epoch_to_datetime(float(value))
    return False, None


def check_dates(context: CheckContext) -> CheckOutput:
    options = context.options
    sample = context.sample

    def analyze(path: str) -> Optional[DateValidationResult]:
        present = [(doc_id, value) for doc_id, value in sample.values(path) if value is not MISSING and value is not None]
        numeric_timestamps = is_timestamp_name(path)
        if not present or not _is_candidate(present, numeric_timestamps):
            return None

        total = invalid = future = too_old = 0
        min_date: Optional[datetime] = None
        max_date: Optional[datetime] = None
        samples: List[DateSample] = []

        def keep(doc_id: str, value: Any, problem: str) -> None:
            if len(samples) < options.max_sample_records:
                samples.append(DateSample(document_id=doc_id, value=preview(value if isinstance(value, str) else str(value)), problem=problem))

        for doc_id, value in present:
            considered, parsed = _parse(value, numeric_timestamps)
            if not considered:
                continue
            total += 1
            if parsed is None:
                invalid += 1
                keep(doc_id, value, INVALID)
                continue
            min_date = parsed if min_date is None else min(min_date, parsed)
            max_date = parsed if max_date is None else max(max_date, parsed)
            if parsed < options.min_reasonable_date:
                too_old += 1
                keep(doc_id, value, TOO_OLD)
            elif parsed > options.max_reasonable_date:
                future += 1
                keep(doc_id, value, FUTURE)

        if total == 0:
            return None
        if invalid:
            severity = Severity.CRITICAL
        elif future or too_old:
            severity = Severity.WARNING
        else:
            severity = Severity.INFO

        return DateValidationResult(
            field=path,
            total_values=total,
            invalid_count=invalid,
            future_count=future,
            too_old_count=too_old,
            min_date=min_date,
            max_date=max_date,
            severity=severity,
            samples=samples,
        )

    return run_per_field(context, CHECK_NAME, context.profile.field_paths(), analyze)
