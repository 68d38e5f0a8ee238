# ==============================================
# Outlier analysis (numeric fields only)
# ==============================================
#
# Statistics over the numeric values of a field (booleans excluded):
#   mean, population std dev, min, max, median,
#   Q1 / Q3 by linear rank interpolation ("inclusive" quantiles),
#   IQR = Q3 - Q1, Tukey fence [Q1 - 1.5*IQR, Q3 + 1.5*IQR]
#
# A value is an outlier when |z| > outlier_z_score_threshold OR it
# falls outside the Tukey fence. Direction is Low/High by the side it
# falls on.
#
# Degenerate cases (recorded in skipped_rules, never raised):
#   std dev == 0 → z-score rule skipped
#   IQR == 0     → Tukey rule skipped
#
# ==============================================

import statistics
from typing import List, Optional, Tuple

from docmigrate.errors import AnalysisWarning, WarningKind
from docmigrate.inference.type_detector import TypeDetector
from docmigrate.sample import MISSING

from .base import CheckContext, run_per_field
from .models import CheckOutput, OutlierAnalysisResult, OutlierDirection, OutlierSample

CHECK_NAME = "outlier"

Z_SCORE_RULE = "z-score"
TUKEY_RULE = "tukey"


def quartiles(sorted_values: List[float]) -> Tuple[float, float, float]:
    """
    Q1, median, Q3 by linear interpolation between closest ranks.

    [1, 2, 2, 3, 100] → (2.0, 2.0, 3.0)
    """
    if len(sorted_values) == 1:
        only = sorted_values[0]
        return only, only, only
    q1, median, q3 = statistics.quantiles(sorted_values, n=4, method="inclusive")
    return q1, median, q3


def analyze_values(field: str, values: List[Tuple[str, float]], z_threshold: float, max_samples: int) -> OutlierAnalysisResult:
    """
    Compute outlier statistics for (document_id, value) pairs.

    Args:
        field: Field path (for the result)
        values: Numeric values with their document ids
        z_threshold: |z| above which a value is an outlier
        max_samples: Outlier samples to keep

    Returns:
        OutlierAnalysisResult
    """
    numbers = [v for _, v in values]
    ordered = sorted(numbers)
    mean = statistics.fmean(numbers)
    std_dev = statistics.pstdev(numbers, mu=mean)
    q1, median, q3 = quartiles(ordered)
    iqr = q3 - q1
    lower_fence = q1 - 1.5 * iqr
    upper_fence = q3 + 1.5 * iqr

    skipped: List[str] = []
    if std_dev == 0:
        skipped.append(Z_SCORE_RULE)
    if iqr == 0:
        skipped.append(TUKEY_RULE)

    outlier_count = z_count = tukey_count = 0
    samples: List[OutlierSample] = []
    for doc_id, value in values:
        z_score: Optional[float] = (value - mean) / std_dev if std_dev > 0 else None
        rules = []
        if z_score is not None and abs(z_score) > z_threshold:
            rules.append(Z_SCORE_RULE)
            z_count += 1
        if iqr > 0 and (value < lower_fence or value > upper_fence):
            rules.append(TUKEY_RULE)
            tukey_count += 1
        if not rules:
            continue

        outlier_count += 1
        if TUKEY_RULE in rules:
            direction = OutlierDirection.LOW if value < lower_fence else OutlierDirection.HIGH
        else:
            direction = OutlierDirection.LOW if value < mean else OutlierDirection.HIGH
        if len(samples) < max_samples:
            samples.append(
                OutlierSample(
                    document_id=doc_id,
                    value=value,
                    z_score=round(z_score, 4) if z_score is not None else None,
                    direction=direction,
                    rules=rules,
                )
            )

    return OutlierAnalysisResult(
        field=field,
        value_count=len(numbers),
        mean=mean,
        std_dev=std_dev,
        min_value=ordered[0],
        max_value=ordered[-1],
        median=median,
        q1=q1,
        q3=q3,
        iqr=iqr,
        lower_fence=lower_fence,
        upper_fence=upper_fence,
        outlier_count=outlier_count,
        z_score_outlier_count=z_count,
        tukey_outlier_count=tukey_count,
        samples=samples,
        skipped_rules=skipped,
    )


def check_outliers(context: CheckContext) -> CheckOutput:
    options = context.options
    sample = context.sample
    degenerate: List[AnalysisWarning] = []

    def analyze(path: str) -> Optional[OutlierAnalysisResult]:
        values = [
            (doc_id, float(value))
            for doc_id, value in sample.values(path)
            if value is not MISSING and TypeDetector.is_numeric(value)
        ]
        if len(values) < options.outlier_min_values:
            return None

        result = analyze_values(path, values, options.outlier_z_score_threshold, options.max_sample_records)
        if result.skipped_rules:
            degenerate.append(
                AnalysisWarning(
                    kind=WarningKind.COMPUTATION_DEGENERATE,
                    container=context.container,
                    field=path,
                    message=f"Skipped {', '.join(result.skipped_rules)} rule(s): zero spread in {len(values)} values",
                )
            )
        return result

    output = run_per_field(context, CHECK_NAME, context.profile.field_paths(), analyze)
    output.warnings.extend(degenerate)
    return output
