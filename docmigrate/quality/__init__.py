# ==============================================
# TOPIC 2: DATA QUALITY
# ==============================================
#
# This package runs the quality checkers over a container's sample
# and rolls their findings up into issues and a run-wide summary.
#
# Two-step process:
#   Step 1 (Checks):      sample + profile → typed results per field
#   Step 2 (Aggregation): results → DataQualityIssues → QualitySummary
#
# Modules:
# --------
# - models.py           → Result data classes, Severity, IssueCategory
# - base.py             → CheckContext + per-field failure isolation
# - null_check.py       → Null / missing / blank counts
# - duplicate_check.py  → Duplicate groups per key definition
# - type_check.py       → Type distribution and dominance
# - outlier_check.py    → z-score and Tukey fence outliers
# - length_check.py     → Length percentiles, histogram, column size
# - encoding_check.py   → Non-ASCII, control, emoji, invalid code points
# - date_check.py       → Unparseable and out-of-range dates
# - analyzer.py         → QualityAnalyzer (runs the checkers)
# - aggregator.py       → IssueAggregator (issues, score, verdict)
#
# ==============================================

from .aggregator import IssueAggregator
from .analyzer import QualityAnalyzer
from .base import CheckContext
from .models import (
    AnalysisFailure,
    ContainerQualityReport,
    DataQualityIssue,
    DateValidationResult,
    DuplicateAnalysisResult,
    DuplicateKeyType,
    EncodingIssueResult,
    EncodingIssueType,
    IssueCategory,
    NullAnalysisResult,
    OutlierAnalysisResult,
    OutlierDirection,
    QualitySummary,
    Severity,
    StringLengthResult,
    TypeConsistencyResult,
)

__all__ = [
    "IssueAggregator",
    "QualityAnalyzer",
    "CheckContext",
    "AnalysisFailure",
    "ContainerQualityReport",
    "DataQualityIssue",
    "DateValidationResult",
    "DuplicateAnalysisResult",
    "DuplicateKeyType",
    "EncodingIssueResult",
    "EncodingIssueType",
    "IssueCategory",
    "NullAnalysisResult",
    "OutlierAnalysisResult",
    "OutlierDirection",
    "QualitySummary",
    "Severity",
    "StringLengthResult",
    "TypeConsistencyResult",
]
