# ==============================================
# Quality models (Data Classes)
# ==============================================
#
# PURPOSE:
#   Typed results of every quality checker, the unified
#   DataQualityIssue list and the summaries built from them.
#
# ENUMS:
# ------
# - Severity(Enum): INFO < WARNING < CRITICAL (ordered)
# - IssueCategory(Enum): Null, Duplicate, Type, Outlier, Length,
#                        Encoding, Date, Analysis
# - DuplicateKeyType(Enum): ID, PartitionKey, BusinessKey
# - EncodingIssueType(Enum): NonASCII, ControlCharacters, Emoji, InvalidUnicode
# - OutlierDirection(Enum): Low, High
#
# CHECKER RESULTS:
# ----------------
# - NullAnalysisResult, DuplicateAnalysisResult (+ DuplicateGroup),
#   TypeConsistencyResult (+ TypeMismatchSample),
#   OutlierAnalysisResult (+ OutlierSample),
#   StringLengthResult (+ LengthSample),
#   EncodingIssueResult (+ EncodingSample),
#   DateValidationResult (+ DateSample)
# - AnalysisFailure   → A checker blew up on one field
# - CheckOutput       → results + failures + warnings of one checker run
#
# AGGREGATES:
# -----------
# - DataQualityIssue        → Immutable unified issue
# - ContainerQualityReport  → All results for one container
# - QualitySummary          → Run-wide score / verdict
#
# ==============================================

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import total_ordering
from typing import Any, Dict, List, Optional, Tuple

from docmigrate.errors import AnalysisWarning
from docmigrate.serialization import to_plain


@total_ordering
class Severity(Enum):
    INFO = "Info"
    WARNING = "Warning"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other: Any) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank


_SEVERITY_RANK = {Severity.INFO: 0, Severity.WARNING: 1, Severity.CRITICAL: 2}


class IssueCategory(Enum):
    NULL = "Null"
    DUPLICATE = "Duplicate"
    TYPE = "Type"
    OUTLIER = "Outlier"
    LENGTH = "Length"
    ENCODING = "Encoding"
    DATE = "Date"
    ANALYSIS = "Analysis"


class DuplicateKeyType(Enum):
    ID = "ID"
    PARTITION_KEY = "PartitionKey"
    BUSINESS_KEY = "BusinessKey"


class EncodingIssueType(Enum):
    NON_ASCII = "NonASCII"
    CONTROL_CHARACTERS = "ControlCharacters"
    EMOJI = "Emoji"
    INVALID_UNICODE = "InvalidUnicode"


class OutlierDirection(Enum):
    LOW = "Low"
    HIGH = "High"


# ======================================
# Null analysis
# ======================================
@dataclass
class NullAnalysisResult:
    field: str
    total_documents: int
    null_count: int
    missing_count: int
    blank_count: int = 0  # whitespace-only or literal "null" strings (counted as non-null)
    is_recommended_required: bool = False
    severity: Severity = Severity.INFO
    sample_document_ids: List[str] = field(default_factory=list)

    @property
    def non_null_count(self) -> int:
        return self.total_documents - self.null_count - self.missing_count

    @property
    def null_percentage(self) -> float:
        return self.null_count / self.total_documents if self.total_documents else 0.0

    @property
    def missing_percentage(self) -> float:
        return self.missing_count / self.total_documents if self.total_documents else 0.0

    @property
    def combined_percentage(self) -> float:
        return self.null_percentage + self.missing_percentage

    def to_dict(self) -> Dict[str, Any]:
        data = to_plain(self)
        data.update(
            non_null_count=self.non_null_count,
            null_percentage=round(self.null_percentage, 4),
            missing_percentage=round(self.missing_percentage, 4),
        )
        return data


# ======================================
# Duplicate analysis
# ======================================
@dataclass
class DuplicateGroup:
    key_values: Dict[str, Any]
    occurrence_count: int
    document_ids: List[str] = field(default_factory=list)
    sample_data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DuplicateAnalysisResult:
    key_fields: List[str]
    key_type: DuplicateKeyType
    total_documents: int
    documents_considered: int  # documents with every key component present
    duplicate_group_count: int
    total_duplicate_records: int  # redundant copies (occurrences - 1, summed)
    severity: Severity = Severity.INFO
    top_groups: List[DuplicateGroup] = field(default_factory=list)

    @property
    def key_label(self) -> str:
        return "+".join(self.key_fields)

    @property
    def duplicate_percentage(self) -> float:
        if not self.total_documents:
            return 0.0
        return self.total_duplicate_records / self.total_documents

    def to_dict(self) -> Dict[str, Any]:
        data = to_plain(self)
        data["duplicate_percentage"] = round(self.duplicate_percentage, 4)
        return data


# ======================================
# Type consistency
# ======================================
@dataclass
class TypeMismatchSample:
    document_id: str
    actual_type: str
    expected_type: str
    value_preview: str


@dataclass
class TypeConsistencyResult:
    field: str
    type_distribution: Dict[str, int]
    dominant_type: str
    dominance: float
    is_consistent: bool
    recommended_type: str
    mismatch_samples: List[TypeMismatchSample] = field(default_factory=list)

    @property
    def mismatch_count(self) -> int:
        return sum(count for tag, count in self.type_distribution.items() if tag != self.dominant_type)

    def to_dict(self) -> Dict[str, Any]:
        data = to_plain(self)
        data["mismatch_count"] = self.mismatch_count
        return data


# ======================================
# Outliers
# ======================================
@dataclass
class OutlierSample:
    document_id: str
    value: float
    z_score: Optional[float]
    direction: OutlierDirection
    rules: List[str] = field(default_factory=list)  # "z-score", "tukey"


@dataclass
class OutlierAnalysisResult:
    field: str
    value_count: int
    mean: float
    std_dev: float
    min_value: float
    max_value: float
    median: float
    q1: float
    q3: float
    iqr: float
    lower_fence: float
    upper_fence: float
    outlier_count: int
    z_score_outlier_count: int
    tukey_outlier_count: int
    samples: List[OutlierSample] = field(default_factory=list)
    skipped_rules: List[str] = field(default_factory=list)

    @property
    def outlier_percentage(self) -> float:
        return self.outlier_count / self.value_count if self.value_count else 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = to_plain(self)
        data["outlier_percentage"] = round(self.outlier_percentage, 4)
        return data


# ======================================
# String lengths
# ======================================
@dataclass
class LengthSample:
    document_id: str
    length: int
    preview: str


@dataclass
class StringLengthResult:
    field: str
    value_count: int
    min_length: int
    max_length: int
    average_length: float
    median_length: int
    p95_length: int
    p99_length: int
    histogram: Dict[str, int]
    recommended_type: str
    exceeds_varchar_limit: bool = False
    longest_samples: List[LengthSample] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)


# ======================================
# Encoding
# ======================================
@dataclass
class EncodingSample:
    document_id: str
    hex_codes: str  # "U+00E9 U+1F600"
    preview: str


@dataclass
class EncodingIssueResult:
    field: str
    issue_type: EncodingIssueType
    affected_count: int
    string_value_count: int
    severity: Severity = Severity.INFO
    samples: List[EncodingSample] = field(default_factory=list)

    @property
    def affected_percentage(self) -> float:
        return self.affected_count / self.string_value_count if self.string_value_count else 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = to_plain(self)
        data["affected_percentage"] = round(self.affected_percentage, 4)
        return data


# ======================================
# Dates
# ======================================
@dataclass
class DateSample:
    document_id: str
    value: str
    problem: str  # "Invalid", "Future", "TooOld"


@dataclass
class DateValidationResult:
    field: str
    total_values: int
    invalid_count: int
    future_count: int
    too_old_count: int
    min_date: Optional[datetime] = None
    max_date: Optional[datetime] = None
    severity: Severity = Severity.INFO
    samples: List[DateSample] = field(default_factory=list)

    @property
    def problem_count(self) -> int:
        return self.invalid_count + self.future_count + self.too_old_count

    @property
    def invalid_percentage(self) -> float:
        return self.problem_count / self.total_values if self.total_values else 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = to_plain(self)
        data["invalid_percentage"] = round(self.invalid_percentage, 4)
        return data


# ======================================
# Checker plumbing
# ======================================
@dataclass
class AnalysisFailure:
    container: str
    check: str
    field: str
    error: str


@dataclass
class CheckOutput:
    check: str
    results: List[Any] = field(default_factory=list)
    failures: List[AnalysisFailure] = field(default_factory=list)
    warnings: List[AnalysisWarning] = field(default_factory=list)


# ======================================
# Issues & summaries
# ======================================
@dataclass(frozen=True)
class DataQualityIssue:
    """
    One unified finding. Immutable once created.
    """

    id: str
    container: str
    field: str
    severity: Severity
    category: IssueCategory
    title: str
    description: str
    impact: str
    metrics: Tuple[Tuple[str, Any], ...] = ()
    sample_document_ids: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()

    @property
    def metrics_map(self) -> Dict[str, Any]:
        return dict(self.metrics)

    @property
    def affected_fraction(self) -> float:
        value = self.metrics_map.get("affected_fraction", 0.0)
        return min(1.0, max(0.0, float(value)))

    def to_dict(self) -> Dict[str, Any]:
        data = to_plain(self)
        data["metrics"] = to_plain(self.metrics_map)
        return data


@dataclass
class ContainerQualityReport:
    container: str
    total_documents: int = 0
    fields_analyzed: int = 0
    null_results: List[NullAnalysisResult] = field(default_factory=list)
    duplicate_results: List[DuplicateAnalysisResult] = field(default_factory=list)
    type_results: List[TypeConsistencyResult] = field(default_factory=list)
    outlier_results: List[OutlierAnalysisResult] = field(default_factory=list)
    length_results: List[StringLengthResult] = field(default_factory=list)
    encoding_results: List[EncodingIssueResult] = field(default_factory=list)
    date_results: List[DateValidationResult] = field(default_factory=list)
    failures: List[AnalysisFailure] = field(default_factory=list)
    warnings: List[AnalysisWarning] = field(default_factory=list)
    issues: List[DataQualityIssue] = field(default_factory=list)
    is_partial: bool = False

    def null_result(self, path: str) -> Optional[NullAnalysisResult]:
        return next((r for r in self.null_results if r.field == path), None)

    def type_result(self, path: str) -> Optional[TypeConsistencyResult]:
        return next((r for r in self.type_results if r.field == path), None)

    def length_result(self, path: str) -> Optional[StringLengthResult]:
        return next((r for r in self.length_results if r.field == path), None)

    def date_result(self, path: str) -> Optional[DateValidationResult]:
        return next((r for r in self.date_results if r.field == path), None)

    def issue_counts(self) -> Dict[str, int]:
        counts = {severity.value: 0 for severity in Severity}
        for issue in self.issues:
            counts[issue.severity.value] += 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        data = to_plain(self)
        data["issue_counts"] = self.issue_counts()
        return data


@dataclass
class QualitySummary:
    total_containers: int = 0
    total_fields_analyzed: int = 0
    total_issues: int = 0
    critical_issues: int = 0
    warning_issues: int = 0
    info_issues: int = 0
    issues_by_category: Dict[str, int] = field(default_factory=dict)
    issues_by_severity: Dict[str, int] = field(default_factory=dict)
    overall_quality_score: float = 100.0
    quality_rating: str = "Excellent"
    ready_for_migration: bool = True
    blocking_issues: List[str] = field(default_factory=list)
    top_recommendations: List[str] = field(default_factory=list)
    estimated_cleanup_hours: int = 0
    top_issues: List[DataQualityIssue] = field(default_factory=list)
    partial_containers: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = to_plain(self)
        data["top_issues"] = [issue.to_dict() for issue in self.top_issues]
        return data
