# ==============================================
# IssueAggregator
# ==============================================
#
# PURPOSE:
#   Flatten checker results into DataQualityIssues and roll the
#   issues of every container up into one QualitySummary.
#
# CLASS: IssueAggregator
# ----------------------
#   - collect_issues(report) -> list[DataQualityIssue]
#       One pass per result list. Issue ids are a hash of the issue
#       content, so re-running on the same sample yields the same ids.
#
#   - summarize(reports, partial_containers=()) -> QualitySummary
#       counts     → by severity and by category
#       score      → max(0, 100 - deduction), where
#                    deduction = sum(weight * (1 + affected_fraction)) * 100
#                                / (fields_analyzed * critical_weight)
#       rating     → Excellent / Good / Fair / Poor by configured bands
#       ready      → no Critical issue anywhere
#       hours      → 2 per Critical + 1 per Warning + 1 per 5 Infos
#
# ==============================================

import hashlib
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from docmigrate.config import AnalysisOptions, ScoringConfig
from docmigrate.errors import WarningKind

from .models import (
    ContainerQualityReport,
    DataQualityIssue,
    DuplicateKeyType,
    EncodingIssueType,
    IssueCategory,
    QualitySummary,
    Severity,
)

logger = logging.getLogger(__name__)

RATING_EXCELLENT = "Excellent"
RATING_GOOD = "Good"
RATING_FAIR = "Fair"
RATING_POOR = "Poor"

_CATEGORY_ORDER = {category: index for index, category in enumerate(IssueCategory)}


def issue_id(container: str, category: IssueCategory, field: str, title: str) -> str:
    digest = hashlib.sha1(f"{container}|{category.value}|{field}|{title}".encode("utf-8")).hexdigest()
    return f"DQ-{digest[:12]}"


def _issue(
    container: str,
    field: str,
    severity: Severity,
    category: IssueCategory,
    title: str,
    description: str,
    impact: str,
    metrics: Dict[str, Any],
    sample_ids: Iterable[str],
    recommendations: Sequence[str],
) -> DataQualityIssue:
    return DataQualityIssue(
        id=issue_id(container, category, field, title),
        container=container,
        field=field,
        severity=severity,
        category=category,
        title=title,
        description=description,
        impact=impact,
        metrics=tuple(metrics.items()),
        sample_document_ids=tuple(dict.fromkeys(sample_ids)),
        recommendations=tuple(r for r in recommendations if r),
    )


class IssueAggregator:
    """
    Turns checker results into issues, and issues into a summary.
    """

    def __init__(self, options: Optional[AnalysisOptions] = None, scoring: Optional[ScoringConfig] = None):
        self.options = options or AnalysisOptions()
        self.scoring = scoring or ScoringConfig()

    # ======================================
    # Per-container issues
    # ======================================
    def collect_issues(self, report: ContainerQualityReport) -> List[DataQualityIssue]:
        issues: List[DataQualityIssue] = []
        container = report.container
        limit = self.options.max_sample_records

        for result in report.null_results:
            combined = result.combined_percentage
            if combined <= self.options.null_report_threshold:
                continue
            issues.append(_issue(
                container, result.field, result.severity, IssueCategory.NULL,
                title=f"{combined:.1%} null/missing values in {result.field}",
                description=(
                    f"Field '{result.field}' has {result.null_count} null and "
                    f"{result.missing_count} missing values in {result.total_documents} documents"
                ),
                impact=(
                    "Will prevent a NOT NULL constraint and may need default values or cleanup"
                    if result.severity is not Severity.INFO
                    else "Column will be nullable; queries must handle NULL"
                ),
                metrics={
                    "null_count": result.null_count,
                    "missing_count": result.missing_count,
                    "blank_count": result.blank_count,
                    "combined_percentage": round(combined, 4),
                    "affected_fraction": combined,
                },
                sample_ids=result.sample_document_ids,
                recommendations=[_null_recommendation(result.severity)],
            ))

        for result in report.duplicate_results:
            if result.duplicate_group_count == 0:
                continue
            issues.append(_issue(
                container, result.key_label, result.severity, IssueCategory.DUPLICATE,
                title=f"{result.total_duplicate_records} duplicate {result.key_type.value} values found",
                description=(
                    f"Found {result.duplicate_group_count} group(s) sharing a value of {result.key_label} "
                    f"({result.duplicate_percentage:.1%} of sampled documents)"
                ),
                impact=(
                    "Duplicate ids will break the primary key and fail the migration"
                    if result.key_type is DuplicateKeyType.ID
                    else "Prevents a unique constraint on this key; may need deduplication"
                ),
                metrics={
                    "duplicate_groups": result.duplicate_group_count,
                    "total_duplicates": result.total_duplicate_records,
                    "duplicate_percentage": round(result.duplicate_percentage, 4),
                    "affected_fraction": result.duplicate_percentage,
                },
                sample_ids=[doc_id for group in result.top_groups for doc_id in group.document_ids][:limit],
                recommendations=[_duplicate_recommendation(result.key_type)],
            ))

        for result in report.type_results:
            if result.is_consistent:
                continue
            mismatch_fraction = 1.0 - result.dominance
            issues.append(_issue(
                container, result.field, Severity.WARNING, IssueCategory.TYPE,
                title=f"Type inconsistency in {result.field}",
                description=(
                    f"Field has {len(result.type_distribution)} different types. "
                    f"Dominant: {result.dominant_type} ({result.dominance:.1%})"
                ),
                impact="May cause conversion errors or data loss during migration",
                metrics={
                    "type_count": len(result.type_distribution),
                    "dominant_type": result.dominant_type,
                    "mismatch_count": result.mismatch_count,
                    "affected_fraction": mismatch_fraction,
                },
                sample_ids=[s.document_id for s in result.mismatch_samples],
                recommendations=[
                    f"Convert values to one type during migration or use {result.recommended_type}"
                ],
            ))

        for result in report.outlier_results:
            if result.outlier_percentage <= self.options.outlier_report_threshold:
                continue
            issues.append(_issue(
                container, result.field, Severity.INFO, IssueCategory.OUTLIER,
                title=f"{result.outlier_count} outlier values in {result.field}",
                description=(
                    f"Found {result.outlier_count} extreme values ({result.outlier_percentage:.1%}) "
                    f"outside [{result.lower_fence:g}, {result.upper_fence:g}] or beyond "
                    f"{self.options.outlier_z_score_threshold:g} standard deviations"
                ),
                impact="May be data errors or valid edge cases; review before adding CHECK constraints",
                metrics={
                    "outlier_count": result.outlier_count,
                    "min_value": result.min_value,
                    "max_value": result.max_value,
                    "affected_fraction": result.outlier_percentage,
                },
                sample_ids=[s.document_id for s in result.samples],
                recommendations=["Review outliers with the data owners before migrating"],
            ))

        for result in report.length_results:
            if not result.exceeds_varchar_limit:
                continue
            issues.append(_issue(
                container, result.field, Severity.INFO, IssueCategory.LENGTH,
                title=f"Max string length {result.max_length} in {result.field}",
                description=f"String lengths range from {result.min_length} to {result.max_length} characters",
                impact=f"Values longer than {self.options.max_string_length_for_varchar} need an unbounded text column",
                metrics={
                    "max_length": result.max_length,
                    "p95_length": result.p95_length,
                    "p99_length": result.p99_length,
                    "affected_fraction": 0.0,
                },
                sample_ids=[s.document_id for s in result.longest_samples],
                recommendations=[f"Use {result.recommended_type} for this column"],
            ))

        for result in report.encoding_results:
            issues.append(_issue(
                container, result.field, result.severity, IssueCategory.ENCODING,
                title=f"{result.issue_type.value} in {result.field}",
                description=(
                    f"Found {result.affected_count} value(s) ({result.affected_percentage:.1%}) "
                    f"with {result.issue_type.value}"
                ),
                impact=_encoding_impact(result.issue_type),
                metrics={
                    "affected_count": result.affected_count,
                    "affected_fraction": result.affected_percentage,
                },
                sample_ids=[s.document_id for s in result.samples],
                recommendations=[_encoding_recommendation(result.issue_type)],
            ))

        for result in report.date_results:
            if result.problem_count == 0:
                continue
            issues.append(_issue(
                container, result.field, result.severity, IssueCategory.DATE,
                title=f"Invalid dates in {result.field}",
                description=(
                    f"Found {result.invalid_count} invalid, {result.future_count} future "
                    f"and {result.too_old_count} very old dates"
                ),
                impact=(
                    "Invalid dates will fail conversion to a date column"
                    if result.invalid_count
                    else "Date ranges should be reviewed for business logic accuracy"
                ),
                metrics={
                    "invalid_count": result.invalid_count,
                    "future_count": result.future_count,
                    "too_old_count": result.too_old_count,
                    "affected_fraction": result.invalid_percentage,
                },
                sample_ids=[s.document_id for s in result.samples],
                recommendations=[
                    "Fix or null out unparseable dates before migration"
                    if result.invalid_count
                    else "Confirm out-of-range dates with the data owners"
                ],
            ))

        for failure in report.failures:
            field = failure.field or "*"
            issues.append(_issue(
                container, field, Severity.WARNING, IssueCategory.ANALYSIS,
                title=f"{failure.check} check failed for {field}",
                description=failure.error,
                impact="Findings for this field are incomplete",
                metrics={"check": failure.check, "affected_fraction": 0.0},
                sample_ids=(),
                recommendations=["Inspect the field values that made the check fail and re-run the assessment"],
            ))

        if report.is_partial:
            issues.append(_issue(
                container, "*", Severity.WARNING, IssueCategory.ANALYSIS,
                title=f"Partial analysis of {container}",
                description="; ".join(w.message for w in report.warnings if w.kind is WarningKind.PARTIAL_ANALYSIS),
                impact="Findings for this container are based on fewer documents than sampled",
                metrics={"affected_fraction": 0.0},
                sample_ids=(),
                recommendations=["Fix or exclude the malformed documents and re-run the assessment"],
            ))

        return issues

    # ======================================
    # Run-wide summary
    # ======================================
    def score(self, issues: Iterable[DataQualityIssue], fields_analyzed: int) -> float:
        if fields_analyzed <= 0:
            return 100.0
        weights = {
            Severity.CRITICAL: self.scoring.critical_weight,
            Severity.WARNING: self.scoring.warning_weight,
            Severity.INFO: self.scoring.info_weight,
        }
        deduction = sum(weights[i.severity] * (1 + i.affected_fraction) for i in issues)
        max_weight = fields_analyzed * self.scoring.critical_weight
        return max(0.0, 100.0 - deduction * 100.0 / max_weight)

    def rating(self, score: float) -> str:
        if score >= self.scoring.excellent_score:
            return RATING_EXCELLENT
        if score >= self.scoring.good_score:
            return RATING_GOOD
        if score >= self.scoring.fair_score:
            return RATING_FAIR
        return RATING_POOR

    def cleanup_hours(self, critical: int, warning: int, info: int) -> int:
        hours = (
            critical * self.scoring.hours_per_critical
            + warning * self.scoring.hours_per_warning
            + info // self.scoring.infos_per_hour
        )
        return int(round(hours))

    def summarize(
        self,
        reports: Sequence[ContainerQualityReport],
        partial_containers: Iterable[str] = (),
    ) -> QualitySummary:
        """
        Roll container reports up into one summary.

        Args:
            reports: Quality reports of every analyzed container
            partial_containers: Containers whose findings are incomplete

        Returns:
            QualitySummary
        """
        issues = [issue for report in reports for issue in report.issues]
        fields_analyzed = sum(report.fields_analyzed for report in reports)

        by_severity = {severity.value: 0 for severity in Severity}
        by_category = {category.value: 0 for category in IssueCategory}
        for issue in issues:
            by_severity[issue.severity.value] += 1
            by_category[issue.category.value] += 1

        critical = by_severity[Severity.CRITICAL.value]
        warning = by_severity[Severity.WARNING.value]
        info = by_severity[Severity.INFO.value]
        score = self.score(issues, fields_analyzed)

        ranked = sorted(issues, key=_issue_rank)
        partial = sorted(set(partial_containers) | {r.container for r in reports if r.is_partial})

        summary = QualitySummary(
            total_containers=len(reports),
            total_fields_analyzed=fields_analyzed,
            total_issues=len(issues),
            critical_issues=critical,
            warning_issues=warning,
            info_issues=info,
            issues_by_category=by_category,
            issues_by_severity=by_severity,
            overall_quality_score=round(score, 2),
            quality_rating=self.rating(score),
            ready_for_migration=critical == 0,
            blocking_issues=[
                f"{i.container}.{i.field}: {i.title}" for i in ranked if i.severity is Severity.CRITICAL
            ],
            top_recommendations=self._top_recommendations(ranked),
            estimated_cleanup_hours=self.cleanup_hours(critical, warning, info),
            top_issues=ranked[: self.scoring.top_issue_count],
            partial_containers=partial,
        )
        logger.info(
            "Quality summary: score %.1f (%s), %d critical / %d warning / %d info",
            summary.overall_quality_score, summary.quality_rating, critical, warning, info,
        )
        return summary

    def _top_recommendations(self, ranked: List[DataQualityIssue]) -> List[str]:
        seen: Dict[str, None] = {}
        for issue in ranked:
            if issue.severity is Severity.INFO:
                break
            for recommendation in issue.recommendations:
                seen.setdefault(recommendation, None)
        return list(seen)[: self.scoring.top_recommendation_count]


def _issue_rank(issue: DataQualityIssue) -> Tuple[int, int, str, str, str]:
    return (-issue.severity.rank, _CATEGORY_ORDER[issue.category], issue.container, issue.field, issue.id)


def _null_recommendation(severity: Severity) -> str:
    if severity is Severity.CRITICAL:
        return "Backfill missing values or keep the column nullable with a documented default"
    if severity is Severity.WARNING:
        return "Keep the column nullable or supply a default value during migration"
    return "Keep the column nullable"


def _duplicate_recommendation(key_type: DuplicateKeyType) -> str:
    if key_type is DuplicateKeyType.ID:
        return "Resolve duplicate ids before migration or generate a surrogate primary key"
    if key_type is DuplicateKeyType.PARTITION_KEY:
        return "Do not put a unique constraint on the partition key"
    return "Deduplicate records on this key before adding a unique constraint"


def _encoding_impact(issue_type: EncodingIssueType) -> str:
    if issue_type is EncodingIssueType.CONTROL_CHARACTERS:
        return "Control characters may break display, exports or parsing"
    if issue_type is EncodingIssueType.INVALID_UNICODE:
        return "Invalid code points will fail to encode in the target"
    return "Requires Unicode (NVARCHAR) columns and a suitable collation"


def _encoding_recommendation(issue_type: EncodingIssueType) -> str:
    if issue_type is EncodingIssueType.CONTROL_CHARACTERS:
        return "Strip control characters during migration"
    if issue_type is EncodingIssueType.INVALID_UNICODE:
        return "Replace invalid code points before migration"
    return "Use NVARCHAR columns for this field"
