# ==============================================
# QualityAnalyzer
# ==============================================
#
# PURPOSE:
#   Run every enabled quality checker over one container's sample
#   and collect their results into a ContainerQualityReport.
#
# CLASS: QualityAnalyzer
# ----------------------
#   Constructor:
#   ------------
#   - __init__(options: AnalysisOptions, executor: Executor = None,
#              aggregator: IssueAggregator = None)
#       With an executor the checkers are submitted concurrently
#       (they only read the sample and the profile). Without one
#       they run in order on the calling thread.
#
#   Methods:
#   --------
#   - enabled_checks() -> list[(name, checker)]
#   - analyze(profile, metadata, cancellation=None) -> ContainerQualityReport
#       1. Build the CheckContext
#       2. Run the checkers and wait for all of them (join barrier)
#       3. File results by check name
#       4. Turn everything into DataQualityIssues via the aggregator
#
# ==============================================

import logging
from concurrent.futures import Executor
from typing import Callable, Dict, List, Optional, Tuple

from docmigrate.cancellation import CancellationToken
from docmigrate.config import AnalysisOptions
from docmigrate.errors import AssessmentCancelled
from docmigrate.inference.schema import ContainerProfile
from docmigrate.sources.base import ContainerMetadata

from . import date_check, duplicate_check, encoding_check, length_check, null_check, outlier_check, type_check
from .aggregator import IssueAggregator
from .base import CheckContext
from .models import AnalysisFailure, CheckOutput, ContainerQualityReport

logger = logging.getLogger(__name__)

Checker = Callable[[CheckContext], CheckOutput]

# check name → ContainerQualityReport attribute
RESULT_ATTRIBUTES: Dict[str, str] = {
    null_check.CHECK_NAME: "null_results",
    duplicate_check.CHECK_NAME: "duplicate_results",
    type_check.CHECK_NAME: "type_results",
    outlier_check.CHECK_NAME: "outlier_results",
    length_check.CHECK_NAME: "length_results",
    encoding_check.CHECK_NAME: "encoding_results",
    date_check.CHECK_NAME: "date_results",
}


class QualityAnalyzer:
    """
    Runs the quality checkers for one container at a time.
    """

    def __init__(
        self,
        options: Optional[AnalysisOptions] = None,
        executor: Optional[Executor] = None,
        aggregator: Optional[IssueAggregator] = None,
    ):
        self.options = options or AnalysisOptions()
        self.executor = executor
        self.aggregator = aggregator or IssueAggregator(self.options)

    def enabled_checks(self) -> List[Tuple[str, Checker]]:
        checks: List[Tuple[str, Checker]] = [(null_check.CHECK_NAME, null_check.check_nulls)]
        if self.options.include_duplicate_detection:
            checks.append((duplicate_check.CHECK_NAME, duplicate_check.check_duplicates))
        checks.append((type_check.CHECK_NAME, type_check.check_type_consistency))
        if self.options.include_outlier_detection:
            checks.append((outlier_check.CHECK_NAME, outlier_check.check_outliers))
        checks.append((length_check.CHECK_NAME, length_check.check_string_lengths))
        if self.options.include_encoding_checks:
            checks.append((encoding_check.CHECK_NAME, encoding_check.check_encoding))
        checks.append((date_check.CHECK_NAME, date_check.check_dates))
        return checks

    def analyze(
        self,
        profile: ContainerProfile,
        metadata: Optional[ContainerMetadata] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> ContainerQualityReport:
        """
        Run all enabled checkers over a profiled container.

        Args:
            profile: Output of SchemaInferencer.infer (carries the sample)
            metadata: Container facts (partition key, business keys)
            cancellation: Optional cancellation token

        Returns:
            ContainerQualityReport with results, failures and issues

        Raises:
            AssessmentCancelled: if cancellation was requested
        """
        context = CheckContext(
            sample=profile.sample,
            profile=profile,
            options=self.options,
            metadata=metadata or ContainerMetadata(name=profile.container),
            cancellation=cancellation,
        )
        report = ContainerQualityReport(
            container=profile.container,
            total_documents=len(profile.sample),
            fields_analyzed=len(profile.field_paths()),
            warnings=list(profile.warnings),
            is_partial=profile.is_partial,
        )

        for output in self._run_checks(context):
            getattr(report, RESULT_ATTRIBUTES[output.check]).extend(output.results)
            report.failures.extend(output.failures)
            report.warnings.extend(output.warnings)

        report.issues = self.aggregator.collect_issues(report)
        logger.info(
            "Container '%s': %d field(s) checked, %d issue(s), %d checker failure(s)",
            report.container, report.fields_analyzed, len(report.issues), len(report.failures),
        )
        return report

    def _run_checks(self, context: CheckContext) -> List[CheckOutput]:
        checks = self.enabled_checks()
        if self.executor is None:
            return [self._run_one(name, checker, context) for name, checker in checks]

        futures = [self.executor.submit(self._run_one, name, checker, context) for name, checker in checks]
        outputs: List[CheckOutput] = []
        cancelled: Optional[AssessmentCancelled] = None
        # Wait for every checker even after a cancellation so none outlives the container
        for future in futures:
            try:
                outputs.append(future.result())
            except AssessmentCancelled as e:
                cancelled = e
        if cancelled is not None:
            raise cancelled
        return outputs

    def _run_one(self, name: str, checker: Checker, context: CheckContext) -> CheckOutput:
        context.raise_if_cancelled()
        try:
            return checker(context)
        except AssessmentCancelled:
            raise
        except Exception as e:
            logger.exception("%s check failed for container '%s'", name, context.container)
            return CheckOutput(
                check=name,
                failures=[AnalysisFailure(container=context.container, check=name, field="", error=f"{type(e).__name__}: {e}")],
            )
