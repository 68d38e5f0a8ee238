# ==============================================
# AssessmentRunner — Final Orchestrator
# ==============================================
#
# PURPOSE:
#   Run the whole assessment over a set of containers:
#     sample → inference → quality checks → mapping   (per container)
#     dedup → foreign keys → summary → complexity     (once, at the end)
#
# WHY THIS CLASS EXISTS:
#   Every stage is usable on its own; this class wires them together
#   in the right order, runs containers concurrently and keeps one
#   failing container from taking down the rest of the run.
#
# CONCURRENCY:
#   - Containers run on a ThreadPoolExecutor (max_parallel_containers)
#   - Checkers of a container run on a second, shared checker pool
#   - The merge phase (deduplication, linking, complexity) runs on the
#     calling thread after every container task has finished, so the
#     shared-schema registry has exactly one owner
#
# OUTCOMES:
#   Each container ends COMPLETED, FAILED (InputError or unexpected
#   error, recorded as a warning) or CANCELLED.
#   Cancellation raises AssessmentCancelled carrying every outcome.
#
# USAGE:
# ------
#   runner = AssessmentRunner()
#   result = runner.assess(JsonFileSampleSource("exports"), ["customers", "orders"])
#   print(result.quality_summary.quality_rating)
#
# ==============================================

import dataclasses
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from itertools import islice
from typing import Any, Dict, Iterable, List, Optional

from docmigrate.cancellation import CancellationToken
from docmigrate.config import AppConfig
from docmigrate.errors import AnalysisWarning, AssessmentCancelled, InputError, WarningKind
from docmigrate.inference import ContainerProfile, SchemaInferencer
from docmigrate.mapping import (
    ComplexityScorer,
    ContainerMapping,
    MigrationComplexity,
    RelationalMapper,
    SchemaDeduplicator,
    SharedSchema,
    render_ddl,
)
from docmigrate.quality import ContainerQualityReport, IssueAggregator, QualityAnalyzer, QualitySummary
from docmigrate.sources.base import ContainerMetadata, SampleSource

logger = logging.getLogger(__name__)


class ContainerStatus(Enum):
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


@dataclass
class ContainerAssessment:
    """Outcome of one container's pipeline."""
    container: str
    status: ContainerStatus
    metadata: Optional[ContainerMetadata] = None
    profile: Optional[ContainerProfile] = None
    report: Optional[ContainerQualityReport] = None
    mapping: Optional[ContainerMapping] = None
    warnings: List[AnalysisWarning] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "container": self.container,
            "status": self.status.value,
            "metadata": self.metadata.to_dict() if self.metadata else None,
            "schema": self.profile.to_dict() if self.profile else None,
            "quality": self.report.to_dict() if self.report else None,
            "mapping": self.mapping.to_dict() if self.mapping else None,
            "warnings": [w.to_dict() for w in self.warnings],
            "error": self.error,
        }


@dataclass
class AssessmentResult:
    """Everything one assessment run produced."""
    containers: List[ContainerAssessment] = field(default_factory=list)
    quality_summary: QualitySummary = field(default_factory=QualitySummary)
    shared_schemas: List[SharedSchema] = field(default_factory=list)
    complexity: Optional[MigrationComplexity] = None

    @property
    def completed(self) -> List[ContainerAssessment]:
        return [c for c in self.containers if c.status is ContainerStatus.COMPLETED]

    @property
    def failed_containers(self) -> List[str]:
        return [c.container for c in self.containers if c.status is ContainerStatus.FAILED]

    @property
    def mappings(self) -> List[ContainerMapping]:
        return [c.mapping for c in self.completed]

    @property
    def warnings(self) -> List[AnalysisWarning]:
        return [w for c in self.containers for w in c.warnings]

    @property
    def ready_for_migration(self) -> bool:
        return self.quality_summary.ready_for_migration and not self.failed_containers

    def container(self, name: str) -> Optional[ContainerAssessment]:
        return next((c for c in self.containers if c.container == name), None)

    def ddl(self) -> str:
        """SQL Server script for every proposed table."""
        return render_ddl(self.mappings, self.shared_schemas)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ready_for_migration": self.ready_for_migration,
            "failed_containers": self.failed_containers,
            "quality_summary": self.quality_summary.to_dict(),
            "shared_schemas": [s.to_dict() for s in self.shared_schemas],
            "complexity": self.complexity.to_dict() if self.complexity else None,
            "containers": [c.to_dict() for c in self.containers],
        }


class AssessmentRunner:
    """
    Runs the staged, concurrent assessment pipeline.
    """

    def __init__(self, config: Optional[AppConfig] = None):
        """
        Args:
            config: Optional configuration. Defaults are used when None.

        Raises:
            FatalConfigurationError: if any configuration value is invalid
        """
        self.config = config or AppConfig()
        self.config.validate()

        options = self.config.analysis
        self.inferencer = SchemaInferencer(options)
        self.aggregator = IssueAggregator(options, self.config.scoring)
        self.mapper = RelationalMapper(options)
        self.scorer = ComplexityScorer(self.config.complexity)

    def assess(
        self,
        source: SampleSource,
        containers: Iterable[str],
        cancellation: Optional[CancellationToken] = None,
        metadata: Optional[Dict[str, ContainerMetadata]] = None,
    ) -> AssessmentResult:
        """
        Assess every container and build the run-wide result.

        Args:
            source: Where samples (and discoverable metadata) come from
            containers: Container names, in report order
            cancellation: Optional cancellation token
            metadata: Caller-supplied metadata per container; set fields
                      override what the source describes

        Returns:
            AssessmentResult

        Raises:
            AssessmentCancelled: if cancellation was requested
            KeyboardInterrupt: re-raised after the token is cancelled
        """
        containers = list(dict.fromkeys(containers))
        cancellation = cancellation or CancellationToken()
        overrides = metadata or {}
        runner = self.config.runner

        logger.info("Assessing %d container(s)", len(containers))
        with ThreadPoolExecutor(max_workers=runner.checker_workers, thread_name_prefix="checker") as checker_pool:
            analyzer = QualityAnalyzer(self.config.analysis, executor=checker_pool, aggregator=self.aggregator)
            with ThreadPoolExecutor(
                max_workers=runner.max_parallel_containers, thread_name_prefix="container"
            ) as container_pool:
                futures = [
                    container_pool.submit(
                        self._assess_container, source, name, overrides.get(name), analyzer, cancellation
                    )
                    for name in containers
                ]
                # Global join: the merge phase needs every container
                try:
                    outcomes = [future.result() for future in futures]
                except KeyboardInterrupt:
                    # In-flight containers stop at their next checkpoint
                    cancellation.cancel()
                    for future in futures:
                        future.cancel()
                    logger.warning("Assessment interrupted; cancelling in-flight containers")
                    raise

        if cancellation.is_cancelled:
            logger.warning("Assessment cancelled after %d container(s)", len(outcomes))
            raise AssessmentCancelled(outcomes=outcomes)

        return self._merge(outcomes)

    # ======================================
    # Per container
    # ======================================
    def _assess_container(
        self,
        source: SampleSource,
        container: str,
        override: Optional[ContainerMetadata],
        analyzer: QualityAnalyzer,
        cancellation: CancellationToken,
    ) -> ContainerAssessment:
        outcome = ContainerAssessment(container=container, status=ContainerStatus.COMPLETED)
        try:
            cancellation.raise_if_cancelled()

            # Step 1: metadata + sample
            outcome.metadata = self._metadata_for(source, container, override)
            documents = self._fetch(source, container)

            # Step 2: schema inference
            profile = self.inferencer.infer(container, documents, cancellation)
            outcome.profile = profile
            outcome.warnings.extend(profile.warnings)

            # Step 3: quality checks (join barrier inside the analyzer)
            report = analyzer.analyze(profile, outcome.metadata, cancellation)
            outcome.report = report
            outcome.warnings.extend(w for w in report.warnings if w not in outcome.warnings)

            # Step 4: relational mapping
            cancellation.raise_if_cancelled()
            outcome.mapping = self.mapper.map_container(profile, report, outcome.metadata)
            logger.info("Container '%s': assessed", container)

        except AssessmentCancelled:
            outcome.status = ContainerStatus.CANCELLED
            outcome.profile = outcome.report = outcome.mapping = None
            logger.info("Container '%s': cancelled", container)
        except InputError as e:
            outcome.status = ContainerStatus.FAILED
            outcome.error = str(e)
            outcome.warnings.append(AnalysisWarning(WarningKind.INPUT_ERROR, container, str(e)))
            logger.warning("Container '%s': %s", container, e)
        except Exception as e:
            outcome.status = ContainerStatus.FAILED
            outcome.error = f"{type(e).__name__}: {e}"
            logger.exception("Container '%s': assessment failed", container)
        return outcome

    def _fetch(self, source: SampleSource, container: str) -> List[Any]:
        sample_size = self.config.analysis.sample_size
        try:
            return list(islice(source.fetch_sample(container, sample_size), sample_size))
        except InputError:
            raise
        except Exception as e:
            raise InputError(f"Could not fetch a sample of '{container}': {e}") from e

    def _metadata_for(
        self,
        source: SampleSource,
        container: str,
        override: Optional[ContainerMetadata],
    ) -> ContainerMetadata:
        try:
            described = source.describe_container(container)
        except Exception as e:
            raise InputError(f"Could not describe '{container}': {e}") from e
        if override is None:
            return described

        updates = {}
        for f in dataclasses.fields(override):
            value = getattr(override, f.name)
            if f.name != "name" and value not in (None, [], {}):
                updates[f.name] = value
        return dataclasses.replace(described, **updates)

    # ======================================
    # Merge phase (calling thread only)
    # ======================================
    def _merge(self, outcomes: List[ContainerAssessment]) -> AssessmentResult:
        result = AssessmentResult(containers=outcomes)
        completed = result.completed
        mappings = [c.mapping for c in completed]

        # Step 1: run-wide quality summary
        result.quality_summary = self.aggregator.summarize([c.report for c in completed])

        # Step 2: shared structures, then keys that depend on them
        result.shared_schemas = SchemaDeduplicator().deduplicate(mappings)
        self.mapper.link_child_tables(mappings, result.shared_schemas)

        # Step 3: complexity over the finished assessment
        result.complexity = self.scorer.score(
            mappings,
            result.shared_schemas,
            result.quality_summary,
            [c.metadata for c in completed],
        )
        for name in result.failed_containers:
            result.complexity.risks.append(f"{name}: not assessed; fix the input problem and rerun")

        logger.info(
            "Assessment finished: %d container(s) assessed, %d failed",
            len(completed), len(result.failed_containers),
        )
        return result
