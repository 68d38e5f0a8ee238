# ==============================================
# ComplexityScorer
# ==============================================
#
# PURPOSE:
#   Rate how hard the proposed migration is, from the finished
#   mappings, shared schemas and quality summary. Runs once, last.
#
# FACTORS (each carries its metric and threshold):
#   Table Count            tables > table_count_threshold
#   Shared Schemas         shared >= shared_schema_threshold
#   Nesting Depth          depth >= nesting_depth_threshold
#   Row Volume             rows >= 1M (Medium) / 10M (High) / 100M (Critical, weight 2)
#   Critical Quality Issues  critical issues > 0
#   Array Fields           array child tables > array_field_threshold
#   Throughput Pressure    throttling or latency over threshold
#                          (only when performance metrics exist)
#
# BUCKET:
#   weighted = sum(weight of triggered factors)
#   weighted <= free_factors     → Low
#   weighted == free_factors + 1 → Medium
#   otherwise                    → High
#
# DAYS:
#   ceil(base_days[bucket] + days_per_table[bucket] * tables)
#
# ==============================================

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from docmigrate.config import ComplexityConfig
from docmigrate.quality.models import QualitySummary
from docmigrate.serialization import to_plain
from docmigrate.sources.base import ContainerMetadata

from .models import ChildTableMapping, ChildTableType, ContainerMapping, SharedSchema

logger = logging.getLogger(__name__)

LOW = "Low"
MEDIUM = "Medium"
HIGH = "High"
CRITICAL = "Critical"

STANDARD_ASSUMPTIONS = (
    "Application code changes are handled separately",
    "Target SQL infrastructure is sized for the migrated volume",
    "Migration runs during agreed maintenance windows",
    "Testing is completed before go-live",
)
NO_PERFORMANCE_ASSUMPTION = "Performance metrics were not supplied; throughput risk was not assessed"


@dataclass
class ComplexityFactor:
    name: str
    metric: float
    threshold: float
    impact: str  # Low / Medium / High / Critical
    triggered: bool
    weight: int
    description: str


@dataclass
class MigrationComplexity:
    overall_complexity: str
    weighted_score: int
    estimated_migration_days: int
    total_tables: int
    total_shared_schemas: int
    max_nesting_depth: int
    estimated_total_rows: int
    factors: List[ComplexityFactor] = field(default_factory=list)
    risks: List[str] = field(default_factory=list)
    assumptions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)


def count_tables(mappings: Sequence[ContainerMapping]) -> int:
    """Distinct target tables (a shared table counts once)."""
    tables = set()
    for mapping in mappings:
        tables.add(mapping.target_table.lower())
        tables.update(child.target_table.lower() for child in mapping.all_child_tables())
    return len(tables)


def estimated_rows(mapping: ContainerMapping) -> int:
    """Root rows plus the rows each child table would receive."""

    def child_rows(child: ChildTableMapping, parent_rows: float) -> float:
        rows = parent_rows * child.rows_per_parent
        return rows + sum(child_rows(grandchild, rows) for grandchild in child.children)

    total = mapping.estimated_rows + sum(child_rows(c, mapping.estimated_rows) for c in mapping.child_tables)
    return int(round(total))


class ComplexityScorer:
    """
    Buckets the migration into Low / Medium / High with traceable factors.
    """

    def __init__(self, config: Optional[ComplexityConfig] = None):
        self.config = config or ComplexityConfig()

    def score(
        self,
        mappings: Sequence[ContainerMapping],
        shared_schemas: Sequence[SharedSchema],
        quality: Optional[QualitySummary] = None,
        metadata: Iterable[ContainerMetadata] = (),
    ) -> MigrationComplexity:
        """
        Score the finished assessment.

        Args:
            mappings: Container mappings after deduplication
            shared_schemas: Shared schemas of the run
            quality: Run-wide quality summary
            metadata: Container metadata (row counts, performance metrics)

        Returns:
            MigrationComplexity
        """
        cfg = self.config
        metadata = list(metadata)
        quality = quality or QualitySummary()

        tables = count_tables(mappings)
        depth = max((m.max_depth for m in mappings), default=0)
        rows_by_container = {m.source_container: estimated_rows(m) for m in mappings}
        total_rows = sum(rows_by_container.values())
        array_fields = sum(
            1
            for m in mappings
            for child in m.all_child_tables()
            if child.child_type in (ChildTableType.ARRAY, ChildTableType.MANY_TO_MANY)
        )

        factors = [
            self._threshold_factor(
                "Table Count", tables, cfg.table_count_threshold, tables > cfg.table_count_threshold,
                f"{tables} target tables (threshold {cfg.table_count_threshold})",
            ),
            self._threshold_factor(
                "Shared Schemas", len(shared_schemas), cfg.shared_schema_threshold,
                len(shared_schemas) >= cfg.shared_schema_threshold,
                f"{len(shared_schemas)} shared table(s) referenced from several parents",
            ),
            self._threshold_factor(
                "Nesting Depth", depth, cfg.nesting_depth_threshold, depth >= cfg.nesting_depth_threshold,
                f"Child tables nested {depth} level(s) deep",
            ),
            self._row_volume_factor(total_rows),
            self._threshold_factor(
                "Critical Quality Issues", quality.critical_issues, 0, quality.critical_issues > 0,
                f"{quality.critical_issues} critical data quality issue(s) block migration",
            ),
            self._threshold_factor(
                "Array Fields", array_fields, cfg.array_field_threshold, array_fields > cfg.array_field_threshold,
                f"{array_fields} array field(s) split into child tables",
            ),
        ]
        with_performance = [m for m in metadata if m.performance is not None]
        if with_performance:
            factors.append(self._throughput_factor(with_performance))

        weighted = sum(f.weight for f in factors if f.triggered)
        if weighted <= cfg.free_factors:
            bucket = LOW
        elif weighted == cfg.free_factors + 1:
            bucket = MEDIUM
        else:
            bucket = HIGH
        days = math.ceil(cfg.base_days[bucket] + cfg.days_per_table[bucket] * tables)

        complexity = MigrationComplexity(
            overall_complexity=bucket,
            weighted_score=weighted,
            estimated_migration_days=days,
            total_tables=tables,
            total_shared_schemas=len(shared_schemas),
            max_nesting_depth=depth,
            estimated_total_rows=total_rows,
            factors=factors,
            risks=self._risks(factors, rows_by_container, quality),
            assumptions=list(STANDARD_ASSUMPTIONS) + ([] if with_performance else [NO_PERFORMANCE_ASSUMPTION]),
        )
        logger.info(
            "Migration complexity %s (weighted %d), ~%d day(s) for %d table(s)",
            bucket, weighted, days, tables,
        )
        return complexity

    # ======================================
    # Factors
    # ======================================
    def _threshold_factor(self, name: str, metric: float, threshold: float, triggered: bool, description: str) -> ComplexityFactor:
        return ComplexityFactor(
            name=name,
            metric=metric,
            threshold=threshold,
            impact=HIGH if triggered else LOW,
            triggered=triggered,
            weight=1 if triggered else 0,
            description=description,
        )

    def _row_volume_factor(self, total_rows: int) -> ComplexityFactor:
        cfg = self.config
        if total_rows >= cfg.row_critical_threshold:
            impact, weight, threshold = CRITICAL, 2, cfg.row_critical_threshold
        elif total_rows >= cfg.row_high_threshold:
            impact, weight, threshold = HIGH, 1, cfg.row_high_threshold
        elif total_rows >= cfg.row_warning_threshold:
            impact, weight, threshold = MEDIUM, 1, cfg.row_warning_threshold
        else:
            impact, weight, threshold = LOW, 0, cfg.row_warning_threshold
        return ComplexityFactor(
            name="Row Volume",
            metric=total_rows,
            threshold=threshold,
            impact=impact,
            triggered=weight > 0,
            weight=weight,
            description=f"~{total_rows:,} estimated target rows",
        )

    def _throughput_factor(self, metadata: List[ContainerMetadata]) -> ComplexityFactor:
        cfg = self.config
        worst_throttling = max(m.performance.throttling_rate for m in metadata)
        worst_latency = max(m.performance.average_latency_ms for m in metadata)
        triggered = worst_throttling > cfg.throttling_rate_threshold or worst_latency > cfg.latency_threshold_ms
        return ComplexityFactor(
            name="Throughput Pressure",
            metric=round(worst_throttling, 4),
            threshold=cfg.throttling_rate_threshold,
            impact=HIGH if triggered else LOW,
            triggered=triggered,
            weight=1 if triggered else 0,
            description=(
                f"Worst throttling rate {worst_throttling:.1%}, worst average latency {worst_latency:.0f} ms"
            ),
        )

    # ======================================
    # Narrative
    # ======================================
    def _risks(self, factors: List[ComplexityFactor], rows_by_container: Dict[str, int], quality: QualitySummary) -> List[str]:
        risks = []
        for factor in factors:
            if not factor.triggered:
                continue
            risks.append(f"{factor.name}: {factor.description} (metric {factor.metric:g}, threshold {factor.threshold:g})")

        for container, rows in sorted(rows_by_container.items()):
            if rows >= self.config.row_warning_threshold:
                risks.append(f"{container}: ~{rows:,} rows need batched loading and a planned migration window")

        for container in quality.partial_containers:
            risks.append(f"{container}: findings are based on partial analysis of the sample")
        return risks
