# ==============================================
# Configuration Management
# ==============================================
#
# PURPOSE:
#   Load and validate all configuration from environment
#   variables / .env file. Provides typed config objects
#   to all other modules.
#
# CLASSES:
# --------
# - MongoConfig (dataclass)       → MongoDB sample source connection
# - HttpSourceConfig (dataclass)  → HTTP sample source endpoint
# - AnalysisOptions (dataclass)   → Inference + quality-check thresholds
# - ScoringConfig (dataclass)     → Quality score weights and rating bands
# - ComplexityConfig (dataclass)  → Complexity factor thresholds, day estimate
# - RunnerConfig (dataclass)      → Worker limits
# - AppConfig (dataclass)         → Everything above + log level
#
#   Every class exposes validate() which raises FatalConfigurationError.
#
# FUNCTIONS:
# ----------
# - get_config() -> AppConfig
#     Load .env using python-dotenv, construct and validate AppConfig.
#     Returns the same singleton on repeated calls.
#
# - reset_config() -> None
#     Drop the cached singleton (tests).
#
# USAGE:
# ------
#   from docmigrate.config import get_config
#   config = get_config()
#   print(config.analysis.sample_size)
#   print(config.runner.max_parallel_containers)
#
# ==============================================

import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

from docmigrate.errors import FatalConfigurationError


def _default_max_date() -> datetime:
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now + timedelta(days=3652)


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise FatalConfigurationError(message)


def _require_fraction(name: str, value: float) -> None:
    _require(0.0 <= value <= 1.0, f"{name} must be between 0 and 1 (got {value})")


@dataclass
class MongoConfig:
    """MongoDB sample source configuration."""
    host: str = "localhost"
    port: int = 27017
    user: Optional[str] = None
    password: Optional[str] = None
    database: str = "appdb"
    sample_strategy: str = "head"

    def validate(self) -> None:
        _require(self.port > 0, f"MongoDB port must be positive (got {self.port})")
        _require(
            self.sample_strategy in ("head", "random"),
            f"Unknown sample strategy '{self.sample_strategy}' (expected 'head' or 'random')",
        )


@dataclass
class HttpSourceConfig:
    """HTTP sample source configuration."""
    base_url: str = "http://127.0.0.1:8000"
    timeout_seconds: float = 10.0

    def validate(self) -> None:
        _require(self.timeout_seconds > 0, "HTTP timeout must be positive")


@dataclass
class AnalysisOptions:
    """
    Thresholds that control schema inference and the quality checks.

    Fractions are expressed as 0-1 values (0.15 = 15%).
    """

    # --- Sampling ---
    sample_size: int = 1000
    """Maximum number of documents pulled per container."""

    max_sample_records: int = 5
    """Upper bound on sample document ids / values kept per finding."""

    max_array_elements: int = 10
    """Array elements inspected per document when inferring child tables."""

    max_nesting_depth: int = 5
    """Nested structures deeper than this stay as JSON text columns."""

    max_field_path_depth: int = 3
    """Depth of dot paths handed to the quality checkers."""

    skip_rate_threshold: float = 0.10
    """Skipped-document fraction above which a container is flagged as partially analyzed."""

    schema_variant_similarity: float = 0.5
    """
    Jaccard similarity of top-level key sets needed for a document to join
    an existing schema variant. Lower values merge more aggressively.
    """

    ignored_fields: List[str] = field(
        default_factory=lambda: ["_rid", "_self", "_etag", "_attachments", "_ts"]
    )
    """Store system properties that are never analyzed or mapped."""

    # --- Keys ---
    id_field: str = "id"
    """Declared document id property."""

    business_key_fields: List[str] = field(default_factory=lambda: ["email", "username", "code"])
    """Fields always treated as candidate business keys (case-insensitive)."""

    business_key_hints: List[str] = field(
        default_factory=lambda: ["email", "username", "code", "number", "sku", "identifier"]
    )
    """Name fragments that make a highly selective field a candidate business key."""

    business_key_min_selectivity: float = 0.8
    """Selectivity a name-hinted field needs to be treated as a business key."""

    composite_business_keys: List[List[str]] = field(default_factory=list)
    """Field combinations checked together for duplicates."""

    # --- Null analysis ---
    null_threshold_critical: float = 0.15
    null_threshold_warning: float = 0.05
    null_report_threshold: float = 0.01
    """Combined null + missing rate above which an issue is raised at all."""

    # --- Duplicate analysis ---
    duplicate_threshold_critical: float = 0.01
    top_duplicate_groups: int = 10
    """Duplicate groups kept for reporting (largest first)."""

    unique_candidate_max_duplicate: float = 0.001
    """Duplicate percentage at or below which a key becomes a unique-constraint candidate."""

    # --- Type consistency ---
    type_dominance_threshold: float = 0.95
    """Share the most frequent type tag needs for a field to count as consistent."""

    # --- Outliers ---
    outlier_z_score_threshold: float = 3.0
    outlier_min_values: int = 5
    """Numeric values required before outlier statistics are computed."""

    outlier_report_threshold: float = 0.01
    """Outlier fraction above which an issue is raised."""

    # --- String lengths ---
    min_string_values: int = 5
    max_string_length_for_varchar: int = 4000

    # --- Dates ---
    min_reasonable_date: datetime = datetime(1900, 1, 1)
    max_reasonable_date: datetime = field(default_factory=_default_max_date)

    # --- Optional checks ---
    include_encoding_checks: bool = True
    include_outlier_detection: bool = True
    include_duplicate_detection: bool = True

    # --- Mapping ---
    flatten_max_fields: int = 2
    """Nested objects with at most this many scalar fields are flattened into the parent."""

    index_selectivity_threshold: float = 0.5
    """Selectivity a query-referenced field needs before an index is recommended."""

    def validate(self) -> None:
        """
        Reject invalid thresholds.

        Raises:
            FatalConfigurationError: on the first invalid value found
        """
        _require(self.sample_size > 0, f"sample_size must be positive (got {self.sample_size})")
        for name in ("max_sample_records", "max_array_elements", "max_nesting_depth",
                     "max_field_path_depth", "top_duplicate_groups", "outlier_min_values",
                     "min_string_values", "max_string_length_for_varchar", "flatten_max_fields"):
            value = getattr(self, name)
            _require(value >= 0, f"{name} must not be negative (got {value})")
        for name in ("skip_rate_threshold", "schema_variant_similarity", "business_key_min_selectivity",
                     "null_threshold_critical", "null_threshold_warning", "null_report_threshold",
                     "duplicate_threshold_critical", "unique_candidate_max_duplicate",
                     "type_dominance_threshold", "outlier_report_threshold",
                     "index_selectivity_threshold"):
            _require_fraction(name, getattr(self, name))
        _require(
            self.null_threshold_warning <= self.null_threshold_critical,
            "null_threshold_warning must not exceed null_threshold_critical",
        )
        _require(self.outlier_z_score_threshold > 0, "outlier_z_score_threshold must be positive")
        _require(self.outlier_min_values >= 2, "outlier_min_values must be at least 2")
        _require(
            self.min_reasonable_date < self.max_reasonable_date,
            "min_reasonable_date must be earlier than max_reasonable_date",
        )
        _require(bool(self.id_field), "id_field must not be empty")
        for combo in self.composite_business_keys:
            _require(len(combo) >= 2, f"Composite business key {combo} needs at least two fields")


@dataclass
class ScoringConfig:
    """Weights and bands for the overall quality score."""

    critical_weight: float = 10.0
    warning_weight: float = 3.0
    info_weight: float = 1.0

    excellent_score: float = 90.0
    good_score: float = 75.0
    fair_score: float = 50.0

    top_issue_count: int = 20
    top_recommendation_count: int = 10

    hours_per_critical: float = 2.0
    hours_per_warning: float = 1.0
    infos_per_hour: int = 5

    def validate(self) -> None:
        for name in ("critical_weight", "warning_weight", "info_weight",
                     "hours_per_critical", "hours_per_warning"):
            value = getattr(self, name)
            _require(value >= 0, f"{name} must not be negative (got {value})")
        _require(self.critical_weight > 0, "critical_weight must be positive")
        _require(
            100 >= self.excellent_score >= self.good_score >= self.fair_score >= 0,
            "Rating bands must satisfy 100 >= excellent >= good >= fair >= 0",
        )
        _require(self.top_issue_count >= 0, "top_issue_count must not be negative")
        _require(self.infos_per_hour > 0, "infos_per_hour must be positive")


@dataclass
class ComplexityConfig:
    """Factor thresholds and day-estimate constants for the complexity scorer."""

    table_count_threshold: int = 20
    shared_schema_threshold: int = 3
    nesting_depth_threshold: int = 3
    array_field_threshold: int = 5

    row_warning_threshold: int = 1_000_000
    row_high_threshold: int = 10_000_000
    row_critical_threshold: int = 100_000_000

    throttling_rate_threshold: float = 0.05
    latency_threshold_ms: float = 100.0

    free_factors: int = 1
    """Weighted factors tolerated before the bucket rises above Low."""

    base_days: Dict[str, float] = field(
        default_factory=lambda: {"Low": 5.0, "Medium": 15.0, "High": 30.0}
    )
    days_per_table: Dict[str, float] = field(
        default_factory=lambda: {"Low": 0.5, "Medium": 1.0, "High": 1.5}
    )

    def validate(self) -> None:
        _require(
            0 < self.row_warning_threshold <= self.row_high_threshold <= self.row_critical_threshold,
            "Row thresholds must satisfy 0 < warning <= high <= critical",
        )
        for name in ("table_count_threshold", "shared_schema_threshold", "nesting_depth_threshold",
                     "array_field_threshold", "free_factors", "latency_threshold_ms"):
            value = getattr(self, name)
            _require(value >= 0, f"{name} must not be negative (got {value})")
        _require_fraction("throttling_rate_threshold", self.throttling_rate_threshold)
        for bucket in ("Low", "Medium", "High"):
            _require(bucket in self.base_days, f"base_days is missing '{bucket}'")
            _require(bucket in self.days_per_table, f"days_per_table is missing '{bucket}'")
            _require(self.base_days[bucket] >= 0, "base_days must not be negative")
            _require(self.days_per_table[bucket] >= 0, "days_per_table must not be negative")
        _require(
            self.base_days["Low"] <= self.base_days["Medium"] <= self.base_days["High"],
            "base_days must not decrease with complexity",
        )


@dataclass
class RunnerConfig:
    """Concurrency limits for the orchestrator."""
    max_parallel_containers: int = 4
    checker_workers: int = 4

    def validate(self) -> None:
        _require(self.max_parallel_containers > 0, "max_parallel_containers must be positive")
        _require(self.checker_workers > 0, "checker_workers must be positive")


@dataclass
class AppConfig:
    """Main application configuration."""
    mongo: MongoConfig = field(default_factory=MongoConfig)
    http: HttpSourceConfig = field(default_factory=HttpSourceConfig)
    analysis: AnalysisOptions = field(default_factory=AnalysisOptions)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    complexity: ComplexityConfig = field(default_factory=ComplexityConfig)
    runner: RunnerConfig = field(default_factory=RunnerConfig)
    log_level: str = "INFO"

    def validate(self) -> None:
        """
        Validate every section.

        Raises:
            FatalConfigurationError: on the first invalid value found
        """
        self.mongo.validate()
        self.http.validate()
        self.analysis.validate()
        self.scoring.validate()
        self.complexity.validate()
        self.runner.validate()
        _require(
            self.log_level.upper() in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
            f"Unknown log level '{self.log_level}'",
        )


# Singleton instance
_config_instance: Optional[AppConfig] = None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise FatalConfigurationError(f"{name} must be an integer (got '{raw}')")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise FatalConfigurationError(f"{name} must be a number (got '{raw}')")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    lowered = raw.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise FatalConfigurationError(f"{name} must be a boolean (got '{raw}')")


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_date(name: str, default: datetime) -> datetime:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        raise FatalConfigurationError(f"{name} must be an ISO-8601 date (got '{raw}')")


def load_analysis_options() -> AnalysisOptions:
    """
    Build AnalysisOptions from environment variables.

    Returns:
        AnalysisOptions with defaults for every unset variable
    """
    defaults = AnalysisOptions()
    return AnalysisOptions(
        sample_size=_env_int("SAMPLE_SIZE", defaults.sample_size),
        max_sample_records=_env_int("MAX_SAMPLE_RECORDS", defaults.max_sample_records),
        max_array_elements=_env_int("MAX_ARRAY_ELEMENTS", defaults.max_array_elements),
        max_nesting_depth=_env_int("MAX_NESTING_DEPTH", defaults.max_nesting_depth),
        skip_rate_threshold=_env_float("SKIP_RATE_THRESHOLD", defaults.skip_rate_threshold),
        id_field=os.getenv("ID_FIELD", defaults.id_field),
        business_key_fields=_env_list("BUSINESS_KEY_FIELDS", defaults.business_key_fields),
        null_threshold_critical=_env_float("NULL_THRESHOLD_CRITICAL", defaults.null_threshold_critical),
        null_threshold_warning=_env_float("NULL_THRESHOLD_WARNING", defaults.null_threshold_warning),
        duplicate_threshold_critical=_env_float(
            "DUPLICATE_THRESHOLD_CRITICAL", defaults.duplicate_threshold_critical
        ),
        type_dominance_threshold=_env_float("TYPE_DOMINANCE_THRESHOLD", defaults.type_dominance_threshold),
        outlier_z_score_threshold=_env_float("OUTLIER_Z_SCORE_THRESHOLD", defaults.outlier_z_score_threshold),
        max_string_length_for_varchar=_env_int(
            "MAX_STRING_LENGTH_FOR_VARCHAR", defaults.max_string_length_for_varchar
        ),
        min_reasonable_date=_env_date("MIN_REASONABLE_DATE", defaults.min_reasonable_date),
        max_reasonable_date=_env_date("MAX_REASONABLE_DATE", defaults.max_reasonable_date),
        include_encoding_checks=_env_bool("INCLUDE_ENCODING_CHECKS", defaults.include_encoding_checks),
        include_outlier_detection=_env_bool("INCLUDE_OUTLIER_DETECTION", defaults.include_outlier_detection),
        include_duplicate_detection=_env_bool(
            "INCLUDE_DUPLICATE_DETECTION", defaults.include_duplicate_detection
        ),
    )


def get_config() -> AppConfig:
    """
    Load configuration from environment variables / .env file.
    Returns the same singleton instance on repeated calls.

    Returns:
        AppConfig: Application configuration

    Raises:
        FatalConfigurationError: if any value is malformed or out of range
    """
    global _config_instance

    if _config_instance is not None:
        return _config_instance

    # Load .env file from project root
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(dotenv_path=env_path)

    # Build MongoDB configuration
    mongo_config = MongoConfig(
        host=os.getenv("MONGO_HOST", "localhost"),
        port=_env_int("MONGO_PORT", 27017),
        user=os.getenv("MONGO_USER") or None,
        password=os.getenv("MONGO_PASSWORD") or None,
        database=os.getenv("MONGO_DATABASE", "appdb"),
        sample_strategy=os.getenv("MONGO_SAMPLE_STRATEGY", "head"),
    )

    # Build HTTP source configuration
    http_config = HttpSourceConfig(
        base_url=os.getenv("SAMPLE_API_URL", "http://127.0.0.1:8000"),
        timeout_seconds=_env_float("SAMPLE_API_TIMEOUT_SECONDS", 10.0),
    )

    # Build runner configuration
    runner_config = RunnerConfig(
        max_parallel_containers=_env_int("MAX_PARALLEL_CONTAINERS", 4),
        checker_workers=_env_int("CHECKER_WORKERS", 4),
    )

    config = AppConfig(
        mongo=mongo_config,
        http=http_config,
        analysis=load_analysis_options(),
        runner=runner_config,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
    config.validate()

    _config_instance = config
    return _config_instance


def reset_config() -> None:
    """Forget the cached configuration so the next get_config() reloads it."""
    global _config_instance
    _config_instance = None
