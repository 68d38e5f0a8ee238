# ==============================================
# Tests for Configuration Management
# ==============================================
#
# TEST CASES:
# -----------
# class TestValidation:
#     defaults validate, every section rejects bad values
#
# class TestEnvironment:
#     env overrides, malformed values, singleton behaviour
# ==============================================

from datetime import datetime

import pytest

from docmigrate.config import (
    AnalysisOptions,
    AppConfig,
    ComplexityConfig,
    RunnerConfig,
    ScoringConfig,
    get_config,
    load_analysis_options,
    reset_config,
)
from docmigrate.errors import FatalConfigurationError


class TestValidation:
    def test_defaults_are_valid(self):
        AppConfig().validate()

    @pytest.mark.parametrize("changes", [
        {"sample_size": 0},
        {"null_threshold_warning": 0.5, "null_threshold_critical": 0.2},
        {"type_dominance_threshold": 1.5},
        {"outlier_z_score_threshold": 0},
        {"outlier_min_values": 1},
        {"id_field": ""},
        {"composite_business_keys": [["only"]]},
        {"min_reasonable_date": datetime(2100, 1, 1), "max_reasonable_date": datetime(2000, 1, 1)},
    ])
    def test_invalid_analysis_options(self, changes):
        options = AnalysisOptions(**changes)
        with pytest.raises(FatalConfigurationError):
            options.validate()

    def test_invalid_scoring_bands(self):
        with pytest.raises(FatalConfigurationError, match="Rating bands"):
            ScoringConfig(good_score=95).validate()

    def test_invalid_row_thresholds(self):
        with pytest.raises(FatalConfigurationError):
            ComplexityConfig(row_high_threshold=10).validate()

    def test_missing_day_bucket(self):
        with pytest.raises(FatalConfigurationError, match="base_days"):
            ComplexityConfig(base_days={"Low": 1.0, "Medium": 2.0}).validate()

    def test_invalid_runner(self):
        with pytest.raises(FatalConfigurationError):
            RunnerConfig(max_parallel_containers=0).validate()

    def test_invalid_log_level(self):
        with pytest.raises(FatalConfigurationError, match="log level"):
            AppConfig(log_level="LOUD").validate()


class TestEnvironment:
    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("SAMPLE_SIZE", "50")
        monkeypatch.setenv("NULL_THRESHOLD_CRITICAL", "0.3")
        monkeypatch.setenv("INCLUDE_ENCODING_CHECKS", "false")
        monkeypatch.setenv("BUSINESS_KEY_FIELDS", "email, orderId")
        monkeypatch.setenv("MIN_REASONABLE_DATE", "1950-01-01")

        options = load_analysis_options()

        assert options.sample_size == 50
        assert options.null_threshold_critical == 0.3
        assert options.include_encoding_checks is False
        assert options.business_key_fields == ["email", "orderId"]
        assert options.min_reasonable_date == datetime(1950, 1, 1)

    @pytest.mark.parametrize("name, value", [
        ("SAMPLE_SIZE", "lots"),
        ("NULL_THRESHOLD_CRITICAL", "high"),
        ("INCLUDE_OUTLIER_DETECTION", "maybe"),
        ("MAX_REASONABLE_DATE", "someday"),
    ])
    def test_malformed_values_are_fatal(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(FatalConfigurationError, match=name):
            load_analysis_options()

    def test_get_config_is_a_singleton(self, monkeypatch):
        monkeypatch.setenv("MAX_PARALLEL_CONTAINERS", "2")

        first = get_config()
        assert first is get_config()
        assert first.runner.max_parallel_containers == 2

        reset_config()
        assert get_config() is not first

    def test_get_config_validates(self, monkeypatch):
        monkeypatch.setenv("CHECKER_WORKERS", "0")
        with pytest.raises(FatalConfigurationError):
            get_config()
