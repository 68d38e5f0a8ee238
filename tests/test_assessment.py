# ==============================================
# Tests for AssessmentRunner (end to end)
# ==============================================
#
# TEST CASES:
# -----------
# class TestAssessment:
#     customers + orders end to end, shared address, JSON-ready
#     output, repeatable results, DDL script
#
# class TestFailures:
#     unknown container, unreadable sample, broken source, invalid
#     configuration
#
# class TestCancellation:
#     cancelled before start, cancelled while fetching, Ctrl+C
#
# class TestMetadata:
#     caller metadata overrides what the source describes
# ==============================================

import json

import pytest

from docmigrate.assessment import AssessmentRunner, ContainerStatus
from docmigrate.cancellation import CancellationToken
from docmigrate.config import AnalysisOptions, AppConfig
from docmigrate.errors import AssessmentCancelled, FatalConfigurationError, WarningKind
from docmigrate.sources.base import ContainerMetadata, InMemorySampleSource, SampleSource


class CancellingSource(SampleSource):
    """Requests cancellation as soon as a sample is pulled."""

    def __init__(self, token, documents):
        self.token = token
        self.documents = documents

    def fetch_sample(self, container, max_count):
        self.token.cancel()
        yield from self.documents[:max_count]


class BrokenSource(SampleSource):
    def fetch_sample(self, container, max_count):
        raise ConnectionError("export endpoint unreachable")


class InterruptingSource(SampleSource):
    def fetch_sample(self, container, max_count):
        raise KeyboardInterrupt


@pytest.fixture
def runner():
    return AssessmentRunner(AppConfig())


class TestAssessment:
    def test_customers_and_orders(self, runner, sample_source):
        result = runner.assess(sample_source, ["customers", "orders"])

        assert [c.status for c in result.containers] == [ContainerStatus.COMPLETED] * 2
        assert result.failed_containers == []
        assert result.ready_for_migration
        assert result.quality_summary.total_containers == 2
        assert result.quality_summary.critical_issues == 0

        assert len(result.shared_schemas) == 1
        shared = result.shared_schemas[0]
        assert shared.target_table == "Shared_Address"
        assert shared.source_containers == ["customers", "orders"]

        complexity = result.complexity
        assert complexity.total_tables == 5
        assert complexity.total_shared_schemas == 1
        assert complexity.overall_complexity == "Low"
        assert complexity.estimated_migration_days == 8

        customers = result.container("customers")
        assert customers.metadata.document_count == 20
        assert customers.mapping.foreign_keys

    def test_result_is_json_ready(self, runner, sample_source):
        data = runner.assess(sample_source, ["customers", "orders"]).to_dict()

        text = json.dumps(data)
        assert json.loads(text)["containers"][0]["status"] == "Completed"
        assert "sample" not in data["containers"][0]["schema"]

    def test_repeat_runs_match(self, runner, sample_source):
        first = runner.assess(sample_source, ["customers", "orders"]).to_dict()
        second = runner.assess(sample_source, ["customers", "orders"]).to_dict()
        assert first == second

    def test_duplicate_names_run_once(self, runner, sample_source):
        result = runner.assess(sample_source, ["orders", "orders"])
        assert [c.container for c in result.containers] == ["orders"]

    def test_ddl(self, runner, sample_source):
        script = runner.assess(sample_source, ["customers", "orders"]).ddl()
        assert script.count("CREATE TABLE [dbo].[Shared_Address] (") == 1
        assert "REFERENCES [dbo].[orders] ([id])" in script


class TestFailures:
    def test_unknown_container_fails_alone(self, runner, sample_source):
        result = runner.assess(sample_source, ["customers", "missing"])

        assert result.container("customers").status is ContainerStatus.COMPLETED
        missing = result.container("missing")
        assert missing.status is ContainerStatus.FAILED
        assert missing.mapping is None
        assert missing.warnings[0].kind is WarningKind.INPUT_ERROR
        assert result.failed_containers == ["missing"]
        assert not result.ready_for_migration
        assert "missing: not assessed; fix the input problem and rerun" in result.complexity.risks

    def test_unreadable_sample_fails(self, runner):
        source = InMemorySampleSource({"junk": ["a", "b", 3]})

        result = runner.assess(source, ["junk"])

        junk = result.container("junk")
        assert junk.status is ContainerStatus.FAILED
        assert "traversable" in junk.error

    def test_broken_source_becomes_input_error(self, runner):
        result = runner.assess(BrokenSource(), ["orders"])

        outcome = result.container("orders")
        assert outcome.status is ContainerStatus.FAILED
        assert "export endpoint unreachable" in outcome.error
        assert outcome.warnings[0].kind is WarningKind.INPUT_ERROR
        assert result.mappings == []

    def test_invalid_configuration_is_fatal(self):
        with pytest.raises(FatalConfigurationError):
            AssessmentRunner(AppConfig(analysis=AnalysisOptions(sample_size=0)))


class TestCancellation:
    def test_cancelled_before_start(self, runner, sample_source):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(AssessmentCancelled) as excinfo:
            runner.assess(sample_source, ["customers", "orders"], cancellation=token)

        outcomes = excinfo.value.outcomes
        assert [o.status for o in outcomes] == [ContainerStatus.CANCELLED] * 2
        assert all(o.mapping is None for o in outcomes)

    def test_cancelled_while_fetching(self, runner, customer_documents):
        token = CancellationToken()
        source = CancellingSource(token, customer_documents)

        with pytest.raises(AssessmentCancelled) as excinfo:
            runner.assess(source, ["customers"], cancellation=token)

        assert excinfo.value.outcomes[0].status is ContainerStatus.CANCELLED

    def test_keyboard_interrupt_cancels_the_token(self, runner):
        token = CancellationToken()

        with pytest.raises(KeyboardInterrupt):
            runner.assess(InterruptingSource(), ["customers", "orders"], cancellation=token)

        assert token.is_cancelled


class TestMetadata:
    def test_overrides_merge_onto_described_metadata(self, runner, sample_source):
        override = ContainerMetadata(name="orders", partition_key="/customerId")

        result = runner.assess(sample_source, ["orders"], metadata={"orders": override})

        orders = result.container("orders")
        assert orders.metadata.partition_key == "/customerId"
        assert orders.metadata.document_count == 20
        index_names = [index.name for index in orders.mapping.indexes]
        assert "IX_orders_customerId" in index_names

    def test_declared_document_count_drives_row_estimates(self, runner, sample_source):
        override = ContainerMetadata(name="orders", document_count=2_000_000)

        result = runner.assess(sample_source, ["orders"], metadata={"orders": override})

        assert result.container("orders").mapping.estimated_rows == 2_000_000
        assert result.complexity.estimated_total_rows >= 2_000_000
