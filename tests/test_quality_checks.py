# ==============================================
# Tests for the Quality Checkers
# ==============================================
#
# TEST CASES:
# -----------
# class TestResolvePath       → nested paths, literal dotted keys
# class TestNullCheck         → null / missing / blank counts, severity bands
# class TestDuplicateCheck    → id, partition key, business keys, composites
# class TestTypeCheck         → dominance, mismatch samples, widening
# class TestOutlierCheck      → z-score vs Tukey, degenerate spread
# class TestLengthCheck       → nearest-rank percentiles, histogram, MAX
# class TestEncodingCheck     → non-ASCII, emoji, control chars, surrogates
# class TestDateCheck         → invalid / too old / future, epoch fields
# ==============================================

import statistics
from datetime import datetime

import pytest

from docmigrate.errors import WarningKind
from docmigrate.quality import date_check, duplicate_check, encoding_check, length_check, null_check
from docmigrate.quality.models import (
    DuplicateKeyType,
    EncodingIssueType,
    OutlierDirection,
    Severity,
)
from docmigrate.quality.outlier_check import analyze_values, check_outliers, quartiles
from docmigrate.quality.type_check import check_type_consistency
from docmigrate.sample import MISSING, resolve_path
from docmigrate.sources.base import ContainerMetadata


def result_for(output, path):
    return next(r for r in output.results if r.field == path)


class TestResolvePath:
    def test_nested_path(self):
        assert resolve_path({"address": {"city": "Oslo"}}, "address.city") == "Oslo"

    def test_literal_dotted_key(self):
        assert resolve_path({"user.name": "ada"}, "user.name") == "ada"
        assert resolve_path({"meta": {"a.b": None}}, "meta.a.b") is None
        assert resolve_path({"meta.a": {"b": 1}}, "meta.a.b") == 1

    def test_absent_and_null_differ(self):
        assert resolve_path({"user": None}, "user") is None
        assert resolve_path({"user": None}, "user.name") is MISSING
        assert resolve_path({"user.name": "ada"}, "user.email") is MISSING


class TestNullCheck:
    def test_twenty_percent_nulls_is_critical(self, make_context):
        documents = [
            {"id": str(i), "email": None if i < 20 else f"user{i}@example.com"}
            for i in range(100)
        ]
        output = null_check.check_nulls(make_context(documents, "users"))

        email = result_for(output, "email")
        assert email.null_count == 20
        assert email.null_percentage == 0.20
        assert email.severity is Severity.CRITICAL
        assert not email.is_recommended_required
        assert email.sample_document_ids == ["0", "1", "2", "3", "4"]

        identifier = result_for(output, "id")
        assert identifier.severity is Severity.INFO
        assert identifier.is_recommended_required

    def test_dotted_top_level_key_is_present(self, make_context):
        documents = [{"id": i, "user.name": f"u{i}"} for i in range(100)]
        output = null_check.check_nulls(make_context(documents, "users"))

        name = result_for(output, "user.name")
        assert name.null_count == 0
        assert name.missing_count == 0
        assert name.non_null_count == 100
        assert name.severity is Severity.INFO
        assert name.is_recommended_required

    def test_counts_partition_the_sample(self, make_context):
        documents = (
            [{"id": str(i), "phone": "555"} for i in range(10)]
            + [{"id": str(i), "phone": None} for i in range(10, 13)]
            + [{"id": str(i)} for i in range(13, 20)]
        )
        output = null_check.check_nulls(make_context(documents))

        for result in output.results:
            assert result.null_count + result.missing_count + result.non_null_count == result.total_documents
        phone = result_for(output, "phone")
        assert (phone.null_count, phone.missing_count, phone.non_null_count) == (3, 7, 10)
        assert phone.combined_percentage == pytest.approx(0.5)

    def test_missing_parent_counts_as_missing(self, make_context):
        documents = [{"id": "1", "address": {"city": "X"}}, {"id": "2"}]
        output = null_check.check_nulls(make_context(documents))
        assert result_for(output, "address.city").missing_count == 1

    def test_blank_strings_are_not_nulls(self, make_context):
        documents = [{"id": "1", "note": "  "}, {"id": "2", "note": "null"}, {"id": "3", "note": "ok"}]
        note = result_for(null_check.check_nulls(make_context(documents)), "note")
        assert note.null_count == 0
        assert note.blank_count == 2

    @pytest.mark.parametrize("rate, expected", [
        (0.15, Severity.CRITICAL),
        (0.149, Severity.WARNING),
        (0.05, Severity.WARNING),
        (0.049, Severity.INFO),
    ])
    def test_severity_bands(self, rate, expected):
        assert null_check.null_severity(rate, 0.15, 0.05) is expected


class TestDuplicateCheck:
    def test_business_key_duplicates(self, options, make_context):
        """3 orderIds appear twice in 100 documents → 3 groups, 3%, Critical."""
        options.business_key_fields = ["orderId"]
        order_ids = [f"ORD-{i}" for i in range(97)] + ["ORD-0", "ORD-1", "ORD-2"]
        documents = [{"id": str(i), "orderId": order_id} for i, order_id in enumerate(order_ids)]

        output = duplicate_check.check_duplicates(make_context(documents, "orders"))
        result = next(r for r in output.results if r.key_fields == ["orderId"])

        assert result.key_type is DuplicateKeyType.BUSINESS_KEY
        assert result.duplicate_group_count == 3
        assert result.total_duplicate_records == 3
        assert result.duplicate_percentage == 0.03
        assert result.severity is Severity.CRITICAL
        assert {g.occurrence_count for g in result.top_groups} == {2}
        assert result.top_groups[0].document_ids[0] in {"0", "1", "2"}

    def test_any_id_duplicate_is_critical(self, make_context):
        documents = [{"id": str(i)} for i in range(99)] + [{"id": "5"}]
        result = duplicate_check.check_duplicates(make_context(documents)).results[0]

        assert result.key_type is DuplicateKeyType.ID
        assert result.duplicate_percentage == 0.01
        assert result.severity is Severity.CRITICAL

    def test_small_business_key_duplicate_is_warning(self, make_context):
        documents = [{"id": str(i), "email": f"u{i}@x.io"} for i in range(199)]
        documents.append({"id": "199", "email": "u0@x.io"})

        output = duplicate_check.check_duplicates(make_context(documents))
        email = next(r for r in output.results if r.key_fields == ["email"])

        assert email.duplicate_percentage == 0.005
        assert email.severity is Severity.WARNING

    def test_partition_key_duplicates_use_the_threshold(self, make_context):
        documents = [{"id": str(i), "tenant": f"t{i // 2}"} for i in range(100)]
        metadata = ContainerMetadata(name="accounts", partition_key="/tenant")
        output = duplicate_check.check_duplicates(make_context(documents, "accounts", metadata))

        partition = next(r for r in output.results if r.key_type is DuplicateKeyType.PARTITION_KEY)
        assert partition.key_fields == ["tenant"]
        assert partition.duplicate_group_count == 50
        assert partition.duplicate_percentage == 0.5
        assert partition.severity is Severity.CRITICAL

    def test_rare_partition_key_duplicates_are_warning(self, make_context):
        documents = [{"id": str(i), "tenant": f"t{i}"} for i in range(199)]
        documents.append({"id": "199", "tenant": "t0"})
        metadata = ContainerMetadata(name="accounts", partition_key="/tenant")
        output = duplicate_check.check_duplicates(make_context(documents, "accounts", metadata))

        partition = next(r for r in output.results if r.key_type is DuplicateKeyType.PARTITION_KEY)
        assert partition.duplicate_group_count == 1
        assert partition.severity is Severity.WARNING

    def test_missing_components_are_not_grouped(self, options, make_context):
        options.composite_business_keys = [["region", "code"]]
        documents = [
            {"id": "1", "region": "EU", "code": "A"},
            {"id": "2", "region": "EU", "code": "A"},
            {"id": "3", "region": "EU"},
            {"id": "4", "region": None, "code": "A"},
        ]
        output = duplicate_check.check_duplicates(make_context(documents))
        combo = next(r for r in output.results if r.key_fields == ["region", "code"])

        assert combo.documents_considered == 2
        assert combo.duplicate_group_count == 1
        assert combo.top_groups[0].key_values == {"region": "EU", "code": "A"}

    def test_hinted_keys_need_selectivity(self, make_context):
        documents = [{"id": str(i), "productSku": f"S{i % 2}", "partNumber": f"P{i}"} for i in range(10)]
        labels = [fields for fields, _ in duplicate_check.key_definitions(make_context(documents))]
        assert ["partNumber"] in labels
        assert ["productSku"] not in labels

    def test_top_groups_are_bounded(self, options, make_context):
        options.top_duplicate_groups = 2
        documents = [{"id": str(i % 5)} for i in range(20)]
        result = duplicate_check.check_duplicates(make_context(documents)).results[0]
        assert result.duplicate_group_count == 5
        assert len(result.top_groups) == 2


class TestTypeCheck:
    def test_mixed_field_is_inconsistent(self, make_context):
        documents = [{"id": str(i), "amount": i} for i in range(90)]
        documents += [{"id": str(i), "amount": "n/a"} for i in range(90, 100)]

        amount = result_for(check_type_consistency(make_context(documents)), "amount")

        assert amount.type_distribution == {"number": 90, "string": 10}
        assert amount.dominant_type == "number"
        assert amount.dominance == 0.9
        assert not amount.is_consistent
        assert amount.mismatch_count == 10
        assert len(amount.mismatch_samples) == 5
        assert all(s.actual_type == "string" and s.expected_type == "number" for s in amount.mismatch_samples)
        assert amount.recommended_type == "NVARCHAR(50)"

    def test_dominant_type_above_threshold_is_consistent(self, make_context):
        documents = [{"id": str(i), "amount": i} for i in range(96)]
        documents += [{"id": str(i), "amount": "n/a"} for i in range(96, 100)]

        amount = result_for(check_type_consistency(make_context(documents)), "amount")

        assert amount.is_consistent
        assert amount.recommended_type == "NVARCHAR(50)"
        assert len(amount.mismatch_samples) == 4

    def test_nulls_and_missing_are_ignored(self, make_context):
        documents = [{"id": "1", "v": 1}, {"id": "2", "v": None}, {"id": "3"}]
        v = result_for(check_type_consistency(make_context(documents)), "v")
        assert v.type_distribution == {"number": 1}
        assert v.dominance == 1.0
        assert v.mismatch_samples == []

    def test_only_null_field_yields_no_result(self, make_context):
        output = check_type_consistency(make_context([{"id": "1", "v": None}]))
        assert [r.field for r in output.results] == ["id"]


class TestOutlierCheck:
    def test_tukey_flags_what_z_score_misses(self):
        """[1,2,2,3,100]: z(100) = 2.0, fence upper = 4.5."""
        values = [(f"d{i}", float(v)) for i, v in enumerate([1, 2, 2, 3, 100])]

        result = analyze_values("score", values, z_threshold=3.0, max_samples=5)

        assert result.mean == pytest.approx(21.6)
        assert result.std_dev == pytest.approx(39.205, abs=1e-3)
        assert (result.q1, result.median, result.q3) == (2.0, 2.0, 3.0)
        assert result.upper_fence == 4.5
        assert result.z_score_outlier_count == 0
        assert result.tukey_outlier_count == 1
        assert result.outlier_count == 1

        sample = result.samples[0]
        assert sample.document_id == "d4"
        assert sample.direction is OutlierDirection.HIGH
        assert sample.rules == ["tukey"]
        assert sample.z_score == pytest.approx(2.0, abs=1e-3)

    def test_lower_z_threshold_flags_both_rules(self):
        values = [(f"d{i}", float(v)) for i, v in enumerate([1, 2, 2, 3, 100])]
        result = analyze_values("score", values, z_threshold=1.5, max_samples=5)
        assert result.z_score_outlier_count == 1
        assert result.samples[0].rules == ["z-score", "tukey"]

    def test_outlier_count_matches_either_rule(self):
        numbers = [10, 12, 11, 13, 12, 11, 10, 12, 95, -40, 11, 12, 14, 9]
        values = [(str(i), float(v)) for i, v in enumerate(numbers)]

        result = analyze_values("v", values, z_threshold=2.0, max_samples=20)

        mean = statistics.fmean(numbers)
        std = statistics.pstdev(numbers)
        q1, _, q3 = quartiles(sorted(numbers))
        iqr = q3 - q1
        expected = [
            v for v in numbers
            if abs(v - mean) / std > 2.0 or v < q1 - 1.5 * iqr or v > q3 + 1.5 * iqr
        ]
        assert result.outlier_count == len(expected)
        assert {s.direction for s in result.samples} == {OutlierDirection.LOW, OutlierDirection.HIGH}

    def test_zero_spread_skips_rules_with_warning(self, make_context):
        documents = [{"id": str(i), "rate": 5} for i in range(6)]
        output = check_outliers(make_context(documents))

        rate = result_for(output, "rate")
        assert rate.outlier_count == 0
        assert rate.skipped_rules == ["z-score", "tukey"]
        assert output.warnings[0].kind is WarningKind.COMPUTATION_DEGENERATE
        assert output.warnings[0].field == "rate"

    def test_too_few_values_and_booleans(self, make_context):
        documents = [{"id": str(i), "few": i if i < 3 else None, "flag": bool(i % 2)} for i in range(10)]
        fields = [r.field for r in check_outliers(make_context(documents)).results]
        assert "few" not in fields
        assert "flag" not in fields


class TestLengthCheck:
    def test_nearest_rank(self):
        assert length_check.nearest_rank([1, 2, 3, 4], 50) == 2
        assert length_check.nearest_rank([1, 2, 3, 4], 99) == 4
        assert length_check.nearest_rank([7], 95) == 7
        with pytest.raises(ValueError):
            length_check.nearest_rank([], 50)

    def test_percentiles_and_histogram(self, make_context):
        documents = [{"id": f"d{n}", "text": "x" * n} for n in range(1, 101)]
        text = result_for(length_check.check_string_lengths(make_context(documents)), "text")

        assert (text.min_length, text.max_length) == (1, 100)
        assert text.average_length == 50.5
        assert (text.median_length, text.p95_length, text.p99_length) == (50, 95, 99)
        assert text.min_length <= text.median_length <= text.p95_length <= text.p99_length <= text.max_length
        assert text.histogram["0-10"] == 10
        assert text.histogram["11-50"] == 40
        assert text.histogram["51-100"] == 50
        assert sum(text.histogram.values()) == text.value_count
        assert text.recommended_type == "NVARCHAR(100)"
        assert text.longest_samples[0].length == 100

    def test_long_text_becomes_unbounded(self, make_context):
        documents = [{"id": str(i), "body": "y" * 5000} for i in range(5)]
        body = result_for(length_check.check_string_lengths(make_context(documents)), "body")

        assert body.exceeds_varchar_limit
        assert body.recommended_type == "NVARCHAR(MAX)"
        assert body.histogram["4001-8000"] == 5
        assert body.longest_samples[0].preview.endswith("...")

    def test_needs_minimum_string_values(self, make_context):
        documents = [{"id": str(i), "rare": "x" if i < 4 else 1} for i in range(10)]
        fields = [r.field for r in length_check.check_string_lengths(make_context(documents)).results]
        assert "rare" not in fields


class TestEncodingCheck:
    def test_classify_characters(self):
        found = encoding_check.classify_characters("café 😀")
        assert found[EncodingIssueType.NON_ASCII] == ["é", "😀"]
        assert found[EncodingIssueType.EMOJI] == ["😀"]
        assert encoding_check.hex_codes(found[EncodingIssueType.NON_ASCII]) == "U+00E9 U+1F600"

    def test_allowed_whitespace_is_not_control(self):
        assert encoding_check.classify_characters("a\tb\nc\r") == {}
        assert EncodingIssueType.CONTROL_CHARACTERS in encoding_check.classify_characters("bell\x07")

    def test_lone_surrogate(self):
        found = encoding_check.classify_characters("bad\ud800")
        assert list(found) == [EncodingIssueType.INVALID_UNICODE]

    def test_results_per_issue_type(self, make_context):
        names = ["café", "plain", "bell\x07", "😀 smile", "ok", "bad\ud800"]
        documents = [{"id": str(i), "name": name} for i, name in enumerate(names)]

        output = encoding_check.check_encoding(make_context(documents))
        by_type = {r.issue_type: r for r in output.results if r.field == "name"}

        assert list(by_type) == [
            EncodingIssueType.NON_ASCII,
            EncodingIssueType.CONTROL_CHARACTERS,
            EncodingIssueType.EMOJI,
            EncodingIssueType.INVALID_UNICODE,
        ]
        assert by_type[EncodingIssueType.NON_ASCII].affected_count == 2
        assert by_type[EncodingIssueType.NON_ASCII].string_value_count == 6
        assert by_type[EncodingIssueType.CONTROL_CHARACTERS].severity is Severity.WARNING
        assert by_type[EncodingIssueType.EMOJI].severity is Severity.INFO
        assert by_type[EncodingIssueType.INVALID_UNICODE].samples[0].preview == "bad\\ud800"

    def test_clean_field_yields_nothing(self, make_context):
        output = encoding_check.check_encoding(make_context([{"id": "1", "name": "plain"}]))
        assert output.results == []


class TestDateCheck:
    def test_problem_dates(self, make_context):
        values = ["2023-01-05", "2023-13-45", "1850-06-01", "2100-01-01", "2023-02-10"]
        documents = [{"id": str(i), "shippedOn": v} for i, v in enumerate(values)]

        shipped = result_for(date_check.check_dates(make_context(documents)), "shippedOn")

        assert shipped.total_values == 5
        assert (shipped.invalid_count, shipped.too_old_count, shipped.future_count) == (1, 1, 1)
        assert shipped.invalid_percentage == 0.6
        assert shipped.severity is Severity.CRITICAL
        assert shipped.min_date == datetime(1850, 6, 1)
        assert shipped.max_date == datetime(2100, 1, 1)
        assert [s.problem for s in shipped.samples] == ["Invalid", "TooOld", "Future"]

    def test_out_of_range_only_is_warning(self, make_context):
        documents = [{"id": "1", "born": "1850-01-01"}, {"id": "2", "born": "1990-01-01"}]
        born = result_for(date_check.check_dates(make_context(documents)), "born")
        assert born.severity is Severity.WARNING

    def test_epoch_fields(self, make_context):
        documents = [{"id": "1", "createdAt": 1700000000}, {"id": "2", "createdAt": 1700000000000}]
        created = result_for(date_check.check_dates(make_context(documents)), "createdAt")

        assert created.total_values == 2
        assert created.severity is Severity.INFO
        assert created.min_date == created.max_date
        assert created.min_date.year == 2023

    def test_plain_numbers_are_not_dates(self, make_context):
        documents = [{"id": "1", "quantity": 1700000000}]
        assert date_check.check_dates(make_context(documents)).results == []

    def test_free_text_is_not_judged(self, make_context):
        documents = [{"id": "1", "notes": "2023-01-01"}, {"id": "2", "notes": "see attached"}]
        notes = result_for(date_check.check_dates(make_context(documents)), "notes")
        assert notes.total_values == 1
        assert notes.invalid_count == 0

    def test_native_datetimes(self, make_context):
        documents = [{"id": "1", "seen": datetime(2024, 3, 1, 12, 0)}]
        seen = result_for(date_check.check_dates(make_context(documents)), "seen")
        assert seen.min_date == datetime(2024, 3, 1, 12, 0)

    @pytest.mark.parametrize("name, expected", [
        ("createdAt", True),
        ("updated_at", True),
        ("ts", True),
        ("meta.epochMillis", True),
        ("timestamp", True),
        ("status", False),
        ("format", False),
    ])
    def test_timestamp_names(self, name, expected):
        assert date_check.is_timestamp_name(name) is expected

    def test_epoch_to_datetime(self):
        assert date_check.epoch_to_datetime(0) == datetime(1970, 1, 1)
        assert date_check.epoch_to_datetime(86_400_000_000) == datetime(1972, 9, 27)
