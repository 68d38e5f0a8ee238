# ==============================================
# Tests for Sample Sources
# ==============================================
#
# TEST CASES:
# -----------
# class TestMetadata:
#     partition key paths, query field parsing, throttling rate
#
# class TestInMemorySource / TestJsonFileSource / TestHttpSource:
#     fetch bounds, unreadable lines, payload shapes, errors
#
# class TestMongoSource:
#     construction from config, head sampling over a fake client
#     (no server needed)
# ==============================================

import json

import pytest
import requests

from docmigrate.config import MongoConfig
from docmigrate.sources import (
    ContainerMetadata,
    HttpSampleSource,
    InMemorySampleSource,
    JsonFileSampleSource,
    MongoSampleSource,
    PerformanceMetrics,
    QueryMetric,
)


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.exceptions.HTTPError(f"{self.status} error")

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        return self.response


class TestMetadata:
    def test_partition_key_field(self):
        assert ContainerMetadata("c", partition_key="/customerId").partition_key_field == "customerId"
        assert ContainerMetadata("c", partition_key="/address/zip").partition_key_field == "address.zip"
        assert ContainerMetadata("c", partition_key="/").partition_key_field is None
        assert ContainerMetadata("c").partition_key_field is None

    def test_query_fields(self):
        query = QueryMetric('SELECT * FROM c WHERE c.status = @s AND c["customer"].id = @id')
        assert query.referenced_fields() == ["status", "customer.id"]
        assert query.has_equality_filter

    def test_only_equality_queries_contribute_fields(self):
        performance = PerformanceMetrics(top_queries=[
            QueryMetric("SELECT * FROM c WHERE c.status = @s"),
            QueryMetric("SELECT c.total FROM c"),
        ])
        metadata = ContainerMetadata("orders", query_fields=["customerId", "status"], performance=performance)

        assert metadata.referenced_query_fields() == ["customerId", "status"]

    def test_throttling_rate(self):
        assert PerformanceMetrics(total_requests=200, throttled_requests=10).throttling_rate == 0.05
        assert PerformanceMetrics().throttling_rate == 0.0
        assert PerformanceMetrics(total_requests=4, throttled_requests=1).to_dict()["throttling_rate"] == 0.25


class TestInMemorySource:
    def test_fetch_is_bounded(self):
        source = InMemorySampleSource({"items": [{"id": str(i)} for i in range(10)]})

        assert len(list(source.fetch_sample("items", 3))) == 3
        assert source.describe_container("items").document_count == 10
        assert source.list_containers() == ["items"]

    def test_unknown_container(self):
        source = InMemorySampleSource({})
        with pytest.raises(KeyError):
            list(source.fetch_sample("missing", 10))


class TestJsonFileSource:
    def test_json_array(self, tmp_path):
        (tmp_path / "orders.json").write_text(json.dumps([{"id": "1"}, {"id": "2"}, {"id": "3"}]))
        source = JsonFileSampleSource(tmp_path)

        assert list(source.fetch_sample("orders", 2)) == [{"id": "1"}, {"id": "2"}]
        assert source.describe_container("orders").size_bytes > 0

    def test_jsonl_keeps_bad_lines_as_text(self, tmp_path):
        (tmp_path / "events.jsonl").write_text('{"id": "1"}\n\n{broken\n{"id": "3"}\n')
        source = JsonFileSampleSource(tmp_path)

        assert list(source.fetch_sample("events", 10)) == [{"id": "1"}, "{broken", {"id": "3"}]
        assert list(source.fetch_sample("events", 1)) == [{"id": "1"}]

    def test_list_containers(self, tmp_path):
        (tmp_path / "b.json").write_text("[]")
        (tmp_path / "a.jsonl").write_text("")
        (tmp_path / "notes.txt").write_text("ignored")

        assert JsonFileSampleSource(tmp_path).list_containers() == ["a", "b"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            list(JsonFileSampleSource(tmp_path).fetch_sample("nothing", 10))

    def test_payload_must_be_a_list(self, tmp_path):
        (tmp_path / "odd.json").write_text('{"id": "1"}')
        with pytest.raises(ValueError, match="JSON array"):
            list(JsonFileSampleSource(tmp_path).fetch_sample("odd", 10))


class TestHttpSource:
    def test_list_payload(self):
        session = FakeSession(FakeResponse([{"id": "1"}, {"id": "2"}, {"id": "3"}]))
        source = HttpSampleSource("http://export.local/", timeout=3.0, session=session)

        assert list(source.fetch_sample("orders", 2)) == [{"id": "1"}, {"id": "2"}]
        assert session.calls == [("http://export.local/containers/orders/documents", {"limit": 2}, 3.0)]

    def test_wrapped_payload(self):
        session = FakeSession(FakeResponse({"documents": [{"id": "1"}]}))
        source = HttpSampleSource("http://export.local", session=session)
        assert list(source.fetch_sample("orders", 10)) == [{"id": "1"}]

    def test_unexpected_payload(self):
        session = FakeSession(FakeResponse({"documents": "nope"}))
        with pytest.raises(ValueError):
            list(HttpSampleSource("http://export.local", session=session).fetch_sample("orders", 10))

    def test_http_errors_propagate(self):
        session = FakeSession(FakeResponse(None, status=503))
        with pytest.raises(requests.exceptions.HTTPError):
            list(HttpSampleSource("http://export.local", session=session).fetch_sample("orders", 10))

    def test_list_containers(self):
        session = FakeSession(FakeResponse(["orders", "customers"]))
        assert HttpSampleSource("http://export.local", session=session).list_containers() == ["orders", "customers"]


class FakeCursor:
    def __init__(self, documents):
        self.documents = documents
        self.closed = False

    def __iter__(self):
        return iter(self.documents)

    def close(self):
        self.closed = True


class FakeCollection:
    def __init__(self, documents):
        self.documents = documents
        self.cursor = None

    def find(self, query, limit=0):
        self.cursor = FakeCursor(self.documents[:limit])
        return self.cursor


class TestMongoSource:
    def test_from_config(self):
        config = MongoConfig(host="db", port=27018, database="shop", sample_strategy="random")
        source = MongoSampleSource.from_config(config)

        assert (source.host, source.port, source.database) == ("db", 27018, "shop")
        assert source.sample_strategy == "random"
        assert source.client is None

    def test_requires_connection(self):
        source = MongoSampleSource("localhost", 27017, "shop")
        with pytest.raises(ConnectionError):
            list(source.fetch_sample("orders", 10))

    def test_head_sampling(self):
        collection = FakeCollection([{"_id": str(i)} for i in range(5)])
        source = MongoSampleSource("localhost", 27017, "shop")
        source.client = {"shop": {"orders": collection}}

        assert list(source.fetch_sample("orders", 2)) == [{"_id": "0"}, {"_id": "1"}]
        assert collection.cursor.closed
