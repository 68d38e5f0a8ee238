# ==============================================
# Sample source contract & plain inputs
# ==============================================
#
# PURPOSE:
#   The analysis core never talks to a store directly. It consumes:
#     - a SampleSource: fetch_sample(container, max_count) → documents
#     - ContainerMetadata: partition key, declared counts, throughput
#     - PerformanceMetrics (optional): RU / latency / throttling numbers
#
# CLASSES:
# --------
# - QueryMetric (dataclass)          → One frequent query pattern
# - PerformanceMetrics (dataclass)   → Aggregated throughput numbers
# - ContainerMetadata (dataclass)    → Plain structured container facts
# - SampleSource (ABC)               → fetch_sample(), describe_container()
# - InMemorySampleSource             → Dict of container → documents
#
# ==============================================

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from docmigrate.serialization import to_plain

# `c.status`, `c["customer"].id` style references in store query text
_QUERY_FIELD = re.compile(r'\bc((?:\.[A-Za-z_][A-Za-z0-9_]*|\["[^"]+"\])+)')


@dataclass
class QueryMetric:
    query_pattern: str
    execution_count: int = 0
    average_ru: float = 0.0
    average_latency_ms: float = 0.0

    def referenced_fields(self) -> List[str]:
        """
        Dot paths referenced by the query.

        Examples:
            "SELECT * FROM c WHERE c.status = @s" → ["status"]
            'SELECT * FROM c WHERE c["customer"].id = @id' → ["customer.id"]
        """
        fields: List[str] = []
        for match in _QUERY_FIELD.finditer(self.query_pattern):
            raw = match.group(1)
            parts = re.findall(r'\.([A-Za-z_][A-Za-z0-9_]*)|\["([^"]+)"\]', raw)
            path = ".".join(dotted or quoted for dotted, quoted in parts)
            if path and path not in fields:
                fields.append(path)
        return fields

    @property
    def has_equality_filter(self) -> bool:
        lowered = self.query_pattern.lower()
        return "where" in lowered and "=" in lowered


@dataclass
class PerformanceMetrics:
    average_ru_per_second: float = 0.0
    peak_ru_per_second: float = 0.0
    average_latency_ms: float = 0.0
    total_requests: int = 0
    throttled_requests: int = 0
    top_queries: List[QueryMetric] = field(default_factory=list)
    hot_partitions: List[str] = field(default_factory=list)

    @property
    def throttling_rate(self) -> float:
        if self.total_requests <= 0:
            return 0.0
        return self.throttled_requests / self.total_requests

    def to_dict(self) -> Dict[str, Any]:
        data = to_plain(self)
        data["throttling_rate"] = round(self.throttling_rate, 4)
        return data


@dataclass
class ContainerMetadata:
    """
    Facts about a container supplied alongside its sample.

    `partition_key` uses the store's path syntax ("/customerId",
    "/address/zip"); partition_key_field gives the dot-path form.
    """

    name: str
    partition_key: Optional[str] = None
    document_count: Optional[int] = None
    size_bytes: Optional[int] = None
    provisioned_throughput: Optional[int] = None
    composite_indexes: List[List[str]] = field(default_factory=list)
    business_keys: List[List[str]] = field(default_factory=list)
    query_fields: List[str] = field(default_factory=list)
    performance: Optional[PerformanceMetrics] = None

    @property
    def partition_key_field(self) -> Optional[str]:
        if not self.partition_key:
            return None
        path = self.partition_key.strip().lstrip("/").replace("/", ".")
        return path or None

    def referenced_query_fields(self) -> List[str]:
        """Explicit query fields plus those parsed from supplied query patterns."""
        fields = list(dict.fromkeys(self.query_fields))
        if self.performance is not None:
            for query in self.performance.top_queries:
                if not query.has_equality_filter:
                    continue
                for path in query.referenced_fields():
                    if path not in fields:
                        fields.append(path)
        return fields

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)


class SampleSource(ABC):
    """
    Supplies document samples. Pagination, retries and timeouts belong
    to the implementation.
    """

    @abstractmethod
    def fetch_sample(self, container: str, max_count: int) -> Iterator[Any]:
        """
        Yield at most max_count documents from a container, in a stable order.

        Args:
            container: Container name
            max_count: Upper bound on documents returned
        """

    def describe_container(self, container: str) -> ContainerMetadata:
        """Metadata the source can discover on its own (name only by default)."""
        return ContainerMetadata(name=container)

    def list_containers(self) -> List[str]:
        return []


class InMemorySampleSource(SampleSource):
    """
    Serves documents held in memory. Used by tests and by callers that
    already fetched their samples.
    """

    def __init__(self, containers: Dict[str, List[Any]]):
        self._containers = containers

    def fetch_sample(self, container: str, max_count: int) -> Iterator[Any]:
        if container not in self._containers:
            raise KeyError(f"Unknown container '{container}'")
        documents = self._containers[container]
        for document in documents[:max_count]:
            yield document

    def describe_container(self, container: str) -> ContainerMetadata:
        return ContainerMetadata(name=container, document_count=len(self._containers.get(container, [])))

    def list_containers(self) -> List[str]:
        return list(self._containers)
