# ==============================================
# SAMPLE SOURCES
# ==============================================
#
# Everything the analysis core consumes from the outside world:
# document samples, container metadata and optional performance
# metrics. Stores are reached only through SampleSource.
#
# Modules:
# --------
# - base.py           → SampleSource ABC, ContainerMetadata, PerformanceMetrics,
#                       QueryMetric, InMemorySampleSource
# - json_source.py    → Samples exported as .json / .jsonl files
# - mongo_source.py   → MongoDB collections (pymongo)
# - http_source.py    → HTTP export endpoint (requests)
#
# ==============================================

from .base import (
    ContainerMetadata,
    InMemorySampleSource,
    PerformanceMetrics,
    QueryMetric,
    SampleSource,
)
from .http_source import HttpSampleSource
from .json_source import JsonFileSampleSource
from .mongo_source import MongoSampleSource

__all__ = [
    "SampleSource",
    "ContainerMetadata",
    "PerformanceMetrics",
    "QueryMetric",
    "InMemorySampleSource",
    "JsonFileSampleSource",
    "HttpSampleSource",
    "MongoSampleSource",
]
