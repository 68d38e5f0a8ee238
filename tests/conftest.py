# ==============================================
# Pytest Configuration and Fixtures
# ==============================================
#
# This file contains shared fixtures for all tests.
#
# FIXTURES:
# ---------
# - options             → Fresh AnalysisOptions (mutable per test)
# - infer               → infer(documents, container) -> ContainerProfile
# - make_context        → make_context(documents, container, metadata) -> CheckContext
# - customer_documents  → 20 customers with a nested address and a tags array
# - order_documents     → 20 orders with a shipping address and an items array
# - sample_source       → InMemorySampleSource over customers + orders
# - map_documents       → map_documents(documents, container, metadata) -> ContainerMapping
#
# NOTES:
# ------
# - The config singleton is reset after every test
# - Use tmp_path for temporary files
# ==============================================

import pytest

from docmigrate.config import AnalysisOptions, reset_config
from docmigrate.inference import SchemaInferencer
from docmigrate.mapping import RelationalMapper
from docmigrate.quality import QualityAnalyzer
from docmigrate.quality.base import CheckContext
from docmigrate.sources.base import ContainerMetadata, InMemorySampleSource


@pytest.fixture(autouse=True)
def _fresh_config():
    reset_config()
    yield
    reset_config()


@pytest.fixture
def options() -> AnalysisOptions:
    return AnalysisOptions()


@pytest.fixture
def infer(options):
    def _infer(documents, container="items"):
        return SchemaInferencer(options).infer(container, documents)
    return _infer


@pytest.fixture
def make_context(options, infer):
    def _make(documents, container="items", metadata=None):
        profile = infer(documents, container)
        return CheckContext(
            sample=profile.sample,
            profile=profile,
            options=options,
            metadata=metadata or ContainerMetadata(name=container),
        )
    return _make


def make_customers(count: int = 20) -> list:
    return [
        {
            "id": f"C{i:03d}",
            "name": f"Customer {i}",
            "email": f"customer{i}@example.com",
            "address": {
                "street": f"{i} Main St",
                "city": "Springfield",
                "zip": f"{10000 + i}",
                "country": "US",
            },
            "tags": ["retail", "vip"] if i % 2 else ["retail"],
        }
        for i in range(count)
    ]


def make_orders(count: int = 20) -> list:
    return [
        {
            "id": f"O{i:03d}",
            "customerId": f"C{i % 10:03d}",
            "total": 10.5 + i,
            "status": "shipped" if i % 3 else "pending",
            "orderDate": f"2024-01-{i % 28 + 1:02d}",
            "shippingAddress": {
                "street": f"{i} Oak Ave",
                "city": "Shelbyville",
                "zip": f"{20000 + i}",
                "country": "US",
            },
            "items": [{"sku": f"SKU-{i}", "quantity": 1 + i % 3, "price": 4.25}],
        }
        for i in range(count)
    ]


@pytest.fixture
def customer_documents() -> list:
    return make_customers()


@pytest.fixture
def order_documents() -> list:
    return make_orders()


@pytest.fixture
def sample_source(customer_documents, order_documents) -> InMemorySampleSource:
    return InMemorySampleSource({"customers": customer_documents, "orders": order_documents})


@pytest.fixture
def map_documents(options, infer):
    """map_documents(documents, container, metadata) -> ContainerMapping (not yet linked)."""
    def _map(documents, container="items", metadata=None):
        profile = infer(documents, container)
        report = QualityAnalyzer(options).analyze(profile, metadata)
        return RelationalMapper(options).map_container(profile, report, metadata)
    return _map
