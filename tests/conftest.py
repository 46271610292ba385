"""
Shared test fixtures for the query-consensus test suite.

Provides reusable fixtures: sample mappings, analyzed schemas, intents and
engine components.
"""

import pytest

from query_consensus.consensus.ranker import ConsensusRanker
from query_consensus.core.config import EngineConfig
from query_consensus.core.models import StructuredIntent
from query_consensus.query.synthesizer import QuerySynthesizer
from query_consensus.schema.index_builder import SchemaIndexBuilder
from query_consensus.validation.validator import SemanticValidator


# ---------------------------------------------------------------------------
# Mapping fixtures
# ---------------------------------------------------------------------------

ORDERS_PROPERTIES = {
    "status": {"type": "keyword"},
    "ts": {"type": "date"},
    "title": {"type": "text"},
    "message": {"type": "text", "fields": {"keyword": {"type": "keyword", "ignore_above": 256}}},
    "amount": {"type": "float"},
    "customer": {
        "properties": {
            "name": {"type": "text", "fields": {"keyword": {"type": "keyword"}}},
            "id": {"type": "keyword"},
        }
    },
    "items": {
        "type": "nested",
        "properties": {
            "sku": {"type": "keyword"},
        },
    },
}


@pytest.fixture
def orders_properties():
    return {k: dict(v) for k, v in ORDERS_PROPERTIES.items()}


@pytest.fixture
def orders_mapping(orders_properties):
    """Mapping in the shape returned by GET <index>/_mapping."""
    return {"orders-2024": {"mappings": {"properties": orders_properties}}}


@pytest.fixture
def orders_analysis(orders_mapping):
    return SchemaIndexBuilder().build(orders_mapping)


@pytest.fixture
def scenario_schema():
    """Small schema: keyword status, date ts, text title without keyword subfield."""
    return SchemaIndexBuilder().build(
        {
            "properties": {
                "status": {"type": "keyword"},
                "ts": {"type": "date"},
                "title": {"type": "text"},
            }
        }
    )


# ---------------------------------------------------------------------------
# Intent fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def empty_intent():
    return StructuredIntent()


@pytest.fixture
def status_intent():
    """Active documents from the last seven days."""
    return StructuredIntent.model_validate(
        {
            "queryType": "search",
            "entities": [{"name": "status", "type": "filter", "value": "active", "field": "status"}],
            "dateRanges": [{"field": "ts", "range": {"gte": "now-7d"}}],
            "originalText": "active orders from last week",
        }
    )


@pytest.fixture
def aggregation_intent():
    return StructuredIntent.model_validate(
        {
            "queryType": "aggregation",
            "aggregationRequests": [
                {"type": "terms", "field": "message"},
                {"type": "avg", "field": "amount"},
            ],
        }
    )


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def synthesizer(config):
    return QuerySynthesizer(config)


@pytest.fixture
def validator(config):
    return SemanticValidator(config)


@pytest.fixture
def ranker(config, validator):
    return ConsensusRanker(config, validator)


class FakeClock:
    """Manually advanced time source for cache tests."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
