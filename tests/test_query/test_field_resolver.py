"""Tests for FieldResolver: entity and time field resolution."""

from query_consensus.core.config import EngineConfig
from query_consensus.core.models import Entity, StructuredIntent
from query_consensus.query.field_resolver import WILDCARD_FIELD, FieldResolver
from query_consensus.schema.index_builder import SchemaIndexBuilder
from query_consensus.schema.lookup import FieldLookup


def _resolver(analysis=None, config=None):
    return FieldResolver(FieldLookup(analysis), config or EngineConfig())


class TestEntityResolution:

    def test_explicit_field(self, orders_analysis):
        resolution = _resolver(orders_analysis).resolve(Entity(name="state", value="x", field="status"))
        assert resolution.field == "status"
        assert resolution.strategy == "explicit"
        assert resolution.confident

    def test_schema_name_match(self, orders_analysis):
        resolution = _resolver(orders_analysis).resolve(Entity(name="sku", value="A-1"))
        assert resolution.field == "items.sku"
        assert resolution.strategy == "schema_name"
        assert resolution.confident

    def test_text_entity_uses_conventional_field(self, orders_analysis):
        resolution = _resolver(orders_analysis).resolve(
            Entity(name="search_term", type="keyword", value="timeout")
        )
        assert resolution.field == "message"
        assert resolution.strategy == "convention"
        assert not resolution.confident

    def test_text_entity_falls_back_to_first_text_field(self):
        analysis = SchemaIndexBuilder().build({"properties": {"notes": {"type": "text"}}})
        resolution = _resolver(analysis).resolve(Entity(name="q", type="search_term", value="x"))
        assert resolution.field == "notes"
        assert resolution.strategy == "first_text"

    def test_configured_conventions(self):
        analysis = SchemaIndexBuilder().build(
            {"properties": {"message": {"type": "text"}, "notes": {"type": "text"}}}
        )
        config = EngineConfig(conventional_text_fields=["notes"])
        resolution = _resolver(analysis, config).resolve(Entity(name="q", type="text", value="x"))
        assert resolution.field == "notes"

    def test_text_entity_without_schema_uses_wildcard(self):
        resolution = _resolver().resolve(Entity(name="search_term", type="keyword", value="x"))
        assert resolution.field == WILDCARD_FIELD
        assert resolution.strategy == "wildcard"
        assert not resolution.confident

    def test_unknown_name_is_used_as_is(self, orders_analysis):
        resolution = _resolver(orders_analysis).resolve(Entity(name="region", value="eu"))
        assert resolution.field == "region"
        assert resolution.strategy == "entity_name"
        assert not resolution.confident

    def test_is_text_entity(self, orders_analysis):
        resolver = _resolver(orders_analysis)
        assert resolver.is_text_entity(Entity(name="q", type="phrase"))
        assert resolver.is_text_entity(Entity(name="title", type="filter"), "title")
        assert not resolver.is_text_entity(Entity(name="status", type="filter"), "status")


class TestTimeFieldResolution:

    def test_timeframe_field_wins(self, orders_analysis):
        intent = StructuredIntent.model_validate(
            {"timeframe": {"unit": "day", "value": 1, "field": "created"}, "dateRanges": [{"field": "ts"}]}
        )
        assert _resolver(orders_analysis).resolve_time_field(intent).field == "created"

    def test_date_range_field(self, orders_analysis):
        intent = StructuredIntent.model_validate({"dateRanges": [{"field": "ts", "range": {"gte": "now-1d"}}]})
        resolution = _resolver(orders_analysis).resolve_time_field(intent)
        assert resolution.field == "ts"
        assert resolution.confident

    def test_default_time_field_present(self):
        analysis = SchemaIndexBuilder().build({"properties": {"@timestamp": {"type": "date"}}})
        resolution = _resolver(analysis).resolve_time_field(StructuredIntent())
        assert resolution.field == "@timestamp"
        assert resolution.confident

    def test_first_date_field(self, orders_analysis):
        resolution = _resolver(orders_analysis).resolve_time_field(StructuredIntent())
        assert resolution.field == "ts"
        assert resolution.strategy == "time_field_schema"
        assert not resolution.confident

    def test_no_schema(self):
        resolution = _resolver().resolve_time_field(StructuredIntent())
        assert resolution.field == "@timestamp"
        assert not resolution.confident
