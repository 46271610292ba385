"""Tests for QuerySynthesizer: one request body per perspective."""

import pytest
from pydantic import ValidationError

from query_consensus.core.models import DateRange, StructuredIntent, coerce_intent
from query_consensus.query.perspectives import PerspectiveId
from query_consensus.query.synthesizer import extract_key_terms
from query_consensus.schema.index_builder import SchemaIndexBuilder


def _intent(**data):
    return StructuredIntent.model_validate(data)


class TestExtractKeyTerms:

    def test_drops_stop_words_and_short_tokens(self, config):
        assert extract_key_terms("Show me the failed payments, please!", config.stop_words) == [
            "failed",
            "payments",
            "please",
        ]

    def test_empty_text(self, config):
        assert extract_key_terms(None, config.stop_words) == []
        assert extract_key_terms("a to be", config.stop_words) == []


class TestEmptyIntent:

    @pytest.mark.parametrize("perspective", list(PerspectiveId))
    def test_match_all_for_every_perspective(self, synthesizer, empty_intent, orders_analysis, perspective):
        document = synthesizer.synthesize(empty_intent, perspective, orders_analysis)
        assert document.query == {"match_all": {}}
        assert document.perspective_id == perspective.value

    @pytest.mark.parametrize("perspective", list(PerspectiveId))
    def test_synthesis_is_idempotent(self, synthesizer, empty_intent, perspective):
        first = synthesizer.synthesize(empty_intent, perspective)
        second = synthesizer.synthesize(empty_intent, perspective)
        assert first.body == second.body

    def test_statistical_has_no_aggregations(self, synthesizer, empty_intent, orders_analysis):
        document = synthesizer.synthesize(empty_intent, PerspectiveId.STATISTICAL_ANALYSIS, orders_analysis)
        assert document.aggregations == {}
        assert document.size == 0

    def test_dict_intent_is_accepted(self, synthesizer):
        document = synthesizer.synthesize({}, "precise-match")
        assert document.query == {"match_all": {}}


class TestPreciseMatch:

    def test_status_and_date_filters(self, synthesizer, status_intent, scenario_schema, validator):
        document = synthesizer.synthesize(status_intent, PerspectiveId.PRECISE_MATCH, scenario_schema)

        filters = document.query["bool"]["filter"]
        assert {"term": {"status": "active"}} in filters
        assert {"range": {"ts": {"gte": "now-7d"}}} in filters
        assert document.body["track_total_hits"] is True
        assert document.size == 10
        assert validator.validate(document, scenario_schema).errors == []

    def test_text_field_with_keyword_uses_keyword_variant(self, synthesizer, orders_analysis):
        intent = _intent(entities=[{"name": "message", "value": "Payment failed"}])
        document = synthesizer.synthesize(intent, PerspectiveId.PRECISE_MATCH, orders_analysis)
        assert document.query["bool"]["filter"] == [{"term": {"message.keyword": "Payment failed"}}]

    def test_text_field_without_keyword_uses_phrase(self, synthesizer, orders_analysis):
        intent = _intent(entities=[{"name": "title", "value": "Late delivery"}])
        document = synthesizer.synthesize(intent, PerspectiveId.PRECISE_MATCH, orders_analysis)
        assert document.query["bool"]["must"] == [{"match_phrase": {"title": "Late delivery"}}]

    def test_list_values_become_terms(self, synthesizer, orders_analysis):
        intent = _intent(entities=[{"name": "status", "value": ["active", "pending"]}])
        document = synthesizer.synthesize(intent, PerspectiveId.PRECISE_MATCH, orders_analysis)
        assert document.query["bool"]["filter"] == [{"terms": {"status": ["active", "pending"]}}]

    def test_operators(self, synthesizer, orders_analysis):
        intent = _intent(
            entities=[
                {"name": "status", "value": "cancelled", "operator": "ne"},
                {"name": "amount", "value": 100, "operator": "gte"},
                {"name": "sku", "operator": "missing"},
                {"name": "id", "value": "cust", "operator": "contains"},
            ]
        )
        document = synthesizer.synthesize(intent, PerspectiveId.PRECISE_MATCH, orders_analysis)
        query = document.query["bool"]

        assert {"term": {"status": "cancelled"}} in query["must_not"]
        assert {"exists": {"field": "items.sku"}} in query["must_not"]
        assert {"range": {"amount": {"gte": 100}}} in query["filter"]
        assert {
            "wildcard": {"customer.id": {"value": "*cust*", "case_insensitive": True}}
        } in query["filter"]

    def test_numeric_range_entity(self, synthesizer, orders_analysis):
        intent = _intent(
            entities=[
                {"name": "amount", "type": "numeric_range", "value": [10, 20]},
                {"name": "amount", "value": {"gt": 5, "lt": 50}},
            ]
        )
        document = synthesizer.synthesize(intent, PerspectiveId.PRECISE_MATCH, orders_analysis)
        assert document.query["bool"]["filter"] == [
            {"range": {"amount": {"gte": 10, "lte": 20}}},
            {"range": {"amount": {"gt": 5, "lt": 50}}},
        ]

    def test_entity_without_value_becomes_exists(self, synthesizer, orders_analysis):
        intent = _intent(entities=[{"name": "status"}])
        document = synthesizer.synthesize(intent, PerspectiveId.PRECISE_MATCH, orders_analysis)
        assert document.query["bool"]["filter"] == [{"exists": {"field": "status"}}]

    def test_sort_and_limit(self, synthesizer, orders_analysis):
        intent = _intent(
            entities=[{"name": "status", "value": "active"}],
            sort=[{"field": "message", "order": "asc"}],
            limit=5,
        )
        document = synthesizer.synthesize(intent, PerspectiveId.PRECISE_MATCH, orders_analysis)
        assert document.sort == [{"message.keyword": {"order": "asc"}}]
        assert document.size == 5

    def test_low_confidence_resolution_is_recorded(self, synthesizer, orders_analysis):
        intent = _intent(entities=[{"name": "region", "value": "eu"}])
        document = synthesizer.synthesize(intent, PerspectiveId.PRECISE_MATCH, orders_analysis)
        assert [r.field for r in document.low_confidence_resolutions] == ["region"]

    def test_intent_quality_notes(self, synthesizer):
        intent = _intent(confidenceScore=0.3, errors=["could not parse amount"])
        document = synthesizer.synthesize(intent, PerspectiveId.PRECISE_MATCH)
        assert any("confidence is low" in note for note in document.notes)
        assert "Intent extraction reported: could not parse amount" in document.notes

    def test_unknown_perspective_compiles_as_precise_match(self, synthesizer, status_intent):
        document = synthesizer.synthesize(status_intent, "not-a-perspective")
        assert document.perspective_id == "precise-match"


class TestEnhancedRecall:

    def test_text_entity_is_fuzzy_match(self, synthesizer, orders_analysis):
        intent = _intent(entities=[{"name": "search_term", "type": "keyword", "value": "timeout"}])
        document = synthesizer.synthesize(intent, PerspectiveId.ENHANCED_RECALL, orders_analysis)

        assert document.query["bool"]["must"] == [
            {"match": {"message": {"query": "timeout", "fuzziness": "AUTO"}}}
        ]
        assert document.size == 20
        assert document.resolutions[0].strategy == "convention"

    def test_original_text_becomes_optional_multi_match(self, synthesizer, orders_analysis):
        intent = _intent(originalText="show me failed payments")
        document = synthesizer.synthesize(intent, PerspectiveId.ENHANCED_RECALL, orders_analysis)

        query = document.query["bool"]
        assert query["minimum_should_match"] == 1
        assert query["should"] == [
            {
                "multi_match": {
                    "query": "failed payments",
                    "fields": ["title^2", "message^2", "customer.name^2"],
                    "fuzziness": "AUTO",
                }
            }
        ]

    def test_exact_entities_keep_filters(self, synthesizer, status_intent, scenario_schema):
        document = synthesizer.synthesize(status_intent, PerspectiveId.ENHANCED_RECALL, scenario_schema)
        query = document.query["bool"]

        assert {"term": {"status": "active"}} in query["filter"]
        assert "minimum_should_match" not in query
        assert query["should"][0]["multi_match"]["query"] == "active orders last week"

    def test_without_schema_searches_all_fields(self, synthesizer):
        intent = _intent(entities=[{"name": "q", "type": "search_term", "value": "refund"}])
        document = synthesizer.synthesize(intent, PerspectiveId.ENHANCED_RECALL)
        assert document.query["bool"]["must"] == [
            {"multi_match": {"query": "refund", "fields": ["*"], "fuzziness": "AUTO"}}
        ]


class TestStatisticalAnalysis:

    def test_requested_aggregations(self, synthesizer, aggregation_intent, orders_analysis):
        document = synthesizer.synthesize(aggregation_intent, PerspectiveId.STATISTICAL_ANALYSIS, orders_analysis)

        assert document.size == 0
        assert document.aggregations == {
            "terms_message": {"terms": {"field": "message.keyword", "size": 10}},
            "avg_amount": {"avg": {"field": "amount"}},
        }

    def test_unsupported_request_is_noted(self, synthesizer, orders_analysis):
        intent = _intent(
            queryType="aggregation",
            aggregationRequests=[{"type": "top_hits", "field": "status"}, {"type": "max", "field": "amount"}],
        )
        document = synthesizer.synthesize(intent, PerspectiveId.STATISTICAL_ANALYSIS, orders_analysis)

        assert list(document.aggregations) == ["max_amount"]
        assert any("top_hits" in note for note in document.notes)

    def test_default_grouping(self, synthesizer, status_intent, orders_analysis):
        document = synthesizer.synthesize(status_intent, PerspectiveId.STATISTICAL_ANALYSIS, orders_analysis)
        assert document.aggregations == {"terms_status": {"terms": {"field": "status", "size": 10}}}

    def test_default_grouping_prefers_non_equality_field(self, synthesizer, orders_analysis):
        intent = _intent(
            entities=[
                {"name": "status", "value": "active"},
                {"name": "amount", "operator": "gt", "value": 100},
            ]
        )
        document = synthesizer.synthesize(intent, PerspectiveId.STATISTICAL_ANALYSIS, orders_analysis)
        assert document.aggregations == {"terms_amount": {"terms": {"field": "amount", "size": 10}}}

    def test_default_grouping_on_field_named_by_entity_type(self, synthesizer, orders_analysis):
        intent = _intent(entities=[{"name": "shopper", "type": "sku", "value": "A-1"}])
        document = synthesizer.synthesize(intent, PerspectiveId.STATISTICAL_ANALYSIS, orders_analysis)
        assert document.aggregations == {"terms_items_sku": {"terms": {"field": "items.sku", "size": 10}}}

    def test_default_grouping_without_aggregatable_fields(self, synthesizer):
        schema = SchemaIndexBuilder().build({"properties": {"title": {"type": "text"}}})
        intent = _intent(entities=[{"name": "title", "value": "refund"}])
        document = synthesizer.synthesize(intent, PerspectiveId.STATISTICAL_ANALYSIS, schema)
        assert document.aggregations == {"document_count": {"value_count": {"field": "_index"}}}

    def test_hits_are_capped(self, synthesizer, status_intent, orders_analysis):
        intent = status_intent.model_copy(update={"limit": 50})
        document = synthesizer.synthesize(intent, PerspectiveId.STATISTICAL_ANALYSIS, orders_analysis)
        assert document.size == 10


class TestTimeSeries:

    def test_relative_timeframe(self, synthesizer, orders_analysis):
        intent = _intent(timeframe={"type": "relative", "unit": "day", "value": 7})
        document = synthesizer.synthesize(intent, PerspectiveId.TIME_SERIES, orders_analysis)

        assert document.query["bool"]["filter"] == [{"range": {"ts": {"gte": "now-7d", "lte": "now"}}}]
        histogram = document.aggregations["time_buckets"]
        assert histogram["date_histogram"] == {"field": "ts", "calendar_interval": "day", "min_doc_count": 0}
        assert histogram["aggs"] == {"event_count": {"value_count": {"field": "_index"}}}
        assert document.size == 0

    def test_metrics_and_breakdown(self, synthesizer, aggregation_intent, orders_analysis):
        intent = aggregation_intent.model_copy(
            update={"date_ranges": [DateRange(field="ts", range={"gte": "now-2d"})]}
        )
        document = synthesizer.synthesize(intent, PerspectiveId.TIME_SERIES, orders_analysis)
        sub_aggs = document.aggregations["time_buckets"]["aggs"]

        assert sub_aggs["avg_amount"] == {"avg": {"field": "amount"}}
        assert sub_aggs["by_message"] == {"terms": {"field": "message.keyword", "size": 5}}
        assert "event_count" not in sub_aggs
        assert document.aggregations["time_buckets"]["date_histogram"]["calendar_interval"] == "hour"

    def test_absolute_timeframe_sets_extended_bounds(self, synthesizer, orders_analysis):
        intent = _intent(timeframe={"type": "absolute", "start": "2024-01-01", "end": "2024-03-31"})
        document = synthesizer.synthesize(intent, PerspectiveId.TIME_SERIES, orders_analysis)
        histogram = document.aggregations["time_buckets"]["date_histogram"]
        assert histogram["extended_bounds"] == {"min": "2024-01-01", "max": "2024-03-31"}

    def test_time_field_resolution_recorded_once(self, synthesizer, orders_analysis):
        intent = _intent(timeframe={"unit": "hour", "value": 2})
        document = synthesizer.synthesize(intent, PerspectiveId.TIME_SERIES, orders_analysis)
        assert [r.entity_name for r in document.resolutions] == ["time"]

class TestIntentCoercion:

    def test_malformed_fields_are_dropped_with_a_note(self, synthesizer, orders_analysis):
        intent = {
            "entities": [{"name": "status", "value": "active"}],
            "timeframe": {"unit": "day", "value": "soon"},
            "dateRanges": [{"range": {"gte": "now-1d"}}],
        }
        document = synthesizer.synthesize(intent, PerspectiveId.PRECISE_MATCH, orders_analysis)

        assert document.query == {"bool": {"filter": [{"term": {"status": "active"}}]}}
        assert "Intent extraction reported: Ignored malformed intent field 'timeframe'." in document.notes
        assert "Intent extraction reported: Ignored malformed intent field 'dateRanges'." in document.notes

    def test_well_formed_intent_is_untouched(self):
        intent = coerce_intent({"entities": [{"name": "status", "value": "active"}]})
        assert intent.errors == []
        assert coerce_intent(intent) is intent
        assert coerce_intent(None) == StructuredIntent()

    def test_non_object_payload_raises(self):
        with pytest.raises(ValidationError):
            coerce_intent(["status"])

    @pytest.mark.parametrize("perspective", list(PerspectiveId))
    def test_fractional_timeframe(self, synthesizer, orders_analysis, perspective):
        intent = {"timeframe": {"type": "relative", "unit": "hour", "value": 2.5}}
        document = synthesizer.synthesize(intent, perspective, orders_analysis)

        assert document.query["bool"]["filter"] == [{"range": {"ts": {"gte": "now-150m", "lte": "now"}}}]
        assert not any("malformed" in note for note in document.notes)
