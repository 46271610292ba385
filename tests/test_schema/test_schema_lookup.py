"""Tests for TypeMapper and FieldLookup."""

import pytest

from query_consensus.schema.lookup import FieldLookup
from query_consensus.schema.type_mappings import TypeMapper


class TestTypeMapper:

    @pytest.mark.parametrize(
        "es_type,family",
        [
            ("text", "text"),
            ("match_only_text", "text"),
            ("keyword", "keyword"),
            ("half_float", "numeric"),
            ("date_nanos", "date"),
            ("geo_point", "geo"),
            ("nested", "nested"),
            ("completion", "other"),
            (5, "other"),
            (None, "object"),
        ],
    )
    def test_get_family(self, es_type, family):
        assert TypeMapper.get_family(es_type) == family

    def test_capabilities(self):
        assert TypeMapper.supports_range("long")
        assert TypeMapper.supports_range("ip")
        assert not TypeMapper.supports_range("keyword")
        assert TypeMapper.is_aggregatable_type("keyword")
        assert not TypeMapper.is_aggregatable_type("text")
        assert TypeMapper.is_searchable_type("text")
        assert not TypeMapper.is_searchable_type("object")
        assert TypeMapper.is_container("nested")


class TestFieldLookup:

    def test_empty_lookup(self):
        lookup = FieldLookup(None)
        assert lookup.is_empty
        assert len(lookup) == 0
        assert "anything" not in lookup

    def test_accepts_analysis_or_index(self, orders_analysis):
        from_analysis = FieldLookup(orders_analysis)
        from_index = FieldLookup(orders_analysis.field_index)
        assert len(from_analysis) == len(from_index) == 12
        assert from_analysis.text_fields == from_index.text_fields

    def test_keyword_variant(self, orders_analysis):
        lookup = FieldLookup(orders_analysis)
        assert lookup.keyword_variant("message") == "message.keyword"
        assert lookup.keyword_variant("customer.name") == "customer.name.keyword"
        assert lookup.keyword_variant("title") is None
        assert lookup.keyword_variant("unknown") is None

    def test_keyword_variant_with_custom_subfield_name(self):
        lookup = FieldLookup(
            {
                "body": _descriptor("body", "text", multi_fields=["body.raw"]),
                "body.raw": _descriptor("body.raw", "keyword", is_multi_field=True),
            }
        )
        assert lookup.keyword_variant("body") == "body.raw"

    def test_exact_field(self, orders_analysis):
        lookup = FieldLookup(orders_analysis)
        assert lookup.exact_field("message") == "message.keyword"
        assert lookup.exact_field("title") == "title"
        assert lookup.exact_field("status") == "status"

    def test_field_lists(self, orders_analysis):
        lookup = FieldLookup(orders_analysis)
        assert lookup.date_fields == ["ts"]
        assert lookup.text_fields == ["title", "message", "customer.name"]
        assert lookup.nested_fields == ["items"]
        assert "message" not in lookup.aggregatable_fields
        assert "message.keyword" in lookup.aggregatable_fields

    def test_find_by_name(self, orders_analysis):
        lookup = FieldLookup(orders_analysis)
        assert lookup.find_by_name("status") == "status"
        assert lookup.find_by_name("SKU") == "items.sku"
        assert lookup.find_by_name("id") == "customer.id"
        assert lookup.find_by_name("keyword") is None
        assert lookup.find_by_name("") is None

    def test_find_by_name_requires_unique_match(self):
        lookup = FieldLookup(
            {
                "a.name": _descriptor("a.name", "keyword"),
                "b.name": _descriptor("b.name", "keyword"),
            }
        )
        assert lookup.find_by_name("name") is None

    def test_suggest_queries(self, orders_analysis):
        suggestions = FieldLookup(orders_analysis).suggest_queries()
        types = [s["type"] for s in suggestions]
        assert types == ["search", "aggregation", "date", "timeseries"]
        assert "status" in suggestions[0]["example"]
        assert "ts" in suggestions[2]["description"]

    def test_suggest_geo(self):
        lookup = FieldLookup({"location": _descriptor("location", "geo_point")})
        assert [s["type"] for s in lookup.suggest_queries()] == ["geo"]


def _descriptor(name, field_type, **kwargs):
    from query_consensus.core.models import FieldDescriptor

    searchable = TypeMapper.is_searchable_type(field_type)
    aggregatable = TypeMapper.is_aggregatable_type(field_type)
    return FieldDescriptor(
        name=name, type=field_type, searchable=searchable, aggregatable=aggregatable, **kwargs
    )
