"""Tests for SchemaIndexBuilder: pure mapping traversal, no cluster."""

import pytest
from pydantic import ValidationError

from query_consensus.schema.index_builder import (
    MISSING_PROPERTIES_ERROR,
    SchemaIndexBuilder,
    build_summary,
)


EXPECTED_ORDER = [
    "status",
    "ts",
    "title",
    "message",
    "message.keyword",
    "amount",
    "customer",
    "customer.name",
    "customer.name.keyword",
    "customer.id",
    "items",
    "items.sku",
]


class TestTraversal:

    def test_flat_list_matches_index(self, orders_analysis):
        assert len(orders_analysis.fields) == len(orders_analysis.field_index) == 12
        assert orders_analysis.errors == []

    def test_pre_order_with_multi_fields_after_parent(self, orders_analysis):
        assert [f.name for f in orders_analysis.fields] == EXPECTED_ORDER

    def test_every_descriptor_is_indexed_by_its_path(self, orders_analysis):
        for field in orders_analysis.fields:
            assert orders_analysis.field_index[field.name] == field

    def test_tree_holds_top_level_fields_with_children(self, orders_analysis):
        top = [f.name for f in orders_analysis.tree]
        assert top == ["status", "ts", "title", "message", "amount", "customer", "items"]

        customer = orders_analysis.field_index["customer"]
        assert [c.name for c in customer.children] == ["customer.name", "customer.id"]

    def test_missing_type_defaults_to_object(self, orders_analysis):
        assert orders_analysis.field_index["customer"].type == "object"
        assert orders_analysis.field_index["items"].type == "nested"

    def test_analysis_is_frozen(self, orders_analysis):
        with pytest.raises(ValidationError):
            orders_analysis.summary = "changed"
        assert orders_analysis.field_index["amount"].family == "numeric"
        assert orders_analysis.field_index["customer"].family == "object"


class TestCapabilities:

    def test_text_with_keyword_variant(self, orders_analysis):
        message = orders_analysis.field_index["message"]
        keyword = orders_analysis.field_index["message.keyword"]

        assert message.searchable is True
        assert message.aggregatable is False
        assert message.multi_fields == ["message.keyword"]
        assert keyword.aggregatable is True
        assert keyword.is_multi_field is True

    def test_text_with_fielddata_is_aggregatable(self):
        analysis = SchemaIndexBuilder().build(
            {"properties": {"body": {"type": "text", "fielddata": True}}}
        )
        assert analysis.field_index["body"].aggregatable is True

    def test_fielddata_ignored_when_keyword_variant_exists(self):
        analysis = SchemaIndexBuilder().build(
            {
                "properties": {
                    "body": {
                        "type": "text",
                        "fielddata": True,
                        "fields": {"raw": {"type": "keyword"}},
                    }
                }
            }
        )
        assert analysis.field_index["body"].aggregatable is False
        assert analysis.field_index["body.raw"].aggregatable is True

    def test_index_false_is_not_searchable(self):
        analysis = SchemaIndexBuilder().build({"properties": {"code": {"type": "keyword", "index": False}}})
        assert analysis.field_index["code"].searchable is False
        assert analysis.field_index["code"].aggregatable is True

    def test_doc_values_false_is_not_aggregatable(self):
        analysis = SchemaIndexBuilder().build({"properties": {"code": {"type": "keyword", "doc_values": False}}})
        assert analysis.field_index["code"].aggregatable is False

    def test_containers_are_neither_searchable_nor_aggregatable(self, orders_analysis):
        for name in ("customer", "items"):
            field = orders_analysis.field_index[name]
            assert not field.searchable
            assert not field.aggregatable

    def test_unknown_type_is_kept_with_other_family(self):
        analysis = SchemaIndexBuilder().build({"properties": {"suggest": {"type": "completion"}}})
        field = analysis.field_index["suggest"]
        assert field.family == "other"
        assert field.searchable is False

    def test_analyzers_are_recorded(self):
        analysis = SchemaIndexBuilder().build(
            {"properties": {"body": {"type": "text", "analyzer": "english", "search_analyzer": "standard"}}}
        )
        assert analysis.field_index["body"].analyzers == ["english", "standard"]


class TestMappingShapes:

    @pytest.mark.parametrize(
        "raw",
        [
            {"properties": {"status": {"type": "keyword"}}},
            {"mappings": {"properties": {"status": {"type": "keyword"}}}},
            {"idx": {"mappings": {"properties": {"status": {"type": "keyword"}}}}},
            {"logs-1": {"properties": {"status": {"type": "keyword"}}}},
            {"status": {"type": "keyword"}},
            {"response": {"idx": {"mappings": {"properties": {"status": {"type": "keyword"}}}}}},
        ],
    )
    def test_accepts_known_shapes(self, raw):
        analysis = SchemaIndexBuilder().build(raw)
        assert list(analysis.field_index) == ["status"]
        assert analysis.errors == []

    def test_multiple_indices_use_the_first(self):
        analysis = SchemaIndexBuilder().build(
            {
                "logs-1": {"mappings": {"properties": {"a": {"type": "keyword"}}}},
                "logs-2": {"mappings": {"properties": {"b": {"type": "keyword"}}}},
            }
        )
        assert list(analysis.field_index) == ["a"]

    def test_non_object_input(self):
        analysis = SchemaIndexBuilder().build(["not", "a", "mapping"])
        assert analysis.is_empty
        assert analysis.errors == ["Mapping must be a JSON object."]

    def test_missing_properties(self):
        analysis = SchemaIndexBuilder().build({})
        assert analysis.is_empty
        assert analysis.errors == [MISSING_PROPERTIES_ERROR]
        assert analysis.summary == "Schema is empty or could not be analyzed."

    def test_non_object_field_is_skipped(self):
        analysis = SchemaIndexBuilder().build({"properties": {"ok": {"type": "keyword"}, "bad": "keyword"}})
        assert list(analysis.field_index) == ["ok"]
        assert "Skipping 'bad': mapping is not an object." in analysis.errors

    def test_non_string_type_is_skipped(self):
        analysis = SchemaIndexBuilder().build(
            {
                "properties": {
                    "a": {"type": 5},
                    "ok": {"type": "text", "fields": {"raw": {"type": ["keyword"]}}},
                }
            }
        )
        assert list(analysis.field_index) == ["ok"]
        assert not analysis.field_index["ok"].aggregatable
        assert analysis.errors == [
            "Skipping 'a': type must be a string.",
            "Skipping multi-field 'ok.raw': type must be a string.",
        ]

    def test_single_untyped_object_reads_as_index_name(self):
        analysis = SchemaIndexBuilder().build({"customer": {"properties": {"id": {"type": "keyword"}}}})
        assert list(analysis.field_index) == ["id"]


class TestDuplicates:

    def test_first_definition_wins(self):
        analysis = SchemaIndexBuilder().build(
            {
                "properties": {
                    "a.b": {"type": "keyword"},
                    "a": {"properties": {"b": {"type": "long"}}},
                }
            }
        )
        assert analysis.field_index["a.b"].type == "keyword"
        assert len(analysis.fields) == len(analysis.field_index) == 2
        assert any("Duplicate field path 'a.b'" in e for e in analysis.errors)


class TestSummary:

    def test_summary_lists_fields(self, orders_analysis):
        summary = orders_analysis.summary
        assert summary.startswith("Key fields in schema:")
        assert "- message (text) (variants: message.keyword)" in summary
        assert "- customer (object) (object with 2 sub-fields)" in summary
        assert "message.keyword (keyword)" not in summary

    def test_summary_is_bounded(self, orders_analysis):
        summary = build_summary(orders_analysis.fields, max_fields=2)
        lines = summary.splitlines()
        assert lines[1:3] == ["- status (keyword)", "- ts (date)"]
        assert lines[-1] == "... and 8 more fields."

    def test_builder_uses_configured_bound(self, orders_mapping):
        analysis = SchemaIndexBuilder(summary_max_fields=3).build(orders_mapping)
        assert analysis.summary.splitlines()[-1] == "... and 7 more fields."
