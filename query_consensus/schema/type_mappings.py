"""
Type mapping utilities for classifying Elasticsearch mapping types.
"""

from typing import Optional

from query_consensus.core.field_types import type_family


class TypeMapper:
    """Maps raw Elasticsearch mapping types to type families and capabilities."""

    SEARCHABLE_FAMILIES = {"text", "keyword", "boolean", "ip", "date", "numeric"}
    AGGREGATABLE_FAMILIES = {"keyword", "numeric", "date", "boolean", "ip"}
    RANGE_FAMILIES = {"date", "numeric", "ip"}
    CONTAINER_FAMILIES = {"object", "nested"}

    @classmethod
    def get_family(cls, es_type: Optional[str]) -> str:
        return type_family(es_type)

    @classmethod
    def is_text(cls, es_type: Optional[str]) -> bool:
        return cls.get_family(es_type) == "text"

    @classmethod
    def is_keyword(cls, es_type: Optional[str]) -> bool:
        return cls.get_family(es_type) == "keyword"

    @classmethod
    def is_numeric(cls, es_type: Optional[str]) -> bool:
        return cls.get_family(es_type) == "numeric"

    @classmethod
    def is_date(cls, es_type: Optional[str]) -> bool:
        return cls.get_family(es_type) == "date"

    @classmethod
    def is_container(cls, es_type: Optional[str]) -> bool:
        return cls.get_family(es_type) in cls.CONTAINER_FAMILIES

    @classmethod
    def supports_range(cls, es_type: Optional[str]) -> bool:
        return cls.get_family(es_type) in cls.RANGE_FAMILIES

    @classmethod
    def is_searchable_type(cls, es_type: Optional[str]) -> bool:
        return cls.get_family(es_type) in cls.SEARCHABLE_FAMILIES

    @classmethod
    def is_aggregatable_type(cls, es_type: Optional[str]) -> bool:
        return cls.get_family(es_type) in cls.AGGREGATABLE_FAMILIES
