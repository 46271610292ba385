"""
Elasticsearch mapping type families.
"""

from typing import Any

# Elasticsearch type -> family
ELASTICSEARCH_TYPE_MAP = {
    "text": "text",
    "match_only_text": "text",
    "search_as_you_type": "text",
    "keyword": "keyword",
    "constant_keyword": "keyword",
    "wildcard": "keyword",
    "long": "numeric",
    "integer": "numeric",
    "short": "numeric",
    "byte": "numeric",
    "double": "numeric",
    "float": "numeric",
    "half_float": "numeric",
    "scaled_float": "numeric",
    "unsigned_long": "numeric",
    "date": "date",
    "date_nanos": "date",
    "boolean": "boolean",
    "ip": "ip",
    "geo_point": "geo",
    "geo_shape": "geo",
    "nested": "nested",
    "object": "object",
    "flattened": "object",
}


def type_family(es_type: Any) -> str:
    """
    Get the family of an Elasticsearch type.

    Args:
        es_type: Raw mapping type (e.g. "half_float", "date_nanos")

    Returns:
        Family name (text, keyword, numeric, date, boolean, ip, geo,
        nested, object); "object" when no type is given and "other" for
        unrecognized or non-string types
    """
    if not es_type:
        return "object"
    if not isinstance(es_type, str):
        return "other"
    return ELASTICSEARCH_TYPE_MAP.get(es_type.lower(), "other")
