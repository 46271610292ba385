"""
Aggregation builders.
"""

from typing import Any, Dict, Optional, Tuple

from query_consensus.core.models import AggregationRequest
from query_consensus.schema.lookup import FieldLookup

BUCKET_AGGREGATIONS = {"terms", "date_histogram", "histogram", "range", "date_range"}
METRIC_AGGREGATIONS = {
    "avg",
    "sum",
    "min",
    "max",
    "stats",
    "extended_stats",
    "percentiles",
    "cardinality",
    "value_count",
}
SUPPORTED_AGGREGATIONS = BUCKET_AGGREGATIONS | METRIC_AGGREGATIONS

DEFAULT_NUMERIC_RANGES = [{"to": 10}, {"from": 10, "to": 20}, {"from": 20}]
DEFAULT_DATE_RANGES = [{"to": "now-1d"}, {"from": "now-1d", "to": "now"}, {"from": "now"}]


def aggregation_name(agg_type: str, field: str) -> str:
    return f"{agg_type}_{field.replace('.', '_')}"


def aggregatable_field(field: str, lookup: FieldLookup) -> str:
    """Swap analyzed text for its keyword variant when one is indexed."""
    descriptor = lookup.get(field)
    if descriptor is not None and descriptor.is_text:
        return lookup.keyword_variant(field) or field
    return field


def build_aggregation(
    request: AggregationRequest, lookup: FieldLookup
) -> Optional[Tuple[str, Dict[str, Any]]]:
    """
    Build one aggregation from a request.

    Args:
        request: Aggregation request from the intent
        lookup: Field lookup used to pick keyword variants

    Returns:
        (name, body) or None when the request has no field or an unknown type
    """
    agg_type = (request.type or "").lower()
    field = request.field
    if not field or agg_type not in SUPPORTED_AGGREGATIONS:
        return None

    settings = request.settings or {}
    name = request.name or aggregation_name(agg_type, field)

    if agg_type == "terms":
        body: Dict[str, Any] = {
            "field": aggregatable_field(field, lookup),
            "size": settings.get("size", 10),
        }
        if "order" in settings:
            body["order"] = settings["order"]
        return name, {"terms": body}

    if agg_type == "date_histogram":
        body = {"field": field, "min_doc_count": 0}
        if "fixed_interval" in settings:
            body["fixed_interval"] = settings["fixed_interval"]
        else:
            body["calendar_interval"] = (
                settings.get("calendar_interval") or settings.get("interval") or "day"
            )
        return name, {"date_histogram": body}

    if agg_type == "histogram":
        return name, {
            "histogram": {
                "field": field,
                "interval": settings.get("interval", 10),
                "min_doc_count": 0,
            }
        }

    if agg_type == "range":
        ranges = settings.get("ranges") or DEFAULT_NUMERIC_RANGES
        return name, {"range": {"field": field, "ranges": list(ranges)}}

    if agg_type == "date_range":
        ranges = settings.get("ranges") or DEFAULT_DATE_RANGES
        return name, {"date_range": {"field": field, "ranges": list(ranges)}}

    # Metric aggregations
    metric_field = aggregatable_field(field, lookup) if agg_type in ("cardinality", "value_count") else field
    body = {"field": metric_field}
    if agg_type == "percentiles" and "percents" in settings:
        body["percents"] = list(settings["percents"])
    return name, {agg_type: body}
