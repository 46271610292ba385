"""
Builder functions for Elasticsearch query DSL fragments.

Every builder returns a fresh dict and only emits non-empty branches, so a
composed request body never needs a cleanup pass.
"""

from typing import Any, Dict, List, Optional

Clause = Dict[str, Any]

RANGE_KEYS = ("gt", "gte", "lt", "lte")


def match_all() -> Clause:
    return {"match_all": {}}


def term(field: str, value: Any) -> Clause:
    return {"term": {field: value}}


def terms(field: str, values: List[Any]) -> Clause:
    return {"terms": {field: list(values)}}


def exists(field: str) -> Clause:
    return {"exists": {"field": field}}


def range_clause(field: str, bounds: Dict[str, Any]) -> Clause:
    return {"range": {field: dict(bounds)}}


def wildcard(field: str, pattern: str, case_insensitive: bool = True) -> Clause:
    body: Dict[str, Any] = {"value": pattern}
    if case_insensitive:
        body["case_insensitive"] = True
    return {"wildcard": {field: body}}


def match(field: str, text: Any, fuzziness: Optional[str] = None) -> Clause:
    if fuzziness is None:
        return {"match": {field: text}}
    return {"match": {field: {"query": text, "fuzziness": fuzziness}}}


def match_phrase(field: str, text: Any) -> Clause:
    return {"match_phrase": {field: text}}


def multi_match(
    text: Any,
    fields: List[str],
    fuzziness: Optional[str] = None,
    match_type: Optional[str] = None,
) -> Clause:
    body: Dict[str, Any] = {"query": text, "fields": list(fields)}
    if match_type:
        body["type"] = match_type
    if fuzziness:
        body["fuzziness"] = fuzziness
    return {"multi_match": body}


def bool_query(
    must: Optional[List[Clause]] = None,
    filter: Optional[List[Clause]] = None,
    should: Optional[List[Clause]] = None,
    must_not: Optional[List[Clause]] = None,
    minimum_should_match: Optional[int] = None,
) -> Clause:
    """
    Compose a bool query from its occurrence lists.

    Returns:
        {"bool": {...}} with only the non-empty lists, or match_all when every
        list is empty
    """
    body: Dict[str, Any] = {}
    for occur, clauses in (
        ("must", must),
        ("filter", filter),
        ("should", should),
        ("must_not", must_not),
    ):
        if clauses:
            body[occur] = list(clauses)
    if not body:
        return match_all()
    if should and minimum_should_match is not None:
        body["minimum_should_match"] = minimum_should_match
    return {"bool": body}


def sort_clause(field: str, order: str = "desc") -> Clause:
    return {field: {"order": order}}


def request_body(
    query: Clause,
    size: Optional[int] = None,
    aggs: Optional[Dict[str, Any]] = None,
    sort: Optional[List[Clause]] = None,
    track_total_hits: Optional[bool] = None,
) -> Dict[str, Any]:
    """Assemble a search request body; `query` is always present."""
    body: Dict[str, Any] = {"query": query}
    if size is not None:
        body["size"] = size
    if sort:
        body["sort"] = list(sort)
    if aggs:
        body["aggs"] = dict(aggs)
    if track_total_hits is not None:
        body["track_total_hits"] = track_total_hits
    return body
