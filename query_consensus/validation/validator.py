"""
Semantic validator for Elasticsearch request bodies.

Checks a query document against a field index for structural problems,
clause/field type mismatches and common performance antipatterns. Problems
are returned as Finding records; nothing is raised and the input document
is never modified.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from query_consensus.core.config import EngineConfig
from query_consensus.core.models import (
    FieldDescriptor,
    Finding,
    FindingType,
    QueryDocument,
    SchemaAnalysis,
    ValidationReport,
)
from query_consensus.schema.lookup import FieldLookup

logger = logging.getLogger(__name__)

RESERVED_FIELDS = {"_id", "_score", "_doc", "_index", "_source", "*"}
REQUEST_KEYS = {"query", "aggs", "aggregations", "sort", "size", "from", "track_total_hits", "_source"}
BOOL_OCCURRENCES = ("must", "filter", "should", "must_not")
RANGE_BOUNDS = ("gt", "gte", "lt", "lte")
SORT_ORDERS = {"asc", "desc"}
SORT_MODES = {"min", "max", "sum", "avg", "median"}

NUMERIC_METRICS = {"avg", "sum", "min", "max", "stats", "extended_stats", "percentiles"}
FIELD_AGGREGATIONS = NUMERIC_METRICS | {
    "terms",
    "date_histogram",
    "histogram",
    "range",
    "date_range",
    "cardinality",
    "value_count",
    "significant_terms",
    "significant_text",
}
CONTAINER_AGG_KEYS = {"aggs", "aggregations", "meta"}


class ClauseKind(str, Enum):
    TERM = "term"
    TERMS = "terms"
    MATCH = "match"
    MULTI_MATCH = "multi_match"
    MATCH_PHRASE = "match_phrase"
    RANGE = "range"
    EXISTS = "exists"
    WILDCARD = "wildcard"
    REGEXP = "regexp"
    SORT = "sort"
    AGGREGATION = "aggregation"


def strip_boost(field: str) -> str:
    """Remove a multi_match boost suffix ("title^2" -> "title")."""
    return field.split("^", 1)[0]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_numeric_like(value: Any) -> bool:
    if _is_number(value):
        return True
    if isinstance(value, str):
        try:
            float(value)
        except ValueError:
            return False
        return True
    return False


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


class _Pass:
    """State of one validation run."""

    def __init__(self, lookup: FieldLookup, config: EngineConfig):
        self.lookup = lookup
        self.config = config
        self.findings: List[Finding] = []
        self.max_bool_depth = 0

    def add(
        self,
        finding_type: FindingType,
        message: str,
        field_path: Optional[str] = None,
        location: Optional[str] = None,
    ) -> None:
        self.findings.append(
            Finding(type=finding_type, message=message, field_path=field_path, location=location)
        )

    def resolve(self, field: Any, location: str) -> Optional[FieldDescriptor]:
        """
        Look up a referenced field, reporting it when unknown.

        Reserved pseudo-fields, wildcard patterns and schema-less runs yield
        None without a finding.
        """
        if not isinstance(field, str) or not field:
            self.add(FindingType.ERROR, f"Invalid field reference {field!r}.", location=location)
            return None
        name = strip_boost(field)
        if name in RESERVED_FIELDS or "*" in name or self.lookup.is_empty:
            return None
        descriptor = self.lookup.get(name)
        if descriptor is None:
            self.add(
                FindingType.ERROR,
                f"Field '{name}' not found in schema.",
                field_path=name,
                location=location,
            )
        return descriptor


class SemanticValidator:
    """
    Validates query documents against a field index.

    Each ClauseKind maps to exactly one checker in the dispatch table.
    Boolean compositions, nested, constant_score and dis_max wrappers are
    walked recursively.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self._checkers: Dict[ClauseKind, Callable[[_Pass, Any, str], None]] = {
            ClauseKind.TERM: self._check_term,
            ClauseKind.TERMS: self._check_term,
            ClauseKind.MATCH: self._check_match,
            ClauseKind.MATCH_PHRASE: self._check_match,
            ClauseKind.MULTI_MATCH: self._check_multi_match,
            ClauseKind.RANGE: self._check_range,
            ClauseKind.EXISTS: self._check_exists,
            ClauseKind.WILDCARD: self._check_pattern,
            ClauseKind.REGEXP: self._check_pattern,
            ClauseKind.SORT: self._check_sort,
            ClauseKind.AGGREGATION: self._check_aggregations,
        }
        self._query_kinds = {
            kind.value: kind
            for kind in ClauseKind
            if kind not in (ClauseKind.SORT, ClauseKind.AGGREGATION)
        }

    def validate(
        self,
        document: Union[QueryDocument, Dict[str, Any], None],
        schema: Union[SchemaAnalysis, Dict[str, FieldDescriptor], None] = None,
    ) -> ValidationReport:
        """
        Validate a query document.

        Args:
            document: QueryDocument, a request body ({"query": ..., "aggs": ...})
                or a bare query clause ({"bool": ...})
            schema: SchemaAnalysis or field index; field checks are skipped when
                no schema is available

        Returns:
            ValidationReport; is_valid is True exactly when there is no error
        """
        state = _Pass(FieldLookup(schema), self.config)
        body = document.body if isinstance(document, QueryDocument) else document

        if not isinstance(body, dict) or not body:
            state.add(FindingType.ERROR, "Query document is empty or invalid.")
            return ValidationReport(findings=state.findings)

        if not REQUEST_KEYS.intersection(body):
            body = {"query": body}

        query = body.get("query")
        if query is not None:
            if isinstance(query, dict) and query:
                self._walk(state, query, "query", 0)
            else:
                state.add(FindingType.ERROR, "'query' must be a non-empty object.", location="query")

        if state.max_bool_depth > self.config.max_bool_depth:
            state.add(
                FindingType.WARNING,
                f"Boolean queries are nested {state.max_bool_depth} levels deep. "
                "Consider flattening the query.",
                location="query",
            )

        aggs = body.get("aggs") or body.get("aggregations")
        if aggs is not None:
            self._checkers[ClauseKind.AGGREGATION](state, aggs, "aggs")

        if body.get("sort") is not None:
            self._checkers[ClauseKind.SORT](state, body["sort"], "sort")

        self._check_pagination(state, body)

        logger.debug("Validation produced %d findings", len(state.findings))
        return ValidationReport(findings=state.findings)

    # ------------------------------------------------------------------
    # Query walking
    # ------------------------------------------------------------------

    def _walk(self, state: _Pass, clause: Any, location: str, depth: int) -> None:
        if not isinstance(clause, dict):
            state.add(FindingType.ERROR, "Query clause must be an object.", location=location)
            return

        for key, value in clause.items():
            path = f"{location}.{key}"
            if key == "bool":
                self._walk_bool(state, value, path, depth + 1)
            elif key == "nested" and isinstance(value, dict):
                if "path" in value:
                    state.resolve(value["path"], f"{path}.path")
                if "query" in value:
                    self._walk(state, value["query"], f"{path}.query", depth)
            elif key == "constant_score" and isinstance(value, dict):
                if "filter" in value:
                    self._walk(state, value["filter"], f"{path}.filter", depth)
            elif key == "dis_max" and isinstance(value, dict):
                for i, sub in enumerate(_as_list(value.get("queries"))):
                    self._walk(state, sub, f"{path}.queries[{i}]", depth)
            elif key in self._query_kinds:
                self._checkers[self._query_kinds[key]](state, value, path)

    def _walk_bool(self, state: _Pass, body: Any, location: str, depth: int) -> None:
        state.max_bool_depth = max(state.max_bool_depth, depth)
        if not isinstance(body, dict):
            state.add(FindingType.ERROR, "'bool' must be an object.", location=location)
            return

        for occurrence in BOOL_OCCURRENCES:
            for i, sub in enumerate(_as_list(body.get(occurrence))):
                self._walk(state, sub, f"{location}.{occurrence}[{i}]", depth)

        if (
            body.get("should")
            and not body.get("must")
            and not body.get("filter")
            and "minimum_should_match" not in body
        ):
            state.add(
                FindingType.WARNING,
                "'should'-only boolean query without 'minimum_should_match'. "
                "Set it explicitly to make matching semantics clear.",
                location=location,
            )

    @staticmethod
    def _field_entries(body: Any) -> Iterable:
        if not isinstance(body, dict):
            return []
        return [(k, v) for k, v in body.items() if k not in ("boost", "_name")]

    # ------------------------------------------------------------------
    # Clause checkers
    # ------------------------------------------------------------------

    def _check_term(self, state: _Pass, body: Any, location: str) -> None:
        clause_name = location.rsplit(".", 1)[-1]
        for field, _ in self._field_entries(body):
            descriptor = state.resolve(field, location)
            if descriptor is None:
                continue
            if descriptor.is_text:
                keyword = state.lookup.keyword_variant(descriptor.name)
                if keyword:
                    message = (
                        f"Using '{clause_name}' on a 'text' field ('{descriptor.name}'). "
                        f"Consider using '{keyword}' for exact non-analyzed matches."
                    )
                else:
                    message = (
                        f"Using '{clause_name}' on a 'text' field ('{descriptor.name}'). "
                        "This matches analyzed tokens; map a keyword subfield for exact values."
                    )
                state.add(FindingType.WARNING, message, field_path=descriptor.name, location=location)
            elif descriptor.family in ("object", "nested"):
                state.add(
                    FindingType.ERROR,
                    f"Using '{clause_name}' on an '{descriptor.type}' field ('{descriptor.name}'). "
                    f"'{clause_name}' queries are for scalar fields.",
                    field_path=descriptor.name,
                    location=location,
                )

    def _check_match(self, state: _Pass, body: Any, location: str) -> None:
        clause_name = location.rsplit(".", 1)[-1]
        for field, _ in self._field_entries(body):
            descriptor = state.resolve(field, location)
            if descriptor is None:
                continue
            if descriptor.family in ("object", "nested"):
                state.add(
                    FindingType.ERROR,
                    f"'{clause_name}' cannot target the '{descriptor.type}' field '{descriptor.name}'.",
                    field_path=descriptor.name,
                    location=location,
                )
            elif clause_name == "match" and descriptor.family == "keyword":
                state.add(
                    FindingType.SUGGESTION,
                    f"'{descriptor.name}' is a keyword field; a 'term' query is cheaper than 'match'.",
                    field_path=descriptor.name,
                    location=location,
                )

    def _check_multi_match(self, state: _Pass, body: Any, location: str) -> None:
        if not isinstance(body, dict):
            state.add(FindingType.ERROR, "'multi_match' must be an object.", location=location)
            return
        for field in _as_list(body.get("fields")):
            descriptor = state.resolve(field, f"{location}.fields")
            if descriptor is not None and descriptor.family in ("object", "nested"):
                state.add(
                    FindingType.ERROR,
                    f"'multi_match' cannot target the '{descriptor.type}' field '{descriptor.name}'.",
                    field_path=descriptor.name,
                    location=location,
                )

    def _check_range(self, state: _Pass, body: Any, location: str) -> None:
        for field, bounds in self._field_entries(body):
            descriptor = state.resolve(field, location)
            if descriptor is None:
                continue
            family = descriptor.family
            if family not in ("date", "numeric", "ip"):
                state.add(
                    FindingType.ERROR,
                    f"Field '{descriptor.name}' of type '{descriptor.type}' does not support range queries.",
                    field_path=descriptor.name,
                    location=location,
                )
                continue
            if not isinstance(bounds, dict):
                continue
            if "format" in bounds and family != "date":
                state.add(
                    FindingType.WARNING,
                    f"'format' only applies to date fields; '{descriptor.name}' is '{descriptor.type}'.",
                    field_path=descriptor.name,
                    location=f"{location}.{field}.format",
                )
            for bound in RANGE_BOUNDS:
                if bound not in bounds:
                    continue
                value = bounds[bound]
                if family == "date" and _is_number(value):
                    state.add(
                        FindingType.SUGGESTION,
                        f"Numeric value used for date field '{descriptor.name}' in range. "
                        "Ensure it is epoch milliseconds if intended.",
                        field_path=descriptor.name,
                        location=f"{location}.{field}.{bound}",
                    )
                elif family == "numeric" and not _is_numeric_like(value):
                    state.add(
                        FindingType.ERROR,
                        f"Range value for numeric field '{descriptor.name}' should be a number. "
                        f"Found: {value!r}.",
                        field_path=descriptor.name,
                        location=f"{location}.{field}.{bound}",
                    )

    def _check_exists(self, state: _Pass, body: Any, location: str) -> None:
        if not isinstance(body, dict) or "field" not in body:
            state.add(FindingType.ERROR, "'exists' requires a 'field'.", location=location)
            return
        state.resolve(body["field"], location)

    def _check_pattern(self, state: _Pass, body: Any, location: str) -> None:
        clause_name = location.rsplit(".", 1)[-1]
        for field, options in self._field_entries(body):
            state.resolve(field, location)
            pattern = options.get("value", options.get(clause_name)) if isinstance(options, dict) else options
            if not isinstance(pattern, str):
                continue
            leading = ("*", "?") if clause_name == "wildcard" else ("*", "?", ".*", ".+")
            if pattern.startswith(leading):
                state.add(
                    FindingType.WARNING,
                    f"Leading wildcard in '{clause_name}' pattern '{pattern}' forces a scan of "
                    "every term and is slow.",
                    field_path=strip_boost(field),
                    location=location,
                )

    def _check_sort(self, state: _Pass, sort: Any, location: str) -> None:
        for i, criterion in enumerate(_as_list(sort)):
            criterion_path = f"{location}[{i}]"
            if isinstance(criterion, str):
                self._check_sort_field(state, criterion, {}, criterion_path)
            elif isinstance(criterion, dict):
                for field, options in criterion.items():
                    if isinstance(options, str):
                        options = {"order": options}
                    self._check_sort_field(state, field, options if isinstance(options, dict) else {}, criterion_path)
            else:
                state.add(FindingType.ERROR, "Invalid sort criterion.", location=criterion_path)

    def _check_sort_field(self, state: _Pass, field: str, options: Dict[str, Any], location: str) -> None:
        order = options.get("order")
        if order is not None and str(order).lower() not in SORT_ORDERS:
            state.add(
                FindingType.ERROR,
                f"Invalid sort order '{order}' for field '{field}'; use 'asc' or 'desc'.",
                field_path=field,
                location=f"{location}.{field}.order",
            )
        mode = options.get("mode")
        if mode is not None and (not isinstance(mode, str) or mode not in SORT_MODES):
            state.add(
                FindingType.WARNING,
                f"Invalid sort mode '{mode}' for field '{field}'.",
                field_path=field,
                location=f"{location}.{field}.mode",
            )

        descriptor = state.resolve(field, location)
        if descriptor is None or not descriptor.is_text:
            return
        keyword = state.lookup.keyword_variant(descriptor.name)
        if keyword:
            state.add(
                FindingType.SUGGESTION,
                f"Sorting on 'text' field '{descriptor.name}'. Use '{keyword}' for efficient, "
                "predictable sorting.",
                field_path=descriptor.name,
                location=location,
            )
        else:
            state.add(
                FindingType.ERROR,
                f"Sorting on 'text' field '{descriptor.name}' without a keyword subfield is not supported.",
                field_path=descriptor.name,
                location=location,
            )

    def _check_aggregations(self, state: _Pass, aggs: Any, location: str) -> None:
        if not isinstance(aggs, dict):
            state.add(FindingType.ERROR, "Aggregations must be an object.", location=location)
            return
        for name, agg in aggs.items():
            agg_path = f"{location}.{name}"
            if not isinstance(agg, dict):
                state.add(FindingType.ERROR, f"Aggregation '{name}' must be an object.", location=agg_path)
                continue
            for agg_type, body in agg.items():
                if agg_type in ("aggs", "aggregations"):
                    self._check_aggregations(state, body, f"{agg_path}.{agg_type}")
                elif agg_type not in CONTAINER_AGG_KEYS and isinstance(body, dict):
                    self._check_aggregation(state, agg_type, body, f"{agg_path}.{agg_type}")

    def _check_aggregation(self, state: _Pass, agg_type: str, body: Dict[str, Any], location: str) -> None:
        field = body.get("field")
        if agg_type in FIELD_AGGREGATIONS and not field and not body.get("script"):
            state.add(
                FindingType.ERROR,
                f"Aggregation '{agg_type}' requires a 'field' (or 'script').",
                location=location,
            )
            return

        if agg_type == "date_histogram" and not any(
            key in body for key in ("calendar_interval", "fixed_interval", "interval")
        ):
            state.add(
                FindingType.WARNING,
                "Date histogram has no interval; set 'calendar_interval' or 'fixed_interval'.",
                field_path=field,
                location=location,
            )

        if agg_type == "terms":
            size = body.get("size")
            if _is_number(size) and size > self.config.large_terms_size:
                state.add(
                    FindingType.WARNING,
                    f"Terms aggregation size {size} is large and may be slow; consider a composite aggregation.",
                    field_path=field,
                    location=location,
                )

        if not field:
            return
        descriptor = state.resolve(field, f"{location}.field")
        if descriptor is None:
            return
        family = descriptor.family

        if agg_type == "date_histogram" and family != "date":
            state.add(
                FindingType.ERROR,
                f"Date histogram on field '{descriptor.name}' requires a 'date' or 'date_nanos' "
                f"type, but found '{descriptor.type}'.",
                field_path=descriptor.name,
                location=f"{location}.field",
            )
        elif agg_type == "histogram" and family != "numeric":
            state.add(
                FindingType.ERROR,
                f"Histogram on field '{descriptor.name}' requires a numeric type, but found '{descriptor.type}'.",
                field_path=descriptor.name,
                location=f"{location}.field",
            )
        elif agg_type in NUMERIC_METRICS and family not in ("numeric", "date"):
            state.add(
                FindingType.ERROR,
                f"Aggregation '{agg_type}' on field '{descriptor.name}' requires a numeric or date "
                f"type, but found '{descriptor.type}'.",
                field_path=descriptor.name,
                location=f"{location}.field",
            )
        elif agg_type in ("terms", "cardinality") and descriptor.is_text:
            keyword = state.lookup.keyword_variant(descriptor.name)
            hint = f" Use '{keyword}' instead." if keyword else " Map a keyword subfield for distinct values."
            state.add(
                FindingType.WARNING,
                f"'{agg_type}' aggregation on 'text' field '{descriptor.name}' works on analyzed "
                f"tokens and needs fielddata.{hint}",
                field_path=descriptor.name,
                location=f"{location}.field",
            )
        elif agg_type == "significant_text" and family != "text":
            state.add(
                FindingType.ERROR,
                f"Significant text aggregation requires a 'text' field; '{descriptor.name}' is "
                f"'{descriptor.type}'.",
                field_path=descriptor.name,
                location=f"{location}.field",
            )

    # ------------------------------------------------------------------
    # Request-level checks
    # ------------------------------------------------------------------

    def _check_pagination(self, state: _Pass, body: Dict[str, Any]) -> None:
        size = body.get("size")
        offset = body.get("from") or 0
        if not _is_number(size):
            return
        if size > self.config.max_result_window:
            state.add(
                FindingType.WARNING,
                f"Requested size {size} exceeds the default result window "
                f"({self.config.max_result_window}); use search_after or scroll.",
                location="size",
            )
        elif size > self.config.large_result_size and not body.get("sort"):
            state.add(
                FindingType.WARNING,
                f"Requested size {size} without sort or pagination returns a large, unordered result set.",
                location="size",
            )
        elif _is_number(offset) and offset and offset + size > self.config.max_result_window:
            state.add(
                FindingType.WARNING,
                f"'from' + 'size' ({offset + size}) exceeds the default result window "
                f"({self.config.max_result_window}).",
                location="from",
            )
