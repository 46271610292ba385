"""
Scoring heuristics for the consensus ranker.

A QueryProfile is extracted once per candidate; each dimension function
turns a profile into a DimensionScore in [0, 1] with the reasons behind it.
"""

from typing import Any, Dict, List, Optional, Set

from query_consensus.core.config import EngineConfig
from query_consensus.core.models import (
    DimensionScore,
    FindingType,
    QueryDocument,
    StructuredIntent,
    ValidationReport,
)
from query_consensus.schema.lookup import FieldLookup
from query_consensus.validation.validator import BOOL_OCCURRENCES, RESERVED_FIELDS, strip_boost

LEAF_CLAUSES = {
    "term",
    "terms",
    "match",
    "match_phrase",
    "match_phrase_prefix",
    "multi_match",
    "range",
    "exists",
    "wildcard",
    "regexp",
    "prefix",
    "fuzzy",
    "query_string",
    "simple_query_string",
    "geo_distance",
    "ids",
}
BROAD_CLAUSES = {"match_all", "query_string", "simple_query_string"}
NON_FIELD_KEYS = {"boost", "_name", "query", "fields", "type", "fuzziness", "operator"}


class QueryProfile:
    """Structural facts about a request body, gathered in one walk."""

    def __init__(self):
        self.leaf_types: Set[str] = set()
        self.query_fields: Set[str] = set()
        self.filter_fields: Set[str] = set()
        self.agg_types: Set[str] = set()
        self.agg_fields: Dict[str, Set[str]] = {}
        self.sort_fields: Set[str] = set()
        self.leaf_count = 0
        self.field_targeted = 0
        self.broad = False
        self.term_count = 0
        self.filter_clause_count = 0
        self.must_not_count = 0
        self.should_count = 0
        self.bool_clause_count = 0
        self.bool_depth = 0
        self.uses_fuzziness = False
        self.uses_script = False
        self.leading_wildcard = False
        self.size: Optional[int] = None

    @property
    def fields(self) -> Set[str]:
        referenced = set(self.query_fields) | set(self.sort_fields)
        for fields in self.agg_fields.values():
            referenced |= fields
        return referenced


def extract_profile(document: QueryDocument) -> QueryProfile:
    """Collect the facts the dimension heuristics need."""
    profile = QueryProfile()
    body = document.body or {}

    query = body.get("query")
    if isinstance(query, dict):
        _walk_query(profile, query, None, 0)

    aggs = body.get("aggs") or body.get("aggregations")
    if isinstance(aggs, dict):
        _walk_aggs(profile, aggs)

    for criterion in body.get("sort") or []:
        if isinstance(criterion, str):
            profile.sort_fields.add(criterion)
        elif isinstance(criterion, dict):
            profile.sort_fields.update(criterion.keys())
    profile.sort_fields -= RESERVED_FIELDS

    size = body.get("size")
    profile.size = size if isinstance(size, int) and not isinstance(size, bool) else None
    return profile


def _clause_fields(clause_type: str, body: Any) -> List[str]:
    if not isinstance(body, dict):
        return []
    if clause_type == "exists":
        return [body["field"]] if isinstance(body.get("field"), str) else []
    if clause_type in ("multi_match", "query_string", "simple_query_string"):
        return [strip_boost(f) for f in body.get("fields") or [] if isinstance(f, str)]
    return [k for k in body if k not in NON_FIELD_KEYS]


def _walk_query(profile: QueryProfile, clause: Any, occurrence: Optional[str], depth: int) -> None:
    if not isinstance(clause, dict):
        return
    for key, value in clause.items():
        if key == "bool" and isinstance(value, dict):
            profile.bool_depth = max(profile.bool_depth, depth + 1)
            for occ in BOOL_OCCURRENCES:
                subs = value.get(occ)
                subs = subs if isinstance(subs, list) else ([subs] if subs else [])
                profile.bool_clause_count += len(subs)
                if occ == "filter":
                    profile.filter_clause_count += len(subs)
                elif occ == "must_not":
                    profile.must_not_count += len(subs)
                elif occ == "should":
                    profile.should_count += len(subs)
                for sub in subs:
                    _walk_query(profile, sub, occ, depth + 1)
        elif key == "nested" and isinstance(value, dict):
            _walk_query(profile, value.get("query"), occurrence, depth)
        elif key == "constant_score" and isinstance(value, dict):
            _walk_query(profile, value.get("filter"), "filter", depth)
        elif key == "dis_max" and isinstance(value, dict):
            for sub in value.get("queries") or []:
                _walk_query(profile, sub, occurrence, depth)
        elif key in ("script", "script_score", "function_score"):
            profile.uses_script = True
        elif key in BROAD_CLAUSES:
            profile.broad = True
            profile.leaf_types.add(key)
        elif key in LEAF_CLAUSES:
            _record_leaf(profile, key, value, occurrence)


def _record_leaf(profile: QueryProfile, clause_type: str, body: Any, occurrence: Optional[str]) -> None:
    profile.leaf_types.add(clause_type)
    profile.leaf_count += 1

    fields = _clause_fields(clause_type, body)
    specific = [f for f in fields if f not in RESERVED_FIELDS and "*" not in f]
    if specific:
        profile.field_targeted += 1
    elif fields:
        profile.broad = True
    profile.query_fields.update(specific)
    if occurrence in ("filter", "must_not"):
        profile.filter_fields.update(specific)

    if clause_type in ("term", "terms"):
        profile.term_count += 1

    if isinstance(body, dict):
        for options in [body] + [v for v in body.values() if isinstance(v, dict)]:
            if "fuzziness" in options:
                profile.uses_fuzziness = True
        if clause_type in ("wildcard", "regexp"):
            for options in body.values():
                pattern = options.get("value") if isinstance(options, dict) else options
                if isinstance(pattern, str) and pattern.startswith(("*", "?", ".*")):
                    profile.leading_wildcard = True
    if clause_type == "fuzzy":
        profile.uses_fuzziness = True


def _walk_aggs(profile: QueryProfile, aggs: Dict[str, Any]) -> None:
    for agg in aggs.values():
        if not isinstance(agg, dict):
            continue
        for agg_type, body in agg.items():
            if agg_type in ("aggs", "aggregations") and isinstance(body, dict):
                _walk_aggs(profile, body)
            elif agg_type != "meta" and isinstance(body, dict):
                profile.agg_types.add(agg_type)
                if "script" in body:
                    profile.uses_script = True
                field = body.get("field")
                if isinstance(field, str) and field not in RESERVED_FIELDS:
                    profile.agg_fields.setdefault(agg_type, set()).add(field)


def _clamp(value: float) -> float:
    return round(min(1.0, max(0.0, value)), 4)


def wants_exact_matching(intent: StructuredIntent, config: EngineConfig) -> bool:
    if intent.exact_matching is not None:
        return intent.exact_matching
    text_types = {t.lower() for t in config.text_entity_types}
    return bool(intent.entities) and all(
        e.field and (e.type or "").lower() not in text_types for e in intent.entities
    )


def wants_fuzzy_matching(intent: StructuredIntent, config: EngineConfig) -> bool:
    if intent.fuzzy_matching is not None:
        return intent.fuzzy_matching
    text_types = {t.lower() for t in config.text_entity_types}
    if any((e.type or "").lower() in text_types for e in intent.entities):
        return True
    return not intent.entities and bool(intent.original_text)


def score_precision(
    profile: QueryProfile,
    document: QueryDocument,
    intent: StructuredIntent,
    config: EngineConfig,
) -> DimensionScore:
    score = 0.5
    reasons = []

    if profile.field_targeted and not profile.broad:
        score += 0.2
        reasons.append("Targets specific fields")
    else:
        score -= 0.1
        reasons.append("Relies on broad or wildcard matching")

    expected = len(intent.entities) + len(intent.date_ranges) + (1 if intent.timeframe else 0)
    if expected:
        if profile.leaf_count >= expected:
            score += 0.2
            reasons.append("Every intent constraint is expressed as a clause")
        else:
            score -= 0.1
            reasons.append(f"Only {profile.leaf_count} of {expected} intent constraints became clauses")

    if wants_exact_matching(intent, config) and profile.term_count:
        score += 0.1
        reasons.append("Uses exact term matching as the intent requires")

    low_confidence = len(document.low_confidence_resolutions)
    if low_confidence:
        score -= min(0.2, 0.1 * low_confidence)
        reasons.append(f"{low_confidence} field(s) resolved by fallback heuristics")

    return DimensionScore(score=_clamp(score), reasons=reasons)


def score_recall(profile: QueryProfile, intent: StructuredIntent, config: EngineConfig) -> DimensionScore:
    score = 0.5
    reasons = []

    if wants_fuzzy_matching(intent, config) and profile.uses_fuzziness:
        score += 0.2
        reasons.append("Tolerates typos with fuzzy matching")

    if intent.alternative_terms:
        if profile.should_count:
            score += 0.2
            reasons.append("Includes alternative terms as optional clauses")
        else:
            score -= 0.1
            reasons.append("Alternative terms were requested but not used")

    constraints = profile.filter_clause_count + profile.must_not_count
    if constraints > 5:
        score -= 0.2
        reasons.append(f"{constraints} filters may over-constrain results")

    return DimensionScore(score=_clamp(score), reasons=reasons)


def score_complexity(profile: QueryProfile) -> DimensionScore:
    score = 1.0
    reasons = []

    if profile.bool_depth > 3:
        score -= 0.3
        reasons.append(f"Boolean nesting depth {profile.bool_depth}")
    elif profile.bool_depth > 2:
        score -= 0.1
        reasons.append(f"Boolean nesting depth {profile.bool_depth}")

    if profile.bool_clause_count > 10:
        score -= 0.3
        reasons.append(f"{profile.bool_clause_count} boolean clauses")
    elif profile.bool_clause_count > 6:
        score -= 0.15
        reasons.append(f"{profile.bool_clause_count} boolean clauses")

    if profile.uses_script:
        score -= 0.2
        reasons.append("Uses scripting")

    if not reasons:
        reasons.append("Simple structure")
    return DimensionScore(score=_clamp(score), reasons=reasons)


def score_performance(profile: QueryProfile, lookup: FieldLookup, config: EngineConfig) -> DimensionScore:
    score = 0.8
    reasons = []

    if profile.leading_wildcard:
        score -= 0.3
        reasons.append("Leading wildcard patterns scan every term")

    non_indexed = sorted(
        f for f in profile.query_fields
        if f in lookup and not lookup.get(f).searchable
    )
    if non_indexed:
        score -= 0.2
        reasons.append(f"Queries non-indexed fields: {', '.join(non_indexed)}")

    size = profile.size or 0
    if size > config.max_result_window or (size > config.large_result_size and not profile.sort_fields):
        score -= 0.2
        reasons.append(f"Requests {size} hits without pagination")

    fielddata_fields = set(profile.sort_fields)
    for agg_type in ("terms", "cardinality"):
        fielddata_fields |= profile.agg_fields.get(agg_type, set())
    on_text = sorted(f for f in fielddata_fields if f in lookup and lookup.get(f).is_text)
    if on_text:
        score -= 0.2
        reasons.append(f"Needs fielddata on text fields: {', '.join(on_text)}")

    if profile.filter_clause_count:
        score += 0.1
        reasons.append("Uses cacheable filter context")

    return DimensionScore(score=_clamp(score), reasons=reasons)


def score_schema_alignment(
    profile: QueryProfile,
    validation: Optional[ValidationReport],
    lookup: FieldLookup,
) -> DimensionScore:
    if lookup.is_empty:
        return DimensionScore(score=0.5, reasons=["No schema available"])

    score = 0.7
    reasons = []

    unknown = sorted(f for f in profile.fields if "*" not in f and f not in lookup)
    if unknown:
        score -= 0.2
        reasons.append(f"Unknown fields: {', '.join(unknown)}")
    else:
        score += 0.1
        reasons.append("All referenced fields exist in the index")

    mismatches = [
        finding
        for finding in (validation.findings if validation else [])
        if finding.type == FindingType.ERROR and finding.field_path in lookup
    ]
    if mismatches:
        score -= 0.2
        reasons.append(f"{len(mismatches)} clause/field type mismatch(es)")
    else:
        score += 0.1
        reasons.append("Clause types match field types")

    return DimensionScore(score=_clamp(score), reasons=reasons)
