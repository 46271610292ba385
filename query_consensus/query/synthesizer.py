"""
Query synthesizer.

Compiles a StructuredIntent into an Elasticsearch request body for one
perspective. Synthesis is deterministic and never fails on missing schema
information; weak field resolutions are recorded on the produced document.
"""

import logging
import re
from typing import Any, Callable, Dict, List, Optional, Union

from query_consensus.core.config import EngineConfig
from query_consensus.core.models import (
    Entity,
    FieldDescriptor,
    FieldResolution,
    Perspective,
    QueryDocument,
    SchemaAnalysis,
    StructuredIntent,
    coerce_intent,
)
from query_consensus.query import clauses
from query_consensus.query.aggregations import (
    METRIC_AGGREGATIONS,
    aggregatable_field,
    aggregation_name,
    build_aggregation,
)
from query_consensus.query.field_resolver import WILDCARD_FIELD, FieldResolver
from query_consensus.query.perspectives import (
    PerspectiveId,
    get_perspective,
)
from query_consensus.query.timeframe import (
    determine_interval,
    extended_bounds,
    timeframe_range,
)
from query_consensus.schema.lookup import FieldLookup

logger = logging.getLogger(__name__)

RANGE_ENTITY_TYPES = {"numeric_range", "range", "date_range"}
COMPARISON_OPERATORS = {"gt", "gte", "lt", "lte"}
NEGATED_OPERATORS = {"ne", "!=", "not", "different", "is_not"}
EXISTENCE_OPERATORS = {"exists", "missing"}

IntentInput = Union[StructuredIntent, Dict[str, Any], None]
PerspectiveInput = Union[Perspective, PerspectiveId, str, None]
SchemaInput = Union[SchemaAnalysis, Dict[str, FieldDescriptor], None]


def extract_key_terms(text: Optional[str], stop_words: List[str]) -> List[str]:
    """
    Reduce free text to searchable key terms.

    Lowercases, strips punctuation, drops stop words and terms of two
    characters or fewer. Order and duplicates are preserved.
    """
    if not text:
        return []
    stop = set(stop_words)
    tokens = re.sub(r"[^\w\s]", " ", text.lower()).split()
    return [t for t in tokens if len(t) > 2 and t not in stop]


class _BoolClauses:
    """Accumulates clauses per bool occurrence."""

    def __init__(self):
        self.must: List[clauses.Clause] = []
        self.filter: List[clauses.Clause] = []
        self.should: List[clauses.Clause] = []
        self.must_not: List[clauses.Clause] = []

    def to_query(self, minimum_should_match: Optional[int] = None) -> clauses.Clause:
        return clauses.bool_query(
            must=self.must,
            filter=self.filter,
            should=self.should,
            must_not=self.must_not,
            minimum_should_match=minimum_should_match,
        )


class _SynthesisContext:
    """Per-call state: inputs plus the resolutions and notes gathered so far."""

    def __init__(
        self,
        intent: StructuredIntent,
        perspective: Perspective,
        lookup: FieldLookup,
        resolver: FieldResolver,
    ):
        self.intent = intent
        self.perspective = perspective
        self.params = perspective.parameters
        self.lookup = lookup
        self.resolver = resolver
        self.resolutions: List[FieldResolution] = []
        self.notes: List[str] = []
        self.time_resolution: Optional[FieldResolution] = None

    def resolve(self, entity: Entity) -> FieldResolution:
        resolution = self.resolver.resolve(entity)
        self.resolutions.append(resolution)
        return resolution


class QuerySynthesizer:
    """
    Builds one query document per perspective.

    Each PerspectiveId has exactly one builder in the dispatch table;
    unknown perspective ids are compiled as precise-match.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self._builders: Dict[PerspectiveId, Callable[[_SynthesisContext], Dict[str, Any]]] = {
            PerspectiveId.PRECISE_MATCH: self._build_precise_match,
            PerspectiveId.ENHANCED_RECALL: self._build_enhanced_recall,
            PerspectiveId.STATISTICAL_ANALYSIS: self._build_statistical_analysis,
            PerspectiveId.TIME_SERIES: self._build_time_series,
        }

    def synthesize(
        self,
        intent: IntentInput,
        perspective: PerspectiveInput = PerspectiveId.PRECISE_MATCH,
        schema: SchemaInput = None,
    ) -> QueryDocument:
        """
        Compile an intent for a perspective.

        Args:
            intent: Structured intent (or its dict form, camelCase accepted)
            perspective: Perspective, PerspectiveId or raw id string
            schema: SchemaAnalysis or field index; None means no schema

        Returns:
            Frozen QueryDocument whose body always has a `query`
        """
        intent = coerce_intent(intent)

        resolved_perspective = get_perspective(perspective)
        perspective_id = PerspectiveId.from_value(resolved_perspective.id)

        lookup = FieldLookup(schema)
        context = _SynthesisContext(
            intent,
            resolved_perspective,
            lookup,
            FieldResolver(lookup, self.config),
        )
        self._note_intent_quality(context)

        body = self._builders[perspective_id](context)

        logger.debug(
            "Synthesized %s query with %d resolutions",
            resolved_perspective.id,
            len(context.resolutions),
        )
        return QueryDocument(
            perspective_id=resolved_perspective.id,
            body=body,
            resolutions=context.resolutions,
            notes=context.notes,
        )

    # ------------------------------------------------------------------
    # Perspective builders
    # ------------------------------------------------------------------

    def _build_precise_match(self, ctx: _SynthesisContext) -> Dict[str, Any]:
        occurrences = _BoolClauses()
        for entity in ctx.intent.entities:
            self._add_exact_entity(ctx, entity, occurrences)
        self._add_time_filters(ctx, occurrences)
        return self._search_body(ctx, occurrences.to_query())

    def _build_enhanced_recall(self, ctx: _SynthesisContext) -> Dict[str, Any]:
        occurrences = _BoolClauses()
        used_text = False

        for entity in ctx.intent.entities:
            if self._add_text_entity(ctx, entity, occurrences):
                used_text = True
            else:
                self._add_exact_entity(ctx, entity, occurrences)

        if not used_text:
            key_terms = extract_key_terms(ctx.intent.original_text, self.config.stop_words)
            if key_terms:
                occurrences.should.append(
                    clauses.multi_match(
                        " ".join(key_terms),
                        self._recall_fields(ctx),
                        fuzziness=ctx.params.fuzziness,
                    )
                )

        self._add_time_filters(ctx, occurrences)

        minimum_should_match = None
        if occurrences.should and not (occurrences.must or occurrences.filter):
            minimum_should_match = 1
        return self._search_body(ctx, occurrences.to_query(minimum_should_match))

    def _build_statistical_analysis(self, ctx: _SynthesisContext) -> Dict[str, Any]:
        occurrences = _BoolClauses()
        for entity in ctx.intent.entities:
            self._add_exact_entity(ctx, entity, occurrences)
        self._add_time_filters(ctx, occurrences)

        aggs: Dict[str, Any] = {}
        for request in ctx.intent.aggregation_requests:
            built = build_aggregation(request, ctx.lookup)
            if built is None:
                message = f"Skipped aggregation request '{request.type}' (missing field or unsupported type)"
                logger.warning(message)
                ctx.notes.append(message)
                continue
            name, body = built
            aggs[name] = body

        if not aggs and not ctx.intent.is_empty:
            name, body = self._default_aggregation(ctx)
            aggs[name] = body

        size = 0
        if ctx.intent.limit:
            size = min(ctx.intent.limit, ctx.params.max_hits or 10)

        return clauses.request_body(occurrences.to_query(), size=size, aggs=aggs)

    def _build_time_series(self, ctx: _SynthesisContext) -> Dict[str, Any]:
        occurrences = _BoolClauses()
        for entity in ctx.intent.entities:
            self._add_exact_entity(ctx, entity, occurrences)
        self._add_time_filters(ctx, occurrences)

        time_field = self._time_field(ctx)
        fallback_range = ctx.intent.date_ranges[0].range if ctx.intent.date_ranges else None
        histogram: Dict[str, Any] = {
            "field": time_field,
            "calendar_interval": determine_interval(ctx.intent.timeframe, fallback_range),
            "min_doc_count": 0,
        }
        bounds = extended_bounds(ctx.intent.timeframe)
        if bounds:
            histogram["extended_bounds"] = bounds

        sub_aggs: Dict[str, Any] = {}
        for request in ctx.intent.aggregation_requests:
            if (request.type or "").lower() in METRIC_AGGREGATIONS:
                built = build_aggregation(request, ctx.lookup)
                if built is not None:
                    sub_aggs[built[0]] = built[1]
        if not sub_aggs:
            sub_aggs["event_count"] = {"value_count": {"field": "_index"}}

        for request in ctx.intent.aggregation_requests:
            if (request.type or "").lower() == "terms" and request.field:
                sub_aggs[f"by_{request.field.replace('.', '_')}"] = {
                    "terms": {
                        "field": aggregatable_field(request.field, ctx.lookup),
                        "size": request.settings.get("size", 5),
                    }
                }
                break

        aggs = {"time_buckets": {"date_histogram": histogram, "aggs": sub_aggs}}
        return clauses.request_body(occurrences.to_query(), size=0, aggs=aggs)

    # ------------------------------------------------------------------
    # Entity compilation
    # ------------------------------------------------------------------

    def _add_exact_entity(
        self, ctx: _SynthesisContext, entity: Entity, occurrences: _BoolClauses
    ) -> None:
        """Compile an entity as a term-level (non-scoring) constraint."""
        resolution = ctx.resolve(entity)
        field = resolution.field
        operator = (entity.operator or "eq").lower()
        value = entity.value
        negated = operator in NEGATED_OPERATORS

        if operator == "missing":
            occurrences.must_not.append(clauses.exists(field))
            return
        if operator == "exists" or value is None:
            if field == WILDCARD_FIELD:
                ctx.notes.append(f"Entity '{entity.name}' has no value and no target field; ignored")
                return
            occurrences.filter.append(clauses.exists(field))
            return

        bounds = self._range_bounds(entity, operator)
        if bounds is not None:
            target = occurrences.must_not if negated else occurrences.filter
            target.append(clauses.range_clause(field, bounds))
            return

        if isinstance(value, dict):
            ctx.notes.append(f"Entity '{entity.name}' has an unsupported value shape; ignored")
            return

        if isinstance(value, (list, tuple)):
            target = occurrences.must_not if negated else occurrences.filter
            target.append(clauses.terms(ctx.lookup.exact_field(field), list(value)))
            return

        if field == WILDCARD_FIELD:
            target = occurrences.must_not if negated else occurrences.must
            target.append(clauses.multi_match(value, [WILDCARD_FIELD], match_type="phrase"))
            return

        descriptor = ctx.lookup.get(field)
        if descriptor is not None and descriptor.is_text and not ctx.lookup.keyword_variant(field):
            target = occurrences.must_not if negated else occurrences.must
            target.append(clauses.match_phrase(field, value))
            return

        exact = ctx.lookup.exact_field(field)
        target = occurrences.must_not if negated else occurrences.filter
        if operator == "contains" and isinstance(value, str):
            target.append(clauses.wildcard(exact, f"*{value}*"))
        else:
            target.append(clauses.term(exact, value))

    def _add_text_entity(
        self, ctx: _SynthesisContext, entity: Entity, occurrences: _BoolClauses
    ) -> bool:
        """
        Compile a text-bearing entity as a fuzzy full-text clause.

        Returns:
            False when the entity is not free text; nothing is added then
        """
        operator = (entity.operator or "eq").lower()
        if not isinstance(entity.value, str) or not entity.value.strip():
            return False
        if operator in NEGATED_OPERATORS or operator in EXISTENCE_OPERATORS or operator in COMPARISON_OPERATORS:
            return False

        resolution = ctx.resolver.resolve(entity)
        if not ctx.resolver.is_text_entity(entity, resolution.field):
            return False
        ctx.resolutions.append(resolution)

        fuzziness = ctx.params.fuzziness if ctx.params.use_fuzziness else None
        if resolution.field == WILDCARD_FIELD:
            occurrences.must.append(
                clauses.multi_match(entity.value, self._recall_fields(ctx), fuzziness=fuzziness)
            )
        else:
            occurrences.must.append(clauses.match(resolution.field, entity.value, fuzziness=fuzziness))
        return True

    @staticmethod
    def _range_bounds(entity: Entity, operator: str) -> Optional[Dict[str, Any]]:
        value = entity.value
        if isinstance(value, dict):
            bounds = {k: v for k, v in value.items() if k in clauses.RANGE_KEYS or k == "format"}
            if any(k in clauses.RANGE_KEYS for k in bounds):
                return bounds
            return None
        if operator in COMPARISON_OPERATORS and not isinstance(value, (list, tuple)):
            return {operator: value}
        if (
            (entity.type or "").lower() in RANGE_ENTITY_TYPES or operator == "between"
        ) and isinstance(value, (list, tuple)) and len(value) == 2:
            bounds = {}
            if value[0] is not None:
                bounds["gte"] = value[0]
            if value[1] is not None:
                bounds["lte"] = value[1]
            return bounds or None
        return None

    # ------------------------------------------------------------------
    # Shared pieces
    # ------------------------------------------------------------------

    def _add_time_filters(self, ctx: _SynthesisContext, occurrences: _BoolClauses) -> None:
        for date_range in ctx.intent.date_ranges:
            if date_range.range:
                occurrences.filter.append(clauses.range_clause(date_range.field, date_range.range))

        if ctx.intent.timeframe is not None:
            bounds = timeframe_range(ctx.intent.timeframe)
            if bounds is None:
                ctx.notes.append("Timeframe could not be translated into a date range; ignored")
                return
            occurrences.filter.append(clauses.range_clause(self._time_field(ctx), bounds))

    def _time_field(self, ctx: _SynthesisContext) -> str:
        if ctx.time_resolution is None:
            ctx.time_resolution = ctx.resolver.resolve_time_field(ctx.intent)
            ctx.resolutions.append(ctx.time_resolution)
        return ctx.time_resolution.field

    def _recall_fields(self, ctx: _SynthesisContext) -> List[str]:
        """Text fields for multi_match, conventional names boosted."""
        text_fields = ctx.lookup.text_fields
        if not text_fields:
            return [WILDCARD_FIELD]
        conventional = set(self.config.conventional_text_fields)
        boost = ctx.params.conventional_field_boost
        fields = []
        for field in text_fields:
            leaf = field.rsplit(".", 1)[-1]
            if ctx.params.boost_conventional_fields and leaf in conventional:
                fields.append(f"{field}^{boost}")
            else:
                fields.append(field)
        return fields

    def _search_body(self, ctx: _SynthesisContext, query: clauses.Clause) -> Dict[str, Any]:
        sort = [
            clauses.sort_clause(ctx.lookup.exact_field(spec.field), spec.order)
            for spec in ctx.intent.sort
        ]
        return clauses.request_body(
            query,
            size=ctx.intent.limit or ctx.params.default_size,
            sort=sort,
            track_total_hits=True,
        )

    def _default_aggregation(self, ctx: _SynthesisContext):
        """
        Pick a grouping field when the intent asked for none.

        Order: a field constrained by a non-equality operator, an entity type
        naming an indexed field, the first aggregatable field; otherwise a
        document count.
        """
        field = None
        for entity, resolution in zip(ctx.intent.entities, ctx.resolutions):
            operator = (entity.operator or "eq").lower()
            if operator not in ("eq", "contains") and resolution.field != WILDCARD_FIELD:
                field = resolution.field
                break

        if field is None:
            for entity in ctx.intent.entities:
                matched = ctx.lookup.find_by_name(entity.type)
                if matched:
                    field = matched
                    break

        if field is None and ctx.lookup.aggregatable_fields:
            field = ctx.lookup.aggregatable_fields[0]

        if field is None:
            return "document_count", {"value_count": {"field": "_index"}}

        field = aggregatable_field(field, ctx.lookup)
        return aggregation_name("terms", field), {"terms": {"field": field, "size": 10}}

    @staticmethod
    def _note_intent_quality(ctx: _SynthesisContext) -> None:
        score = ctx.intent.confidence_score
        if score is not None and score < 0.5:
            ctx.notes.append(f"Intent confidence is low ({score:.2f}); result may be incomplete")
        for error in ctx.intent.errors:
            ctx.notes.append(f"Intent extraction reported: {error}")
