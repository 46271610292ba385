"""
Perspective catalog and selection.

A perspective is a named strategy for compiling an intent into a query
document. The catalog is data; the synthesizer dispatches on PerspectiveId.
"""

from enum import Enum
from typing import List, Optional, Union

from query_consensus.core.models import (
    Perspective,
    PerspectiveParameters,
    QueryType,
    StructuredIntent,
)
from query_consensus.schema.lookup import FieldLookup


class PerspectiveId(str, Enum):
    PRECISE_MATCH = "precise-match"
    ENHANCED_RECALL = "enhanced-recall"
    STATISTICAL_ANALYSIS = "statistical-analysis"
    TIME_SERIES = "time-series"

    @classmethod
    def from_value(cls, value: Union[str, "PerspectiveId", Perspective, None]) -> "PerspectiveId":
        """Coerce an id, falling back to PRECISE_MATCH for unknown values."""
        if isinstance(value, Perspective):
            value = value.id
        if isinstance(value, PerspectiveId):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.PRECISE_MATCH


CORE_PERSPECTIVES = {
    PerspectiveId.PRECISE_MATCH: Perspective(
        id=PerspectiveId.PRECISE_MATCH.value,
        name="Precise Match",
        approach="Prioritizes exact matching and high precision",
        description=(
            "Finds exact matches to the query terms, using strict filters and "
            "term-level queries to ensure high precision results."
        ),
        confidence=0.9,
        parameters=PerspectiveParameters(default_size=10, prefer_keyword=True),
    ),
    PerspectiveId.ENHANCED_RECALL: Perspective(
        id=PerspectiveId.ENHANCED_RECALL.value,
        name="Enhanced Recall",
        approach="Optimizes for broader matching and higher recall",
        description=(
            "Uses full-text search to find relevant results even when terms "
            "don't exactly match, employing fuzzy matching."
        ),
        confidence=0.85,
        parameters=PerspectiveParameters(
            default_size=20,
            use_fuzziness=True,
            prefer_keyword=False,
            boost_conventional_fields=True,
        ),
    ),
    PerspectiveId.STATISTICAL_ANALYSIS: Perspective(
        id=PerspectiveId.STATISTICAL_ANALYSIS.value,
        name="Statistical Analysis",
        approach="Provides statistical insights through aggregations",
        description=(
            "Extracts analytical insights using aggregations to summarize, "
            "group and analyze patterns."
        ),
        confidence=0.8,
        parameters=PerspectiveParameters(
            default_size=0, aggregation_style="statistical", max_hits=10
        ),
    ),
    PerspectiveId.TIME_SERIES: Perspective(
        id=PerspectiveId.TIME_SERIES.value,
        name="Time Series Analysis",
        approach="Analyzes trends and patterns over time",
        description=(
            "Tracks how metrics change over time intervals using date "
            "histograms and time-based aggregations."
        ),
        confidence=0.85,
        parameters=PerspectiveParameters(default_size=0, aggregation_style="temporal"),
    ),
}


TEMPORAL_NAME_HINTS = ("date", "time", "@timestamp")


def get_perspective(perspective: Union[str, PerspectiveId, Perspective, None]) -> Perspective:
    """Return the given perspective, or the catalog entry for an id."""
    if isinstance(perspective, Perspective):
        return perspective
    return CORE_PERSPECTIVES[PerspectiveId.from_value(perspective)]


def _looks_temporal(field: Optional[str], lookup: Optional[FieldLookup]) -> bool:
    if not field:
        return False
    if lookup is not None and lookup.family(field) == "date":
        return True
    return any(hint in field for hint in TEMPORAL_NAME_HINTS)


def select_perspectives(
    intent: StructuredIntent,
    lookup: Optional[FieldLookup] = None,
    max_count: int = 3,
) -> List[Perspective]:
    """
    Choose the perspectives worth synthesizing for an intent.

    Search-like intents get precise and recall variants; aggregation intents
    get a statistical view plus a temporal one when an aggregation targets a
    date field. Any timeframe adds the time-series view.

    Args:
        intent: Structured intent
        lookup: Optional field lookup used to recognize date fields
        max_count: Maximum number of perspectives returned

    Returns:
        Enriched perspectives, in priority order
    """
    selected: List[PerspectiveId] = []

    if intent.query_type == QueryType.AGGREGATION:
        selected.append(PerspectiveId.STATISTICAL_ANALYSIS)
        if any(_looks_temporal(req.field, lookup) for req in intent.aggregation_requests):
            selected.append(PerspectiveId.TIME_SERIES)
    else:
        selected.extend([PerspectiveId.PRECISE_MATCH, PerspectiveId.ENHANCED_RECALL])

    if intent.timeframe is not None and PerspectiveId.TIME_SERIES not in selected:
        selected.append(PerspectiveId.TIME_SERIES)

    return [
        enrich_perspective(CORE_PERSPECTIVES[pid], intent, lookup)
        for pid in selected[:max_count]
    ]


def enrich_perspective(
    perspective: Perspective,
    intent: StructuredIntent,
    lookup: Optional[FieldLookup] = None,
) -> Perspective:
    """
    Tailor confidence and strategy hints of a perspective to an intent.

    Returns a new Perspective; catalog entries are never modified.
    """
    pid = PerspectiveId.from_value(perspective.id)
    confidence = perspective.confidence
    strategies: List[str] = []

    if pid == PerspectiveId.PRECISE_MATCH:
        if any(e.field for e in intent.entities):
            confidence = min(0.95, confidence + 0.05)
        elif not intent.entities:
            confidence -= 0.1
        strategies = [
            "Use term-level queries for exact field matches",
            "Apply strict filters with no fuzzy matching",
        ]
        if lookup is not None and lookup.aggregatable_fields:
            strategies.append(
                "Use keyword fields for exact matching: "
                + _preview(lookup.aggregatable_fields)
            )

    elif pid == PerspectiveId.ENHANCED_RECALL:
        if any(e.operator == "contains" for e in intent.entities) or intent.fuzzy_matching:
            confidence = min(0.95, confidence + 0.05)
        strategies = [
            "Use match queries for text fields with stemming and analysis",
            "Apply slight fuzziness to accommodate typos",
        ]
        if lookup is not None and lookup.text_fields:
            strategies.append("Focus on analyzed text fields: " + _preview(lookup.text_fields))

    elif pid == PerspectiveId.STATISTICAL_ANALYSIS:
        if intent.aggregation_requests:
            confidence = min(0.95, confidence + 0.05)
        strategies = [
            "Summarize matching documents with bucket and metric aggregations",
            "Skip hits to keep the response small",
        ]

    elif pid == PerspectiveId.TIME_SERIES:
        if intent.timeframe is None and not intent.date_ranges:
            confidence -= 0.1
        strategies = [
            "Bucket documents with a date histogram",
            "Choose the interval from the requested time window",
        ]

    return perspective.model_copy(
        update={"confidence": round(max(0.0, confidence), 2), "query_strategies": strategies}
    )


def _preview(fields: List[str], limit: int = 3) -> str:
    text = ", ".join(fields[:limit])
    return text + ("..." if len(fields) > limit else "")
