"""
Shared data models for the query consensus engine.
"""

import copy
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, computed_field
from pydantic.alias_generators import to_camel

from query_consensus.core.field_types import type_family


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


class FieldDescriptor(BaseModel):
    """A single field of an index mapping, addressed by its full dot path."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str = "object"
    searchable: bool = False
    aggregatable: bool = False
    analyzers: Optional[List[str]] = None
    children: Optional[List["FieldDescriptor"]] = None  # For object/nested types
    multi_fields: List[str] = Field(default_factory=list)  # Full paths of `fields` variants
    is_multi_field: bool = False

    @property
    def family(self) -> str:
        return type_family(self.type)

    @property
    def is_text(self) -> bool:
        return self.family == "text"

    @property
    def depth(self) -> int:
        return self.name.count(".")


class SchemaAnalysis(BaseModel):
    """Result of indexing a raw mapping tree."""

    model_config = ConfigDict(frozen=True)

    fields: List[FieldDescriptor] = Field(default_factory=list)
    field_index: Dict[str, FieldDescriptor] = Field(default_factory=dict)
    tree: List[FieldDescriptor] = Field(default_factory=list)
    summary: str = ""
    errors: List[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.field_index


# ---------------------------------------------------------------------------
# Structured intent
# ---------------------------------------------------------------------------


class IntentModel(BaseModel):
    """Base for intent models: accepts camelCase or snake_case keys, ignores unknown keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class QueryType(str, Enum):
    SEARCH = "search"
    AGGREGATION = "aggregation"
    MIXED = "mixed"
    UNKNOWN = "unknown"


class Entity(IntentModel):
    """A named value extracted from the user request."""

    name: str = ""
    type: str = "filter"  # filter, keyword, numeric_range, search_term, ...
    value: Any = None
    field: Optional[str] = None
    operator: Optional[str] = None  # eq, ne, contains, exists, missing, gt, gte, lt, lte


class DateRange(IntentModel):
    field: str
    range: Dict[str, Any] = Field(default_factory=dict)


class SortSpec(IntentModel):
    field: str
    order: str = "desc"


class AggregationRequest(IntentModel):
    type: str
    field: Optional[str] = None
    name: Optional[str] = None
    settings: Dict[str, Any] = Field(default_factory=dict)


class Timeframe(IntentModel):
    """Time window of the request: relative (last N units), absolute or named."""

    type: str = "relative"  # relative, absolute, named
    unit: Optional[str] = None
    value: Optional[float] = Field(default=None, allow_inf_nan=False)
    start: Optional[str] = None
    end: Optional[str] = None
    period: Optional[str] = None
    field: Optional[str] = None


class StructuredIntent(IntentModel):
    """Structured description of a user's information need."""

    query_type: QueryType = QueryType.UNKNOWN
    entities: List[Entity] = Field(default_factory=list)
    date_ranges: List[DateRange] = Field(default_factory=list)
    sort: List[SortSpec] = Field(default_factory=list)
    aggregation_requests: List[AggregationRequest] = Field(default_factory=list)
    timeframe: Optional[Timeframe] = None
    limit: Optional[int] = None
    confidence_score: Optional[float] = None
    errors: List[str] = Field(default_factory=list)
    original_text: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("originalText", "originalInput", "original_text"),
    )
    exact_matching: Optional[bool] = None
    fuzzy_matching: Optional[bool] = None
    alternative_terms: Optional[bool] = None

    @property
    def is_empty(self) -> bool:
        """True when the intent carries nothing that compiles to a clause."""
        return not (
            self.entities
            or self.date_ranges
            or self.aggregation_requests
            or self.timeframe
        )


def coerce_intent(intent: Union[StructuredIntent, Dict[str, Any], None]) -> StructuredIntent:
    """
    Validate an intent payload, dropping top-level fields that fail validation.

    Each dropped field is recorded in the intent's errors as
    "Ignored malformed intent field '<name>'." A payload that is not an
    object still raises ValidationError.
    """
    if isinstance(intent, StructuredIntent):
        return intent
    if not isinstance(intent, dict):
        return StructuredIntent.model_validate(intent or {})

    data = dict(intent)
    dropped: List[str] = []
    while True:
        try:
            result = StructuredIntent.model_validate(data)
            break
        except ValidationError as exc:
            bad = []
            for error in exc.errors():
                loc = error.get("loc") or ()
                if loc and loc[0] in data and loc[0] not in bad:
                    bad.append(loc[0])
            if not bad:
                raise
            for key in bad:
                del data[key]
            dropped.extend(bad)

    if not dropped:
        return result
    notes = [f"Ignored malformed intent field '{key}'." for key in dropped]
    return result.model_copy(update={"errors": result.errors + notes})


# ---------------------------------------------------------------------------
# Perspectives and query documents
# ---------------------------------------------------------------------------


class PerspectiveParameters(BaseModel):
    """Tunable knobs of a perspective."""

    model_config = ConfigDict(frozen=True)

    default_size: int = 10
    use_fuzziness: bool = False
    fuzziness: str = "AUTO"
    prefer_keyword: bool = True
    aggregation_style: Optional[str] = None  # statistical, temporal
    boost_conventional_fields: bool = False
    conventional_field_boost: int = 2
    max_hits: Optional[int] = None


class Perspective(BaseModel):
    """A named, parameterized strategy for compiling an intent into a query document."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    approach: str = ""
    description: str = ""
    confidence: float = 0.8
    parameters: PerspectiveParameters = Field(default_factory=PerspectiveParameters)
    query_strategies: List[str] = Field(default_factory=list)


class FieldResolution(BaseModel):
    """How an entity or role was mapped onto an index field."""

    model_config = ConfigDict(frozen=True)

    entity_name: str
    field: str
    strategy: str  # explicit, schema_name, convention, first_text, wildcard, entity_name, ...
    confident: bool = True


class QueryDocument(BaseModel):
    """An Elasticsearch request body produced for one perspective."""

    model_config = ConfigDict(frozen=True)

    perspective_id: Optional[str] = None
    body: Dict[str, Any] = Field(default_factory=dict)
    resolutions: List[FieldResolution] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)

    @property
    def query(self) -> Dict[str, Any]:
        return self.body.get("query") or {}

    @property
    def aggregations(self) -> Dict[str, Any]:
        return self.body.get("aggs") or self.body.get("aggregations") or {}

    @property
    def sort(self) -> List[Any]:
        return self.body.get("sort") or []

    @property
    def size(self) -> Optional[int]:
        return self.body.get("size")

    @property
    def low_confidence_resolutions(self) -> List[FieldResolution]:
        return [r for r in self.resolutions if not r.confident]

    def to_dsl(self) -> Dict[str, Any]:
        """Return a detached copy of the request body."""
        return copy.deepcopy(self.body)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class FindingType(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    SUGGESTION = "suggestion"


class Finding(BaseModel):
    """One issue reported by the validator."""

    model_config = ConfigDict(frozen=True)

    type: FindingType
    message: str
    field_path: Optional[str] = None  # Schema field involved
    location: Optional[str] = None  # Path inside the query document


class ValidationReport(BaseModel):
    findings: List[Finding] = Field(default_factory=list)

    @computed_field
    @property
    def is_valid(self) -> bool:
        return not any(f.type == FindingType.ERROR for f in self.findings)

    @property
    def errors(self) -> List[Finding]:
        return [f for f in self.findings if f.type == FindingType.ERROR]

    @property
    def warnings(self) -> List[Finding]:
        return [f for f in self.findings if f.type == FindingType.WARNING]

    @property
    def suggestions(self) -> List[Finding]:
        return [f for f in self.findings if f.type == FindingType.SUGGESTION]


# ---------------------------------------------------------------------------
# Consensus
# ---------------------------------------------------------------------------

DIMENSION_WEIGHTS: Dict[str, float] = {
    "precision": 0.30,
    "recall": 0.25,
    "complexity": 0.15,
    "performance": 0.20,
    "schema_alignment": 0.10,
}


class DimensionScore(BaseModel):
    score: float = Field(ge=0.0, le=1.0)
    reasons: List[str] = Field(default_factory=list)


class Candidate(BaseModel):
    """A query document competing for recommendation."""

    id: str
    document: QueryDocument
    validation: Optional[ValidationReport] = None


class Evaluation(BaseModel):
    """Five-dimension assessment of one candidate."""

    candidate_id: str
    perspective_id: Optional[str] = None
    document: QueryDocument
    precision: DimensionScore
    recall: DimensionScore
    complexity: DimensionScore
    performance: DimensionScore
    schema_alignment: DimensionScore
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    explanation: str = ""

    def dimension_scores(self) -> Dict[str, float]:
        return {name: getattr(self, name).score for name in DIMENSION_WEIGHTS}

    @computed_field
    @property
    def overall_score(self) -> float:
        total = sum(
            DIMENSION_WEIGHTS[name] * score
            for name, score in self.dimension_scores().items()
        )
        return round(total, 4)


class ConsensusElements(BaseModel):
    query_types: List[str] = Field(default_factory=list)
    fields: List[str] = Field(default_factory=list)
    filters: List[str] = Field(default_factory=list)
    aggregations: List[str] = Field(default_factory=list)


class ConsensusDescription(BaseModel):
    description: str
    key_elements: ConsensusElements = Field(default_factory=ConsensusElements)


class AlternativeApproach(BaseModel):
    id: str
    perspective_id: Optional[str] = None
    score: float
    strengths: List[str] = Field(default_factory=list)
    explanation: str = ""


class RankingResult(BaseModel):
    recommended: Optional[Evaluation] = None
    evaluations: List[Evaluation] = Field(default_factory=list)
    consensus: ConsensusDescription
    reasoning: str = ""
    alternative_approaches: List[AlternativeApproach] = Field(default_factory=list)


CandidateInput = Union[Candidate, QueryDocument, Dict[str, Any]]
