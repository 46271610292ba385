"""Core interfaces, models and configuration for the query consensus engine."""

from query_consensus.core.config import EngineConfig, configure_logging
from query_consensus.core.exceptions import (
    IntentExtractionError,
    QueryConsensusError,
    SchemaDiscoveryError,
)
from query_consensus.core.interfaces import IIntentExtractor, IMappingSource
from query_consensus.core.models import (
    AggregationRequest,
    Candidate,
    DateRange,
    Entity,
    Evaluation,
    FieldDescriptor,
    FieldResolution,
    Finding,
    FindingType,
    Perspective,
    QueryDocument,
    QueryType,
    RankingResult,
    SchemaAnalysis,
    SortSpec,
    StructuredIntent,
    Timeframe,
    ValidationReport,
)

__all__ = [
    "EngineConfig",
    "configure_logging",
    "QueryConsensusError",
    "SchemaDiscoveryError",
    "IntentExtractionError",
    "IMappingSource",
    "IIntentExtractor",
    "AggregationRequest",
    "Candidate",
    "DateRange",
    "Entity",
    "Evaluation",
    "FieldDescriptor",
    "FieldResolution",
    "Finding",
    "FindingType",
    "Perspective",
    "QueryDocument",
    "QueryType",
    "RankingResult",
    "SchemaAnalysis",
    "SortSpec",
    "StructuredIntent",
    "Timeframe",
    "ValidationReport",
]
