"""
Query Consensus - schema-aware Elasticsearch query construction.

Builds candidate queries from a structured intent under several
perspectives, validates them against the index schema and recommends one.
"""

from query_consensus.consensus.ranker import ConsensusRanker
from query_consensus.core.config import EngineConfig
from query_consensus.core.models import StructuredIntent
from query_consensus.orchestrator import PipelineResult, QueryOrchestrator
from query_consensus.query.synthesizer import QuerySynthesizer
from query_consensus.schema.index_builder import SchemaIndexBuilder
from query_consensus.validation.validator import SemanticValidator

__all__ = [
    "QueryOrchestrator",
    "PipelineResult",
    "EngineConfig",
    "StructuredIntent",
    "SchemaIndexBuilder",
    "QuerySynthesizer",
    "SemanticValidator",
    "ConsensusRanker",
]
