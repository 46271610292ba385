"""
Query orchestrator - main entry point.

Coordinates schema analysis, perspective selection, synthesis, validation
and ranking behind a single interface.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, Field

from query_consensus.consensus.ranker import ConsensusRanker
from query_consensus.core.config import EngineConfig
from query_consensus.core.interfaces import IIntentExtractor
from query_consensus.core.models import (
    Candidate,
    Perspective,
    RankingResult,
    SchemaAnalysis,
    StructuredIntent,
    coerce_intent,
)
from query_consensus.query.perspectives import (
    PerspectiveId,
    enrich_perspective,
    get_perspective,
    select_perspectives,
)
from query_consensus.query.synthesizer import QuerySynthesizer
from query_consensus.schema.cache import SchemaCache
from query_consensus.schema.extractor import SchemaExtractor
from query_consensus.schema.index_builder import SchemaIndexBuilder
from query_consensus.schema.lookup import FieldLookup
from query_consensus.schema.mock_schemas import MockMappingSource
from query_consensus.validation.validator import SemanticValidator

logger = logging.getLogger(__name__)

PerspectiveSelection = Optional[Sequence[Union[Perspective, PerspectiveId, str]]]


class PipelineResult(BaseModel):
    """Everything produced for one intent: candidates and their ranking."""

    intent: StructuredIntent
    perspectives: List[Perspective] = Field(default_factory=list)
    candidates: List[Candidate] = Field(default_factory=list)
    ranking: RankingResult


class QueryOrchestrator:
    """
    Main orchestrator for schema-aware query construction.

    Components are stateless apart from the schema cache, so one
    orchestrator can serve concurrent requests.
    """

    def __init__(
        self,
        schema_extractor: Optional[SchemaExtractor] = None,
        config: Optional[EngineConfig] = None,
        intent_extractor: Optional[IIntentExtractor] = None,
        index_pattern: Optional[str] = None,
        cluster_id: str = "default",
        llm_model: Optional[str] = None,
        llm_api_key: Optional[str] = None,
        llm_base_url: Optional[str] = None,
    ):
        """
        Initialize query orchestrator.

        Args:
            schema_extractor: Schema extractor; a mock-backed one is created if omitted
            config: Engine configuration
            intent_extractor: Natural-language intent extractor
            index_pattern: Default index pattern for schema analysis
            cluster_id: Identity of the cluster used as cache key
            llm_model: LLM model name (for natural language queries)
            llm_api_key: LLM API key
            llm_base_url: Base URL of an OpenAI-compatible LLM server
        """
        self.config = config or EngineConfig()
        self.schema_extractor = schema_extractor or SchemaExtractor(
            MockMappingSource(),
            cache=SchemaCache(ttl_seconds=self.config.schema_cache_ttl),
            builder=SchemaIndexBuilder(summary_max_fields=self.config.summary_max_fields),
        )
        self.index_pattern = index_pattern
        self.cluster_id = cluster_id

        self.synthesizer = QuerySynthesizer(self.config)
        self.validator = SemanticValidator(self.config)
        self.ranker = ConsensusRanker(self.config, self.validator)

        # LLM setup
        self.intent_extractor = intent_extractor
        if self.intent_extractor is None and (llm_model or llm_base_url):
            from query_consensus.llm.client_factory import LLMClientFactory

            self.intent_extractor = LLMClientFactory(
                model_name=llm_model,
                api_key=llm_api_key,
                base_url=llm_base_url,
            )

    @classmethod
    def from_elasticsearch(
        cls,
        es_host: str,
        index_name: str,
        config: Optional[EngineConfig] = None,
        llm_model: Optional[str] = None,
        llm_api_key: Optional[str] = None,
        llm_base_url: Optional[str] = None,
    ) -> "QueryOrchestrator":
        """
        Create orchestrator for Elasticsearch.

        Args:
            es_host: Elasticsearch host URL
            index_name: Name or pattern of the index
            config: Engine configuration
            llm_model: LLM model name
            llm_api_key: LLM API key
            llm_base_url: Base URL of an OpenAI-compatible LLM server

        Returns:
            Configured QueryOrchestrator for Elasticsearch
        """
        from query_consensus.adapters.elasticsearch import ESMappingSource

        config = config or EngineConfig()
        schema_extractor = SchemaExtractor(
            ESMappingSource(es_host=es_host),
            cache=SchemaCache(ttl_seconds=config.schema_cache_ttl),
            builder=SchemaIndexBuilder(summary_max_fields=config.summary_max_fields),
        )

        return cls(
            schema_extractor=schema_extractor,
            config=config,
            index_pattern=index_name,
            cluster_id=es_host,
            llm_model=llm_model,
            llm_api_key=llm_api_key,
            llm_base_url=llm_base_url,
        )

    def analyze_schema(
        self,
        index_pattern: Optional[str] = None,
        cluster_id: Optional[str] = None,
        force_refresh: bool = False,
    ) -> SchemaAnalysis:
        """
        Get the analyzed schema of an index pattern.

        Args:
            index_pattern: Index name or pattern; defaults to the configured one
            cluster_id: Cluster identity; defaults to the configured one
            force_refresh: If True, bypass the schema cache

        Returns:
            SchemaAnalysis

        Raises:
            ValueError: If no index pattern is given or configured
        """
        index_pattern = index_pattern or self.index_pattern
        if not index_pattern:
            raise ValueError("index_pattern is required (provide as parameter or in the constructor)")

        return self.schema_extractor.get_analysis(
            index_pattern,
            cluster_id=cluster_id or self.cluster_id,
            force_refresh=force_refresh,
        )

    def select_perspectives(
        self,
        intent: StructuredIntent,
        analysis: Optional[SchemaAnalysis] = None,
        perspectives: PerspectiveSelection = None,
    ) -> List[Perspective]:
        """Enriched perspectives for an intent: the requested ones, or an intent-driven choice."""
        lookup = FieldLookup(analysis)
        if perspectives is None:
            return select_perspectives(intent, lookup, self.config.max_perspectives)
        return [enrich_perspective(get_perspective(p), intent, lookup) for p in perspectives]

    def build_candidates(
        self,
        intent: Union[StructuredIntent, Dict[str, Any]],
        analysis: Optional[SchemaAnalysis] = None,
        perspectives: PerspectiveSelection = None,
    ) -> List[Candidate]:
        """
        Synthesize and validate one candidate per perspective.

        Args:
            intent: Structured intent
            analysis: Analyzed schema of the target index
            perspectives: Perspectives to use; chosen from the intent if omitted

        Returns:
            Candidates in perspective order, each carrying its validation report
        """
        intent = coerce_intent(intent)
        selected = self.select_perspectives(intent, analysis, perspectives)
        return [self._build_candidate(intent, perspective, analysis) for perspective in selected]

    def run(
        self,
        intent: Union[StructuredIntent, Dict[str, Any]],
        analysis: Optional[SchemaAnalysis] = None,
        perspectives: PerspectiveSelection = None,
    ) -> PipelineResult:
        """
        Build, validate and rank candidates for an intent.

        Args:
            intent: Structured intent
            analysis: Analyzed schema of the target index
            perspectives: Perspectives to use; chosen from the intent if omitted

        Returns:
            PipelineResult with the recommended candidate and alternatives
        """
        intent = coerce_intent(intent)
        selected = self.select_perspectives(intent, analysis, perspectives)
        candidates = [self._build_candidate(intent, p, analysis) for p in selected]
        return self._finish(intent, selected, candidates, analysis)

    async def run_async(
        self,
        intent: Union[StructuredIntent, Dict[str, Any]],
        analysis: Optional[SchemaAnalysis] = None,
        perspectives: PerspectiveSelection = None,
    ) -> PipelineResult:
        """
        Async version of run(); perspectives are synthesized concurrently.
        """
        intent = coerce_intent(intent)
        selected = self.select_perspectives(intent, analysis, perspectives)
        candidates = await asyncio.gather(
            *(asyncio.to_thread(self._build_candidate, intent, p, analysis) for p in selected)
        )
        return self._finish(intent, selected, list(candidates), analysis)

    async def query(
        self,
        natural_language_query: str,
        index_pattern: Optional[str] = None,
        perspectives: PerspectiveSelection = None,
    ) -> PipelineResult:
        """
        Turn a natural-language request into ranked query candidates.

        Args:
            natural_language_query: Natural language query string
            index_pattern: Index name or pattern; defaults to the configured one
            perspectives: Perspectives to use; chosen from the intent if omitted

        Returns:
            PipelineResult

        Raises:
            ValueError: If no LLM is configured
            IntentExtractionError: If the LLM fails to produce an intent
        """
        if self.intent_extractor is None:
            raise ValueError("LLM not configured. Provide llm_model and llm_api_key.")

        analysis = self.analyze_schema(index_pattern)
        intent = await self.intent_extractor.extract(natural_language_query, analysis.summary)
        return await self.run_async(intent, analysis, perspectives)

    def _build_candidate(
        self,
        intent: StructuredIntent,
        perspective: Perspective,
        analysis: Optional[SchemaAnalysis],
    ) -> Candidate:
        document = self.synthesizer.synthesize(intent, perspective, analysis)
        validation = self.validator.validate(document, analysis)
        if not validation.is_valid:
            logger.warning(
                "Candidate %s has %d validation error(s)", perspective.id, len(validation.errors)
            )
        return Candidate(id=perspective.id, document=document, validation=validation)

    def _finish(
        self,
        intent: StructuredIntent,
        perspectives: List[Perspective],
        candidates: List[Candidate],
        analysis: Optional[SchemaAnalysis],
    ) -> PipelineResult:
        ranking = self.ranker.rank(candidates, intent, analysis)
        return PipelineResult(
            intent=intent,
            perspectives=perspectives,
            candidates=candidates,
            ranking=ranking,
        )
