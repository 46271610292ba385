"""
Schema extraction coordinator.

Coordinates mapping discovery, caching and indexing so callers get a
SchemaAnalysis without caring where the mapping came from.
"""

import logging
from typing import Optional

from query_consensus.core.exceptions import SchemaDiscoveryError
from query_consensus.core.interfaces import IMappingSource
from query_consensus.core.models import SchemaAnalysis
from query_consensus.schema.cache import SchemaCache
from query_consensus.schema.index_builder import SchemaIndexBuilder
from query_consensus.schema.mock_schemas import MockMappingSource

logger = logging.getLogger(__name__)


class SchemaExtractor:
    """
    Wraps a mapping source with a TTL cache and graceful fallbacks.

    Resolution order: fresh cache entry, live discovery, stale cache entry,
    mock mapping.
    """

    def __init__(
        self,
        source: IMappingSource,
        cache: Optional[SchemaCache] = None,
        builder: Optional[SchemaIndexBuilder] = None,
        fallback: Optional[IMappingSource] = None,
    ):
        """
        Initialize schema extractor.

        Args:
            source: Mapping source implementation (live cluster or mock)
            cache: Schema cache; a one-hour cache is created if omitted
            builder: Index builder used on discovered mappings
            fallback: Source used when discovery fails and nothing is cached
        """
        self.source = source
        self.cache = cache if cache is not None else SchemaCache()
        self.builder = builder or SchemaIndexBuilder()
        self.fallback = fallback or MockMappingSource()

    def get_analysis(
        self,
        index_pattern: str,
        cluster_id: str = "default",
        force_refresh: bool = False,
    ) -> SchemaAnalysis:
        """
        Get the analyzed schema for an index pattern.

        Args:
            index_pattern: Index name or pattern
            cluster_id: Identity of the cluster the pattern belongs to
            force_refresh: If True, bypass a fresh cache entry

        Returns:
            SchemaAnalysis (possibly stale or mock-based on failure)
        """
        if not force_refresh:
            cached = self.cache.get(cluster_id, index_pattern)
            if cached is not None:
                return cached

        try:
            raw = self.source.get_mapping(index_pattern)
        except SchemaDiscoveryError as e:
            logger.error("Schema discovery failed for %s on %s: %s", index_pattern, cluster_id, e)
            stale = self.cache.get_stale(cluster_id, index_pattern)
            if stale is not None:
                logger.warning("Returning stale schema for %s as fallback", index_pattern)
                return stale
            logger.warning("Using mock schema for %s", index_pattern)
            return self.builder.build(self.fallback.get_mapping(index_pattern))

        analysis = self.builder.build(raw)
        self.cache.put(cluster_id, index_pattern, analysis)
        return analysis

    def clear_cache(self, cluster_id: Optional[str] = None) -> None:
        self.cache.clear(cluster_id)
