"""
Elasticsearch mapping discovery.

Implements IMappingSource for a live Elasticsearch cluster.
"""

import logging
from typing import Any, Dict, Optional

from elasticsearch import Elasticsearch

from query_consensus.core.exceptions import SchemaDiscoveryError

logger = logging.getLogger(__name__)


class ESMappingSource:
    """
    Fetches raw index mappings from Elasticsearch.

    Implements the IMappingSource interface for Elasticsearch.
    """

    def __init__(self, es_host: Optional[str] = None, client: Optional[Elasticsearch] = None):
        """
        Initialize Elasticsearch mapping source.

        Args:
            es_host: Elasticsearch host URL
            client: Pre-configured client; takes precedence over es_host
        """
        if client is None and not es_host:
            raise ValueError("Either es_host or client is required")

        self.es_host = es_host
        self.es_client = client or Elasticsearch(hosts=[es_host])

    def get_mapping(self, index_pattern: str) -> Dict[str, Any]:
        """
        Get the raw mapping of an index or pattern.

        Args:
            index_pattern: Index name or pattern (e.g. "logs-*")

        Returns:
            Mapping response keyed by concrete index name

        Raises:
            SchemaDiscoveryError: If the cluster cannot be reached or the
                pattern matches nothing
        """
        try:
            response = self.es_client.indices.get_mapping(index=index_pattern)
        except Exception as e:
            raise SchemaDiscoveryError(index_pattern, str(e)) from e

        # elasticsearch-py 8 wraps responses in ObjectApiResponse
        mapping = response.body if hasattr(response, "body") else response
        if not mapping:
            raise SchemaDiscoveryError(index_pattern, "no matching indices")

        logger.debug("Fetched mapping for %s covering %d indices", index_pattern, len(mapping))
        return dict(mapping)
