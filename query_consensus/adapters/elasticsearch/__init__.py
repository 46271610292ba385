"""Elasticsearch adapter."""

from query_consensus.adapters.elasticsearch.mapping_source import ESMappingSource

__all__ = ["ESMappingSource"]
