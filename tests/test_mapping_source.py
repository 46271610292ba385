"""Tests for the Elasticsearch mapping source."""

from unittest.mock import MagicMock, patch

import pytest

from query_consensus.adapters.elasticsearch import ESMappingSource
from query_consensus.core.exceptions import SchemaDiscoveryError
from query_consensus.schema.extractor import SchemaExtractor


@pytest.fixture
def es_client():
    return MagicMock()


class TestESMappingSource:

    def test_requires_host_or_client(self):
        with pytest.raises(ValueError):
            ESMappingSource()

    def test_creates_client_from_host(self):
        with patch("query_consensus.adapters.elasticsearch.mapping_source.Elasticsearch") as es:
            source = ESMappingSource(es_host="http://localhost:9200")
        es.assert_called_once_with(hosts=["http://localhost:9200"])
        assert source.es_client is es.return_value

    def test_get_mapping(self, es_client, orders_mapping):
        es_client.indices.get_mapping.return_value = orders_mapping
        source = ESMappingSource(client=es_client)

        assert source.get_mapping("orders-*") == orders_mapping
        es_client.indices.get_mapping.assert_called_once_with(index="orders-*")

    def test_api_response_body_is_unwrapped(self, es_client, orders_mapping):
        es_client.indices.get_mapping.return_value = MagicMock(body=orders_mapping)
        assert ESMappingSource(client=es_client).get_mapping("orders-*") == orders_mapping

    def test_client_errors_become_discovery_errors(self, es_client):
        es_client.indices.get_mapping.side_effect = ConnectionError("connection refused")
        with pytest.raises(SchemaDiscoveryError) as exc_info:
            ESMappingSource(client=es_client).get_mapping("logs-*")
        assert exc_info.value.index_pattern == "logs-*"
        assert "connection refused" in str(exc_info.value)

    def test_empty_response(self, es_client):
        es_client.indices.get_mapping.return_value = {}
        with pytest.raises(SchemaDiscoveryError, match="no matching indices"):
            ESMappingSource(client=es_client).get_mapping("missing-*")

    def test_extractor_falls_back_to_mock_schema(self, es_client):
        es_client.indices.get_mapping.side_effect = ConnectionError("down")
        extractor = SchemaExtractor(ESMappingSource(client=es_client))

        analysis = extractor.get_analysis("logs-*", cluster_id="http://es:9200")

        assert "@timestamp" in analysis.field_index
        assert len(extractor.cache) == 0
