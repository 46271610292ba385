"""Schema indexing, lookup and caching."""

from query_consensus.schema.cache import SchemaCache
from query_consensus.schema.extractor import SchemaExtractor
from query_consensus.schema.index_builder import SchemaIndexBuilder, build_summary
from query_consensus.schema.lookup import FieldLookup
from query_consensus.schema.mock_schemas import MockMappingSource
from query_consensus.schema.type_mappings import TypeMapper

__all__ = [
    "SchemaCache",
    "SchemaExtractor",
    "SchemaIndexBuilder",
    "build_summary",
    "FieldLookup",
    "MockMappingSource",
    "TypeMapper",
]
