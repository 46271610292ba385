"""
Abstract interfaces for external collaborators.

These protocols define the contract that schema discovery and intent
extraction adapters must implement to feed the engine.
"""

from typing import Any, Dict, Optional, Protocol

from query_consensus.core.models import StructuredIntent


class IMappingSource(Protocol):
    """
    Supply raw mapping trees for an index pattern.

    Implementations may talk to a live cluster or return canned trees.
    They signal failure by raising SchemaDiscoveryError.
    """

    def get_mapping(self, index_pattern: str) -> Dict[str, Any]:
        """
        Fetch the raw mapping tree.

        Args:
            index_pattern: Index name or pattern (e.g. "logs-*")

        Returns:
            Mapping tree in any of the shapes Elasticsearch returns
            ({index: {mappings: {properties}}}, {mappings: {...}}, bare properties)
        """
        ...


class IIntentExtractor(Protocol):
    """
    Turn natural-language text into a StructuredIntent.

    Partial or low-confidence intents are acceptable output.
    """

    async def extract(
        self, text: str, schema_summary: Optional[str] = None
    ) -> StructuredIntent:
        """
        Extract structured intent.

        Args:
            text: User request
            schema_summary: Bounded textual summary of the target index

        Returns:
            Parsed intent
        """
        ...
