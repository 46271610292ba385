"""
Exceptions raised at the adapter edges of the query consensus engine.

The pure components (index builder, synthesizer, validator, ranker) report
problems as data and never raise these.
"""


class QueryConsensusError(Exception):
    """Base class for all engine errors."""


class SchemaDiscoveryError(QueryConsensusError):
    """A mapping source could not produce a mapping tree."""

    def __init__(self, index_pattern: str, reason: str):
        self.index_pattern = index_pattern
        self.reason = reason
        super().__init__(f"Failed to discover mapping for '{index_pattern}': {reason}")


class IntentExtractionError(QueryConsensusError):
    """The intent extractor could not produce a structured intent."""
