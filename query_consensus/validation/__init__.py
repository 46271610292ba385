"""Semantic validation of query documents."""

from query_consensus.validation.validator import ClauseKind, SemanticValidator

__all__ = ["ClauseKind", "SemanticValidator"]
