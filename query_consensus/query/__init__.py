"""Perspective selection and query synthesis."""

from query_consensus.query.field_resolver import FieldResolver
from query_consensus.query.perspectives import (
    CORE_PERSPECTIVES,
    PerspectiveId,
    enrich_perspective,
    get_perspective,
    select_perspectives,
)
from query_consensus.query.synthesizer import QuerySynthesizer, extract_key_terms

__all__ = [
    "FieldResolver",
    "CORE_PERSPECTIVES",
    "PerspectiveId",
    "enrich_perspective",
    "get_perspective",
    "select_perspectives",
    "QuerySynthesizer",
    "extract_key_terms",
]
