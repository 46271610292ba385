"""Candidate scoring and consensus ranking."""

from query_consensus.consensus.heuristics import QueryProfile, extract_profile
from query_consensus.consensus.ranker import ConsensusRanker, quality_level

__all__ = ["QueryProfile", "extract_profile", "ConsensusRanker", "quality_level"]
