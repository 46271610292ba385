"""LLM-backed intent extraction."""

from query_consensus.llm.client_factory import LLMClientFactory
from query_consensus.llm.prompt_generator import PromptGenerator

__all__ = ["LLMClientFactory", "PromptGenerator"]
