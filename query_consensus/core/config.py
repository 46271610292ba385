"""
Engine configuration.

Defaults cover the common case; every value can be overridden through
environment variables (a .env file is honoured).
"""

import logging
import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TEXT_FIELDS = [
    "message",
    "content",
    "title",
    "description",
    "body",
    "text",
    "name",
    "summary",
]

DEFAULT_STOP_WORDS = [
    "a", "an", "the", "and", "or", "but", "if", "as", "of", "to", "in", "for",
    "on", "by", "at", "with", "about", "from", "me", "show", "tell", "give",
    "find", "search", "get", "list", "query", "return",
]

DEFAULT_TEXT_ENTITY_TYPES = [
    "keyword",
    "search_term",
    "search",
    "text",
    "phrase",
    "free_text",
]


class EngineConfig(BaseModel):
    """Tunable thresholds and conventions shared by all components."""

    model_config = ConfigDict(frozen=True)

    # Field-role resolution
    conventional_text_fields: List[str] = Field(default_factory=lambda: list(DEFAULT_TEXT_FIELDS))
    text_entity_types: List[str] = Field(default_factory=lambda: list(DEFAULT_TEXT_ENTITY_TYPES))
    stop_words: List[str] = Field(default_factory=lambda: list(DEFAULT_STOP_WORDS))
    default_time_field: str = "@timestamp"

    # Schema
    summary_max_fields: int = 15
    schema_cache_ttl: float = 3600.0

    # Perspectives
    max_perspectives: int = 3

    # Validation thresholds
    max_bool_depth: int = 3
    large_result_size: int = 1000
    max_result_window: int = 10000
    large_terms_size: int = 1000

    # Ranking
    alternative_floor: float = 0.3
    strength_threshold: float = 0.6
    weakness_threshold: float = 0.5
    consensus_top_n: int = 3
    max_alternatives: int = 2

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "EngineConfig":
        """
        Build configuration from environment variables.

        Recognized variables:
        - QUERY_CONSENSUS_TEXT_FIELDS: comma-separated conventional text field names
        - QUERY_CONSENSUS_SUMMARY_FIELDS: max fields in schema summaries
        - QUERY_CONSENSUS_TIME_FIELD: default time field
        - SCHEMA_CACHE_TTL: schema cache time-to-live in seconds

        Args:
            env_file: Optional path to a .env file

        Returns:
            EngineConfig with overrides applied
        """
        load_dotenv(env_file)

        overrides = {}
        text_fields = os.getenv("QUERY_CONSENSUS_TEXT_FIELDS")
        if text_fields:
            overrides["conventional_text_fields"] = [
                f.strip() for f in text_fields.split(",") if f.strip()
            ]
        summary_fields = os.getenv("QUERY_CONSENSUS_SUMMARY_FIELDS")
        if summary_fields:
            overrides["summary_max_fields"] = int(summary_fields)
        time_field = os.getenv("QUERY_CONSENSUS_TIME_FIELD")
        if time_field:
            overrides["default_time_field"] = time_field
        ttl = os.getenv("SCHEMA_CACHE_TTL")
        if ttl:
            overrides["schema_cache_ttl"] = float(ttl)

        return cls(**overrides)


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for command-line and API entry points."""
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
