"""
LLM client factory and intent extraction.

Handles creation of Pydantic AI agents that turn natural-language requests
into StructuredIntent objects.
"""

import logging
import os
from typing import Any, Dict, Optional

from pydantic_ai import Agent
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider

from query_consensus.core.exceptions import IntentExtractionError
from query_consensus.core.models import StructuredIntent
from query_consensus.llm.prompt_generator import PromptGenerator

logger = logging.getLogger(__name__)


class LLMClientFactory:
    """
    Creates LLM agents and extracts structured intents.

    Implements the IIntentExtractor interface. Supports OpenAI and
    OpenAI-compatible APIs as well as provider-prefixed model names.

    Reads configuration from environment variables by default:
    - LLM_MODEL: Model name
    - LLM_API_KEY or OPENAI_API_KEY: API key
    - LLM_BASE_URL: Optional base URL for OpenAI-compatible APIs
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model_settings: Optional[Dict[str, Any]] = None,
        prompt_generator: Optional[PromptGenerator] = None,
    ):
        """
        Initialize LLM client factory.

        Args:
            model_name: Name of the LLM model (e.g., "gpt-4o", "qwen3:8b").
                       If not provided, reads from LLM_MODEL environment variable.
            api_key: API key for the LLM provider.
                    If not provided, reads from LLM_API_KEY or OPENAI_API_KEY.
                    Optional when using base_url (local servers accept any key).
            base_url: Optional base URL for OpenAI-compatible APIs.
                     If not provided, reads from LLM_BASE_URL environment variable.
            model_settings: Optional model settings (temperature, top_p, etc.)
            prompt_generator: Builds the system prompt for intent extraction

        Raises:
            ValueError: If model_name is missing, or if api_key is missing when not using base_url
        """
        model_name = model_name or os.getenv("LLM_MODEL")
        api_key = api_key or os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY")
        base_url = base_url or os.getenv("LLM_BASE_URL")

        if not model_name:
            raise ValueError("model_name is required (provide as parameter or set LLM_MODEL env var)")

        self.model_name = model_name
        self.api_key = api_key
        self.model_settings = model_settings or {"temperature": 0, "top_p": 1.0}
        self.prompt_generator = prompt_generator or PromptGenerator()

        if base_url:
            # OpenAI-compatible endpoints are served under /v1
            normalized_base_url = base_url.rstrip("/")
            if not normalized_base_url.endswith("/v1"):
                normalized_base_url = f"{normalized_base_url}/v1"
            self.base_url = normalized_base_url

            provider_kwargs = {"base_url": normalized_base_url}
            if api_key:
                provider_kwargs["api_key"] = api_key
            self.model = OpenAIChatModel(model_name, provider=OpenAIProvider(**provider_kwargs))
        elif not api_key:
            raise ValueError(
                "api_key is required when not using a custom base_url "
                "(provide as parameter or set LLM_API_KEY/OPENAI_API_KEY env var)"
            )
        else:
            self.base_url = None
            if model_name.startswith(("openai:", "gpt")):
                os.environ["OPENAI_API_KEY"] = api_key
                self.model = model_name if ":" in model_name else f"openai:{model_name}"
            elif model_name.startswith(("anthropic:", "claude")):
                os.environ["ANTHROPIC_API_KEY"] = api_key
                self.model = model_name if ":" in model_name else f"anthropic:{model_name}"
            elif model_name.startswith(("gemini:", "google:")):
                os.environ["GEMINI_API_KEY"] = api_key
                self.model = model_name
            else:
                os.environ["OPENAI_API_KEY"] = api_key
                self.model = f"openai:{model_name}"

    def _create_agent(self, system_prompt: str) -> Agent:
        """
        Create a Pydantic AI agent producing StructuredIntent.

        Args:
            system_prompt: System prompt for the LLM

        Returns:
            Configured Pydantic AI Agent
        """
        return Agent(
            self.model,
            output_type=StructuredIntent,
            system_prompt=system_prompt,
            model_settings=self.model_settings,
            retries=3,
        )

    async def extract(self, text: str, schema_summary: Optional[str] = None) -> StructuredIntent:
        """
        Extract a structured intent from natural language.

        Args:
            text: User request
            schema_summary: Bounded summary of the target index

        Returns:
            StructuredIntent; `original_text` is always set to the request

        Raises:
            IntentExtractionError: If the model call or output validation fails
        """
        agent = self._create_agent(self.prompt_generator.generate_system_prompt(schema_summary))
        try:
            result = await agent.run(text)
        except Exception as e:
            logger.error("Intent extraction failed: %s", e)
            raise IntentExtractionError(f"Intent extraction failed: {e}") from e

        intent = result.output
        logger.debug("Extracted %s intent with %d entities", intent.query_type.value, len(intent.entities))
        return intent.model_copy(update={"original_text": text})
