"""
LLM Service: the text-generation boundary, backed by pydantic-ai.

Every curation component talks to generation through `generate()`, which
returns raw text; callers parse it themselves. Anything exposing the same
`generate` coroutine can stand in for it, which is how tests script
responses.
"""

import asyncio
import logging
from typing import Dict, Optional

from pydantic_ai import Agent
from pydantic_ai.models.function import FunctionModel
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.settings import ModelSettings

from ..config import Settings, get_settings
from . import mock_responses

logger = logging.getLogger(__name__)


class LLMServiceError(RuntimeError):
    """The generation service failed or returned nothing."""


class LLMService:
    """High-level generation service over pydantic-ai Agents.

    Two models are available: the primary chat model and a cheaper "lite"
    model used as the last escalation step of the retry strategies.
    """

    # Cache agents by (system_prompt_hash, lite, mock_mode, model names) across all instances
    _agent_cache: Dict[tuple, Agent] = {}

    def __init__(self, settings: Optional[Settings] = None, mock_mode: bool = False):
        self.settings = settings or get_settings()
        self.mock_mode = mock_mode or self.settings.mock_mode
        self.calls = 0
        if self.mock_mode:
            logger.info("LLM: MOCK mode")
        else:
            self.settings.require_llm_credentials()
            logger.info(f"LLM: {self.settings.openai_model} (lite: {self.settings.openai_lite_model})")

    def _build_model(self, lite: bool):
        if self.mock_mode:
            return FunctionModel(mock_responses.get_mock_response_for_function_model)
        model_name = self.settings.openai_lite_model if lite else self.settings.openai_model
        provider_kwargs = {"api_key": self.settings.openai_api_key}
        if self.settings.openai_base_url:
            provider_kwargs["base_url"] = self.settings.openai_base_url
        return OpenAIChatModel(
            model_name=model_name,
            provider=OpenAIProvider(**provider_kwargs),
        )

    def _get_or_create_agent(self, system_prompt: str, lite: bool) -> Agent:
        key = (
            hash(system_prompt), lite, self.mock_mode,
            self.settings.openai_model, self.settings.openai_lite_model,
        )
        if key not in self._agent_cache:
            self._agent_cache[key] = Agent(
                self._build_model(lite),
                output_type=str,
                system_prompt=system_prompt,
                retries=1,
            )
        return self._agent_cache[key]

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 600,
        lite: bool = False,
    ) -> str:
        """Run one generation call under the configured timeout.

        Raises asyncio.TimeoutError on timeout and LLMServiceError on an
        empty response; provider errors propagate unchanged.
        """
        agent = self._get_or_create_agent(system_prompt or "", lite)
        self.calls += 1
        result = await asyncio.wait_for(
            agent.run(
                prompt,
                model_settings=ModelSettings(temperature=temperature, max_tokens=max_tokens),
            ),
            timeout=self.settings.llm_timeout_seconds,
        )
        response = result.output
        if not response or not response.strip():
            raise LLMServiceError("Empty response")
        return response

    @classmethod
    def clear_cache(cls):
        """Clear agent cache. Useful for testing or config changes."""
        cls._agent_cache.clear()
