"""
Text-generation client used for cluster labeling.

Thin wrapper over the OpenAI chat completions API. Calls are call-and-wait with
no retry; callers map failures to their own fallback.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from openai import OpenAI, OpenAIError

from config.settings import settings
from services.errors import ConfigurationError, LLMClientError, LLMResponseError

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Response from the text-generation API."""
    content: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0


class LLMClient:
    """Chat-completions client with an optional JSON response mode."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = settings.LABELING_MODEL,
        temperature: float = 0.7,
        max_tokens: int = 200,
        client: Optional[OpenAI] = None,
    ):
        api_key = api_key or settings.OPENAI_API_KEY
        if client is None and not api_key:
            raise ConfigurationError(
                "OPENAI_API_KEY environment variable is required for LLM labeling"
            )
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client or OpenAI(api_key=api_key)

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        json_mode: bool = False,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """Generate a single completion.

        Raises:
            LLMClientError: If the API call fails.
            LLMResponseError: If the model returns no content.
        """
        messages: List[dict] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=max_tokens or self.max_tokens,
                **kwargs,
            )
        except OpenAIError as e:
            raise LLMClientError(f"LLM generation failed: {e}") from e

        if not response.choices or not response.choices[0].message.content:
            raise LLMResponseError("LLM returned an empty response")

        usage = response.usage
        return LLMResponse(
            content=response.choices[0].message.content,
            model=self.model,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
        )


def get_llm_client() -> Optional[LLMClient]:
    """LLM client for labeling, or None when LLM labeling is off or unconfigured."""
    if not settings.USE_LLM_LABELING or not settings.OPENAI_API_KEY:
        return None
    return LLMClient()
