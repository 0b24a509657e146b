# flowguard/integrations/llm_client.py

import logging
from functools import lru_cache
from typing import Dict, List, Optional

import openai
from openai import OpenAI

from flowguard.core.config import Settings
from flowguard.core.errors import UpstreamGenerationError

logger = logging.getLogger(__name__)


class LLMClient:
    """
    Wrapper for OpenAI-compatible chat completions (OpenRouter by default).
    Deterministic decoding and no automatic retry, so failures reproduce.
    """

    @staticmethod
    @lru_cache(maxsize=1)
    def _client() -> OpenAI:
        return OpenAI(
            api_key=Settings.OPENROUTER_API_KEY,
            base_url=Settings.LLM_BASE_URL,
            timeout=Settings.LLM_TIMEOUT_SECONDS,
            max_retries=0,
        )

    @staticmethod
    def chat(
        system: str,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: float = 0.0,
    ) -> str:
        """
        Send the system prompt plus prior turns; return the raw model text.
        """
        try:
            response = LLMClient._client().chat.completions.create(
                model=model or Settings.LLM_MODEL,
                messages=[{"role": "system", "content": system}, *messages],
                temperature=temperature,
            )
        except openai.APITimeoutError as e:
            logger.warning("Generation timed out after %ss", Settings.LLM_TIMEOUT_SECONDS)
            raise UpstreamGenerationError(
                f"Generation timed out after {Settings.LLM_TIMEOUT_SECONDS:g}s."
            ) from e
        except openai.OpenAIError as e:
            logger.warning("Generation failed: %s", e)
            raise UpstreamGenerationError(f"Generation failed: {e}") from e

        if not response.choices:
            raise UpstreamGenerationError("Model returned no choices.")
        return (response.choices[0].message.content or "").strip()
