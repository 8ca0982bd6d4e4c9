"""Language model client using the OpenAI SDK."""

import logging
from typing import Dict, List, Optional

from openai import (
    APIConnectionError,
    APIError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    RateLimitError,
)

from ..errors import ModelUnavailable

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "Le service d'IA est momentanément indisponible. Veuillez réessayer."


def is_transient(error: Exception) -> bool:
    """Errors worth a second attempt."""
    if isinstance(error, (APIConnectionError, APITimeoutError, RateLimitError)):
        return True
    return isinstance(error, APIStatusError) and error.status_code >= 500


class LLMClient:
    """Chat-completion client with a per-call timeout and one bounded retry."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-3.5-turbo",
        timeout: float = 30.0,
        base_url: Optional[str] = None,
        retries: int = 1,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.retries = retries
        # Retries are handled here, not by the SDK.
        self._client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        """Send the conversation and return the reply text.

        Raises:
            ModelUnavailable: the call failed and the retry, if any, failed too.
        """
        attempts = self.retries + 1
        for attempt in range(1, attempts + 1):
            try:
                response = await self._client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                )
                return response.choices[0].message.content or ""
            except APIError as e:
                if is_transient(e) and attempt < attempts:
                    logger.warning(f"Model call failed ({type(e).__name__}), retrying")
                    continue
                logger.error(f"Model call failed after {attempt} attempt(s): {type(e).__name__}: {e}")
                raise ModelUnavailable(UNAVAILABLE_MESSAGE) from e
        raise ModelUnavailable(UNAVAILABLE_MESSAGE)

    async def close(self):
        await self._client.close()
