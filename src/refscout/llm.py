"""Thin adapter over the Anthropic Messages API with retry and model fallback."""

import logging
import os
import time
from typing import Callable, Optional

import anthropic

from refscout.config import DEFAULT_LLM_MODEL, FALLBACK_LLM_MODEL
from refscout.errors import ConfigurationError

logger = logging.getLogger(__name__)

MAX_RETRIES = 2
INITIAL_BACKOFF = 1.0
MAX_BACKOFF = 10.0


def is_retryable(error: Exception) -> bool:
    """Overloaded (529), rate-limited (429), 5xx and connection failures are transient."""
    if isinstance(error, (anthropic.RateLimitError, anthropic.APIConnectionError, anthropic.InternalServerError)):
        return True
    if isinstance(error, anthropic.APIStatusError):
        return error.status_code >= 500
    message = str(error).lower()
    return any(marker in message for marker in ("overloaded", "rate limit", "529", "503"))


class LLMClient:
    """Text-completion client used by the analysis and reasoning stages.

    The primary model is retried with exponential backoff on transient
    errors; after the retries are spent the fallback model is tried once.
    Non-transient errors propagate immediately.

    Args:
        api_key: Anthropic API key (defaults to ANTHROPIC_API_KEY).
        model: Primary model.
        fallback_model: Model tried once after the primary is exhausted.
        client: Pre-built ``anthropic.Anthropic`` (tests pass a MagicMock).
        sleep: Injectable sleep for backoff.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_LLM_MODEL,
        fallback_model: Optional[str] = FALLBACK_LLM_MODEL,
        client=None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if client is None:
            api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
            if not api_key:
                raise ConfigurationError(
                    "Anthropic API key required. Set ANTHROPIC_API_KEY env var or pass api_key."
                )
            # Retries are handled here so the fallback model can kick in
            client = anthropic.Anthropic(api_key=api_key, max_retries=0)
        self.client = client
        self.model = model
        self.fallback_model = fallback_model
        self._sleep = sleep

    def _request(self, prompt: str, model: str, max_tokens: int, temperature: float) -> str:
        response = self.client.messages.create(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        if not response.content:
            return ""
        return response.content[0].text.strip()

    def complete(self, prompt: str, max_tokens: int = 4096, temperature: float = 0.0) -> str:
        """Send a single-turn prompt and return the response text."""
        delay = INITIAL_BACKOFF
        last_error: Optional[Exception] = None
        for attempt in range(MAX_RETRIES + 1):
            if attempt > 0:
                logger.info("Retry %d/%d after %.1fs", attempt, MAX_RETRIES, delay)
                self._sleep(delay)
                delay = min(delay * 2, MAX_BACKOFF)
            try:
                return self._request(prompt, self.model, max_tokens, temperature)
            except anthropic.APIError as e:
                if not is_retryable(e):
                    raise
                last_error = e
                logger.warning("Model %s attempt %d failed: %s", self.model, attempt + 1, e)

        if not self.fallback_model:
            raise last_error
        logger.info("Primary model exhausted, trying fallback %s", self.fallback_model)
        try:
            return self._request(prompt, self.fallback_model, max_tokens, temperature)
        except anthropic.APIError as e:
            logger.error("Fallback model also failed: %s", e)
            raise last_error from e
