"""Two-tier fallback across correlation clients."""

from __future__ import annotations

import logging
from typing import Optional

from .config import Settings, get_settings
from .errors import AllClientsFailedError, NoFallbackConfiguredError
from .llm import CorrelationClient, GeminiCorrelationClient, OllamaCorrelationClient
from .schemas import CorrelationPrompt, CorrelationResult

logger = logging.getLogger(__name__)


class LLMOrchestrator:
    """
    Runs a correlation against a primary client, then a secondary one.

    The primary is the local Ollama client unless given explicitly. A
    secondary Gemini client is created only when a Gemini API key is
    configured. The secondary is tried strictly after the primary failed;
    the two never run concurrently.
    """

    def __init__(
        self,
        primary: Optional[CorrelationClient] = None,
        secondary: Optional[CorrelationClient] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.primary = primary or OllamaCorrelationClient(settings=settings)
        self.secondary = secondary
        if self.secondary is None and settings.gemini_api_key:
            self.secondary = GeminiCorrelationClient(settings.gemini_api_key, settings=settings)

    @property
    def has_fallback(self) -> bool:
        return self.secondary is not None

    async def process_correlation(self, prompt: CorrelationPrompt) -> CorrelationResult:
        try:
            return await self.primary.correlate_schemata(prompt)
        except Exception as exc:
            logger.warning("Primary LLM client %r failed: %s", self.primary, exc)
            primary_error = exc

        if self.secondary is None:
            raise NoFallbackConfiguredError(
                "Primary LLM client failed and no fallback is configured."
            ) from primary_error

        try:
            return await self.secondary.correlate_schemata(prompt)
        except Exception as exc:
            logger.error("Fallback LLM client %r also failed: %s", self.secondary, exc)
            raise AllClientsFailedError(
                "Both primary and fallback LLM clients failed to process the correlation."
            ) from exc
