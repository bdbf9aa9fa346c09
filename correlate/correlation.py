"""Cached schema correlation and feedback-driven refinement."""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import List, Optional, Set

from .errors import CorrelationError
from .orchestrator import LLMOrchestrator
from .schemas import (
    CorrelationMapping,
    CorrelationPrompt,
    CorrelationResult,
    FeedbackType,
    Schema,
    UserFeedback,
)

logger = logging.getLogger(__name__)


def correlation_key(source: Schema, target: Schema) -> str:
    return f"{source.name}@{source.version}|{target.name}@{target.version}"


class CorrelationCache:
    """
    Correlation results keyed by schema pair.

    With ``max_entries=None`` nothing is ever evicted. Otherwise the least
    recently used entry is dropped once the limit is exceeded.
    """

    def __init__(self, max_entries: Optional[int] = None):
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be positive or None")
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, CorrelationResult]" = OrderedDict()

    def get(self, key: str) -> Optional[CorrelationResult]:
        result = self._entries.get(key)
        if result is not None:
            self._entries.move_to_end(key)
        return result

    def put(self, key: str, result: CorrelationResult) -> None:
        self._entries[key] = result
        self._entries.move_to_end(key)
        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted correlation cache entry %s", evicted)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class CorrelationEngine:
    """Generates correlations through the orchestrator, at most once per schema pair."""

    def __init__(
        self,
        orchestrator: Optional[LLMOrchestrator] = None,
        cache: Optional[CorrelationCache] = None,
    ):
        self.orchestrator = orchestrator or LLMOrchestrator()
        self.cache = cache if cache is not None else CorrelationCache()

    async def generate_correlation(self, source: Schema, target: Schema) -> CorrelationResult:
        key = correlation_key(source, target)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Correlation cache hit for %s", key)
            return cached

        logger.info("Generating correlation for %s", key)
        prompt = CorrelationPrompt(source_schema=source, target_schema=target)
        try:
            result = await self.orchestrator.process_correlation(prompt)
        except Exception as exc:
            logger.error("Error generating correlation for %s: %s", key, exc)
            raise CorrelationError("Failed to generate correlation.") from exc

        self.cache.put(key, result)
        logger.info("Correlation for %s produced %d mapping(s)", key, len(result.mappings))
        return result

    def refine_correlation(
        self,
        mappings: List[CorrelationMapping],
        feedback: List[UserFeedback],
    ) -> List[CorrelationMapping]:
        """
        Apply reviewer feedback to a mapping list, in order.

        Each item targets the first mapping whose source field has the same
        name. APPROVE pins confidence to 1.0, REJECT drops the mapping, EDIT
        swaps in the corrected mapping at confidence 1.0. Items for a source
        field already rejected or replaced in this batch, or with no mapping
        at all, are skipped. The input list and its mappings are left
        untouched.
        """
        refined = list(mappings)
        settled: Set[str] = set()

        for item in feedback:
            name = item.original_mapping.source_field.name
            if name in settled:
                logger.warning("Ignoring %s feedback for %r: mapping already rejected or replaced", item.type.value, name)
                continue

            index = next(
                (i for i, mapping in enumerate(refined) if mapping.source_field.name == name),
                None,
            )
            if index is None:
                logger.warning("Ignoring %s feedback for %r: no such mapping", item.type.value, name)
                continue

            if item.type == FeedbackType.APPROVE:
                refined[index] = refined[index].model_copy(update={"confidence": 1.0})
            elif item.type == FeedbackType.REJECT:
                del refined[index]
                settled.add(name)
            elif item.type == FeedbackType.EDIT:
                refined[index] = item.corrected_mapping.model_copy(update={"confidence": 1.0})
                settled.add(name)

        return refined

    def clear_cache(self) -> None:
        self.cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self.cache)
