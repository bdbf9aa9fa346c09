"""Confidence-gated frontmatter translation."""

from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .config import get_settings
from .errors import TransformError
from .schemas import CorrelationMapping, Document, FieldType, Schema, SchemaField
from .utils import stringify_value

logger = logging.getLogger(__name__)

# Bidirectional name synonyms used to rescue unmapped fields
SEMANTIC_SYNONYMS: Dict[str, List[str]] = {
    "title": ["name", "heading", "subject"],
    "name": ["title", "heading", "subject"],
    "heading": ["title", "name", "subject"],
    "subject": ["title", "name", "heading"],
    "author": ["creator", "by", "writer"],
    "creator": ["author", "by", "writer"],
    "by": ["author", "creator", "writer"],
    "writer": ["author", "creator", "by"],
    "date": ["created", "published", "timestamp"],
    "created": ["date", "published", "timestamp"],
    "published": ["date", "created", "timestamp"],
    "timestamp": ["date", "created", "published"],
    "tags": ["categories", "keywords", "labels"],
    "categories": ["tags", "keywords", "labels"],
    "keywords": ["tags", "categories", "labels"],
    "labels": ["tags", "categories", "keywords"],
    "description": ["summary", "abstract", "excerpt"],
    "summary": ["description", "abstract", "excerpt"],
    "abstract": ["description", "summary", "excerpt"],
    "excerpt": ["description", "summary", "abstract"],
    "status": ["state", "stage", "phase"],
    "state": ["status", "stage", "phase"],
    "stage": ["status", "state", "phase"],
    "phase": ["status", "state", "stage"],
}


def format_fallback_tag(key: str, value: Any) -> str:
    return f"{key}:{stringify_value(value)}"


def default_value(field: SchemaField) -> Any:
    """Type-appropriate placeholder for a required field."""
    if field.type == FieldType.STRING:
        return ""
    if field.type == FieldType.NUMBER:
        return 0
    if field.type == FieldType.BOOLEAN:
        return False
    if field.type == FieldType.DATE:
        return datetime.now(timezone.utc).isoformat()
    if field.type == FieldType.ARRAY:
        return []
    if field.type == FieldType.OBJECT:
        return {}
    return None


def find_compatible_field(key: str, target_schema: Optional[Schema]) -> Optional[str]:
    """Guess a target field for an unmapped key: same name, then a synonym."""
    if target_schema is None:
        return None

    by_lower = {}
    for field in target_schema.fields:
        by_lower.setdefault(field.name.lower(), field.name)

    lowered = key.lower()
    if lowered in by_lower:
        return by_lower[lowered]
    for candidate in SEMANTIC_SYNONYMS.get(lowered, []):
        if candidate in by_lower:
            return by_lower[candidate]
    return None


def run_transform(mapping: CorrelationMapping, key: str, value: Any) -> Any:
    """Apply a mapping's transform, raising TransformError if it fails."""
    if mapping.transform is None:
        return value
    try:
        return mapping.transform(value)
    except Exception as exc:
        raise TransformError(f"Transform failed for field '{key}'") from exc


class TranslationEngine:
    """
    Rewrites document frontmatter from a source schema to a target schema.

    Every source key ends up somewhere in the output: renamed through a
    confident mapping, rescued under a compatible target name, or folded
    into ``tags`` as a ``key:value`` fallback tag.
    """

    def __init__(self, confidence_threshold: Optional[float] = None):
        self._confidence_threshold = 0.7
        if confidence_threshold is None:
            confidence_threshold = get_settings().confidence_threshold
        self.confidence_threshold = confidence_threshold

    @property
    def confidence_threshold(self) -> float:
        return self._confidence_threshold

    @confidence_threshold.setter
    def confidence_threshold(self, value: float) -> None:
        if value < 0 or value > 1:
            raise ValueError("Confidence threshold must be between 0.0 and 1.0")
        self._confidence_threshold = float(value)

    def translate_document(
        self,
        doc: Document,
        mappings: List[CorrelationMapping],
        target_schema: Optional[Schema] = None,
    ) -> Document:
        logger.debug("Translating %s with %d mapping(s)", doc.file_path, len(mappings))
        translated: Dict[str, Any] = {}
        fallback_tags: List[str] = []

        for key, raw in doc.frontmatter.items():
            value = copy.deepcopy(raw)
            mapping = next((m for m in mappings if m.source_field.name == key), None)

            if mapping is not None and mapping.confidence >= self._confidence_threshold:
                target_key = mapping.target_field.name
                if target_key in translated:
                    fallback_tags.append(format_fallback_tag(key, value))
                    logger.warning("%s already filled, kept %s as tag", target_key, key)
                    continue
                translated[target_key] = self._apply_transform(mapping, key, raw)
                logger.debug("Mapped %s -> %s (%.2f)", key, target_key, mapping.confidence)
            elif mapping is not None:
                fallback_tags.append(format_fallback_tag(key, value))
                logger.debug("Low confidence for %s (%.2f), kept as tag", key, mapping.confidence)
            else:
                compatible = find_compatible_field(key, target_schema)
                if compatible is not None and compatible not in translated:
                    translated[compatible] = value
                    logger.debug("Compatible field %s -> %s", key, compatible)
                else:
                    fallback_tags.append(format_fallback_tag(key, value))
                    logger.debug("No mapping for %s, kept as tag", key)

        if fallback_tags:
            self._add_fallback_tags(translated, fallback_tags)

        if target_schema is not None:
            for field in target_schema.fields:
                if field.required and field.name not in translated:
                    translated[field.name] = default_value(field)
                    logger.debug("Filled required field %s with a default", field.name)

        return doc.model_copy(update={"frontmatter": translated})

    def translate_batch(
        self,
        docs: List[Document],
        mappings: List[CorrelationMapping],
        target_schema: Optional[Schema] = None,
    ) -> List[Document]:
        """Translate documents independently; failed documents are logged and left out."""
        results: List[Document] = []
        for doc in docs:
            try:
                results.append(self.translate_document(doc, mappings, target_schema))
            except Exception as exc:
                logger.error("Failed to translate %s: %s", doc.file_path, exc)
        return results

    def _apply_transform(self, mapping: CorrelationMapping, key: str, raw: Any) -> Any:
        try:
            return run_transform(mapping, key, copy.deepcopy(raw))
        except TransformError as exc:
            logger.warning("%s: %s; keeping original value", exc, exc.__cause__)
            return copy.deepcopy(raw)

    @staticmethod
    def _add_fallback_tags(frontmatter: Dict[str, Any], fallback_tags: List[str]) -> None:
        existing = frontmatter.get("tags")
        if isinstance(existing, list):
            existing.extend(fallback_tags)
        elif existing is not None:
            frontmatter["tags"] = [existing, *fallback_tags]
        else:
            frontmatter["tags"] = list(fallback_tags)
