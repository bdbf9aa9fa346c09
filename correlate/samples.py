"""Reviewable before/after samples for a correlation, and their way back to mappings."""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, List

from .schemas import (
    CorrelationMapping,
    CorrelationResult,
    EnhancedTranslationSample,
    FieldType,
    Schema,
    SchemaField,
    TranslationSample,
)

logger = logging.getLogger(__name__)

HIGH_CONFIDENCE = 0.7
MEDIUM_CONFIDENCE = 0.4
MAX_HIGH_SAMPLES = 5
MAX_MEDIUM_SAMPLES = 3
MAX_FALLBACK_SAMPLES = 2

_QUOTED_RE = re.compile(r'^"(.*)"$')


def split_tag(tag: str):
    """Split a ``"name: value"`` sample tag into its name and value parts."""
    name, sep, value = tag.partition(":")
    if not sep:
        return tag.strip(), ""
    return name.strip(), value.strip()


def sample_value(field: SchemaField) -> str:
    """Synthetic example value for a field, as it would appear in YAML."""
    name = field.name
    if field.type == FieldType.STRING:
        if "status" in name:
            return '"draft"'
        if "type" in name:
            return '"blog-post"'
        if "author" in name:
            return '"John Doe"'
        if "title" in name:
            return '"Sample Document Title"'
        return '"sample-value"'
    if field.type == FieldType.ARRAY:
        if "tag" in name:
            return '["web", "development"]'
        if "category" in name:
            return '["technology", "tutorial"]'
        return '["item1", "item2"]'
    if field.type == FieldType.DATE:
        return "2024-01-15"
    if field.type == FieldType.NUMBER:
        return "42"
    if field.type == FieldType.BOOLEAN:
        return "true"
    return '"sample-value"'


def transform_for_target(source_value: str, target: SchemaField) -> str:
    """Reshape a sample source value the way the target field would hold it."""
    clean = _QUOTED_RE.sub(r"\1", source_value)

    if target.type == FieldType.STRING:
        if "state" in target.name and clean == "draft":
            return '"provisional"'
        if "contentType" in target.name and clean == "blog-post":
            return '"article"'
        return f'"{clean}"'
    if target.type == FieldType.ARRAY:
        if source_value.startswith("["):
            return source_value
        return f'["{clean}"]'
    if target.type == FieldType.DATE:
        if "publishedAt" in target.name:
            return f"{clean}T00:00:00Z"
        return clean
    return source_value


class TranslationSampleGenerator:
    """Turns a correlation into a handful of examples a reviewer can judge."""

    def convert_correlation_to_samples(
        self,
        result: CorrelationResult,
        source_schema: Schema,
        target_schema: Schema,
    ) -> List[EnhancedTranslationSample]:
        ranked = sorted(result.mappings, key=lambda mapping: mapping.confidence, reverse=True)
        high = [m for m in ranked if m.confidence >= HIGH_CONFIDENCE][:MAX_HIGH_SAMPLES]
        medium = [m for m in ranked if MEDIUM_CONFIDENCE <= m.confidence < HIGH_CONFIDENCE][:MAX_MEDIUM_SAMPLES]

        samples = [self._sample_from_mapping(mapping) for mapping in high + medium]
        samples.extend(
            self._fallback_sample(field)
            for field in result.unmapped_source_fields[:MAX_FALLBACK_SAMPLES]
        )
        logger.debug(
            "Generated %d sample(s) for %s -> %s", len(samples), source_schema.key, target_schema.key
        )
        return samples

    @staticmethod
    def _source_tag(field: SchemaField) -> str:
        return f"{field.name}: {sample_value(field)}"

    @staticmethod
    def _target_tag(field: SchemaField, source_tag: str) -> str:
        _, value = split_tag(source_tag)
        return f"{field.name}: {transform_for_target(value, field)}"

    def _sample_from_mapping(self, mapping: CorrelationMapping) -> EnhancedTranslationSample:
        source_tag = self._source_tag(mapping.source_field)
        return EnhancedTranslationSample(
            source_tag=source_tag,
            translated_tag=self._target_tag(mapping.target_field, source_tag),
            confidence=mapping.confidence,
            alternatives=[
                self._target_tag(suggestion.target_field, source_tag)
                for suggestion in mapping.suggestions
            ],
            field_type=mapping.source_field.type.value,
        )

    def _fallback_sample(self, field: SchemaField) -> EnhancedTranslationSample:
        source_tag = self._source_tag(field)
        _, value = split_tag(source_tag)
        return EnhancedTranslationSample(
            source_tag=source_tag,
            translated_tag=f"tags: [{value}]",
            confidence=0.0,
            alternatives=[f'tags: ["{field.name}"]'],
            field_type=field.type.value,
        )


def _value_rewriter(source_value: str, target_value: str) -> Callable[[Any], Any]:
    def rewrite(value: Any) -> Any:
        if not source_value or not target_value:
            return value
        if value == source_value:
            return target_value
        if isinstance(value, list) and source_value in value:
            return [target_value if item == source_value else item for item in value]
        return value

    return rewrite


def samples_to_mappings(
    samples: List[TranslationSample],
    source_schema: Schema,
    target_schema: Schema,
) -> List[CorrelationMapping]:
    """
    Build explicit mappings from reviewer-approved samples.

    Field names come from the tag prefixes and are resolved against the
    schemas, falling back to a plain string field when a schema does not
    declare the name. Each mapping carries full confidence and a transform
    that rewrites the sample's source value to its translated value,
    including inside lists.
    """
    mappings: List[CorrelationMapping] = []
    for sample in samples:
        source_name, source_value = split_tag(sample.source_tag)
        target_name, target_value = split_tag(sample.translated_tag)

        source_field = source_schema.get_field(source_name) or SchemaField(
            name=source_name, type=FieldType.STRING
        )
        target_field = target_schema.get_field(target_name) or SchemaField(
            name=target_name, type=FieldType.STRING
        )
        mappings.append(
            CorrelationMapping(
                source_field=source_field,
                target_field=target_field,
                confidence=1.0,
                transform=_value_rewriter(
                    source_value.replace('"', "").replace("'", ""),
                    target_value.replace('"', "").replace("'", ""),
                ),
            )
        )
    return mappings
