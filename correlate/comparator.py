"""Name-based baseline field matcher."""

from __future__ import annotations

from typing import Dict, List

from .schemas import CorrelationMapping, CorrelationResult, Schema, SchemaField


class SchemaComparator:
    """Matches fields by identical name, without any external backend."""

    def compare_schemas(self, source: Schema, target: Schema) -> CorrelationResult:
        mappings: List[CorrelationMapping] = []
        unmapped_source: List[SchemaField] = []

        # Matched entries are removed so a target field is claimed only once
        remaining: Dict[str, SchemaField] = {field.name: field for field in target.fields}

        for source_field in source.fields:
            target_field = remaining.pop(source_field.name, None)
            if target_field is None:
                unmapped_source.append(source_field)
                continue
            mappings.append(
                CorrelationMapping(
                    source_field=source_field,
                    target_field=target_field,
                    confidence=self._confidence(source_field, target_field),
                )
            )

        return CorrelationResult(
            mappings=mappings,
            unmapped_source_fields=unmapped_source,
            unmapped_target_fields=list(remaining.values()),
        )

    @staticmethod
    def _confidence(source_field: SchemaField, target_field: SchemaField) -> float:
        return 1.0 if source_field.type == target_field.type else 0.5
