"""Post-translation sanity check against the target schema."""

from __future__ import annotations

from typing import List

from .schemas import Document, Schema, ValidationIssue, ValidationResult


class ValidationEngine:
    """Checks that every required target field is present. Only presence is checked."""

    def validate_document(self, doc: Document, target_schema: Schema) -> ValidationResult:
        errors: List[ValidationIssue] = [
            ValidationIssue(
                message=f"Missing required field: '{field.name}'",
                offending_field=field.name,
            )
            for field in target_schema.fields
            if field.required and field.name not in doc.frontmatter
        ]
        return ValidationResult(is_valid=not errors, errors=errors)
