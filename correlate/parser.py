"""Parse YAML/JSON schema files into canonical schemas."""

from __future__ import annotations

import json
import logging
import re
from datetime import date, datetime
from typing import Any, Dict, List

import yaml
from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from .errors import ParseError
from .schemas import Constraint, FieldType, Schema, SchemaField, Taxonomy, ValidationIssue, ValidationResult
from .utils import strip_extension

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "1.0.0"

# (pattern, strptime format); None means ISO 8601
_DATE_FORMATS = (
    (re.compile(r"^\d{4}-\d{2}-\d{2}"), None),  # YYYY-MM-DD
    (re.compile(r"^\d{2}/\d{2}/\d{4}$"), "%m/%d/%Y"),  # MM/DD/YYYY
    (re.compile(r"^\d{1,2}-\d{1,2}-\d{4}$"), "%m-%d-%Y"),  # M-D-YYYY
)

_FIELD_TYPES = {member.value for member in FieldType}
_BOOL = TypeAdapter(bool)


def is_date_string(value: str) -> bool:
    """Check whether a string looks like, and parses as, a date."""
    for pattern, fmt in _DATE_FORMATS:
        if not pattern.match(value):
            continue
        try:
            if fmt is None:
                datetime.fromisoformat(value.replace("Z", "+00:00"))
            else:
                datetime.strptime(value, fmt)
        except ValueError:
            return False
        return True
    return False


def infer_field(value: Any, name: str) -> SchemaField:
    """Infer a schema field from a sample value."""
    if isinstance(value, (list, tuple)):
        field_type = FieldType.ARRAY
        description = f"Array field (length: {len(value)})"
    elif isinstance(value, dict):
        field_type = FieldType.OBJECT
        description = f"Object field with keys: {', '.join(str(key) for key in value)}"
    elif isinstance(value, bool):
        field_type = FieldType.BOOLEAN
        description = "Boolean field"
    elif isinstance(value, (int, float)):
        field_type = FieldType.NUMBER
        description = "Number field"
    elif isinstance(value, (date, datetime)):
        field_type = FieldType.DATE
        description = "Date field"
    elif isinstance(value, str):
        if is_date_string(value):
            field_type = FieldType.DATE
            description = "Date field (auto-detected)"
        else:
            field_type = FieldType.STRING
            description = "String field"
    else:
        field_type = FieldType.STRING
        description = "Unknown type, defaulted to string"

    return SchemaField(name=name, type=field_type, description=description, required=False)


def _is_canonical(data: Any) -> bool:
    return (
        isinstance(data, dict)
        and isinstance(data.get("name"), str)
        and isinstance(data.get("version"), str)
        and isinstance(data.get("fields"), list)
        and all(
            isinstance(field, dict)
            and isinstance(field.get("name"), str)
            and isinstance(field.get("type"), str)
            for field in data["fields"]
        )
    )


def _drop_key(field: Dict[str, Any], key: str, reason: str) -> None:
    logger.warning("Ignoring %s of field %r: %s", key, field["name"], reason)
    del field[key]


def _clean_constraints(field: Dict[str, Any]) -> None:
    constraints = field.get("constraints")
    if constraints is None:
        return
    if not isinstance(constraints, list):
        _drop_key(field, "constraints", "not a list")
        return
    kept = []
    for item in constraints:
        try:
            kept.append(Constraint.model_validate(item).model_dump())
        except PydanticValidationError:
            logger.warning("Ignoring malformed constraint %r of field %r", item, field["name"])
    field["constraints"] = kept


def _coerce_types(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Copy a canonical schema dict into a shape the models accept.

    Unknown field types become string. Malformed optional keys
    (description, required, constraints, nested schema) are dropped with a
    warning, so a canonical file never fails on them.
    """
    coerced = dict(data)
    if coerced.get("description") is not None and not isinstance(coerced["description"], str):
        logger.warning("Ignoring non-text description of schema %r", coerced["name"])
        del coerced["description"]

    fields: List[Dict[str, Any]] = []
    for field in data.get("fields", []):
        field = dict(field)
        type_name = field["type"].lower()
        if type_name not in _FIELD_TYPES:
            logger.warning("Unknown type %r for field %r, using string", field["type"], field["name"])
            type_name = FieldType.STRING.value
        field["type"] = type_name

        if field.get("description") is not None and not isinstance(field["description"], str):
            _drop_key(field, "description", "not text")
        if "required" in field:
            try:
                field["required"] = _BOOL.validate_python(field["required"])
            except PydanticValidationError:
                _drop_key(field, "required", "not a boolean")
        _clean_constraints(field)
        for key in ("nestedSchema", "nested_schema"):
            if field.get(key) is None:
                continue
            if _is_canonical(field[key]):
                field[key] = _coerce_types(field[key])
            else:
                _drop_key(field, key, "not a schema definition")
        fields.append(field)
    coerced["fields"] = fields
    return coerced


class SchemaParser:
    """Turns raw YAML/JSON text into a :class:`Schema`.

    Canonical schema documents are used as they are. Anything else is treated
    as sample data and a schema is inferred from it, so structurally valid
    input always yields a usable schema.
    """

    def parse_schema(self, content: str, filename: str) -> Schema:
        """Parse schema content, choosing the format from the file extension."""
        logger.debug("Parsing schema file: %s", filename)
        extension = filename.lower().rsplit(".", 1)[-1] if "." in filename else ""

        if extension == "json":
            return self.parse_json_schema(content, filename)
        if extension in ("yml", "yaml"):
            return self.parse_yaml_schema(content, filename)

        try:
            return self.parse_yaml_schema(content, filename)
        except ParseError:
            return self.parse_json_schema(content, filename)

    def parse_yaml_schema(self, content: str, filename: str = "yaml-file") -> Schema:
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as exc:
            logger.error("Failed to parse YAML %s: %s", filename, exc)
            raise ParseError(f"Failed to parse YAML schema: {exc}") from exc
        return self.convert_to_schema(data, filename)

    def parse_json_schema(self, content: str, filename: str = "json-file") -> Schema:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            logger.error("Failed to parse JSON %s: %s", filename, exc)
            raise ParseError(f"Failed to parse JSON schema: {exc}") from exc
        return self.convert_to_schema(data, filename)

    def convert_to_schema(self, data: Any, filename: str) -> Schema:
        """Build a schema from parsed data, inferring fields when needed."""
        if _is_canonical(data):
            try:
                return Schema.model_validate(_coerce_types(data))
            except PydanticValidationError as exc:
                raise ParseError(f"Invalid schema definition in {filename}: {exc}") from exc

        name = strip_extension(filename)
        description = f"Auto-generated schema from {filename}"

        if isinstance(data, list):
            fields = [infer_field(item, f"item_{index}") for index, item in enumerate(data)]
        elif isinstance(data, dict):
            fields = [infer_field(value, str(key)) for key, value in data.items()]
        elif data is None:
            fields = []
        else:
            fields = [infer_field(data, "value")]

        logger.info("Inferred schema %r with %d field(s) from %s", name, len(fields), filename)
        return Schema(name=name, version=DEFAULT_VERSION, description=description, fields=fields)

    def extract_taxonomy(self, schema: Schema) -> Taxonomy:
        """Flatten all field names, including nested object fields."""
        terms: List[str] = []
        for field in schema.fields:
            terms.append(field.name)
            if field.type == FieldType.OBJECT and field.nested_schema is not None:
                terms.extend(self.extract_taxonomy(field.nested_schema).terms)
        return Taxonomy(name=f"{schema.name} Taxonomy", terms=terms)

    def validate_schema(self, schema: Schema) -> ValidationResult:
        """Check a schema for missing name, version, or fields."""
        errors: List[ValidationIssue] = []

        if not schema.name:
            errors.append(ValidationIssue(message="Schema name is missing."))
        if not schema.version:
            errors.append(ValidationIssue(message="Schema version is missing."))
        if not schema.fields:
            errors.append(ValidationIssue(message="Schema must have at least one field."))
        else:
            for index, field in enumerate(schema.fields):
                if not field.name or not field.type:
                    errors.append(
                        ValidationIssue(
                            message=f"Field is missing name or type: {field.model_dump_json(exclude_none=True)}",
                            offending_field=f"fields[{index}]",
                        )
                    )

        return ValidationResult(is_valid=not errors, errors=errors)
