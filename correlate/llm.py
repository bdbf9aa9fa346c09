"""
Correlation clients backed by generative models.

Both clients send the same prompt: a system message describing the strict
JSON correlation shape, and the two schemas serialized as JSON. The model's
reply is validated and reconciled against the schemas before it is
returned, so callers always get a well-formed :class:`CorrelationResult`.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Set

import google.generativeai as genai
from langchain_community.chat_models import ChatOllama
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import AliasChoices, BaseModel, Field, field_validator

from .config import Settings, get_settings
from .errors import CorrelationError
from .schemas import (
    AlternativeMapping,
    CorrelationMapping,
    CorrelationPrompt,
    CorrelationResult,
    Schema,
    SchemaField,
)

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """
You are an expert at understanding and correlating data schemas.
You will be given a source schema and a target schema in JSON format.
Your task is to analyze both schemas and provide a correlation mapping.
The mapping should identify which fields in the source schema correspond to which fields in the target schema.

Output only a valid JSON object with the following structure:
{
  "mappings": [
    {
      "source_field": { "name": "field_name" },
      "target_field": { "name": "field_name" },
      "confidence": 0.0-1.0,
      "suggestions": [
        { "target_field": { "name": "suggestion_name" }, "confidence": 0.0-1.0 }
      ]
    }
  ],
  "unmapped_source_fields": [{ "name": "field_name" }],
  "unmapped_target_fields": [{ "name": "field_name" }]
}
Each source field and each target field may appear in at most one mapping.
Confidence should be 1.0 for a perfect match in name and meaning, and lower otherwise.
""".strip()


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class _FieldRef(BaseModel):
    name: str


class _SuggestionPayload(BaseModel):
    target_field: _FieldRef = Field(validation_alias=AliasChoices("target_field", "targetField"))
    confidence: float = 0.0

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, value: float) -> float:
        return _clamp(value)


class _MappingPayload(BaseModel):
    source_field: _FieldRef = Field(validation_alias=AliasChoices("source_field", "sourceField"))
    target_field: _FieldRef = Field(validation_alias=AliasChoices("target_field", "targetField"))
    confidence: float
    suggestions: Optional[List[_SuggestionPayload]] = None

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, value: float) -> float:
        return _clamp(value)


class CorrelationPayload(BaseModel):
    """Shape the model is asked to reply with."""
    mappings: List[_MappingPayload] = Field(default_factory=list)
    unmapped_source_fields: List[_FieldRef] = Field(
        default_factory=list,
        validation_alias=AliasChoices("unmapped_source_fields", "unmappedSourceFields"),
    )
    unmapped_target_fields: List[_FieldRef] = Field(
        default_factory=list,
        validation_alias=AliasChoices("unmapped_target_fields", "unmappedTargetFields"),
    )


def build_user_message(prompt: CorrelationPrompt) -> str:
    source = prompt.source_schema.model_dump(mode="json", exclude_none=True, by_alias=True)
    target = prompt.target_schema.model_dump(mode="json", exclude_none=True, by_alias=True)
    return (
        f"Source Schema:\n{json.dumps(source, indent=2, ensure_ascii=False)}\n\n"
        f"Target Schema:\n{json.dumps(target, indent=2, ensure_ascii=False)}\n"
    )


def parse_payload(text: str) -> CorrelationPayload:
    """Parse the model's reply, tolerating a fenced code block around the JSON."""
    text = text.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return CorrelationPayload.model_validate(data)


def reconcile_payload(payload: CorrelationPayload, source: Schema, target: Schema) -> CorrelationResult:
    """
    Resolve field references against the schemas.

    Mappings naming an unknown field, or a field already used by an earlier
    mapping, are dropped. Unmapped lists are recomputed so every field of
    both schemas appears exactly once in the result.
    """
    source_fields: Dict[str, SchemaField] = {field.name: field for field in source.fields}
    target_fields: Dict[str, SchemaField] = {field.name: field for field in target.fields}
    used_source: Set[str] = set()
    used_target: Set[str] = set()
    mappings: List[CorrelationMapping] = []

    for item in payload.mappings:
        source_name = item.source_field.name
        target_name = item.target_field.name
        if source_name not in source_fields or target_name not in target_fields:
            logger.warning("Dropping mapping with unknown field: %s -> %s", source_name, target_name)
            continue
        if source_name in used_source or target_name in used_target:
            logger.warning("Dropping duplicate mapping: %s -> %s", source_name, target_name)
            continue

        suggestions = [
            AlternativeMapping(
                target_field=target_fields[suggestion.target_field.name],
                confidence=suggestion.confidence,
            )
            for suggestion in item.suggestions or []
            if suggestion.target_field.name in target_fields
        ]
        mappings.append(
            CorrelationMapping(
                source_field=source_fields[source_name],
                target_field=target_fields[target_name],
                confidence=item.confidence,
                suggestions=suggestions,
            )
        )
        used_source.add(source_name)
        used_target.add(target_name)

    return CorrelationResult(
        mappings=mappings,
        unmapped_source_fields=[f for f in source.fields if f.name not in used_source],
        unmapped_target_fields=[f for f in target.fields if f.name not in used_target],
    )


class CorrelationClient(ABC):
    """A backend able to correlate two schemas."""

    provider_name: str = "LLM"

    @abstractmethod
    async def _chat(self, system_prompt: str, user_prompt: str) -> str:
        """Send one system + user exchange and return the raw reply text."""
        pass

    async def correlate_schemata(self, prompt: CorrelationPrompt) -> CorrelationResult:
        try:
            text = await self._chat(SYSTEM_PROMPT, build_user_message(prompt))
            payload = parse_payload(text)
        except Exception as exc:
            logger.error("Error correlating schemas with %s: %s", self.provider_name, exc)
            raise CorrelationError(f"Failed to correlate schemas using {self.provider_name}.") from exc

        return reconcile_payload(payload, prompt.source_schema, prompt.target_schema)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"


class OllamaCorrelationClient(CorrelationClient):
    """Client for a local Ollama inference server."""

    provider_name = "Ollama"

    def __init__(
        self,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        llm=None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.model = model or settings.ollama_model
        self.base_url = base_url or settings.ollama_base_url
        self.llm = llm or ChatOllama(
            model=self.model,
            base_url=self.base_url,
            format="json",
            temperature=0,
        )

    async def _chat(self, system_prompt: str, user_prompt: str) -> str:
        response = await self.llm.ainvoke(
            [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]
        )
        return response.content

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} model={self.model} base_url={self.base_url}>"


class GeminiCorrelationClient(CorrelationClient):
    """Client for Google Gemini. Requires an API key at construction."""

    provider_name = "Gemini"

    def __init__(
        self,
        api_key: Optional[str],
        model: Optional[str] = None,
        settings: Optional[Settings] = None,
    ):
        if not api_key:
            raise ValueError("Gemini API key was not provided to the constructor.")
        settings = settings or get_settings()
        self.model = model or settings.gemini_model

        genai.configure(api_key=api_key)
        self._client = genai.GenerativeModel(
            model_name=self.model,
            generation_config={
                "temperature": 0.0,
                "response_mime_type": "application/json",
            },
        )

    async def _chat(self, system_prompt: str, user_prompt: str) -> str:
        # Gemini takes no separate system role here; prepend it to the user turn
        response = await self._client.generate_content_async(f"{system_prompt}\n\n{user_prompt}")
        return response.text

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} model={self.model}>"
