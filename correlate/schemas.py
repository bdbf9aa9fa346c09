"""Data schemas for correlate."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FieldType(str, Enum):
    """Value types a schema field can declare."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    ARRAY = "array"
    OBJECT = "object"


class Constraint(BaseModel):
    type: str
    value: Any = None


class SchemaField(BaseModel):
    """A single typed field of a metadata schema."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    type: FieldType
    description: Optional[str] = None
    constraints: Optional[List[Constraint]] = None
    nested_schema: Optional[Schema] = Field(default=None, alias="nestedSchema")
    required: bool = False


class Schema(BaseModel):
    """Named, versioned list of fields describing document metadata."""
    name: str
    version: str
    description: Optional[str] = None
    fields: List[SchemaField] = Field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.name}@{self.version}"

    def get_field(self, name: str) -> Optional[SchemaField]:
        for field in self.fields:
            if field.name == name:
                return field
        return None


SchemaField.model_rebuild()


class Taxonomy(BaseModel):
    name: str
    terms: List[str] = Field(default_factory=list)


class AlternativeMapping(BaseModel):
    """A ranked alternative target for a source field."""
    target_field: SchemaField
    confidence: float = Field(ge=0.0, le=1.0)


class CorrelationMapping(BaseModel):
    """Pairing of one source field with one target field.

    ``confidence`` decides how translation treats the pair: at or above the
    translation threshold the value is renamed, below it the value is kept
    as a fallback tag.
    """
    source_field: SchemaField
    target_field: SchemaField
    confidence: float = Field(ge=0.0, le=1.0)
    transform: Optional[Callable[[Any], Any]] = Field(default=None, exclude=True)
    suggestions: List[AlternativeMapping] = Field(default_factory=list)

    def describe(self) -> str:
        return f"{self.source_field.name} -> {self.target_field.name} ({self.confidence:.2f})"


class CorrelationResult(BaseModel):
    """Mappings plus the fields of each schema left without a counterpart."""
    mappings: List[CorrelationMapping] = Field(default_factory=list)
    unmapped_source_fields: List[SchemaField] = Field(default_factory=list)
    unmapped_target_fields: List[SchemaField] = Field(default_factory=list)


class CorrelationPrompt(BaseModel):
    source_schema: Schema
    target_schema: Schema


class FeedbackType(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    EDIT = "edit"


class UserFeedback(BaseModel):
    """A reviewer's verdict on one proposed mapping."""
    original_mapping: CorrelationMapping
    type: FeedbackType
    corrected_mapping: Optional[CorrelationMapping] = None

    @model_validator(mode="after")
    def _check_correction(self) -> UserFeedback:
        if self.type == FeedbackType.EDIT and self.corrected_mapping is None:
            raise ValueError("corrected_mapping is required for edit feedback")
        return self


class Document(BaseModel):
    """A markdown document: frontmatter metadata plus an opaque body."""
    file_path: str
    frontmatter: Dict[str, Any] = Field(default_factory=dict)
    content: str = ""


class DocumentEmbedding(BaseModel):
    """Embedding vector of one document, with the text that produced it."""
    document_path: str
    content: str
    embedding: List[float]
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)


class SimilarityConfig(BaseModel):
    threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    max_results: int = Field(default=5, ge=0)
    include_metadata_similarity: bool = True
    metadata_weight: float = Field(default=0.3, ge=0.0, le=1.0)


class RelatedDocument(BaseModel):
    file_path: str
    title: str
    similarity: float
    reason: Optional[str] = None


class WikiLink(BaseModel):
    text: str
    target: str


class ValidationIssue(BaseModel):
    message: str
    offending_field: Optional[str] = None


class ValidationResult(BaseModel):
    """Outcome of a validation pass. Failures are reported, never raised."""
    is_valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)


class TranslationSample(BaseModel):
    source_tag: str
    translated_tag: str


class EnhancedTranslationSample(TranslationSample):
    """Before/after example shown to a reviewer for one mapping."""
    confidence: float
    alternatives: List[str] = Field(default_factory=list)
    field_type: str


class EmbeddingCacheEntry(BaseModel):
    """Persisted embeddings of one library (directory)."""
    model_config = ConfigDict(protected_namespaces=())

    library_path: str
    embeddings: List[DocumentEmbedding]
    timestamp: str
    model_used: str
    document_count: int
    total_tokens: Optional[int] = None
    fingerprint: Optional[str] = None


class CacheEntrySummary(BaseModel):
    library_path: str
    timestamp: str
    embedding_count: int
    size_bytes: int


class CacheStatistics(BaseModel):
    total_caches: int = 0
    total_embeddings: int = 0
    total_storage_size: int = 0
    oldest_cache: Optional[str] = None
    newest_cache: Optional[str] = None
    cache_entries: List[CacheEntrySummary] = Field(default_factory=list)


class ExportBundle(BaseModel):
    """Shareable file holding the cached embeddings of several libraries."""
    exported_at: str
    correlate_version: str
    total_libraries: int
    total_embeddings: int
    libraries: List[EmbeddingCacheEntry]


class ProcessingReport(BaseModel):
    """Summary of a document translation run."""
    processed_count: int
    output_path: str
    total_fields_mapped: int
    avg_fields_per_doc: int
    mappings_used: int
    failed_files: List[str] = Field(default_factory=list)
    invalid_files: List[str] = Field(default_factory=list)
