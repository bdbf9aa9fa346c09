"""Correlate - schema correlation and metadata translation for markdown libraries."""

from .cache import EmbeddingCacheManager
from .comparator import SchemaComparator
from .config import Settings, get_settings
from .correlation import CorrelationCache, CorrelationEngine
from .documents import FileSystemManager
from .embeddings import EmbeddingService
from .errors import (
    AllClientsFailedError,
    CorrelateError,
    CorrelationError,
    DocumentProcessingError,
    EmbeddingError,
    NoFallbackConfiguredError,
    ParseError,
    TransformError,
)
from .llm import GeminiCorrelationClient, OllamaCorrelationClient
from .logging_config import setup_logging
from .orchestrator import LLMOrchestrator
from .parser import SchemaParser
from .pipeline import link_related_documents, process_documents
from .samples import TranslationSampleGenerator, samples_to_mappings
from .schemas import (
    CorrelationMapping,
    CorrelationResult,
    Document,
    DocumentEmbedding,
    FeedbackType,
    FieldType,
    RelatedDocument,
    Schema,
    SchemaField,
    SimilarityConfig,
    UserFeedback,
)
from .similarity import DocumentSimilarityEngine
from .translator import TranslationEngine
from .validation import ValidationEngine

__version__ = "0.1.0"

__all__ = [
    "AllClientsFailedError",
    "CorrelateError",
    "CorrelationCache",
    "CorrelationEngine",
    "CorrelationError",
    "CorrelationMapping",
    "CorrelationResult",
    "Document",
    "DocumentEmbedding",
    "DocumentProcessingError",
    "DocumentSimilarityEngine",
    "EmbeddingCacheManager",
    "EmbeddingError",
    "EmbeddingService",
    "FeedbackType",
    "FieldType",
    "FileSystemManager",
    "GeminiCorrelationClient",
    "LLMOrchestrator",
    "NoFallbackConfiguredError",
    "OllamaCorrelationClient",
    "ParseError",
    "RelatedDocument",
    "Schema",
    "SchemaComparator",
    "SchemaField",
    "SchemaParser",
    "Settings",
    "SimilarityConfig",
    "TransformError",
    "TranslationEngine",
    "TranslationSampleGenerator",
    "UserFeedback",
    "ValidationEngine",
    "get_settings",
    "link_related_documents",
    "process_documents",
    "samples_to_mappings",
    "setup_logging",
]
