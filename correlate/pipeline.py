"""End-to-end flows over directories of markdown documents."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from tqdm import tqdm

from .correlation import CorrelationEngine
from .documents import FileSystemManager
from .embeddings import EmbeddingService
from .errors import DocumentProcessingError
from .samples import samples_to_mappings
from .schemas import CorrelationMapping, ProcessingReport, RelatedDocument, TranslationSample
from .similarity import DocumentSimilarityEngine
from .translator import TranslationEngine
from .utils import safe_relpath
from .validation import ValidationEngine

logger = logging.getLogger(__name__)

AUTO_MAPPING_MIN_CONFIDENCE = 0.7
DEFAULT_OUTPUT_DIRNAME = "translated-documents"

PathLike = Union[str, Path]


async def process_documents(
    source_dir: PathLike,
    target_dir: PathLike,
    approved_samples: List[TranslationSample],
    correlation_engine: CorrelationEngine,
    translation_engine: Optional[TranslationEngine] = None,
    validation_engine: Optional[ValidationEngine] = None,
    file_manager: Optional[FileSystemManager] = None,
    output_dirname: str = DEFAULT_OUTPUT_DIRNAME,
    block_invalid: bool = False,
) -> ProcessingReport:
    """
    Translate every markdown document of ``source_dir`` into the target schema.

    Reviewer-approved samples become explicit mappings. Automatic mappings
    from the correlation engine fill in source fields the samples do not
    cover, when their confidence is at least 0.7. Translated documents are
    written to ``<target_dir>/<output_dirname>/`` under their path relative
    to ``source_dir``. A document that fails to translate or write is
    recorded in ``failed_files`` and the run continues.
    """
    translation_engine = translation_engine or TranslationEngine()
    validation_engine = validation_engine or ValidationEngine()
    file_manager = file_manager or FileSystemManager()

    source_schema, target_schema = file_manager.get_schemas_from_directories(source_dir, target_dir)
    documents = file_manager.read_markdown_files(source_dir)
    logger.info(
        "Processing %d document(s): %s -> %s", len(documents), source_schema.key, target_schema.key
    )

    mappings: List[CorrelationMapping] = samples_to_mappings(approved_samples, source_schema, target_schema)
    explicit_count = len(mappings)
    explicit_sources = {mapping.source_field.name for mapping in mappings}

    correlation = await correlation_engine.generate_correlation(source_schema, target_schema)
    for mapping in correlation.mappings:
        if mapping.source_field.name in explicit_sources:
            continue
        if mapping.confidence >= AUTO_MAPPING_MIN_CONFIDENCE:
            mappings.append(mapping)
            logger.debug("Added automatic mapping %s", mapping.describe())
    logger.info(
        "Using %d mapping(s) (%d explicit, %d automatic)",
        len(mappings),
        explicit_count,
        len(mappings) - explicit_count,
    )

    output_path = Path(target_dir) / output_dirname
    output_path.mkdir(parents=True, exist_ok=True)

    processed = 0
    total_fields = 0
    failed_files: List[str] = []
    invalid_files: List[str] = []

    for doc in tqdm(documents, desc="Translating documents"):
        try:
            try:
                translated = translation_engine.translate_document(doc, mappings, target_schema)
            except Exception as exc:
                raise DocumentProcessingError(f"Failed to translate {doc.file_path}") from exc

            result = validation_engine.validate_document(translated, target_schema)
            if not result.is_valid:
                invalid_files.append(doc.file_path)
                logger.warning(
                    "%s failed validation: %s",
                    doc.file_path,
                    "; ".join(issue.message for issue in result.errors),
                )
                if block_invalid:
                    continue

            destination = output_path / safe_relpath(doc.file_path, str(source_dir))
            try:
                file_manager.write_markdown_file(destination, translated)
            except OSError as exc:
                raise DocumentProcessingError(f"Failed to write {doc.file_path}") from exc
        except DocumentProcessingError as exc:
            logger.error("%s: %s", exc, exc.__cause__)
            failed_files.append(doc.file_path)
            continue

        processed += 1
        total_fields += len(translated.frontmatter)

    report = ProcessingReport(
        processed_count=processed,
        output_path=str(output_path),
        total_fields_mapped=total_fields,
        avg_fields_per_doc=round(total_fields / processed) if processed else 0,
        mappings_used=len(mappings),
        failed_files=failed_files,
        invalid_files=invalid_files,
    )
    logger.info(
        "Processed %d document(s) into %s (%d failed, %d invalid)",
        processed,
        output_path,
        len(failed_files),
        len(invalid_files),
    )
    return report


async def link_related_documents(
    directory: PathLike,
    embedding_service: EmbeddingService,
    similarity_engine: DocumentSimilarityEngine,
    file_manager: Optional[FileSystemManager] = None,
    write: bool = True,
    refresh: bool = False,
) -> Dict[str, List[RelatedDocument]]:
    """
    Embed a directory, index it, and add ``Related`` links to each document.

    Returns the related documents found per document path. Documents with
    no related documents are left untouched. ``refresh`` re-embeds the
    directory instead of reusing its cached embeddings.
    """
    file_manager = file_manager or FileSystemManager()
    documents = file_manager.read_markdown_files(directory)
    embeddings = await embedding_service.generate_embeddings(documents, str(directory), refresh=refresh)
    similarity_engine.index_documents(embeddings)

    by_path = {doc.file_path: doc for doc in documents}
    related_by_path: Dict[str, List[RelatedDocument]] = {}

    for embedding in embeddings:
        doc = by_path.get(embedding.document_path)
        if doc is None:
            logger.warning("Skipping %s: no longer in %s", embedding.document_path, directory)
            continue
        try:
            related = await similarity_engine.find_related_documents(doc, embedding)
        except ValueError as exc:
            logger.warning("Skipping %s: %s", doc.file_path, exc)
            continue
        related_by_path[doc.file_path] = related
        if related and write:
            linked = similarity_engine.add_related_links_to_document(doc, related)
            file_manager.write_markdown_file(doc.file_path, linked)

    logger.info("Linked %d document(s) in %s", sum(1 for items in related_by_path.values() if items), directory)
    return related_by_path
