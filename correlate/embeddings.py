"""Generate document embeddings through a LangChain embeddings backend."""

from __future__ import annotations

import asyncio
import logging
import numbers
from pathlib import Path
from typing import Dict, List, Optional, Union

from langchain_community.embeddings import OllamaEmbeddings
from tqdm import tqdm

from .cache import EmbeddingCacheManager, library_fingerprint
from .config import Settings, get_settings
from .errors import EmbeddingError
from .schemas import CacheStatistics, Document, DocumentEmbedding, ExportBundle
from .utils import iter_batches, strip_markdown, stringify_value, truncate_text

logger = logging.getLogger(__name__)


async def _embed_query_with_retry(embeddings, text: str, max_retries: int = 2) -> List[float]:
    """Embed one text with exponential backoff retry."""
    delay = 0.5
    last_exc: Optional[BaseException] = None

    for attempt in range(max_retries + 1):
        try:
            vector = await embeddings.aembed_query(text)
            _check_vector(vector)
            return [float(value) for value in vector]
        except Exception as exc:
            last_exc = exc
            if attempt >= max_retries:
                break
            await asyncio.sleep(delay)
            delay *= 2

    raise RuntimeError(f"Embedding failed after retries: {last_exc}") from last_exc


def _check_vector(vector) -> None:
    if not isinstance(vector, (list, tuple)) or not vector:
        raise ValueError("Embedding backend returned an empty or malformed vector")
    if not all(isinstance(value, numbers.Real) and not isinstance(value, bool) for value in vector):
        raise ValueError("Embedding backend returned non-numeric values")


class EmbeddingService:
    """
    Turns documents into :class:`DocumentEmbedding` objects.

    Documents are embedded in batches with a short pause between batches.
    Results are memoised in memory per document path and, when a library
    key (normally the directory path) is given, persisted through
    :class:`EmbeddingCacheManager`.
    """

    def __init__(
        self,
        embeddings_client=None,
        cache_manager: Optional[EmbeddingCacheManager] = None,
        batch_size: Optional[int] = None,
        max_tokens: Optional[int] = None,
        batch_delay: Optional[float] = None,
        max_retries: Optional[int] = None,
        cache_enabled: bool = True,
        model_name: Optional[str] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.model_name = model_name or settings.embed_model
        self.embeddings_client = embeddings_client or OllamaEmbeddings(
            model=self.model_name,
            base_url=settings.ollama_base_url,
        )
        self.batch_size = batch_size or settings.embed_batch_size
        self.max_tokens = max_tokens or settings.embed_max_tokens
        self.batch_delay = settings.embed_batch_delay if batch_delay is None else batch_delay
        self.max_retries = settings.embed_max_retries if max_retries is None else max_retries
        self.cache_enabled = cache_enabled
        self._cache_manager = cache_manager
        self._settings = settings
        self._memory_cache: Dict[str, DocumentEmbedding] = {}

    @property
    def cache_manager(self) -> EmbeddingCacheManager:
        if self._cache_manager is None:
            self._cache_manager = EmbeddingCacheManager(self._settings.cache_dir)
        return self._cache_manager

    def prepare_text(self, document: Document) -> str:
        """Flatten frontmatter and plain-text body into the string that gets embedded."""
        metadata_text = " ".join(
            f"{key}: {stringify_value(value)}" for key, value in document.frontmatter.items()
        )
        content_text = strip_markdown(document.content)
        combined = " ".join(part for part in (metadata_text, content_text) if part)
        return truncate_text(combined, self.max_tokens * 4)

    async def generate_embeddings(
        self,
        documents: List[Document],
        directory_path: Optional[str] = None,
        refresh: bool = False,
    ) -> List[DocumentEmbedding]:
        """
        Embed documents, reusing the persistent cache for ``directory_path``.

        A cached set for the directory is returned whole, without calling the
        backend, unless ``refresh`` is set. Documents whose embedding fails
        are logged and left out of the result.
        """
        use_persistent = bool(directory_path) and self.cache_enabled
        if use_persistent and not refresh:
            entry = self.cache_manager.load_entry(directory_path)
            if entry is not None and entry.embeddings:
                requested = library_fingerprint([doc.file_path for doc in documents])
                if entry.fingerprint is not None and entry.fingerprint != requested:
                    logger.warning(
                        "Cached embeddings for %s were built from a different document set; "
                        "pass refresh=True to rebuild",
                        directory_path,
                    )
                logger.info("Loaded %d embeddings from persistent cache", len(entry.embeddings))
                return entry.embeddings

        logger.info("Generating embeddings for %d documents using %s", len(documents), self.model_name)
        results: List[DocumentEmbedding] = []
        batches = list(iter_batches(documents, self.batch_size))

        with tqdm(total=len(documents), desc="Embedding documents") as progress:
            for index, batch in enumerate(batches):
                results.extend(await self._process_batch(batch, progress))
                if index < len(batches) - 1 and self.batch_delay > 0:
                    await asyncio.sleep(self.batch_delay)

        if use_persistent and results:
            self.cache_manager.save_embeddings(results, directory_path, self.model_name)

        failed = len(documents) - len(results)
        if failed:
            logger.warning("Embedding failures: %d document(s) skipped", failed)
        logger.info("Generated embeddings for %d documents", len(results))
        return results

    async def _process_batch(self, batch: List[Document], progress: tqdm) -> List[DocumentEmbedding]:
        embeddings: List[DocumentEmbedding] = []
        for doc in batch:
            try:
                cached = self._memory_cache.get(self._cache_key(doc.file_path)) if self.cache_enabled else None
                if cached is not None:
                    embeddings.append(cached)
                    continue

                embedding = await self.embed_document(doc)
                embeddings.append(embedding)
                if self.cache_enabled:
                    self._memory_cache[self._cache_key(doc.file_path)] = embedding
            except EmbeddingError as exc:
                logger.error("%s (%s)", exc, exc.__cause__)
            finally:
                progress.update(1)
        return embeddings

    async def embed_document(self, document: Document) -> DocumentEmbedding:
        """Embed a single document, bypassing all caches."""
        text = self.prepare_text(document)
        try:
            vector = await _embed_query_with_retry(self.embeddings_client, text, self.max_retries)
        except Exception as exc:
            raise EmbeddingError(f"Failed to generate embedding for {document.file_path}.") from exc

        return DocumentEmbedding(
            document_path=document.file_path,
            content=text,
            embedding=vector,
            metadata=dict(document.frontmatter),
        )

    @staticmethod
    def _cache_key(file_path: str) -> str:
        return f"embedding:{file_path}"

    def export_embeddings(self, export_path: Union[str, Path], library_path: Optional[str] = None) -> ExportBundle:
        return self.cache_manager.export_embeddings(export_path, library_path)

    def import_embeddings(self, import_path: Union[str, Path]) -> List[DocumentEmbedding]:
        return self.cache_manager.import_embeddings(import_path)

    def get_persistent_cache_stats(self) -> CacheStatistics:
        return self.cache_manager.get_cache_stats()

    def clear_persistent_cache(self) -> int:
        return self.cache_manager.clear_cache()

    def clear_cache(self) -> None:
        """Drop the in-memory embeddings."""
        self._memory_cache.clear()
        logger.info("In-memory embedding cache cleared")

    def get_cache_stats(self) -> Dict[str, object]:
        return {"size": len(self._memory_cache), "entries": list(self._memory_cache)}

    def __repr__(self) -> str:
        return f"<EmbeddingService model={self.model_name} batch_size={self.batch_size}>"
