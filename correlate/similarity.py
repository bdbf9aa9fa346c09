"""Find related documents by embedding and metadata similarity."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Dict, List, Optional

import faiss
import numpy as np

from .schemas import Document, DocumentEmbedding, RelatedDocument, SimilarityConfig, WikiLink
from .utils import strip_extension

logger = logging.getLogger(__name__)

TITLE_FIELDS = ("title", "name", "heading", "subject")


def metadata_similarity(metadata_a: Dict[str, Any], metadata_b: Dict[str, Any]) -> float:
    """
    Mean of key-set Jaccard similarity and the share of common keys whose
    values match.
    """
    keys_a = set(metadata_a)
    keys_b = set(metadata_b)
    union = keys_a | keys_b
    if not union:
        return 0.0

    common = keys_a & keys_b
    field_similarity = len(common) / len(union)
    if not common:
        return field_similarity / 2

    matching = sum(1 for key in common if values_match(metadata_a[key], metadata_b[key]))
    return (field_similarity + matching / len(common)) / 2


def values_match(value_a: Any, value_b: Any) -> bool:
    if value_a == value_b:
        return True
    if isinstance(value_a, str) and isinstance(value_b, str):
        return value_a.lower() == value_b.lower()
    if isinstance(value_a, list) and isinstance(value_b, list):
        set_a = {str(item).lower() for item in value_a}
        set_b = {str(item).lower() for item in value_b}
        return bool(set_a & set_b)
    return False


def similarity_reason(similarity: float) -> str:
    if similarity >= 0.8:
        return "Very similar content and metadata"
    if similarity >= 0.6:
        return "Similar topics and structure"
    if similarity >= 0.4:
        return "Related themes or concepts"
    return "Some shared elements"


def document_title(file_path: str, frontmatter: Dict[str, Any]) -> str:
    for field in TITLE_FIELDS:
        value = frontmatter.get(field)
        if isinstance(value, str) and value:
            return value
    return strip_extension(file_path)


def _normalized(vectors: List[List[float]]) -> np.ndarray:
    array = np.array(vectors, dtype="float32")
    # Zero-norm rows are left as zeros and score 0 against everything
    faiss.normalize_L2(array)
    return array


class DocumentSimilarityEngine:
    """
    In-memory similarity index over document embeddings.

    Content similarity is cosine similarity, computed as the inner product of
    L2-normalised vectors in a FAISS ``IndexFlatIP``. The index is replaced
    on every :meth:`index_documents` call.
    """

    def __init__(self, config: Optional[SimilarityConfig] = None):
        self.config = config or SimilarityConfig()
        self._documents: Dict[str, DocumentEmbedding] = {}
        self._paths: List[str] = []
        self._index: Optional[faiss.Index] = None

    @property
    def dimension(self) -> Optional[int]:
        return self._index.d if self._index is not None else None

    def index_documents(self, embeddings: List[DocumentEmbedding]) -> None:
        """
        Replace the index with ``embeddings``.

        When dimensions are mixed, the most common one wins and the other
        embeddings are skipped with a warning.
        """
        latest: Dict[str, DocumentEmbedding] = {}
        for embedding in embeddings:
            latest[embedding.document_path] = embedding

        counts = Counter(len(item.embedding) for item in latest.values())
        dim = counts.most_common(1)[0][0] if counts else 0

        documents: Dict[str, DocumentEmbedding] = {}
        for path, embedding in latest.items():
            if len(embedding.embedding) != dim or dim == 0:
                logger.warning(
                    "Skipping %s: embedding dimension %d does not match %d",
                    path,
                    len(embedding.embedding),
                    dim,
                )
                continue
            documents[path] = embedding

        self._documents = documents
        self._paths = list(documents)
        self._index = None
        if documents:
            index = faiss.IndexFlatIP(dim)
            index.add(_normalized([documents[path].embedding for path in self._paths]))
            self._index = index

        logger.info("Indexed %d documents", len(self._paths))

    async def find_related_documents(
        self,
        query_document: Document,
        query_embedding: DocumentEmbedding,
    ) -> List[RelatedDocument]:
        if self._index is None or self._index.ntotal == 0:
            return []
        if len(query_embedding.embedding) != self._index.d:
            raise ValueError(
                "Vectors must have the same length for cosine similarity "
                f"(query {len(query_embedding.embedding)}, index {self._index.d})"
            )

        query = _normalized([query_embedding.embedding])
        scores, ids = self._index.search(query, self._index.ntotal)

        config = self.config
        candidates: List[RelatedDocument] = []
        for score, idx in zip(scores[0], ids[0]):
            if idx < 0:
                continue
            path = self._paths[idx]
            if path == query_document.file_path:
                continue

            candidate = self._documents[path]
            similarity = float(score)
            if config.include_metadata_similarity:
                meta = metadata_similarity(query_embedding.metadata, candidate.metadata)
                similarity = similarity * (1 - config.metadata_weight) + meta * config.metadata_weight

            if similarity < config.threshold:
                continue
            candidates.append(
                RelatedDocument(
                    file_path=path,
                    title=document_title(path, candidate.metadata),
                    similarity=similarity,
                    reason=similarity_reason(similarity),
                )
            )

        candidates.sort(key=lambda item: item.similarity, reverse=True)
        related = candidates[: config.max_results]
        logger.debug(
            "Found %d related documents for %s (threshold %.2f)",
            len(related),
            query_document.file_path,
            config.threshold,
        )
        return related

    def generate_wiki_links(self, related_docs: List[RelatedDocument]) -> List[WikiLink]:
        return [WikiLink(text=doc.title, target=strip_extension(doc.file_path)) for doc in related_docs]

    def add_related_links_to_document(self, document: Document, related_docs: List[RelatedDocument]) -> Document:
        """Return a copy of ``document`` with ``[[target|title]]`` links merged into ``Related``."""
        links = [f"[[{link.target}|{link.text}]]" for link in self.generate_wiki_links(related_docs)]
        frontmatter = dict(document.frontmatter)

        existing_links: List[Any] = []
        for key in ("Related", "related"):
            existing = frontmatter.pop(key, None)
            if existing:
                existing_links.extend(existing if isinstance(existing, list) else [existing])
        frontmatter["Related"] = existing_links + links

        return document.model_copy(update={"frontmatter": frontmatter})

    def update_config(self, **changes: Any) -> SimilarityConfig:
        unknown = set(changes) - set(SimilarityConfig.model_fields)
        if unknown:
            raise ValueError(f"Unknown similarity setting(s): {', '.join(sorted(unknown))}")
        self.config = SimilarityConfig.model_validate({**self.config.model_dump(), **changes})
        logger.info("Updated similarity configuration: %s", self.config)
        return self.config

    def get_config(self) -> SimilarityConfig:
        return self.config.model_copy()

    def get_index_stats(self) -> Dict[str, Any]:
        return {
            "total_documents": len(self._paths),
            "document_paths": list(self._paths),
            "dimension": self.dimension,
        }

    def clear(self) -> None:
        self._documents = {}
        self._paths = []
        self._index = None
