"""Persistent on-disk cache of document embeddings, one file per library."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from .config import get_settings
from .errors import CorrelateError
from .schemas import (
    CacheEntrySummary,
    CacheStatistics,
    DocumentEmbedding,
    EmbeddingCacheEntry,
    ExportBundle,
)
from .utils import sha1_text

logger = logging.getLogger(__name__)

EXPORT_FORMAT_VERSION = "1.0.0"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def library_fingerprint(document_paths: List[str]) -> str:
    """Identity of a document set, independent of order."""
    return sha1_text("\n".join(sorted(document_paths)))


class EmbeddingCacheManager:
    """
    Stores embeddings per library key as JSON files under ``cache_dir``.

    The file name is the SHA-1 of the library key, so any string (usually a
    directory path) can be used as a key.
    """

    def __init__(self, cache_dir: Optional[Union[str, Path]] = None):
        self.cache_dir = Path(cache_dir) if cache_dir is not None else get_settings().cache_dir
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _cache_file(self, library_path: str) -> Path:
        return self.cache_dir / f"{sha1_text(library_path)}.json"

    def _cache_files(self) -> List[Path]:
        return sorted(self.cache_dir.glob("*.json"))

    def _read_entry(self, path: Path) -> EmbeddingCacheEntry:
        with open(path, "r", encoding="utf-8") as f:
            return EmbeddingCacheEntry.model_validate_json(f.read())

    def save_embeddings(
        self,
        embeddings: List[DocumentEmbedding],
        library_path: str,
        model_used: str = "unknown",
    ) -> EmbeddingCacheEntry:
        entry = EmbeddingCacheEntry(
            library_path=library_path,
            embeddings=embeddings,
            timestamp=_now_iso(),
            model_used=model_used,
            document_count=len(embeddings),
            total_tokens=sum(len(item.content) for item in embeddings),
            fingerprint=library_fingerprint([item.document_path for item in embeddings]),
        )
        path = self._cache_file(library_path)
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(entry.model_dump_json(indent=2))
        except OSError as exc:
            logger.error("Failed to save embeddings cache for %s: %s", library_path, exc)
            raise CorrelateError(f"Failed to save embeddings cache: {exc}") from exc

        logger.info("Saved %d embeddings to cache for %s", len(embeddings), library_path)
        return entry

    def load_entry(self, library_path: str) -> Optional[EmbeddingCacheEntry]:
        """Full cache record for a library, or None if missing or unreadable."""
        path = self._cache_file(library_path)
        if not path.exists():
            return None
        try:
            return self._read_entry(path)
        except (OSError, ValueError) as exc:
            logger.error("Failed to load embeddings cache for %s: %s", library_path, exc)
            return None

    def load_embeddings(self, library_path: str) -> Optional[List[DocumentEmbedding]]:
        entry = self.load_entry(library_path)
        if entry is None:
            return None
        logger.info("Loaded %d embeddings from cache for %s", len(entry.embeddings), library_path)
        return entry.embeddings

    def get_cache_stats(self) -> CacheStatistics:
        summaries: List[CacheEntrySummary] = []
        total_embeddings = 0
        total_size = 0

        for path in self._cache_files():
            try:
                entry = self._read_entry(path)
            except (OSError, ValueError) as exc:
                logger.warning("Skipping unreadable cache file %s: %s", path.name, exc)
                continue
            size = path.stat().st_size
            total_embeddings += len(entry.embeddings)
            total_size += size
            summaries.append(
                CacheEntrySummary(
                    library_path=entry.library_path,
                    timestamp=entry.timestamp,
                    embedding_count=len(entry.embeddings),
                    size_bytes=size,
                )
            )

        timestamps = [summary.timestamp for summary in summaries]
        return CacheStatistics(
            total_caches=len(summaries),
            total_embeddings=total_embeddings,
            total_storage_size=total_size,
            oldest_cache=min(timestamps) if timestamps else None,
            newest_cache=max(timestamps) if timestamps else None,
            cache_entries=sorted(summaries, key=lambda s: s.timestamp, reverse=True),
        )

    def export_embeddings(self, export_path: Union[str, Path], library_path: Optional[str] = None) -> ExportBundle:
        """Write one library, or every cached library, to a shareable bundle file."""
        if library_path is not None:
            entry = self.load_entry(library_path)
            if entry is None:
                raise CorrelateError(f"No embeddings found for library: {library_path}")
            libraries = [entry]
        else:
            libraries = []
            for path in self._cache_files():
                try:
                    libraries.append(self._read_entry(path))
                except (OSError, ValueError) as exc:
                    logger.warning("Skipping unreadable cache file %s: %s", path.name, exc)

        bundle = ExportBundle(
            exported_at=_now_iso(),
            correlate_version=EXPORT_FORMAT_VERSION,
            total_libraries=len(libraries),
            total_embeddings=sum(len(entry.embeddings) for entry in libraries),
            libraries=libraries,
        )
        export_path = Path(export_path)
        export_path.parent.mkdir(parents=True, exist_ok=True)
        with open(export_path, "w", encoding="utf-8") as f:
            f.write(bundle.model_dump_json(indent=2))

        logger.info(
            "Exported %d embeddings from %d libraries to %s",
            bundle.total_embeddings,
            bundle.total_libraries,
            export_path,
        )
        return bundle

    def import_embeddings(self, import_path: Union[str, Path]) -> List[DocumentEmbedding]:
        """Load a bundle into the cache and return all embeddings it held."""
        import_path = Path(import_path)
        if not import_path.exists():
            raise CorrelateError(f"Import file not found: {import_path}")

        try:
            with open(import_path, "r", encoding="utf-8") as f:
                bundle = ExportBundle.model_validate(json.load(f))
        except (json.JSONDecodeError, PydanticValidationError) as exc:
            logger.error("Invalid import file %s: %s", import_path, exc)
            raise CorrelateError(f"Invalid import file format: {import_path}") from exc

        embeddings: List[DocumentEmbedding] = []
        for entry in bundle.libraries:
            self.save_embeddings(entry.embeddings, entry.library_path, f"imported-{entry.model_used}")
            embeddings.extend(entry.embeddings)

        logger.info("Imported %d embeddings from %d libraries", len(embeddings), len(bundle.libraries))
        return embeddings

    def clear_cache(self) -> int:
        """Delete every cache file. Returns how many were removed."""
        removed = 0
        for path in self._cache_files():
            path.unlink()
            removed += 1
        logger.info("Cleared %d embedding cache file(s)", removed)
        return removed

    def remove_cache_for_library(self, library_path: str) -> bool:
        path = self._cache_file(library_path)
        if not path.exists():
            return False
        path.unlink()
        logger.info("Removed embeddings cache for %s", library_path)
        return True
