#!/usr/bin/env python3
"""Example: Add related-document links to a markdown library."""

import asyncio
import os
import sys

from correlate import (
    DocumentSimilarityEngine,
    EmbeddingService,
    SimilarityConfig,
    get_settings,
    link_related_documents,
    setup_logging,
)


def main():
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)

    library_dir = os.getenv("LIBRARY_DIR", "./docs")
    write = os.getenv("WRITE_LINKS", "0") == "1"
    refresh = os.getenv("REFRESH", "0") == "1"

    if not os.path.isdir(library_dir):
        print(f"Error: Library directory not found: {library_dir}")
        print("Set LIBRARY_DIR environment variable or create ./docs directory")
        sys.exit(1)

    print("=" * 60)
    print("Correlate - related documents")
    print("=" * 60)
    print(f"Library:         {library_dir}")
    print(f"Embedding model: {settings.embed_model}")
    print(f"Cache dir:       {settings.cache_dir}")
    print(f"Write links:     {write}")
    print("=" * 60)
    print()

    service = EmbeddingService(settings=settings)
    engine = DocumentSimilarityEngine(
        SimilarityConfig(
            threshold=settings.similarity_threshold,
            max_results=settings.similarity_max_results,
            metadata_weight=settings.metadata_weight,
        )
    )

    try:
        related = asyncio.run(link_related_documents(library_dir, service, engine, write=write, refresh=refresh))
    except Exception as e:
        print(f"\nError while linking documents: {e}", file=sys.stderr)
        sys.exit(1)

    for path, items in related.items():
        print(path)
        if not items:
            print("    (no related documents)")
        for item in items:
            print(f"    {item.similarity:.3f}  {item.title}  ({item.reason})")
        print()

    stats = service.get_persistent_cache_stats()
    print(f"Cached libraries: {stats.total_caches}, embeddings: {stats.total_embeddings}")


if __name__ == "__main__":
    main()
