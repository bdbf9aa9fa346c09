#!/usr/bin/env python3
"""Example: Correlate two schemas and translate a directory of documents."""

import asyncio
import os
import sys

from correlate import (
    CorrelationEngine,
    FileSystemManager,
    TranslationSampleGenerator,
    get_settings,
    process_documents,
    setup_logging,
)


async def run(source_dir: str, target_dir: str) -> None:
    file_manager = FileSystemManager()
    source_schema, target_schema = file_manager.get_schemas_from_directories(source_dir, target_dir)

    print(f"Source schema: {source_schema.key} ({len(source_schema.fields)} fields)")
    print(f"Target schema: {target_schema.key} ({len(target_schema.fields)} fields)")
    print()

    engine = CorrelationEngine()
    correlation = await engine.generate_correlation(source_schema, target_schema)

    print("Proposed mappings:")
    for mapping in correlation.mappings:
        print(f"  - {mapping.describe()}")
    if correlation.unmapped_source_fields:
        names = ", ".join(field.name for field in correlation.unmapped_source_fields)
        print(f"  Unmapped source fields: {names}")
    print()

    samples = TranslationSampleGenerator().convert_correlation_to_samples(
        correlation, source_schema, target_schema
    )
    print("Samples for review:")
    for sample in samples:
        print(f"  [{sample.confidence:.2f}] {sample.source_tag}  =>  {sample.translated_tag}")
    print()

    # Approve every mapped sample; fallback-tag samples are left to the defaults
    approved = [sample for sample in samples if sample.confidence > 0]

    report = await process_documents(
        source_dir,
        target_dir,
        approved,
        engine,
        file_manager=file_manager,
    )

    print("=" * 60)
    print("Processing completed")
    print("=" * 60)
    print(f"Processed:       {report.processed_count}")
    print(f"Fields mapped:   {report.total_fields_mapped}")
    print(f"Avg fields/doc:  {report.avg_fields_per_doc}")
    print(f"Mappings used:   {report.mappings_used}")
    print(f"Failed files:    {len(report.failed_files)}")
    print(f"Invalid files:   {len(report.invalid_files)}")
    print(f"Output:          {report.output_path}")


def main():
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)

    source_dir = os.getenv("SOURCE_DIR", "./source")
    target_dir = os.getenv("TARGET_DIR", "./target")

    for label, path in (("Source", source_dir), ("Target", target_dir)):
        if not os.path.isdir(path):
            print(f"Error: {label} directory not found: {path}")
            print("Set SOURCE_DIR and TARGET_DIR environment variables")
            sys.exit(1)

    print("=" * 60)
    print("Correlate - schema translation")
    print("=" * 60)
    print(f"Source directory: {source_dir}")
    print(f"Target directory: {target_dir}")
    print(f"Ollama model:     {settings.ollama_model}")
    print(f"Gemini fallback:  {'yes' if settings.gemini_api_key else 'no'}")
    print("=" * 60)
    print()

    try:
        asyncio.run(run(source_dir, target_dir))
    except Exception as e:
        print(f"\nError during translation: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
