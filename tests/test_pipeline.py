"""Tests for the end-to-end directory flows (LLM and embeddings mocked)."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from correlate.correlation import CorrelationEngine
from correlate.documents import FileSystemManager
from correlate.pipeline import link_related_documents, process_documents
from correlate.schemas import DocumentEmbedding, SimilarityConfig, TranslationSample
from correlate.similarity import DocumentSimilarityEngine
from correlate.translator import TranslationEngine

BLOG_SCHEMA = """\
name: blog
version: 1.0.0
fields:
  - {name: title, type: string}
  - {name: author, type: string}
  - {name: status, type: string}
  - {name: mood, type: string}
"""

ARTICLE_SCHEMA = """\
name: article
version: 2.0.0
fields:
  - {name: heading, type: string, required: true}
  - {name: writer, type: string}
  - {name: state, type: string}
"""


@pytest.fixture
def dirs(tmp_path):
    source = tmp_path / "source"
    target = tmp_path / "target"
    source.mkdir()
    target.mkdir()
    (source / "schema.yaml").write_text(BLOG_SCHEMA, encoding="utf-8")
    (target / "schema.yaml").write_text(ARTICLE_SCHEMA, encoding="utf-8")
    (source / "post-one.md").write_text(
        "---\ntitle: One\nauthor: Ann\nstatus: draft\n---\nFirst body\n", encoding="utf-8"
    )
    (source / "post-two.md").write_text("---\ntitle: Two\nmood: calm\n---\nSecond body\n", encoding="utf-8")
    return source, target


@pytest.fixture
def correlation_engine(sample_result):
    orchestrator = MagicMock()
    orchestrator.process_correlation = AsyncMock(return_value=sample_result)
    return CorrelationEngine(orchestrator=orchestrator)


APPROVED = [TranslationSample(source_tag='status: "draft"', translated_tag='state: "provisional"')]


@pytest.mark.asyncio
async def test_process_documents(dirs, correlation_engine):
    """Test documents are translated, written and summarised."""
    source, target = dirs

    report = await process_documents(
        source, target, APPROVED, correlation_engine, TranslationEngine(confidence_threshold=0.7)
    )

    assert report.processed_count == 2
    assert report.mappings_used == 2
    assert report.total_fields_mapped == 5
    assert report.failed_files == []
    assert report.invalid_files == []
    assert report.output_path == str(target / "translated-documents")

    manager = FileSystemManager()
    one = manager.read_markdown_file(target / "translated-documents" / "post-one.md")
    two = manager.read_markdown_file(target / "translated-documents" / "post-two.md")
    assert one.frontmatter == {"heading": "One", "writer": "Ann", "state": "provisional"}
    assert one.content == "First body\n"
    assert two.frontmatter == {"heading": "Two", "tags": ["mood:calm"]}


@pytest.mark.asyncio
async def test_failed_document_is_recorded(dirs, correlation_engine):
    """Test one failing document does not stop the run."""
    source, target = dirs
    engine = TranslationEngine(confidence_threshold=0.7)
    original = engine.translate_document

    def flaky(doc, mappings, target_schema=None):
        if doc.file_path.endswith("post-one.md"):
            raise RuntimeError("boom")
        return original(doc, mappings, target_schema)

    engine.translate_document = flaky

    report = await process_documents(source, target, APPROVED, correlation_engine, engine)

    assert report.processed_count == 1
    assert report.failed_files == [str(source / "post-one.md")]
    assert not (target / "translated-documents" / "post-one.md").exists()
    assert (target / "translated-documents" / "post-two.md").exists()


@pytest.mark.asyncio
async def test_invalid_documents(dirs, correlation_engine):
    """Test invalid documents are reported, and skipped only when blocking."""
    source, target = dirs
    passthrough = MagicMock()
    passthrough.translate_document = MagicMock(side_effect=lambda doc, mappings, schema: doc)

    report = await process_documents(
        source, target, APPROVED, correlation_engine, passthrough, output_dirname="loose"
    )
    blocked = await process_documents(
        source, target, APPROVED, correlation_engine, passthrough, output_dirname="strict", block_invalid=True
    )

    assert report.processed_count == 2
    assert len(report.invalid_files) == 2
    assert blocked.processed_count == 0
    assert len(blocked.invalid_files) == 2
    assert list((target / "strict").iterdir()) == []


@pytest.mark.asyncio
async def test_link_related_documents(tmp_path):
    """Test related links are written only to documents with matches."""
    for name, title in (("alpha", "Alpha"), ("alpha-two", "Alpha Two"), ("beta", "Beta")):
        (tmp_path / f"{name}.md").write_text(f"---\ntitle: {title}\n---\nBody\n", encoding="utf-8")

    vectors = {"alpha": [1.0, 0.0], "alpha-two": [0.99, 0.14], "beta": [0.0, 1.0]}
    titles = {"alpha": "Alpha", "alpha-two": "Alpha Two", "beta": "Beta"}
    embeddings = [
        DocumentEmbedding(
            document_path=str(tmp_path / f"{name}.md"),
            content="",
            embedding=vector,
            metadata={"title": titles[name]},
        )
        for name, vector in vectors.items()
    ]
    service = MagicMock()
    service.generate_embeddings = AsyncMock(return_value=embeddings)
    similarity = DocumentSimilarityEngine(SimilarityConfig(threshold=0.5, include_metadata_similarity=False))

    related = await link_related_documents(tmp_path, service, similarity)

    assert [r.title for r in related[str(tmp_path / "alpha.md")]] == ["Alpha Two"]
    assert related[str(tmp_path / "beta.md")] == []
    assert service.generate_embeddings.await_args.args[1] == str(tmp_path)

    manager = FileSystemManager()
    alpha = manager.read_markdown_file(tmp_path / "alpha.md")
    beta = manager.read_markdown_file(tmp_path / "beta.md")
    assert alpha.frontmatter["Related"] == ["[[alpha-two|Alpha Two]]"]
    assert alpha.content == "Body\n"
    assert "Related" not in beta.frontmatter


@pytest.mark.asyncio
async def test_link_related_documents_dry_run(tmp_path):
    """Test write=False leaves files untouched."""
    (tmp_path / "a.md").write_text("---\ntitle: A\n---\n", encoding="utf-8")
    (tmp_path / "b.md").write_text("---\ntitle: B\n---\n", encoding="utf-8")
    service = MagicMock()
    service.generate_embeddings = AsyncMock(
        return_value=[
            DocumentEmbedding(document_path=str(tmp_path / "a.md"), content="", embedding=[1.0, 0.0]),
            DocumentEmbedding(document_path=str(tmp_path / "b.md"), content="", embedding=[1.0, 0.0]),
        ]
    )

    related = await link_related_documents(
        tmp_path, service, DocumentSimilarityEngine(SimilarityConfig(include_metadata_similarity=False)), write=False
    )

    assert len(related[str(tmp_path / "a.md")]) == 1
    assert (tmp_path / "a.md").read_text(encoding="utf-8") == "---\ntitle: A\n---\n"


@pytest.mark.asyncio
async def test_nested_documents_keep_their_relative_paths(dirs, correlation_engine):
    """Test same-named documents in different folders are written separately."""
    source, target = dirs
    for folder, title in (("one", "First"), ("two", "Second")):
        (source / folder).mkdir()
        (source / folder / "note.md").write_text(f"---\ntitle: {title}\n---\n", encoding="utf-8")

    report = await process_documents(
        source, target, APPROVED, correlation_engine, TranslationEngine(confidence_threshold=0.7)
    )

    output = target / "translated-documents"
    manager = FileSystemManager()
    assert report.processed_count == 4
    assert manager.read_markdown_file(output / "one" / "note.md").frontmatter["heading"] == "First"
    assert manager.read_markdown_file(output / "two" / "note.md").frontmatter["heading"] == "Second"
    assert (output / "post-one.md").exists()


@pytest.mark.asyncio
async def test_link_related_skips_off_dimension_embeddings(tmp_path):
    """Test a stale embedding of another dimension does not stop linking."""
    for name in ("a", "b", "stale"):
        (tmp_path / f"{name}.md").write_text(f"---\ntitle: {name}\n---\n", encoding="utf-8")
    service = MagicMock()
    service.generate_embeddings = AsyncMock(
        return_value=[
            DocumentEmbedding(document_path=str(tmp_path / "a.md"), content="", embedding=[1.0, 0.0]),
            DocumentEmbedding(document_path=str(tmp_path / "stale.md"), content="", embedding=[1.0, 0.0, 0.0]),
            DocumentEmbedding(document_path=str(tmp_path / "b.md"), content="", embedding=[1.0, 0.1]),
        ]
    )

    related = await link_related_documents(
        tmp_path, service, DocumentSimilarityEngine(SimilarityConfig(include_metadata_similarity=False))
    )

    assert set(related) == {str(tmp_path / "a.md"), str(tmp_path / "b.md")}
    assert [r.title for r in related[str(tmp_path / "a.md")]] == ["b"]
    assert "Related" not in FileSystemManager().read_markdown_file(tmp_path / "stale.md").frontmatter
