"""Tests for the correlation engine: caching and refinement."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from correlate.correlation import CorrelationCache, CorrelationEngine, correlation_key
from correlate.errors import CorrelationError, NoFallbackConfiguredError
from correlate.schemas import CorrelationResult, FeedbackType, UserFeedback

from conftest import make_mapping


def _engine(result=None, error=None):
    orchestrator = MagicMock()
    orchestrator.process_correlation = AsyncMock(return_value=result, side_effect=error)
    return CorrelationEngine(orchestrator=orchestrator), orchestrator


@pytest.mark.asyncio
async def test_generate_correlation_is_cached(blog_schema, article_schema, sample_result):
    """Test an identical schema pair hits the orchestrator once."""
    engine, orchestrator = _engine(result=sample_result)

    first = await engine.generate_correlation(blog_schema, article_schema)
    second = await engine.generate_correlation(blog_schema, article_schema)

    assert first is second is sample_result
    orchestrator.process_correlation.assert_awaited_once()
    assert engine.cache_size == 1


@pytest.mark.asyncio
async def test_new_version_misses_cache(blog_schema, article_schema, sample_result):
    """Test a changed name or version triggers a fresh correlation."""
    engine, orchestrator = _engine(result=sample_result)

    await engine.generate_correlation(blog_schema, article_schema)
    await engine.generate_correlation(blog_schema.model_copy(update={"version": "1.0.1"}), article_schema)
    await engine.generate_correlation(blog_schema, article_schema.model_copy(update={"name": "news"}))

    assert orchestrator.process_correlation.await_count == 3


@pytest.mark.asyncio
async def test_failure_is_wrapped_and_not_cached(blog_schema, article_schema):
    """Test orchestrator failures raise a generic error and leave the cache empty."""
    engine, orchestrator = _engine(error=NoFallbackConfiguredError("details"))

    with pytest.raises(CorrelationError, match="^Failed to generate correlation.$"):
        await engine.generate_correlation(blog_schema, article_schema)

    assert engine.cache_size == 0
    assert correlation_key(blog_schema, article_schema) not in engine.cache


@pytest.mark.asyncio
async def test_failure_keeps_previous_entries(blog_schema, article_schema, sample_result):
    """Test a failed correlation does not disturb cached results."""
    engine, orchestrator = _engine(result=sample_result)
    await engine.generate_correlation(blog_schema, article_schema)

    orchestrator.process_correlation.side_effect = CorrelationError("down")
    with pytest.raises(CorrelationError):
        await engine.generate_correlation(article_schema, blog_schema)

    assert await engine.generate_correlation(blog_schema, article_schema) is sample_result


@pytest.mark.asyncio
async def test_clear_cache(blog_schema, article_schema, sample_result):
    """Test clearing the cache forces a new orchestrator call."""
    engine, orchestrator = _engine(result=sample_result)
    await engine.generate_correlation(blog_schema, article_schema)

    engine.clear_cache()
    await engine.generate_correlation(blog_schema, article_schema)

    assert engine.cache_size == 1
    assert orchestrator.process_correlation.await_count == 2


def test_cache_key_format(blog_schema, article_schema):
    """Test the cache key combines both schema identities."""
    assert correlation_key(blog_schema, article_schema) == "blog@1.0.0|article@2.0.0"


def test_bounded_cache_evicts_least_recently_used():
    """Test a bounded cache drops the least recently used entry."""
    cache = CorrelationCache(max_entries=2)
    cache.put("a", CorrelationResult())
    cache.put("b", CorrelationResult())
    cache.get("a")
    cache.put("c", CorrelationResult())

    assert "a" in cache
    assert "b" not in cache
    assert "c" in cache
    assert len(cache) == 2

    with pytest.raises(ValueError):
        CorrelationCache(max_entries=0)


def test_refine_approve_sets_full_confidence():
    """Test APPROVE overwrites confidence with 1.0 and leaves others alone."""
    mappings = [make_mapping("title", "heading", 0.8), make_mapping("author", "writer", 0.7)]
    feedback = [UserFeedback(original_mapping=mappings[0], type=FeedbackType.APPROVE)]

    refined = CorrelationEngine(orchestrator=MagicMock()).refine_correlation(mappings, feedback)

    assert refined[0].confidence == 1.0
    assert refined[1].confidence == 0.7
    assert mappings[0].confidence == 0.8


def test_refine_reject_removes_mapping():
    """Test REJECT removes the mapping from the list."""
    mappings = [make_mapping("title", "heading", 0.8), make_mapping("author", "writer", 0.7)]
    feedback = [UserFeedback(original_mapping=mappings[1], type=FeedbackType.REJECT)]

    refined = CorrelationEngine(orchestrator=MagicMock()).refine_correlation(mappings, feedback)

    assert len(refined) == 1
    assert refined[0].source_field.name == "title"
    assert len(mappings) == 2


def test_refine_edit_replaces_mapping_in_place():
    """Test EDIT swaps in the correction at confidence 1.0."""
    mappings = [make_mapping("title", "heading", 0.8), make_mapping("author", "writer", 0.4)]
    correction = make_mapping("author", "creator", 0.3)
    feedback = [UserFeedback(original_mapping=mappings[1], type=FeedbackType.EDIT, corrected_mapping=correction)]

    refined = CorrelationEngine(orchestrator=MagicMock()).refine_correlation(mappings, feedback)

    assert [m.target_field.name for m in refined] == ["heading", "creator"]
    assert refined[1].confidence == 1.0
    assert correction.confidence == 0.3


def test_refine_ignores_feedback_for_settled_or_missing_fields():
    """Test feedback after a rejection, or for unknown fields, is skipped."""
    mappings = [make_mapping("title", "heading", 0.8), make_mapping("author", "writer", 0.7)]
    feedback = [
        UserFeedback(original_mapping=mappings[0], type=FeedbackType.REJECT),
        UserFeedback(original_mapping=mappings[0], type=FeedbackType.APPROVE),
        UserFeedback(original_mapping=make_mapping("ghost", "heading", 0.5), type=FeedbackType.REJECT),
    ]

    refined = CorrelationEngine(orchestrator=MagicMock()).refine_correlation(mappings, feedback)

    assert [m.source_field.name for m in refined] == ["author"]
    assert refined[0].confidence == 0.7
