"""Tests for the metrics collector."""

import pytest

from journal_rag.config.settings import Settings
from journal_rag.rag.metrics import MetricsCollector


def test_embedding_metrics(test_settings: Settings):
    metrics = MetricsCollector(test_settings)
    metrics.record_embedding(10.0, success=True)
    metrics.record_embedding(30.0, success=True)
    metrics.record_embedding(20.0, success=False)

    snapshot = metrics.get_snapshot().embeddings

    assert snapshot.total_generated == 2
    assert snapshot.total_failed == 1
    assert snapshot.success_rate == pytest.approx(2 / 3)
    assert snapshot.duration.avg_ms == pytest.approx(20.0)
    assert snapshot.duration.min_ms == 10.0
    assert snapshot.duration.max_ms == 30.0
    assert snapshot.estimated_cost_usd == pytest.approx(3 * test_settings.EMBEDDING_COST_PER_CALL)


def test_search_and_cache_metrics(test_settings: Settings):
    metrics = MetricsCollector(test_settings)
    metrics.record_search(5.0, 4)
    metrics.record_search(15.0, 0)
    metrics.record_cache_miss()
    metrics.record_cache_hit()
    metrics.record_cache_hit()
    metrics.record_cache_hit()

    search = metrics.get_snapshot().search

    assert search.total_searches == 2
    assert search.avg_results_per_search == 2.0
    assert search.cache_hit_rate == 0.75


def test_quota_metrics(test_settings: Settings):
    metrics = MetricsCollector(test_settings)
    metrics.record_quota_check("chat", True)
    metrics.record_quota_check("chat", False)

    quota = metrics.get_snapshot().quota

    assert quota.checks == {"chat": 2}
    assert quota.denials == {"chat": 1}


def test_empty_snapshot(test_settings: Settings):
    snapshot = MetricsCollector(test_settings).get_snapshot()

    assert snapshot.embeddings.success_rate == 0.0
    assert snapshot.search.cache_hit_rate == 0.0


def test_reset(test_settings: Settings):
    metrics = MetricsCollector(test_settings)
    metrics.record_embedding(1.0, success=True)

    metrics.reset()

    assert metrics.get_snapshot().embeddings.total_generated == 0


async def test_start_stop(test_settings: Settings):
    metrics = MetricsCollector(test_settings)
    await metrics.start()
    await metrics.stop()
