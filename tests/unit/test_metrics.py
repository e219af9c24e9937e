"""
Tests for Scraper Metrics
=========================
"""

import threading

import pytest

from fullfeed.database.models import FetchStatus
from fullfeed.monitoring.metrics import ScraperMetrics, get_scraper_metrics


class TestScraperMetrics:
    """Test suite for ScraperMetrics."""

    @pytest.fixture
    def metrics(self):
        return ScraperMetrics(buckets=(0.1, 1.0))

    def test_counts_per_status(self, metrics):
        metrics.observe_scraper_request("success", 0.05)
        metrics.observe_scraper_request("success", 0.5)
        metrics.observe_scraper_request(FetchStatus.ERROR, 2.0)

        success = metrics.summary("success")
        error = metrics.summary(FetchStatus.ERROR)

        assert success.count == 2
        assert success.total_seconds == pytest.approx(0.55)
        assert success.average_seconds == pytest.approx(0.275)
        assert success.max_seconds == pytest.approx(0.5)
        assert error.count == 1

    def test_histogram_buckets(self, metrics):
        metrics.observe_scraper_request("success", 0.1)
        metrics.observe_scraper_request("success", 0.7)
        metrics.observe_scraper_request("success", 5.0)

        assert metrics.summary("success").buckets == {"0.1": 1, "1": 1, "+Inf": 1}

    def test_unknown_status_summary_is_empty(self, metrics):
        summary = metrics.summary("success")
        assert summary.count == 0
        assert summary.average_seconds == 0.0

    def test_snapshot_and_reset(self, metrics):
        metrics.observe_scraper_request("error", 0.2)

        snapshot = metrics.snapshot()
        assert set(snapshot) == {"error"}
        assert snapshot["error"]["count"] == 1

        metrics.reset()
        assert metrics.snapshot() == {}

    def test_negative_duration_clamped(self, metrics):
        metrics.observe_scraper_request("success", -1)
        assert metrics.summary("success").total_seconds == 0.0

    def test_concurrent_observations(self, metrics):
        def observe():
            for _ in range(200):
                metrics.observe_scraper_request("success", 0.01)

        threads = [threading.Thread(target=observe) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert metrics.summary("success").count == 1000

    def test_global_collector_is_shared(self):
        assert get_scraper_metrics() is get_scraper_metrics()
