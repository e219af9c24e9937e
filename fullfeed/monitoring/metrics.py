"""
Scraper Metrics
===============

In-process collector for page fetch observations. Each observation carries a
status label (``success`` / ``error``) and the request duration; the collector
keeps per-status counts, totals and a latency histogram.
"""

import threading
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Protocol, Tuple, Union

from ..database.models import FetchStatus
from ..utils.logging import get_logger_for_component


# Upper bounds in seconds; observations above the last bucket land in "+Inf"
DEFAULT_BUCKETS: Tuple[float, ...] = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


class MetricsObserver(Protocol):
    """Anything able to record a scraper request."""

    def observe_scraper_request(self, status: str, duration_seconds: float) -> None:
        ...


@dataclass
class StatusSummary:
    """Aggregated observations for one status label."""
    count: int = 0
    total_seconds: float = 0.0
    max_seconds: float = 0.0
    buckets: Dict[str, int] = field(default_factory=dict)

    @property
    def average_seconds(self) -> float:
        if self.count == 0:
            return 0.0
        return self.total_seconds / self.count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "total_seconds": round(self.total_seconds, 6),
            "average_seconds": round(self.average_seconds, 6),
            "max_seconds": round(self.max_seconds, 6),
            "buckets": dict(self.buckets),
        }


class ScraperMetrics:
    """Thread-safe scraper request histogram."""

    def __init__(self, buckets: Tuple[float, ...] = DEFAULT_BUCKETS):
        self.bucket_bounds = tuple(sorted(buckets))
        self.lock = threading.Lock()
        self._summaries: Dict[str, StatusSummary] = {}
        self.logger = get_logger_for_component("metrics")

    def observe_scraper_request(self, status: Union[str, FetchStatus], duration_seconds: float) -> None:
        """Record one scraper request.

        Args:
            status: Outcome label
            duration_seconds: Time spent fetching the page
        """
        label = status.value if isinstance(status, FetchStatus) else str(status)
        duration = max(float(duration_seconds), 0.0)

        with self.lock:
            summary = self._summaries.get(label)
            if summary is None:
                summary = StatusSummary(buckets={self._bucket_label(b): 0 for b in self.bucket_bounds})
                summary.buckets["+Inf"] = 0
                self._summaries[label] = summary

            summary.count += 1
            summary.total_seconds += duration
            summary.max_seconds = max(summary.max_seconds, duration)
            summary.buckets[self._bucket_for(duration)] += 1

        self.logger.debug(f"Observed scraper request status={label} duration={duration:.3f}s")

    def summary(self, status: Union[str, FetchStatus]) -> StatusSummary:
        """Copy of the aggregated observations for a status."""
        label = status.value if isinstance(status, FetchStatus) else str(status)
        with self.lock:
            current = self._summaries.get(label)
            if current is None:
                return StatusSummary()
            return StatusSummary(
                count=current.count,
                total_seconds=current.total_seconds,
                max_seconds=current.max_seconds,
                buckets=dict(current.buckets),
            )

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """All observations, keyed by status label."""
        with self.lock:
            return {label: summary.to_dict() for label, summary in self._summaries.items()}

    def reset(self) -> None:
        with self.lock:
            self._summaries.clear()

    def _bucket_for(self, duration: float) -> str:
        for bound in self.bucket_bounds:
            if duration <= bound:
                return self._bucket_label(bound)
        return "+Inf"

    @staticmethod
    def _bucket_label(bound: float) -> str:
        return f"{bound:g}"


_scraper_metrics: Optional[ScraperMetrics] = None


def get_scraper_metrics() -> ScraperMetrics:
    """Process-wide collector."""
    global _scraper_metrics
    if _scraper_metrics is None:
        _scraper_metrics = ScraperMetrics()
    return _scraper_metrics
