"""
Metrics Module
==============

Collects scraper request observations for the enrichment pipeline.
"""

from .metrics import MetricsObserver, ScraperMetrics, StatusSummary, get_scraper_metrics

__all__ = ['MetricsObserver', 'ScraperMetrics', 'StatusSummary', 'get_scraper_metrics']
