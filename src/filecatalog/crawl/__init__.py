"""Orchestration of crawl sessions across roots."""

from .errors import CrawlFailedError
from .service import CrawlReport, CrawlService, RootOutcome, RootRequest

__all__ = ["CrawlFailedError", "CrawlReport", "CrawlService", "RootOutcome", "RootRequest"]
