"""Errors surfaced by the crawl orchestrator."""

from __future__ import annotations

from typing import Mapping, Optional


class CrawlFailedError(Exception):
    """Raised after every root finished when at least one of them failed.

    Attributes:
        failures: Mapping of root location to the error that aborted it.
    """

    def __init__(self, failures: Mapping[str, Optional[BaseException]]) -> None:
        self.failures = dict(failures)
        details = "; ".join(f"{location}: {error}" for location, error in self.failures.items())
        super().__init__(f"{len(self.failures)} root(s) failed: {details}")
