"""Concurrent crawl of several roots, one transaction per root."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence, Tuple, Union

from filecatalog.config.models import CatalogConfig
from filecatalog.events import CrawlObserver, LoggingObserver
from filecatalog.ingestion.models import SessionResult
from filecatalog.sources import SourceResolver, resolve_source
from filecatalog.store import CatalogStore

from .errors import CrawlFailedError


@dataclass(frozen=True, slots=True)
class RootRequest:
    """A requested crawl location and its optional identifier override."""

    location: str
    identifier: Optional[str] = None


@dataclass(slots=True)
class RootOutcome:
    """Result of crawling one root.

    Attributes:
        location: Root location as requested.
        identifier: Source identifier used, when the source could be resolved.
        kind: Source variant (``filesystem`` or ``object_store``).
        result: Session counters when the root committed.
        error: Fatal error that aborted the root, if any.
    """

    location: str
    identifier: Optional[str] = None
    kind: Optional[str] = None
    result: Optional[SessionResult] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "location": self.location,
            "identifier": self.identifier,
            "kind": self.kind,
            "ok": self.ok,
        }
        if self.result is not None:
            payload.update(
                entries=self.result.entries_seen,
                written=self.result.records_written,
                skipped=self.result.entries_skipped,
                batches=self.result.batches,
            )
        if self.error is not None:
            payload["error"] = {"type": type(self.error).__name__, "message": str(self.error)}
        return payload


@dataclass(slots=True)
class CrawlReport:
    """Outcomes for every requested root, in request order."""

    outcomes: list[RootOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes)

    @property
    def failures(self) -> list[RootOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    def raise_for_failures(self) -> None:
        """Raise ``CrawlFailedError`` naming every failed root."""
        failures = self.failures
        if failures:
            raise CrawlFailedError({outcome.location: outcome.error for outcome in failures})

    def to_dict(self) -> dict[str, Any]:
        return {"ok": self.ok, "roots": [outcome.to_dict() for outcome in self.outcomes]}


RootLike = Union[RootRequest, str, Tuple[str, Optional[str]]]


def _as_request(root: RootLike) -> RootRequest:
    if isinstance(root, RootRequest):
        return root
    if isinstance(root, str):
        return RootRequest(root)
    location, identifier = root
    return RootRequest(location, identifier)


class CrawlService:
    """Crawl a set of roots concurrently and collect per-root outcomes.

    Every root runs in its own task with its own transaction. A failing root
    never cancels the others; the report is returned once all of them
    finished.
    """

    def __init__(
        self,
        store: CatalogStore,
        config: Optional[CatalogConfig] = None,
        *,
        observer: Optional[CrawlObserver] = None,
        source_resolver: Optional[SourceResolver] = None,
        hostname: Optional[str] = None,
    ) -> None:
        """Initialize the service.

        Args:
            store: Catalog store shared by all sessions (its pool throttles writes).
            config: Loaded configuration; defaults apply when omitted.
            observer: Receiver of crawl events; logs through ``logging`` by default.
            source_resolver: Callable mapping a location to a source.
            hostname: Hostname used for derived filesystem identifiers.
        """
        self._store = store
        self._config = config or CatalogConfig()
        self._observer = observer or LoggingObserver()
        self._resolve = source_resolver or resolve_source
        self._hostname = hostname

    async def run(self, roots: Iterable[RootLike]) -> CrawlReport:
        """Crawl ``roots`` concurrently and wait for all of them.

        Returns:
            CrawlReport: One outcome per root, in the order given.
        """
        requests: Sequence[RootRequest] = [_as_request(root) for root in roots]
        outcomes = await asyncio.gather(*(self._run_root(request) for request in requests))
        return CrawlReport(outcomes=list(outcomes))

    async def _run_root(self, request: RootRequest) -> RootOutcome:
        outcome = RootOutcome(location=request.location)
        try:
            source = self._resolve(
                request.location,
                identifier=request.identifier,
                object_store=self._config.object_store,
                hostname=self._hostname,
            )
            outcome.identifier = source.identifier
            outcome.kind = source.kind
            outcome.result = await source.crawl(
                self._store, settings=self._config.crawl, observer=self._observer
            )
        except Exception as exc:
            outcome.error = exc
            self._observer.session_failed(request.location, exc)
        return outcome


__all__ = ["CrawlService", "CrawlReport", "RootOutcome", "RootRequest"]
