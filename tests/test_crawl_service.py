"""Tests for crawl sessions and the multi-root crawl service."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Optional

import pytest

from filecatalog.config.models import CatalogConfig, CrawlSettings, DatabaseSettings
from filecatalog.crawl import CrawlFailedError, CrawlService, RootRequest
from filecatalog.events import CrawlObserver
from filecatalog.ingestion.errors import ExtractionError
from filecatalog.ingestion.models import FileRecord, SessionResult
from filecatalog.sources import CrawlSource, SourceError
from filecatalog.store import CatalogStore, StoreError

MODIFIED = datetime(2024, 5, 1, tzinfo=timezone.utc)


class ListSource(CrawlSource):
    """In-memory source: names starting with ``bad`` fail extraction."""

    kind = "memory"

    def __init__(
        self,
        names: list[str],
        *,
        identifier: str = "memory",
        fail_after: Optional[int] = None,
        delay: float = 0.0,
    ) -> None:
        super().__init__(f"memory://{identifier}", identifier)
        self.names = names
        self.fail_after = fail_after
        self.delay = delay

    async def entries(self) -> AsyncIterator[str]:
        for index, name in enumerate(self.names):
            if self.fail_after is not None and index == self.fail_after:
                raise SourceError("listing interrupted")
            if self.delay:
                await asyncio.sleep(self.delay)
            yield name

    async def extract(self, entry: str) -> FileRecord:
        if entry.startswith("bad"):
            raise ExtractionError(entry, "unreadable")
        return FileRecord(path="/mem", filename=entry, modified=MODIFIED, size=len(entry))


class RecordingObserver(CrawlObserver):
    def __init__(self) -> None:
        self.events: list[tuple[Any, ...]] = []

    def session_started(self, root: str, identifier: str) -> None:
        self.events.append(("started", root))

    def session_finished(self, root: str, result: SessionResult) -> None:
        self.events.append(("finished", root))

    def session_failed(self, root: str, error: BaseException) -> None:
        self.events.append(("failed", root))

    def batch_flushed(self, root: str, number: int, size: int, trigger: str) -> None:
        self.events.append(("batch", number, size, trigger))

    def entry_skipped(self, root: str, location: str, reason: str) -> None:
        self.events.append(("skipped", location, reason))


@pytest.mark.asyncio
async def test_session_counts_skips_and_batches(store: CatalogStore) -> None:
    observer = RecordingObserver()
    source = ListSource(["a", "bad-1", "b", "c", "d"])

    result = await source.crawl(
        store, settings=CrawlSettings(batch_size=2, batch_interval_seconds=60), observer=observer
    )

    assert result == SessionResult(
        identifier="memory", entries_seen=5, records_written=4, entries_skipped=1, batches=3
    )
    assert ("skipped", "bad-1", "unreadable") in observer.events
    batches = [event for event in observer.events if event[0] == "batch"]
    assert batches == [
        ("batch", 1, 1, "size"),
        ("batch", 2, 2, "size"),
        ("batch", 3, 1, "exhausted"),
    ]
    assert observer.events[0] == ("started", "memory://memory")
    assert observer.events[-1] == ("finished", "memory://memory")
    assert [row.filename for row in await store.fetch_files("memory")] == ["a", "b", "c", "d"]


@pytest.mark.asyncio
async def test_window_of_only_bad_entries_is_not_flushed(store: CatalogStore) -> None:
    source = ListSource(["bad-1", "bad-2"])

    result = await source.crawl(store, settings=CrawlSettings(batch_size=2))

    assert result.batches == 0
    assert result.entries_skipped == 2
    assert await store.fetch_files("memory") == []


@pytest.mark.asyncio
async def test_listing_failure_rolls_back_the_root(store: CatalogStore) -> None:
    source = ListSource(["a", "b", "c", "d"], fail_after=3)

    with pytest.raises(SourceError):
        await source.crawl(store, settings=CrawlSettings(batch_size=1))

    assert await store.fetch_files("memory") == []


@pytest.mark.asyncio
async def test_service_isolates_failing_roots(store: CatalogStore, tmp_path: Path) -> None:
    good = tmp_path / "good"
    good.mkdir()
    (good / "report.pdf").write_bytes(b"%PDF")
    missing = tmp_path / "missing"
    observer = RecordingObserver()

    service = CrawlService(store, CatalogConfig(), observer=observer, hostname="box")
    report = await service.run([str(good), RootRequest(str(missing), "lost")])

    assert [outcome.ok for outcome in report.outcomes] == [True, False]
    good_outcome, bad_outcome = report.outcomes
    assert good_outcome.identifier == f"box:{good}"
    assert good_outcome.kind == "filesystem"
    assert good_outcome.result is not None and good_outcome.result.records_written == 1
    assert isinstance(bad_outcome.error, SourceError)
    assert ("failed", str(missing)) in observer.events

    [row] = await store.fetch_files(f"box:{good}")
    assert (row.filename, row.mime_type, row.size) == ("report.pdf", "application/pdf", 4)

    with pytest.raises(CrawlFailedError) as excinfo:
        report.raise_for_failures()
    assert list(excinfo.value.failures) == [str(missing)]


@pytest.mark.asyncio
async def test_service_reports_in_request_order(store: CatalogStore) -> None:
    sources = {
        "one": ListSource(["a"], identifier="one"),
        "two": ListSource(["x", "y"], identifier="two"),
        "three": ListSource(["a", "b"], identifier="three", fail_after=1),
    }

    def _resolve(location: str, **_: Any) -> CrawlSource:
        return sources[location]

    service = CrawlService(store, source_resolver=_resolve)
    report = await service.run(["one", ("two", None), "three"])

    assert [outcome.location for outcome in report.outcomes] == ["one", "two", "three"]
    assert [outcome.ok for outcome in report.outcomes] == [True, True, False]
    payload = report.to_dict()
    assert payload["ok"] is False
    assert payload["roots"][1]["written"] == 2
    assert payload["roots"][2]["error"]["type"] == "SourceError"
    assert await store.fetch_files("three") == []


@pytest.mark.asyncio
async def test_recrawl_leaves_catalog_unchanged(store: CatalogStore, tmp_path: Path) -> None:
    root = tmp_path / "tree"
    (root / "docs").mkdir(parents=True)
    (root / "docs" / "a.md").write_text("# a", encoding="utf-8")
    (root / "b.json").write_text("{}", encoding="utf-8")
    service = CrawlService(store, hostname="box")
    identifier = f"box:{root}"

    first = await service.run([str(root)])
    rows = await store.fetch_files(identifier)
    second = await service.run([str(root)])

    assert first.ok and second.ok
    assert len(rows) == 3
    assert await store.fetch_files(identifier) == rows


@pytest.mark.asyncio
async def test_updated_file_is_refreshed_on_recrawl(store: CatalogStore, tmp_path: Path) -> None:
    root = tmp_path / "tree"
    root.mkdir()
    note = root / "note.txt"
    note.write_text("one", encoding="utf-8")
    service = CrawlService(store, hostname="box")

    await service.run([str(root)])
    note.write_text("three", encoding="utf-8")
    await service.run([str(root)])

    [row] = await store.fetch_files(f"box:{root}")
    assert row.size == 5


@pytest.mark.asyncio
async def test_failing_batch_rolls_back_earlier_batches(
    store: CatalogStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    calls = 0
    record_files = store.record_files

    async def _flaky(conn: Any, external_source: str, batch: Any) -> int:
        nonlocal calls
        calls += 1
        if calls == 2:
            raise StoreError("disk full")
        return await record_files(conn, external_source, batch)

    monkeypatch.setattr(store, "record_files", _flaky)
    config = CatalogConfig(crawl=CrawlSettings(batch_size=1))
    service = CrawlService(
        store, config, source_resolver=lambda location, **_: ListSource(["a", "b", "c"])
    )

    report = await service.run(["memory"])
    monkeypatch.undo()

    [outcome] = report.outcomes
    assert isinstance(outcome.error, StoreError)
    assert await store.fetch_files("memory") == []


@pytest.mark.asyncio
async def test_roots_beyond_the_pool_wait_for_a_connection(tmp_path: Path) -> None:
    # Each root holds the only connection across several flushed batches.
    settings = DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'queued.sqlite3'}")
    catalog = CatalogStore.from_settings(settings)
    sources = {
        "slow": ListSource(["a", "b", "c"], identifier="slow", delay=0.2),
        "queued": ListSource(["x", "y"], identifier="queued", delay=0.1),
        "instant": ListSource(["z"], identifier="instant"),
    }
    config = CatalogConfig(crawl=CrawlSettings(batch_size=1))
    try:
        await catalog.create_schema()
        service = CrawlService(
            catalog, config, source_resolver=lambda location, **_: sources[location]
        )

        report = await service.run(["slow", "queued", "instant"])

        assert report.ok, report.to_dict()
        assert [row.filename for row in await catalog.fetch_files("slow")] == ["a", "b", "c"]
        assert [row.filename for row in await catalog.fetch_files("queued")] == ["x", "y"]
        assert [row.filename for row in await catalog.fetch_files("instant")] == ["z"]
    finally:
        await catalog.dispose()


@pytest.mark.asyncio
async def test_concurrent_filesystem_roots_share_a_sqlite_catalog(
    store: CatalogStore, tmp_path: Path
) -> None:
    roots = []
    for name in ("left", "right"):
        root = tmp_path / name
        (root / "nested").mkdir(parents=True)
        (root / "nested" / f"{name}.txt").write_text(name, encoding="utf-8")
        roots.append(str(root))
    config = CatalogConfig(crawl=CrawlSettings(batch_size=1))

    report = await CrawlService(store, config, hostname="box").run(roots)

    assert report.ok, report.to_dict()
    for root in roots:
        assert len(await store.fetch_files(f"box:{root}")) == 2
