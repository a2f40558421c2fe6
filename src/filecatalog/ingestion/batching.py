"""Windowed batching of an asynchronous entry stream."""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from typing import AsyncGenerator, AsyncIterable, Generic, List, Literal, Optional, TypeVar

T = TypeVar("T")

BatchTrigger = Literal["size", "interval", "exhausted"]

DEFAULT_BATCH_SIZE = 200
DEFAULT_BATCH_INTERVAL = 1.0


@dataclass(slots=True)
class Batch(Generic[T]):
    """A closed window of items and the reason it was closed."""

    items: List[T]
    trigger: BatchTrigger

    def __len__(self) -> int:
        return len(self.items)


class _End:
    __slots__ = ("error",)

    def __init__(self, error: Optional[BaseException] = None) -> None:
        self.error = error


async def _pump(source: AsyncIterable[T], queue: "asyncio.Queue[T | _End]") -> None:
    try:
        async for item in source:
            await queue.put(item)
    except Exception as exc:
        await queue.put(_End(exc))
    else:
        await queue.put(_End())


async def batched(
    source: AsyncIterable[T],
    *,
    max_items: int = DEFAULT_BATCH_SIZE,
    max_interval: float = DEFAULT_BATCH_INTERVAL,
) -> AsyncGenerator[Batch[T], None]:
    """Group ``source`` into batches closed by count or by elapsed time.

    A batch opens when its first item arrives and is yielded once it holds
    ``max_items`` items or ``max_interval`` seconds after it opened, whichever
    comes first. The source is drained by a background task into a bounded
    queue, so enumeration continues while the caller handles a batch.

    Args:
        source: Asynchronous iterable of items.
        max_items: Count that closes a batch.
        max_interval: Seconds after which an open batch is closed.

    Yields:
        Batch: Non-empty batches in source order.

    Raises:
        Exception: Whatever ``source`` raised, after earlier items were yielded.
    """
    if max_items < 1:
        raise ValueError("max_items must be at least 1")

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[T | _End] = asyncio.Queue(maxsize=max_items)
    producer = asyncio.create_task(_pump(source, queue))
    getter: Optional[asyncio.Future[T | _End]] = None
    items: List[T] = []
    deadline: Optional[float] = None

    try:
        while True:
            if getter is None:
                getter = asyncio.ensure_future(queue.get())
            timeout = None if deadline is None else max(0.0, deadline - loop.time())
            done, _ = await asyncio.wait({getter}, timeout=timeout)
            if not done:
                # The pending getter is reused for the next window.
                yield Batch(items, "interval")
                items, deadline = [], None
                continue

            item = getter.result()
            getter = None
            if isinstance(item, _End):
                if items:
                    yield Batch(items, "exhausted")
                    items = []
                if item.error is not None:
                    raise item.error
                return

            items.append(item)
            if deadline is None:
                deadline = loop.time() + max_interval
            if len(items) >= max_items:
                yield Batch(items, "size")
                items, deadline = [], None
    finally:
        if getter is not None:
            getter.cancel()
        producer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await producer


__all__ = ["Batch", "BatchTrigger", "batched", "DEFAULT_BATCH_SIZE", "DEFAULT_BATCH_INTERVAL"]
