# packshift/resolve/scheduler.py
from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, Callable, Iterable, TypeVar

logger = logging.getLogger(__name__)

__all__ = ["mapLimitProgress"]

T = TypeVar("T")
R = TypeVar("R")



async def mapLimitProgress(
    items: Iterable[T],
    limit: int,
    fn: Callable[[T], Awaitable[R]],
    *,
    onTick: Callable[[int, int], None] | None = None,
    onError: Callable[[T, int, Exception], R] | None = None,
) -> list[R | None]:
    """
    Run `fn` once per item with at most `limit` calls in flight.

    A fixed pool of min(limit, N) workers pulls indices from one shared
    iterator, so a worker starts the next queued item as soon as its current
    one settles. Each result lands at its item's input index, so the output
    order never depends on completion order.

    onTick(done, total) fires once per settled item with a strictly
    increasing `done`. A raising item still frees its worker: its slot gets
    onError(item, index, err) when given; otherwise the slot stays None and
    the first such error is re-raised once every other item has settled.
    Cancelling the caller cancels all workers; no partial output escapes.
    """
    if limit < 1:
        raise ValueError(f"Concurrency limit must be at least 1, got {limit}")

    itemList = list(items)
    total = len(itemList)
    out: list[R | None] = [None] * total
    if not total:
        return out

    pending = iter(range(total))
    done = 0
    firstError: Exception | None = None

    async def worker() -> None:
        nonlocal done, firstError
        # next() on the shared iterator never suspends, so two workers can
        # never take the same index.
        for idx in pending:
            item = itemList[idx]
            try:
                out[idx] = await fn(item)
            except Exception as err:
                if onError is not None:
                    out[idx] = onError(item, idx, err)
                else:
                    logger.debug("Task %d/%d raised %s", idx + 1, total, type(err).__name__)
                    if firstError is None:
                        firstError = err
            done += 1
            if onTick is not None:
                onTick(done, total)

    workers = [asyncio.create_task(worker()) for _ in range(min(limit, total))]
    try:
        await asyncio.gather(*workers)
    except BaseException:
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        raise

    if firstError is not None:
        raise firstError
    return out
