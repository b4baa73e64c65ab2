"""
Bounded fan-out for item-level coroutines.

`run_bounded` starts at most `limit` workers over a shared cursor. Each worker
claims the next unclaimed index, awaits the operation, and stores the result at
that index. Claiming is a plain `next()` on a counter with no await in between,
so under the event loop it is atomic: no index is processed twice and workers
stop as soon as the cursor passes the end.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import TypeVar, Union

from .config import ConfigError

LOG = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class ItemFailure:
    """Synthetic outcome stored at `index` when the per-item operation raised."""

    index: int
    error: str


async def run_bounded(
    items: Sequence[T],
    limit: int,
    func: Callable[[T], Awaitable[R]],
) -> list[Union[R, ItemFailure]]:
    """
    Apply `func` to every item with at most `limit` calls in flight.

    Returns a list the same length as `items`; out[i] belongs to items[i]
    regardless of completion order. A raising item yields ItemFailure at its
    index and never affects the others.

    Raises:
        ConfigError: limit <= 0 or func is not callable.
    """
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise ConfigError(f"concurrency limit must be a positive integer (got {limit!r}).")
    if not callable(func):
        raise ConfigError(f"per-item operation must be callable (got {func!r}).")

    work = list(items)
    total = len(work)
    results: list[Union[R, ItemFailure, None]] = [None] * total
    cursor = itertools.count()

    async def _worker() -> None:
        while True:
            index = next(cursor)
            if index >= total:
                return
            try:
                results[index] = await func(work[index])
            except Exception as e:
                LOG.debug("item %d failed: %r", index, e)
                results[index] = ItemFailure(index=index, error=repr(e))

    workers = min(limit, total)
    if workers:
        await asyncio.gather(*(_worker() for _ in range(workers)))
    return results  # type: ignore[return-value]
