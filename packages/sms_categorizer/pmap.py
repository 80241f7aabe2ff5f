"""Bounded, order-preserving fan-out over a thread pool.

The categorization service uses this to run its signal generators side by
side: each mapper call does its own blocking database reads, so threads give
real overlap while keeping the code synchronous.

- ``p_map(items, mapper, concurrency=...)`` returns results in input order.
- The first mapper error propagates to the caller after not-yet-started work
  is cancelled; nothing is partially combined.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import TypeVar

InT = TypeVar("InT")
OutT = TypeVar("OutT")


def p_map(
    items: Sequence[InT],
    mapper: Callable[[InT], OutT],
    *,
    concurrency: int,
    thread_name_prefix: str = "p_map",
) -> list[OutT]:
    """Map ``items`` through ``mapper`` with at most ``concurrency`` calls in flight."""

    if isinstance(concurrency, bool) or not isinstance(concurrency, int) or concurrency < 1:
        raise ValueError("concurrency must be a positive integer")
    if not items:
        return []

    workers = min(concurrency, len(items))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=thread_name_prefix) as pool:
        futures = [pool.submit(mapper, item) for item in items]
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        for fut in done:
            exc = fut.exception()
            if exc is not None:
                for p in pending:
                    p.cancel()
                raise exc
    return [f.result() for f in futures]


__all__ = ["p_map"]
