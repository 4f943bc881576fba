"""Bounded, order-preserving concurrent map over a ThreadPoolExecutor.

Used for I/O fan-out (the reference loads). ``p_map`` keeps at most
``concurrency`` mapper calls in flight, returns results in input order and
fails fast: the first mapper error cancels work that has not started and is
re-raised unchanged.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import TypeVar

InT = TypeVar("InT")
OutT = TypeVar("OutT")

# Upper bound applied to any configured concurrency.
MAX_CONCURRENCY = 8


def resolve_concurrency(raw: str | int | None, *, default: int = 4) -> int:
    """Clamp a configured concurrency (env string or int) to ``[1, MAX_CONCURRENCY]``."""

    try:
        value = int(raw) if raw not in (None, "") else default
    except (TypeError, ValueError):
        value = default
    return max(1, min(value, MAX_CONCURRENCY))


def p_map(
    iterable: Iterable[InT],
    mapper: Callable[[InT], OutT],
    *,
    concurrency: int,
) -> list[OutT]:
    """Map ``iterable`` through ``mapper`` with at most ``concurrency`` in flight."""

    if not isinstance(concurrency, int) or concurrency < 1:
        raise ValueError("concurrency must be a positive integer")

    items = enumerate(iterable)
    results: dict[int, OutT] = {}
    pending: dict[Future[OutT], int] = {}

    with ThreadPoolExecutor(max_workers=concurrency) as pool:

        def _top_up() -> None:
            while len(pending) < concurrency:
                try:
                    idx, item = next(items)
                except StopIteration:
                    return
                pending[pool.submit(mapper, item)] = idx

        _top_up()
        while pending:
            done, _ = wait(pending, return_when=FIRST_COMPLETED)
            for fut in done:
                idx = pending.pop(fut)
                exc = fut.exception()
                if exc is not None:
                    pool.shutdown(wait=False, cancel_futures=True)
                    raise exc
                results[idx] = fut.result()
            _top_up()

    return [results[i] for i in sorted(results)]


__all__ = ["MAX_CONCURRENCY", "p_map", "resolve_concurrency"]
