"""
goneat — thread fan-out for per-file validation jobs.

File: src/goneat/utils/concurrency.py

Purpose
- Run a blocking per-file job (read, parse, validate) in worker threads with a bounded
  number of files in flight.
- Put one deadline over the whole run and tell still-running jobs to stop when it
  expires.

Functional requirements
- Results come back in input order.
- The first job exception cancels the rest and propagates.
- ``FileCancellation`` is read from worker threads, so it is backed by
  ``threading.Event``.
"""

from __future__ import annotations

import asyncio
import inspect
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

ItemT = TypeVar("ItemT")
ResultT = TypeVar("ResultT")


class FileCancellation:
    """Stop flag shared by the event loop and the worker threads of one run."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(slots=True)
class FileJobPool(Generic[ItemT, ResultT]):
    """Apply ``job`` to each item in a worker thread, at most ``max_workers`` at once."""

    job: Callable[[ItemT], ResultT]
    max_workers: int
    cancellation: FileCancellation = field(default_factory=FileCancellation)

    def __post_init__(self) -> None:
        if self.max_workers <= 0:
            raise ValueError("max_workers must be > 0")

    async def run(self, items: Iterable[ItemT]) -> list[ResultT]:
        slots = asyncio.Semaphore(self.max_workers)

        async def one(item: ItemT) -> ResultT:
            async with slots:
                if self.cancellation.is_cancelled:
                    raise asyncio.CancelledError("file validation cancelled")
                return await asyncio.to_thread(self.job, item)

        tasks = [asyncio.create_task(one(item)) for item in items]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            self.cancellation.cancel()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise


async def run_with_deadline(
    work: Awaitable[ResultT],
    timeout_seconds: float,
    cancellation: FileCancellation,
) -> ResultT:
    """Await ``work``; on expiry cancel ``cancellation`` and raise ``TimeoutError``."""

    if timeout_seconds <= 0:
        if inspect.iscoroutine(work):
            work.close()
        raise ValueError("timeout_seconds must be > 0")
    try:
        return await asyncio.wait_for(work, timeout_seconds)
    except TimeoutError as exc:
        cancellation.cancel()
        raise TimeoutError(f"operation timed out after {timeout_seconds} seconds") from exc


__all__ = ["FileCancellation", "FileJobPool", "run_with_deadline"]
