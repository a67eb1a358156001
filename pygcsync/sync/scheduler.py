"""Bounded-concurrency execution of transfer jobs."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Iterable
from typing import Callable, Union

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[int]]
"""A transfer job: returns the number of items it actually transferred"""

Jobs = Union[Iterable[Job], AsyncIterable[Job]]


async def _iterate(jobs: Jobs) -> AsyncIterator[Job]:
    if isinstance(jobs, AsyncIterable):
        try:
            async for job in jobs:
                yield job
        finally:
            aclose = getattr(jobs, "aclose", None)
            if aclose is not None:
                await aclose()
    else:
        for job in jobs:
            yield job


class BoundedJobScheduler:
    """Runs jobs with at most ``concurrency`` of them in flight.

    Jobs are admitted in submission order; whenever one finishes the next
    one starts. Results are summed here, as jobs complete, so jobs never
    share a counter.

    On the first failure no further job is started. Jobs already running
    are not cancelled: they finish, then the first error is raised and the
    partial count is discarded.

    Examples:
        >>> scheduler = BoundedJobScheduler(concurrency=4)
        >>> total = await scheduler.run(upload_jobs)  # doctest: +SKIP
    """

    def __init__(self, concurrency: int):
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.concurrency = concurrency
        self.peak = 0
        """Highest number of jobs observed in flight"""

    async def run(self, jobs: Jobs) -> int:
        """Run all jobs and return the sum of their outcomes.

        Args:
            jobs: Iterable or async iterable of zero-argument coroutine
                functions; consumed lazily as slots free up

        Returns:
            Total number of transferred items

        Raises:
            Exception: The first error raised by a job or by ``jobs`` itself
        """
        total = 0
        pending: set[asyncio.Future[int]] = set()
        source = _iterate(jobs)
        try:
            async for job in source:
                while len(pending) >= self.concurrency:
                    total += await self._next_completed(pending)
                pending.add(asyncio.ensure_future(job()))
                self.peak = max(self.peak, len(pending))

            while pending:
                total += await self._next_completed(pending)
        except asyncio.CancelledError:
            for task in pending:
                task.cancel()
            raise
        except Exception:
            if pending:
                logger.debug(
                    "Job failed, waiting for %d in-flight job(s)", len(pending)
                )
                await self._drain(pending)
            raise
        finally:
            await source.aclose()

        return total

    @staticmethod
    async def _next_completed(pending: set[asyncio.Future[int]]) -> int:
        """Wait for at least one job and fold the finished ones."""
        done, _ = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
        count = 0
        first_error: BaseException | None = None
        for task in done:
            pending.discard(task)
            error = task.exception()
            if error is None:
                count += task.result()
            elif first_error is None:
                first_error = error
            else:
                logger.debug("Additional job failure: %s", error)
        if first_error is not None:
            raise first_error
        return count

    @staticmethod
    async def _drain(pending: set[asyncio.Future[int]]) -> None:
        """Let in-flight jobs finish, logging their errors."""
        done, _ = await asyncio.wait(pending)
        pending.clear()
        for task in done:
            if task.cancelled():
                continue
            error = task.exception()
            if error is not None:
                logger.debug("Additional job failure: %s", error)
