"""
Bounded-concurrency scheduling of history queries.
"""

import asyncio
import time
from collections.abc import Iterable
from typing import Protocol

from ..shared_utilities import get_logger, get_logging_manager, trace_operation
from .config import DEFAULT_CONCURRENCY, ChangesConfig
from .data_models import (
    ChangeRequest,
    CommitSequence,
    Failure,
    RequestOutcome,
    SchedulerClosedError,
)
from .history_query import HistoryQueryExecutor


class ChangeExecutor(Protocol):
    """Anything that can turn a request into commits or a failure."""

    async def run(self, request: ChangeRequest) -> CommitSequence | Failure: ...


class ChangeAggregationScheduler:
    """
    Fixed pool of worker tasks pulling requests from a shared FIFO queue.

    Requests may be submitted before or after ``start()``. ``close()`` marks
    the end of submissions; ``join()`` then waits until every submitted
    request is done and returns the outcomes in submission order. Each
    request gets its own future, so a failure in one never touches another.
    ``completed`` is set once, when submissions are closed and the last
    submitted request is done.
    """

    def __init__(self, executor: ChangeExecutor, concurrency: int = DEFAULT_CONCURRENCY):
        """Initialize scheduler.

        Args:
            executor: Runs a single request end to end
            concurrency: Maximum number of requests in flight at once
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")

        self.executor = executor
        self.concurrency = concurrency
        self.logger = get_logger(__name__)

        self._queue: asyncio.Queue[tuple[ChangeRequest, asyncio.Future] | None] = (
            asyncio.Queue()
        )
        self._futures: list[asyncio.Future] = []
        self._submitted = 0
        self._dispatched = 0
        self._done = 0
        self._workers: list[asyncio.Task] = []
        self._closed = False
        self._in_flight = 0
        self._peak_in_flight = 0
        self.completed = asyncio.Event()

    @property
    def in_flight(self) -> int:
        """Requests currently being executed."""
        return self._in_flight

    @property
    def peak_in_flight(self) -> int:
        """Highest number of requests ever in flight at the same time."""
        return self._peak_in_flight

    @property
    def pending(self) -> int:
        """Requests waiting in the backlog."""
        return self._submitted - self._dispatched

    @property
    def closed(self) -> bool:
        """Whether submissions have been closed."""
        return self._closed

    def start(self) -> None:
        """Spawn the worker tasks. Calling it again has no effect."""
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"change-worker-{index}")
            for index in range(self.concurrency)
        ]
        self.logger.debug(f"Started {self.concurrency} workers")

    def submit(self, request: ChangeRequest) -> "asyncio.Future[RequestOutcome]":
        """Queue a request.

        Must be called from inside the running event loop.

        Returns:
            Future resolved with the request's outcome

        Raises:
            SchedulerClosedError: If close() was already called
        """
        if self._closed:
            raise SchedulerClosedError(
                f"cannot submit {request.request_id}: scheduler is closed"
            )

        future: asyncio.Future[RequestOutcome] = (
            asyncio.get_running_loop().create_future()
        )
        self._futures.append(future)
        self._submitted += 1
        self._queue.put_nowait((request, future))
        return future

    def close(self) -> None:
        """Stop accepting requests; workers exit once the backlog is drained."""
        if self._closed:
            return
        self._closed = True
        for _ in range(self.concurrency):
            self._queue.put_nowait(None)
        self._mark_completed_if_drained()

    async def join(self) -> list[RequestOutcome]:
        """Wait for every submitted request and return outcomes in submission order.

        Starts the workers if nobody did; closes submissions if nobody did.
        """
        self.start()
        self.close()
        await asyncio.gather(*self._workers)
        return [future.result() for future in self._futures]

    async def run(self, requests: Iterable[ChangeRequest]) -> list[RequestOutcome]:
        """Submit all requests, close, and wait for every outcome."""
        logging_manager = get_logging_manager()
        start_time = time.monotonic()
        logging_manager.log_operation_start(
            "aggregate_changes", concurrency=self.concurrency
        )

        with trace_operation(
            "aggregate_changes", {"concurrency": self.concurrency}
        ) as span:
            self.start()
            for request in requests:
                self.submit(request)
            outcomes = await self.join()

            failed = sum(1 for outcome in outcomes if not outcome.succeeded)
            if span is not None:
                span.set_attribute("requests", len(outcomes))
                span.set_attribute("failed", failed)

        logging_manager.log_operation_complete(
            "aggregate_changes",
            time.monotonic() - start_time,
            requests=len(outcomes),
            failed=failed,
            peak_in_flight=self._peak_in_flight,
        )
        return outcomes

    async def _worker(self, index: int) -> None:
        """Pull requests until the close sentinel arrives."""
        while True:
            item = await self._queue.get()
            if item is None:
                break

            request, future = item
            self._dispatched += 1
            self._in_flight += 1
            self._peak_in_flight = max(self._peak_in_flight, self._in_flight)
            try:
                result = await self._execute(request)
            finally:
                self._in_flight -= 1

            if not future.done():
                future.set_result(
                    RequestOutcome(
                        request_id=request.request_id, request=request, result=result
                    )
                )
            self._done += 1
            self._mark_completed_if_drained()

        self.logger.debug(f"Worker {index} finished")

    def _mark_completed_if_drained(self) -> None:
        """Set the completion event once submissions are closed and all are done."""
        if self.completed.is_set() or not self._closed:
            return
        if self._done == self._submitted:
            self.completed.set()
            self.logger.debug(f"All {self._done} requests done")

    async def _execute(self, request: ChangeRequest) -> CommitSequence | Failure:
        """Run one request, turning any escaped exception into its Failure."""
        try:
            return await self.executor.run(request)
        except Exception as e:
            self.logger.error(
                f"Unexpected error for {request.service} at "
                f"{request.version.raw}: {type(e).__name__}: {e}"
            )
            return Failure(
                service=request.service,
                version=request.version.raw,
                message=f"{request.service} at {request.version.raw}: {e}",
                cause=e,
            )


async def aggregate_changes(
    requests: Iterable[ChangeRequest],
    config: ChangesConfig,
    executor: ChangeExecutor | None = None,
) -> list[RequestOutcome]:
    """Run every request through a scheduler sized by the config."""
    scheduler = ChangeAggregationScheduler(
        executor or HistoryQueryExecutor(config), concurrency=config.concurrency
    )
    return await scheduler.run(requests)
