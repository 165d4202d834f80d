"""
Background Task Dispatcher

Bounded worker pool for fire-and-forget side effects:
- Tracking writes
- Counter sync
- Score persistence
- Bulk sends

Callers submit a zero-argument coroutine factory and never await the
result. Failures are caught at the worker boundary, logged and counted;
they never reach the request that scheduled them.
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Tuple

import structlog
from prometheus_client import Counter, Gauge

logger = structlog.get_logger(__name__)


# =============================================================================
# METRICS
# =============================================================================

BACKGROUND_TASKS = Counter(
    "signals_background_tasks_total",
    "Background tasks by outcome",
    ["task", "status"],
)

BACKGROUND_QUEUE_DEPTH = Gauge(
    "signals_background_queue_depth",
    "Background tasks waiting for a worker",
)


TaskFactory = Callable[[], Awaitable[Any]]


class BackgroundDispatcher:
    """
    Fixed-size asyncio worker pool fed by a bounded queue.

    Example:
        dispatcher = BackgroundDispatcher(pool_size=4)
        await dispatcher.start()
        dispatcher.submit("track", lambda: tracker.track(event))
        await dispatcher.drain()
    """

    def __init__(self, pool_size: int = 4, queue_size: int = 1000):
        if pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        self.pool_size = pool_size
        self._queue: asyncio.Queue[Tuple[str, TaskFactory]] = asyncio.Queue(maxsize=queue_size)
        self._workers: List[asyncio.Task] = []
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Spawn the worker tasks"""
        if self._running:
            return
        self._running = True
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"signals-worker-{i}")
            for i in range(self.pool_size)
        ]
        logger.info("Background dispatcher started", pool_size=self.pool_size)

    def submit(self, name: str, factory: TaskFactory) -> bool:
        """
        Queue a task without waiting for it.

        Returns:
            False if the queue is full and the task was dropped
        """
        try:
            self._queue.put_nowait((name, factory))
        except asyncio.QueueFull:
            logger.warning("Background queue full, dropping task", task=name)
            BACKGROUND_TASKS.labels(task=name, status="dropped").inc()
            return False
        BACKGROUND_QUEUE_DEPTH.set(self._queue.qsize())
        return True

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait until every queued task has finished"""
        if timeout is None:
            await self._queue.join()
        else:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)

    async def stop(self, timeout: float = 10.0) -> None:
        """Drain outstanding work, then cancel the workers"""
        if not self._running:
            return
        try:
            await self.drain(timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Background drain timed out",
                pending=self._queue.qsize(),
                timeout=timeout,
            )
        self._running = False
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Background dispatcher stopped")

    async def _worker(self, index: int) -> None:
        while True:
            name, factory = await self._queue.get()
            BACKGROUND_QUEUE_DEPTH.set(self._queue.qsize())
            try:
                await factory()
                BACKGROUND_TASKS.labels(task=name, status="success").inc()
            except Exception as e:
                logger.error(
                    "Background task failed",
                    task=name,
                    worker=index,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                BACKGROUND_TASKS.labels(task=name, status="error").inc()
            finally:
                self._queue.task_done()
