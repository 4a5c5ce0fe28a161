"""Worker pool that runs payment lifecycles for queued orders."""

import asyncio
import logging

from src.core.runtime import PaymentRuntime
from src.models.order import OrderStatus
from src.services.order_store import OrderStore, OrderStoreError
from src.services.payment_lifecycle_service import PaymentLifecycleService

logger = logging.getLogger(__name__)

# Orders in these statuses still need a lifecycle run
UNFINISHED_STATUSES = (OrderStatus.PENDING_PAYMENT, OrderStatus.PAID)


class LifecycleWorkerPool:
    """Fixed number of asyncio workers consuming a queue of order IDs.

    An order that is already queued or running is not enqueued again. The
    queue itself is not durable; unfinished orders are found again by
    scanning the store at startup.
    """

    def __init__(self, service: PaymentLifecycleService, worker_count: int = 4) -> None:
        self.service = service
        self.worker_count = worker_count
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._in_flight: set[str] = set()
        self._workers: list[asyncio.Task] = []

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    @property
    def pending_count(self) -> int:
        return len(self._in_flight)

    async def start(self) -> None:
        """Start worker tasks."""
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"lifecycle-worker-{index}")
            for index in range(self.worker_count)
        ]
        logger.info("Started %d payment lifecycle workers", self.worker_count)

    async def stop(self) -> None:
        """Cancel workers. Unfinished orders are picked up by the next recovery."""
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        if self._in_flight:
            logger.info("Stopped lifecycle workers with %d orders unfinished", len(self._in_flight))
        self._in_flight.clear()
        self._queue = asyncio.Queue()

    def enqueue(self, order_id: str) -> bool:
        """Queue an order unless it is already queued or running.

        Returns:
            bool: True if the order was queued.
        """
        order_id = str(order_id)
        if order_id in self._in_flight:
            logger.debug("Order %s already queued or running", order_id)
            return False
        self._in_flight.add(order_id)
        self._queue.put_nowait(order_id)
        return True

    async def recover(self, store: OrderStore | None = None) -> int:
        """Queue every order that has not reached a terminal status.

        Returns:
            int: Number of orders queued.
        """
        store = store or self.service.store
        try:
            orders = await store.list_by_statuses(UNFINISHED_STATUSES)
        except OrderStoreError as e:
            logger.error("Failed to scan unfinished orders: %s", e)
            return 0

        queued = sum(1 for order in orders if self.enqueue(order["id"]))
        logger.info("Recovered %d unfinished orders", queued)
        return queued

    async def join(self) -> None:
        """Wait until every queued order has been processed."""
        await self._queue.join()

    async def _worker(self, index: int) -> None:
        while True:
            order_id = await self._queue.get()
            try:
                await self.service.run(order_id)
            except Exception:
                logger.exception("Payment lifecycle for order %s failed in worker %d", order_id, index)
            finally:
                self._in_flight.discard(order_id)
                self._queue.task_done()


# Global worker pool instance
_lifecycle_workers: LifecycleWorkerPool | None = None


def get_lifecycle_workers() -> LifecycleWorkerPool:
    """Get the running worker pool.

    Raises:
        RuntimeError: If the pool has not been started.
    """
    if _lifecycle_workers is None:
        raise RuntimeError("Lifecycle workers have not been initialized")
    return _lifecycle_workers


async def init_lifecycle_workers(
    runtime: PaymentRuntime,
    worker_count: int = 4,
    store: OrderStore | None = None,
) -> LifecycleWorkerPool:
    """Create and start the global worker pool. Call on application startup."""
    global _lifecycle_workers
    service = PaymentLifecycleService(runtime.config, runtime.mural, store)
    _lifecycle_workers = LifecycleWorkerPool(service, worker_count)
    await _lifecycle_workers.start()
    return _lifecycle_workers


async def shutdown_lifecycle_workers() -> None:
    """Stop the global worker pool. Call on application shutdown."""
    global _lifecycle_workers
    if _lifecycle_workers is not None:
        await _lifecycle_workers.stop()
        _lifecycle_workers = None
