import asyncio
from typing import Awaitable, Callable, Dict

from app.platform.logger import get_logger

logger = get_logger(__name__)

FanoutJob = Callable[[], Awaitable[object]]


class FanoutDispatcher:
    """
    Runs notification jobs in the background, one queue per company.

    Jobs for the same company run strictly one after another so the pacing
    between recipients holds across leads; different companies proceed in
    parallel. A worker exits when its queue is empty and is recreated on the
    next enqueue.
    """

    def __init__(self):
        self._queues: Dict[str, asyncio.Queue] = {}
        self._workers: Dict[str, asyncio.Task] = {}

    def enqueue(self, key: str, job: FanoutJob) -> None:
        queue = self._queues.get(key)
        if queue is None:
            queue = asyncio.Queue()
            self._queues[key] = queue
            self._workers[key] = asyncio.create_task(self._run(key, queue))
        queue.put_nowait(job)
        logger.info(f"Queued fanout job for {key} ({queue.qsize()} pending)")

    async def _run(self, key: str, queue: asyncio.Queue) -> None:
        while True:
            try:
                job = queue.get_nowait()
            except asyncio.QueueEmpty:
                self._queues.pop(key, None)
                self._workers.pop(key, None)
                return

            try:
                await job()
            except Exception as e:
                logger.exception(f"Fanout job for {key} failed: {e}")
            finally:
                queue.task_done()

    def active_keys(self) -> list[str]:
        return list(self._workers.keys())

    def pending(self) -> int:
        return sum(queue.qsize() for queue in self._queues.values())

    async def drain(self) -> None:
        """Wait until every queued job has run."""
        while self._workers:
            await asyncio.gather(*list(self._workers.values()), return_exceptions=True)


# Global singleton instance
fanout_dispatcher = FanoutDispatcher()
