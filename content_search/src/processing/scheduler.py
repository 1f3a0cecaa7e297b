import asyncio
from functools import partial
from typing import Optional, Sequence, Set

from content_search.logger import GLOBAL_LOGGER as log
from content_search.src.processing.orchestrator import ProcessingOrchestrator


class ProcessingScheduler:
    """
    Fire-and-forget processing.

    Tasks run on the event loop detached from the caller; their outcome is
    reported through the log by a done-callback.
    """

    def __init__(self, orchestrator: ProcessingOrchestrator):
        self.orchestrator = orchestrator
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def _track(self, task: asyncio.Task, label: str) -> asyncio.Task:
        self._tasks.add(task)
        task.add_done_callback(partial(self._on_done, label))
        return task

    def _on_done(self, label: str, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            log.warning("Background processing cancelled | task=%s", label)
            return
        error = task.exception()
        if error is not None:
            log.error("Background processing failed | task=%s | error=%s", label, str(error))
        else:
            log.info("Background processing done | task=%s", label)

    def schedule(self, item_id: str) -> asyncio.Task:
        task = asyncio.create_task(self.orchestrator.process_entity(item_id), name=f"process:{item_id}")
        return self._track(task, item_id)

    def schedule_batch(
        self,
        item_ids: Sequence[str],
        batch_size: Optional[int] = None,
        delay: Optional[float] = None,
    ) -> asyncio.Task:
        task = asyncio.create_task(
            self.orchestrator.process_batch(item_ids, batch_size=batch_size, delay=delay),
            name=f"batch:{len(item_ids)}",
        )
        return self._track(task, f"batch of {len(item_ids)}")

    async def drain(self) -> None:
        """Wait for every scheduled task (used on shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
