# enjoytravel_scraper/jobs.py
import asyncio
import logging
import random
import string
import time
from typing import Any, Coroutine, Set

log = logging.getLogger("jobs")

_BASE36 = string.digits + string.ascii_lowercase


def new_session_id(prefix: str = "session") -> str:
    suffix = "".join(random.choice(_BASE36) for _ in range(9))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


class JobRunner:
    """
    Spawns scrape jobs as background tasks on the running event loop.

    The request handler only hands the coroutine over; the job owns its own
    lifecycle and progress publication. References are held until the task
    finishes so the loop cannot garbage-collect a running job.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def submit(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        log.info("Job %s started (%s active)", name, len(self._tasks))
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            log.warning("Job %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            log.error("Job %s crashed: %s", task.get_name(), exc, exc_info=exc)
        else:
            log.info("Job %s finished", task.get_name())

    @property
    def active(self) -> int:
        return len(self._tasks)

    async def wait_all(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
