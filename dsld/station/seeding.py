import asyncio
import logging
from asyncio import TaskGroup

from .client import SessionClient
from .tasks import TaskSnapshotReader, pause_tasks
from .types import SweepResult, TaskStatus


_L = logging.getLogger(__name__)


class SeedingSweeper:
    """Pauses every task that has finished downloading and started seeding"""

    def __init__(
        self,
        client: SessionClient,
        reader: TaskSnapshotReader,
        *,
        max_tasks: int = 300,
    ) -> None:
        self._client = client
        self._reader = reader
        self._max_tasks = max_tasks
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def sweep_once(self, trigger: str) -> SweepResult | None:
        """
        Returns None without doing anything if another sweep is running.
        """
        if self._running:
            _L.debug(f"sweep ({trigger}) skipped, another one is running")
            return None

        self._running = True
        try:
            return await self._sweep(trigger)
        finally:
            self._running = False

    async def run(self, trigger: str) -> None:
        try:
            result = await self.sweep_once(trigger)
        except Exception:
            _L.exception(f"sweep ({trigger}) failed")
            return
        if result and result.paused > 0:
            _L.info(
                f"paused {result.paused} task(s) out of {result.seeding} seeding task(s)"
            )

    async def _sweep(self, trigger: str) -> SweepResult:
        snapshot = await self._reader.snapshot(self._max_tasks)
        seeding = [t for t in snapshot.tasks if t.status == TaskStatus.SEEDING]

        paused = 0
        failed: list[str] = []
        for task in seeding:
            if not task.id:
                continue
            try:
                await pause_tasks(self._client, [task.id])
            except Exception as e:
                _L.warning(f"({trigger}) cannot pause {task.id}: {e}")
                failed.append(task.id)
                continue
            paused += 1
            _L.debug(f"({trigger}) paused {task.id} {task.title}")

        return SweepResult(
            checked=snapshot.total,
            seeding=len(seeding),
            paused=paused,
            failed=failed,
        )


async def watch_seeding(
    *, sweeper: SeedingSweeper, interval: float, group: TaskGroup
) -> None:
    """
    Sweeps at startup and then every `interval` seconds.

    A sweep that is still running when the next one is due makes that one a
    no-op, nothing is queued.
    """
    await sweeper.run("startup")
    while True:
        await asyncio.sleep(interval)
        group.create_task(sweeper.run("interval"))
