import logging
import signal
from argparse import ArgumentDefaultsHelpFormatter, ArgumentParser
from asyncio import Event, TaskGroup, get_running_loop
from collections.abc import Coroutine
from contextlib import AsyncExitStack, asynccontextmanager
from pathlib import Path

from aiohttp.web import Application, AppRunner, TCPSite
from wcpan.logging import ConfigBuilder

from .api import (
    MAX_TORRENT_SIZE,
    SeedingHandler,
    StatsHandler,
    TasksHandler,
    TorrentsHandler,
)
from .keys import CONTEXT, READER, SUBMITTER, SWEEPER
from .settings import load_from_path
from .station import (
    SeedingSweeper,
    TaskSnapshotReader,
    TaskSubmitter,
    create_session_client,
    watch_seeding,
)


type _Runnable[T] = Coroutine[None, None, T]


_L = logging.getLogger(__name__)


class Daemon:
    def __init__(self, args: list[str]) -> None:
        from logging.config import dictConfig

        kwargs = _parse_args(args)
        self._cfg = load_from_path(kwargs.settings)
        dictConfig(
            ConfigBuilder(path=self._cfg.log_path, rotate=True)
            .add("dsld", level="D" if self._cfg.debug else "I")
            .add("aiohttp", level="W")
            .to_dict()
        )
        self._finished = None

    async def __call__(self) -> int:
        loop = get_running_loop()
        self._finished = Event()
        loop.add_signal_handler(signal.SIGINT, self._close_from_signal)
        loop.add_signal_handler(signal.SIGTERM, self._close_from_signal)
        return await self._guard()

    async def _guard(self) -> int:
        try:
            return await self._main()
        except Exception:
            _L.exception("main function error")
        return 1

    async def _main(self) -> int:
        app = Application(client_max_size=MAX_TORRENT_SIZE)
        app.router.add_view(r"/api/v1/tasks", TasksHandler)
        app.router.add_view(r"/api/v1/torrents", TorrentsHandler)
        app.router.add_view(r"/api/v1/stats", StatsHandler)
        app.router.add_view(r"/api/v1/seeding", SeedingHandler)

        station = self._cfg.station
        seeding = self._cfg.seeding

        async with AsyncExitStack() as stack:
            app[CONTEXT] = self._cfg

            client = await stack.enter_async_context(create_session_client(station))
            group = await stack.enter_async_context(TaskGroup())

            # fail early on bad credentials
            await client.login()

            reader = TaskSnapshotReader(client)
            sweeper = SeedingSweeper(
                client, reader, max_tasks=seeding.max_tasks if seeding else 300
            )
            app[SUBMITTER] = TaskSubmitter(
                client,
                destination=station.destination,
                watch_dir=Path(station.watch_dir) if station.watch_dir else None,
            )
            app[READER] = reader
            app[SWEEPER] = sweeper

            if station.watch_dir:
                _L.info(f"watch folder fallback enabled: {station.watch_dir}")

            if seeding:
                await stack.enter_async_context(
                    _background(
                        group,
                        watch_seeding(
                            sweeper=sweeper,
                            interval=seeding.interval,
                            group=group,
                        ),
                    )
                )
                _L.info(f"auto-stop seeding enabled (interval: {seeding.interval}s)")

            await stack.enter_async_context(
                _server_context(app, self._cfg.host, self._cfg.port)
            )

            _L.info("server started")
            await self._wait_for_finished()

        return 0

    def _close_from_signal(self) -> None:
        assert self._finished
        self._finished.set()

    async def _wait_for_finished(self) -> None:
        assert self._finished
        await self._finished.wait()


@asynccontextmanager
async def _server_context(app: Application, host: str, port: int):
    runner = AppRunner(app)
    await runner.setup()
    try:
        site = TCPSite(runner, host=host, port=port)
        await site.start()
        yield
    finally:
        await runner.cleanup()


@asynccontextmanager
async def _background[T](group: TaskGroup, c: _Runnable[T]):
    task = group.create_task(c)
    try:
        yield
    finally:
        task.cancel()


def _parse_args(args: list[str]):
    parser = ArgumentParser(prog="dsld", formatter_class=ArgumentDefaultsHelpFormatter)
    parser.add_argument(
        "-s", "--settings", type=str, default="dsld.yaml", help="settings file name"
    )
    kwargs = parser.parse_args(args[1:])
    return kwargs
