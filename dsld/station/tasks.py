import logging
from collections import Counter
from collections.abc import Iterable
from typing import Any

from .client import SessionClient, make_params, unwrap
from .types import (
    ACTIVE_STATUSES,
    TaskPage,
    TaskRecord,
    TaskSnapshot,
    TaskStatus,
    TaskSummary,
)


_L = logging.getLogger(__name__)

PAGE_SIZE = 50


class TaskSnapshotReader:
    def __init__(self, client: SessionClient) -> None:
        self._client = client

    async def list_page(self, offset: int, limit: int) -> TaskPage:
        offset = max(0, offset)
        limit = max(1, limit)

        async def action(sid: str) -> TaskPage:
            capabilities = await self._client.discover_capabilities()
            api = capabilities.task
            params = make_params(
                api,
                "list",
                sid,
                offset=str(offset),
                limit=str(limit),
                additional="detail,transfer",
            )
            data = unwrap(await self._client.request(api, params=params))
            raw_tasks = data.get("tasks")
            if not isinstance(raw_tasks, list):
                raw_tasks = []
            tasks = [_to_task_record(_) for _ in raw_tasks if isinstance(_, dict)]
            return TaskPage(tasks=tasks, total=_to_int(data.get("total"), len(tasks)))

        return await self._client.with_session(action)

    async def snapshot(self, max_tasks: int = 200) -> TaskSnapshot:
        """
        Collects up to `max_tasks` tasks page by page.
        """
        max_tasks = max(1, max_tasks)
        tasks: list[TaskRecord] = []
        total = 0

        while len(tasks) < max_tasks:
            page = await self.list_page(
                len(tasks), min(PAGE_SIZE, max_tasks - len(tasks))
            )
            total = max(total, page.total)
            tasks.extend(page.tasks)
            if not page.tasks or len(tasks) >= total:
                break

        return TaskSnapshot(tasks=tasks, total=max(total, len(tasks)))


async def pause_tasks(client: SessionClient, task_ids: Iterable[str]) -> None:
    id_list = [_ for _ in (str(_).strip() for _ in task_ids) if _]
    if not id_list:
        return

    async def action(sid: str) -> None:
        capabilities = await client.discover_capabilities()
        api = capabilities.task
        params = make_params(api, "pause", sid, id=",".join(id_list))
        unwrap(await client.request(api, http_method="POST", data=params))

    await client.with_session(action)
    _L.debug(f"paused {id_list}")


def summarize(snapshot: TaskSnapshot) -> TaskSummary:
    counts = Counter(t.status.value for t in snapshot.tasks)
    return TaskSummary(
        total=snapshot.total,
        counts=dict(counts),
        active=sum(1 for t in snapshot.tasks if t.status in ACTIVE_STATUSES),
        speed_download=sum(t.speed_download for t in snapshot.tasks),
        speed_upload=sum(t.speed_upload for t in snapshot.tasks),
    )


def recent_tasks(snapshot: TaskSnapshot, limit: int = 10) -> list[TaskRecord]:
    """
    Newest active tasks, or newest tasks of any status if none is active.
    """
    ordered = sorted(snapshot.tasks, key=lambda t: t.create_time, reverse=True)
    active = [t for t in ordered if t.status in ACTIVE_STATUSES]
    return (active or ordered)[:limit]


def _to_task_record(raw: dict[str, Any]) -> TaskRecord:
    additional = _to_dict(raw.get("additional"))
    transfer = _to_dict(additional.get("transfer"))
    detail = _to_dict(additional.get("detail"))
    return TaskRecord(
        id=str(raw.get("id") or ""),
        status=TaskStatus.parse(raw.get("status")),
        size=_to_int(raw.get("size")),
        size_downloaded=_to_int(transfer.get("size_downloaded")),
        speed_download=_to_int(transfer.get("speed_download")),
        speed_upload=_to_int(transfer.get("speed_upload")),
        create_time=_to_int(detail.get("create_time")),
        title=str(raw.get("title") or ""),
    )


def _to_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _to_int(value: Any, fallback: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return fallback
