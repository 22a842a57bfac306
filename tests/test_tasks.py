import pytest

from dsld.station import (
    RemoteRejected,
    SessionClient,
    TaskRecord,
    TaskSnapshot,
    TaskSnapshotReader,
    TaskStatus,
    pause_tasks,
    recent_tasks,
    summarize,
)
from fake_station import FakeStation, error_reply, make_task


def record(task_id: str, status: TaskStatus, create_time: int = 0) -> TaskRecord:
    return TaskRecord(
        id=task_id,
        status=status,
        size=100,
        size_downloaded=50,
        speed_download=3,
        speed_upload=2,
        create_time=create_time,
        title=task_id,
    )


class TestSnapshot:
    async def test_pages(self, client: SessionClient, station: FakeStation):
        station.tasks = [make_task(f"t{i}") for i in range(120)]
        reader = TaskSnapshotReader(client)
        snapshot = await reader.snapshot(200)
        assert station.list_calls == [(0, 50), (50, 50), (100, 50)]
        assert len(snapshot.tasks) == 120
        assert snapshot.total == 120
        assert [_.id for _ in snapshot.tasks] == [f"t{i}" for i in range(120)]

    async def test_stops_at_max(self, client: SessionClient, station: FakeStation):
        station.tasks = [make_task(f"t{i}") for i in range(120)]
        reader = TaskSnapshotReader(client)
        snapshot = await reader.snapshot(60)
        assert station.list_calls == [(0, 50), (50, 10)]
        assert len(snapshot.tasks) == 60
        assert snapshot.total == 120

    async def test_smaller_reported_total(
        self, client: SessionClient, station: FakeStation
    ):
        station.tasks = [make_task(f"t{i}") for i in range(80)]
        station.reported_total = 10
        reader = TaskSnapshotReader(client)
        snapshot = await reader.snapshot(200)
        assert station.list_calls == [(0, 50)]
        assert len(snapshot.tasks) == 50
        assert snapshot.total == 50

    async def test_larger_reported_total(
        self, client: SessionClient, station: FakeStation
    ):
        station.tasks = [make_task(f"t{i}") for i in range(60)]
        station.reported_total = 500
        reader = TaskSnapshotReader(client)
        snapshot = await reader.snapshot(200)
        assert station.list_calls == [(0, 50), (50, 50), (60, 50)]
        assert len(snapshot.tasks) == 60
        assert snapshot.total == 500

    async def test_empty(self, client: SessionClient, station: FakeStation):
        reader = TaskSnapshotReader(client)
        snapshot = await reader.snapshot()
        assert snapshot == TaskSnapshot(tasks=[], total=0)
        assert station.list_calls == [(0, 50)]

    async def test_record_fields(self, client: SessionClient, station: FakeStation):
        weird = make_task("t2", "no_such_status")
        weird["size"] = "oops"
        del weird["additional"]
        station.tasks = [make_task("t1", "seeding", create_time=42), weird]
        reader = TaskSnapshotReader(client)
        page = await reader.list_page(0, 10)

        assert page.total == 2
        assert page.tasks[0] == TaskRecord(
            id="t1",
            status=TaskStatus.SEEDING,
            size=1000,
            size_downloaded=500,
            speed_download=10,
            speed_upload=1,
            create_time=42,
            title="title of t1",
        )
        assert page.tasks[1].status == TaskStatus.UNKNOWN
        assert page.tasks[1].size == 0
        assert page.tasks[1].speed_download == 0


class TestPause:
    async def test_joins_ids(self, client: SessionClient, station: FakeStation):
        await pause_tasks(client, ["a", " b ", "", "c"])
        assert station.pauses == ["a,b,c"]

    async def test_nothing_to_pause(self, client: SessionClient, station: FakeStation):
        await pause_tasks(client, ["", "  "])
        assert station.pauses == []
        assert station.logins == 0

    async def test_rejected(self, client: SessionClient, station: FakeStation):
        station.pause_replies = {"a": error_reply(544)}
        with pytest.raises(RemoteRejected):
            await pause_tasks(client, ["a"])


class TestSummary:
    def test_summarize(self):
        snapshot = TaskSnapshot(
            tasks=[
                record("a", TaskStatus.DOWNLOADING),
                record("b", TaskStatus.SEEDING),
                record("c", TaskStatus.PAUSED),
                record("d", TaskStatus.DOWNLOADING),
            ],
            total=7,
        )
        summary = summarize(snapshot)
        assert summary.total == 7
        assert summary.counts == {"downloading": 2, "seeding": 1, "paused": 1}
        assert summary.active == 3
        assert summary.speed_download == 12
        assert summary.speed_upload == 8

    def test_recent_prefers_active(self):
        snapshot = TaskSnapshot(
            tasks=[
                record("old", TaskStatus.DOWNLOADING, 1),
                record("paused", TaskStatus.PAUSED, 9),
                record("new", TaskStatus.WAITING, 5),
            ],
            total=3,
        )
        assert [_.id for _ in recent_tasks(snapshot)] == ["new", "old"]
        assert [_.id for _ in recent_tasks(snapshot, limit=1)] == ["new"]

    def test_recent_without_active(self):
        snapshot = TaskSnapshot(
            tasks=[
                record("a", TaskStatus.FINISHED, 1),
                record("b", TaskStatus.PAUSED, 2),
            ],
            total=2,
        )
        assert [_.id for _ in recent_tasks(snapshot)] == ["b", "a"]


async def test_hosting_and_hashing_tasks_are_active(
    client: SessionClient, station: FakeStation
):
    station.tasks = [
        make_task("a", "filehosting_downloading", create_time=1),
        make_task("b", "hashing", create_time=2),
        make_task("c", "checking", create_time=3),
        make_task("d", "paused", create_time=4),
    ]
    snapshot = await TaskSnapshotReader(client).snapshot()
    assert [_.status for _ in snapshot.tasks[:3]] == [
        TaskStatus.FILEHOSTING_DOWNLOADING,
        TaskStatus.HASHING,
        TaskStatus.CHECKING,
    ]

    summary = summarize(snapshot)
    assert summary.active == 3
    assert "unknown" not in summary.counts
    assert [_.id for _ in recent_tasks(snapshot)] == ["c", "b", "a"]
