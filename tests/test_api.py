import asyncio

import pytest
from aiohttp import FormData
from aiohttp.test_utils import TestClient, TestServer
from aiohttp.web import Application

from dsld.api import SeedingHandler, StatsHandler, TasksHandler, TorrentsHandler
from dsld.keys import READER, SUBMITTER, SWEEPER
from dsld.station import (
    SeedingSweeper,
    SessionClient,
    TaskSnapshotReader,
    TaskSubmitter,
)
from fake_station import FakeStation, bencode, error_reply, make_task


TORRENT = bencode({"info": {"length": 1, "name": "x", "pieces": b"\x00" * 20}})


@pytest.fixture
def sweeper(client: SessionClient) -> SeedingSweeper:
    return SeedingSweeper(client, TaskSnapshotReader(client))


@pytest.fixture
async def http(client: SessionClient, sweeper: SeedingSweeper):
    app = Application()
    app.router.add_view(r"/api/v1/tasks", TasksHandler)
    app.router.add_view(r"/api/v1/torrents", TorrentsHandler)
    app.router.add_view(r"/api/v1/stats", StatsHandler)
    app.router.add_view(r"/api/v1/seeding", SeedingHandler)
    app[SUBMITTER] = TaskSubmitter(client, destination="dl")
    app[READER] = TaskSnapshotReader(client)
    app[SWEEPER] = sweeper
    async with TestClient(TestServer(app)) as http:
        yield http


class TestTasks:
    async def test_add_urls_and_text(self, http: TestClient, station: FakeStation):
        magnet = "magnet:?xt=urn:btih:aaaa"
        response = await http.post(
            "/api/v1/tasks",
            json={
                "urls": ["http://example.com/a.torrent", " "],
                "text": f"see {magnet} and {magnet}",
            },
        )
        assert response.status == 200
        body = await response.json()
        assert body == {
            "added": ["http://example.com/a.torrent", magnet],
            "failed": {},
        }
        assert [_.uri for _ in station.creates] == [
            "http://example.com/a.torrent",
            magnet,
        ]

    async def test_partial_failure(self, http: TestClient, station: FakeStation):
        station.create_replies = [error_reply(403)]
        response = await http.post(
            "/api/v1/tasks", json={"urls": ["http://a/1", "http://a/2"]}
        )
        body = await response.json()
        assert body["added"] == ["http://a/2"]
        assert list(body["failed"]) == ["http://a/1"]

    @pytest.mark.parametrize(
        "payload",
        [{}, {"urls": []}, {"urls": "http://a/1"}, {"text": "nothing"}, [1, 2]],
    )
    async def test_bad_request(self, http: TestClient, payload):
        response = await http.post("/api/v1/tasks", json=payload)
        assert response.status == 400

    async def test_not_json(self, http: TestClient):
        response = await http.post("/api/v1/tasks", data=b"{broken")
        assert response.status == 400

    async def test_list(self, http: TestClient, station: FakeStation):
        station.tasks = [
            make_task("a", "paused", create_time=1),
            make_task("b", "downloading", create_time=2),
        ]
        response = await http.get("/api/v1/tasks", params={"limit": "10"})
        assert response.status == 200
        body = await response.json()
        assert body["total"] == 2
        assert [_["id"] for _ in body["tasks"]] == ["a", "b"]
        assert body["tasks"][1]["status"] == "downloading"
        assert body["recent"] == ["b"]
        assert station.list_calls == [(0, 10)]

    async def test_list_bad_limit(self, http: TestClient):
        response = await http.get("/api/v1/tasks", params={"limit": "many"})
        assert response.status == 400


class TestTorrents:
    async def test_upload(self, http: TestClient, station: FakeStation):
        form = FormData()
        form.add_field(
            "file", TORRENT, filename="a b.torrent", content_type="application/x-bittorrent"
        )
        form.add_field("file", b"text", filename="notes.txt", content_type="text/plain")
        response = await http.post("/api/v1/torrents", data=form)
        assert response.status == 200
        body = await response.json()
        assert body["added"] == ["a b.torrent"]
        assert body["failed"] == {"notes.txt": "not a torrent file"}
        assert len(station.creates) == 1
        assert station.creates[0].filename == "a_b.torrent"
        assert station.creates[0].data == TORRENT

    async def test_oversized_file(
        self,
        http: TestClient,
        station: FakeStation,
        monkeypatch: pytest.MonkeyPatch,
    ):
        monkeypatch.setattr("dsld.api.MAX_TORRENT_SIZE", 1024)
        form = FormData()
        form.add_field(
            "file", b"x" * 4096, filename="big.torrent", content_type="application/x-bittorrent"
        )
        form.add_field(
            "file", TORRENT, filename="small.torrent", content_type="application/x-bittorrent"
        )
        response = await http.post("/api/v1/torrents", data=form)
        assert response.status == 200
        body = await response.json()
        assert body["added"] == ["small.torrent"]
        assert body["failed"] == {"big.torrent": "file too large"}
        assert [_.filename for _ in station.creates] == ["small.torrent"]

    async def test_not_multipart(self, http: TestClient):
        response = await http.post("/api/v1/torrents", json={"file": "x"})
        assert response.status == 400

    async def test_no_file(self, http: TestClient):
        form = FormData()
        form.add_field("other", b"value", filename="other.bin")
        response = await http.post("/api/v1/torrents", data=form)
        assert response.status == 400


class TestStats:
    async def test_stats(self, http: TestClient, station: FakeStation):
        station.tasks = [make_task("a", "seeding"), make_task("b", "paused")]
        response = await http.get("/api/v1/stats")
        body = await response.json()
        assert body == {
            "total": 2,
            "counts": {"seeding": 1, "paused": 1},
            "active": 1,
            "speed_download": 20,
            "speed_upload": 2,
        }


class TestSeeding:
    async def test_sweep(self, http: TestClient, station: FakeStation):
        station.tasks = [make_task("a", "seeding"), make_task("b", "paused")]
        response = await http.post("/api/v1/seeding")
        assert response.status == 200
        body = await response.json()
        assert body == {"checked": 2, "seeding": 1, "paused": 1, "failed": []}
        assert station.pauses == ["a"]

    async def test_busy(
        self, http: TestClient, station: FakeStation, sweeper: SeedingSweeper
    ):
        station.list_delay = 0.1
        running = asyncio.create_task(sweeper.sweep_once("interval"))
        await asyncio.sleep(0)
        assert sweeper.is_running
        response = await http.post("/api/v1/seeding")
        assert response.status == 409
        await running


class TestRemoteFailure:
    @pytest.mark.parametrize(
        "method, path",
        [
            ("GET", "/api/v1/tasks"),
            ("GET", "/api/v1/stats"),
            ("POST", "/api/v1/seeding"),
        ],
    )
    async def test_json_error(
        self, http: TestClient, station: FakeStation, method: str, path: str
    ):
        station.list_status = 500
        response = await http.request(method, path)
        assert response.status == 502
        assert response.content_type == "application/json"
        body = await response.json()
        assert "HTTP 500" in body["error"]
