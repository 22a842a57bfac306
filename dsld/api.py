import json
import logging
from dataclasses import asdict
from typing import NotRequired, TypedDict

from aiohttp import BodyPartReader
from aiohttp.web import Response, View
from aiohttp.web_exceptions import HTTPBadRequest, HTTPConflict

from .keys import READER, SUBMITTER, SWEEPER
from .station import StationError, recent_tasks, summarize
from .torrent import extract_magnets


_L = logging.getLogger(__name__)

MAX_TORRENT_SIZE = 20 * 1024 * 1024
_TORRENT_MIME = "application/x-bittorrent"


class CreateTasksData(TypedDict):
    urls: NotRequired[list[str]]
    text: NotRequired[str]


class TasksHandler(View):
    async def get(self):
        try:
            limit = int(self.request.query.get("limit", "200"))
        except ValueError:
            raise HTTPBadRequest

        reader = self.request.app[READER]
        try:
            snapshot = await reader.snapshot(limit)
        except StationError as e:
            _L.error(f"failed to list tasks: {e}")
            return _error_response(e)
        return _json_response(
            {
                "total": snapshot.total,
                "tasks": [asdict(_) for _ in snapshot.tasks],
                "recent": [_.id for _ in recent_tasks(snapshot)],
            }
        )

    async def post(self):
        try:
            payload: CreateTasksData = await self.request.json()
        except ValueError:
            raise HTTPBadRequest
        if not isinstance(payload, dict):
            raise HTTPBadRequest

        raw_urls = payload.get("urls") or []
        if not isinstance(raw_urls, list):
            raise HTTPBadRequest
        urls = [_.strip() for _ in raw_urls if isinstance(_, str)]
        text = payload.get("text")
        urls.extend(extract_magnets(text if isinstance(text, str) else None))
        urls = list(dict.fromkeys(_ for _ in urls if _))
        if not urls:
            raise HTTPBadRequest

        submitter = self.request.app[SUBMITTER]
        added: list[str] = []
        failed: dict[str, str] = {}
        for url in urls:
            try:
                await submitter.submit_uri(url)
                added.append(url)
            except (StationError, ValueError) as e:
                _L.error(f"failed to add {url[:120]}: {e}")
                failed[url] = str(e)

        return _json_response({"added": added, "failed": failed})


class TorrentsHandler(View):
    async def post(self):
        if self.request.content_type != "multipart/form-data":
            raise HTTPBadRequest

        submitter = self.request.app[SUBMITTER]
        added: list[str] = []
        failed: dict[str, str] = {}

        reader = await self.request.multipart()
        async for part in reader:
            if not isinstance(part, BodyPartReader) or part.name != "file":
                continue

            filename = part.filename or ""
            content_type = part.headers.get("Content-Type", "")
            if not _is_torrent(filename, content_type):
                failed[filename] = "not a torrent file"
                continue

            data = await _read_part(part, MAX_TORRENT_SIZE)
            if data is None:
                failed[filename] = "file too large"
                continue

            try:
                await submitter.submit_file(filename, data)
                added.append(filename)
            except (StationError, ValueError) as e:
                _L.error(f"failed to add torrent file {filename}: {e}")
                failed[filename] = str(e)

        if not added and not failed:
            raise HTTPBadRequest

        return _json_response({"added": added, "failed": failed})


class StatsHandler(View):
    async def get(self):
        reader = self.request.app[READER]
        try:
            snapshot = await reader.snapshot(200)
        except StationError as e:
            _L.error(f"failed to read stats: {e}")
            return _error_response(e)
        return _json_response(asdict(summarize(snapshot)))


class SeedingHandler(View):
    async def post(self):
        sweeper = self.request.app[SWEEPER]
        try:
            result = await sweeper.sweep_once("manual")
        except StationError as e:
            _L.error(f"manual sweep failed: {e}")
            return _error_response(e)
        if result is None:
            raise HTTPConflict
        return _json_response(asdict(result))


def _is_torrent(filename: str, content_type: str) -> bool:
    return filename.lower().endswith(".torrent") or content_type == _TORRENT_MIME


async def _read_part(part: BodyPartReader, limit: int) -> bytes | None:
    """
    Reads one part in chunks, returns None once it grows past `limit`.

    The rest of an oversized part is skipped by the reader without buffering.
    """
    data = bytearray()
    while True:
        chunk = await part.read_chunk()
        if not chunk:
            return bytes(data)
        data.extend(chunk)
        if len(data) > limit:
            return None


def _error_response(error: StationError) -> Response:
    return _json_response({"error": str(error)}, status=502)


def _json_response(data: object, status: int = 200) -> Response:
    result = json.dumps(data)
    result = result + "\n"
    return Response(text=result, status=status, content_type="application/json")
