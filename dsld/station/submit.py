import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from aiohttp import FormData

from ..lib import enqueue_to_watch_dir, sanitize_torrent_filename
from ..torrent import MalformedBencode, magnet_from_torrent
from .client import SessionClient, classify_error, make_params
from .exceptions import AllStrategiesExhausted, RemoteRejected
from .types import PARAM_ERROR, ApiInfo, Envelope, Err, Ok, SubmissionAttempt


_L = logging.getLogger(__name__)

_TORRENT_MIME = "application/x-bittorrent"


@dataclass(kw_only=True)
class _Job:
    client: SessionClient
    task_api: ApiInfo
    sid: str
    destination: str | None
    attempts: list[SubmissionAttempt]

    def record(self, tag: str, destination: str | None, outcome: str) -> None:
        attempt = SubmissionAttempt(tag=tag, destination=destination, outcome=outcome)
        _L.debug(f"attempt: {attempt}")
        self.attempts.append(attempt)

    def check(self, tag: str, destination: str | None, envelope: Envelope) -> None:
        match envelope:
            case Ok():
                self.record(tag, destination, "ok")
            case Err() as error:
                self.record(tag, destination, f"error {error.code}")
                raise classify_error(error)


@dataclass(kw_only=True)
class _UriJob(_Job):
    uri: str


@dataclass(kw_only=True)
class _FileJob(_Job):
    filename: str
    data: bytes
    watch_dir: Path | None


# Returns False if it does not apply, True if the task was created, raises if
# it was tried and failed.
type _Strategy[J: _Job] = Callable[[J, Exception | None], Awaitable[bool]]


class TaskSubmitter:
    """
    Creates download tasks from URIs and torrent files.

    Remote versions disagree on how a task creation request should look, so a
    torrent file is tried in several request shapes before falling back to the
    drop folder and finally to a magnet link built from the file itself.
    """

    def __init__(
        self,
        client: SessionClient,
        *,
        destination: str | None = None,
        watch_dir: Path | None = None,
    ) -> None:
        self._client = client
        self._destination = destination or None
        self._watch_dir = watch_dir

    async def submit_uri(self, uri: str) -> None:
        uri = uri.strip()
        if not uri:
            raise ValueError("empty uri")

        async def action(sid: str) -> None:
            capabilities = await self._client.discover_capabilities()
            job = _UriJob(
                client=self._client,
                task_api=capabilities.task,
                sid=sid,
                destination=self._destination,
                attempts=[],
                uri=uri,
            )
            await _run_chain(job, URI_STRATEGIES, _URI_RECOVERABLE)

        await self._client.with_session(action)
        _L.info(f"added uri {uri[:120]}")

    async def submit_file(self, filename: str, data: bytes) -> None:
        if not data:
            raise ValueError("empty torrent data")
        safe_name = sanitize_torrent_filename(filename)
        _L.debug(
            f"submit file {filename!r} as {safe_name!r}, {len(data)} bytes,"
            f" destination: {self._destination or '(default)'}"
        )

        async def action(sid: str) -> None:
            capabilities = await self._client.discover_capabilities()
            job = _FileJob(
                client=self._client,
                task_api=capabilities.task,
                sid=sid,
                destination=self._destination,
                attempts=[],
                filename=safe_name,
                data=data,
                watch_dir=self._watch_dir,
            )
            await _run_chain(job, FILE_STRATEGIES, _FILE_RECOVERABLE)

        await self._client.with_session(action)
        _L.info(f"added torrent file {safe_name}")


async def _run_chain[J: _Job](
    job: J,
    strategies: Sequence[tuple[str, _Strategy[J]]],
    recoverable: tuple[type[Exception], ...],
) -> None:
    last: Exception | None = None
    rejection: RemoteRejected | None = None
    for tag, strategy in strategies:
        try:
            done = await strategy(job, last)
        except recoverable as e:
            _L.debug(f"{tag} failed: {e}")
            last = e
            cause = e.reason if isinstance(e, AllStrategiesExhausted) else e
            if isinstance(cause, RemoteRejected):
                rejection = cause
            continue
        if done:
            _L.debug(f"{tag} succeeded")
            return
    raise AllStrategiesExhausted(rejection or last, job.attempts)


def _is_param_error(error: Exception | None) -> bool:
    return isinstance(error, RemoteRejected) and error.code == PARAM_ERROR


async def _post_uri(job: _UriJob, tag: str, destination: str | None) -> None:
    params = make_params(job.task_api, "create", job.sid, uri=job.uri)
    if destination:
        params["destination"] = destination
    _L.debug(f"{tag}: destination={destination or '(default)'} uri={job.uri[:120]}")
    envelope = await job.client.request(job.task_api, http_method="POST", data=params)
    job.check(tag, destination, envelope)


async def create_from_uri(job: _UriJob, last: Exception | None) -> bool:
    await _post_uri(job, "uri", job.destination)
    return True


async def create_from_uri_without_destination(
    job: _UriJob, last: Exception | None
) -> bool:
    if not job.destination or not _is_param_error(last):
        return False
    await _post_uri(job, "uri_no_destination", None)
    return True


URI_STRATEGIES: list[tuple[str, _Strategy[_UriJob]]] = [
    ("uri", create_from_uri),
    ("uri_no_destination", create_from_uri_without_destination),
]
_URI_RECOVERABLE = (RemoteRejected,)


async def _post_file(
    job: _FileJob, tag: str, destination: str | None, *, multipart: bool
) -> None:
    params = make_params(job.task_api, "create", job.sid)
    if destination:
        params["destination"] = destination

    form = FormData()
    if multipart:
        for key, value in params.items():
            form.add_field(key, value)
        query = None
    else:
        # control parameters go to the query, the body only holds the file
        query = params
    form.add_field(
        "file", job.data, filename=job.filename, content_type=_TORRENT_MIME
    )

    _L.debug(
        f"{tag}: destination={destination or '(default)'} filename={job.filename}"
    )
    envelope = await job.client.request(
        job.task_api, http_method="POST", params=query, data=form
    )
    job.check(tag, destination, envelope)


async def upload_with_query(job: _FileJob, last: Exception | None) -> bool:
    await _post_file(job, "query_file", job.destination, multipart=False)
    return True


async def upload_with_query_without_destination(
    job: _FileJob, last: Exception | None
) -> bool:
    if not job.destination or not _is_param_error(last):
        return False
    await _post_file(job, "query_file_no_destination", None, multipart=False)
    return True


async def upload_with_multipart(job: _FileJob, last: Exception | None) -> bool:
    if not _is_param_error(last):
        return False
    await _post_file(job, "multipart", job.destination, multipart=True)
    return True


async def upload_with_multipart_without_destination(
    job: _FileJob, last: Exception | None
) -> bool:
    if not job.destination or not _is_param_error(last):
        return False
    await _post_file(job, "multipart_no_destination", None, multipart=True)
    return True


async def enqueue_to_watch_folder(job: _FileJob, last: Exception | None) -> bool:
    if not job.watch_dir:
        return False
    try:
        path = await enqueue_to_watch_dir(job.watch_dir, job.filename, job.data)
    except OSError as e:
        job.record("watch_dir", str(job.watch_dir), f"error {e}")
        raise
    job.record("watch_dir", str(job.watch_dir), "ok")
    _L.info(f"saved {path} to the watch folder")
    return True


async def create_from_magnet(job: _FileJob, last: Exception | None) -> bool:
    try:
        magnet = magnet_from_torrent(job.data)
    except MalformedBencode as e:
        job.record("magnet", job.destination, f"error {e}")
        raise
    if not magnet:
        job.record("magnet", job.destination, "error no info section")
        raise MalformedBencode("torrent has no info section")

    _L.debug(f"retry with parsed magnet {magnet[:160]}")
    uri_job = _UriJob(
        client=job.client,
        task_api=job.task_api,
        sid=job.sid,
        destination=job.destination,
        attempts=job.attempts,
        uri=magnet,
    )
    await _run_chain(uri_job, URI_STRATEGIES, _URI_RECOVERABLE)
    return True


FILE_STRATEGIES: list[tuple[str, _Strategy[_FileJob]]] = [
    ("query_file", upload_with_query),
    ("query_file_no_destination", upload_with_query_without_destination),
    ("multipart", upload_with_multipart),
    ("multipart_no_destination", upload_with_multipart_without_destination),
    ("watch_dir", enqueue_to_watch_folder),
    ("magnet", create_from_magnet),
]
_FILE_RECOVERABLE = (
    RemoteRejected,
    AllStrategiesExhausted,
    MalformedBencode,
    OSError,
)
