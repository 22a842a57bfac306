import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from aiohttp import ClientError, ClientSession, ClientTimeout, FormData, TCPConnector

from ..settings import StationData
from .exceptions import RemoteRejected, SessionExpired, StationError, TransportError
from .types import (
    AUTH_API,
    SESSION_ERROR_CODES,
    TASK_API,
    ApiInfo,
    Capabilities,
    Envelope,
    Err,
    Ok,
)


_L = logging.getLogger(__name__)

_INFO_PATH = "query.cgi"
_SESSION_NAME = "DownloadStation"


type RequestData = dict[str, str] | FormData | None


@asynccontextmanager
async def create_session_client(station: StationData):
    timeout = ClientTimeout(total=station.timeout)
    # the remote often runs with a self-signed certificate
    connector = TCPConnector(ssl=False) if station.allow_self_signed else None
    async with ClientSession(timeout=timeout, connector=connector) as curl:
        client = SessionClient(
            base_url=station.base_url,
            username=station.username,
            password=station.password,
            session=curl,
        )
        try:
            yield client
        finally:
            await client.logout()


class SessionClient:
    """
    Talks to the remote web API on behalf of one account.

    Owns the session id and the API capability table. Concurrent callers share
    both, and concurrent logins are folded into a single request.
    """

    def __init__(
        self,
        *,
        base_url: str,
        username: str,
        password: str,
        session: ClientSession,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._username = username
        self._password = password
        self._curl = session
        self._sid: str | None = None
        self._login_task: asyncio.Task[str] | None = None
        self._capabilities: Capabilities | None = None
        self._capabilities_lock = asyncio.Lock()

    @property
    def sid(self) -> str | None:
        return self._sid

    async def discover_capabilities(self) -> Capabilities:
        if self._capabilities:
            return self._capabilities
        async with self._capabilities_lock:
            if not self._capabilities:
                self._capabilities = await self._query_capabilities()
        return self._capabilities

    async def login(self, force: bool = False) -> str:
        if self._sid and not force:
            return self._sid
        return await self._join_login()

    async def logout(self) -> None:
        if not self._sid or not self._capabilities:
            return
        sid = self._sid
        self._sid = None
        auth = self._capabilities.auth
        params = make_params(auth, "logout", sid, session=_SESSION_NAME)
        try:
            await self.request(auth, params=params)
        except StationError as e:
            _L.warning(f"logout failed: {e}")

    async def with_session[T](self, action: Callable[[str], Awaitable[T]]) -> T:
        """
        Runs `action` with a valid session id.

        If the remote reports an expired session, logs in again once and
        retries. A second failure is raised as is.
        """
        sid = await self.login()
        try:
            return await action(sid)
        except SessionExpired:
            _L.info("session expired, logging in again")
        sid = await self._refresh(sid)
        return await action(sid)

    async def request(
        self,
        api: ApiInfo,
        *,
        http_method: str = "GET",
        params: dict[str, str] | None = None,
        data: RequestData = None,
    ) -> Envelope:
        return await self._request(
            api.path, http_method=http_method, params=params, data=data
        )

    async def _refresh(self, stale_sid: str) -> str:
        if self._sid and self._sid != stale_sid:
            # renewed by another caller
            return self._sid
        return await self._join_login()

    async def _join_login(self) -> str:
        if self._login_task is None:
            task = asyncio.create_task(self._login())
            task.add_done_callback(_retrieve_exception)
            self._login_task = task
        # one cancelled caller must not cancel the login for the others
        return await asyncio.shield(self._login_task)

    async def _login(self) -> str:
        try:
            capabilities = await self.discover_capabilities()
            auth = capabilities.auth
            params = make_params(
                auth,
                "login",
                account=self._username,
                passwd=self._password,
                session=_SESSION_NAME,
                format="sid",
            )
            envelope = await self.request(auth, params=params)
            data = unwrap(envelope)
            sid = data.get("sid")
            if not sid:
                raise StationError("login succeeded without a session id")
            self._sid = str(sid)
            _L.info(f"logged in as {self._username}")
            return self._sid
        finally:
            self._login_task = None

    async def _query_capabilities(self) -> Capabilities:
        params = {
            "api": "SYNO.API.Info",
            "version": "1",
            "method": "query",
            "query": f"{AUTH_API},{TASK_API}",
        }
        envelope = await self._request(_INFO_PATH, params=params)
        data = unwrap(envelope)
        capabilities = Capabilities(
            auth=_to_api_info(AUTH_API, data.get(AUTH_API)),
            task=_to_api_info(TASK_API, data.get(TASK_API)),
        )
        _L.debug(f"capabilities: {capabilities}")
        return capabilities

    async def _request(
        self,
        path: str,
        *,
        http_method: str = "GET",
        params: dict[str, str] | None = None,
        data: RequestData = None,
    ) -> Envelope:
        url = f"{self._base_url}/webapi/{path}"
        try:
            async with self._curl.request(
                http_method, url, params=params, data=data
            ) as response:
                if response.status >= 400:
                    raise TransportError(f"HTTP {response.status} from {path}")
                payload = await response.json(content_type=None)
        except (ClientError, TimeoutError, ValueError) as e:
            raise TransportError(f"request to {path} failed: {e!r}") from e
        return decode_envelope(payload)


def make_params(
    api: ApiInfo, method: str, sid: str | None = None, **kwargs: str
) -> dict[str, str]:
    params = {
        "api": api.name,
        "version": str(api.max_version),
        "method": method,
    }
    params.update(kwargs)
    if sid:
        params["_sid"] = sid
    return params


def decode_envelope(payload: Any) -> Envelope:
    if not isinstance(payload, dict):
        raise TransportError(f"unexpected response: {payload!r}")
    if payload.get("success"):
        data = payload.get("data")
        return Ok(data=data if isinstance(data, dict) else {})
    error = payload.get("error")
    code = error.get("code") if isinstance(error, dict) else None
    return Err(code=code if isinstance(code, int) else None)


def classify_error(error: Err) -> SessionExpired | RemoteRejected:
    if error.code in SESSION_ERROR_CODES:
        return SessionExpired(error.code)
    return RemoteRejected(error.code)


def unwrap(envelope: Envelope) -> dict[str, Any]:
    match envelope:
        case Ok(data=data):
            return data
        case Err() as error:
            raise classify_error(error)


def _retrieve_exception(task: asyncio.Task[str]) -> None:
    # every waiter may have been cancelled before the login failed
    if not task.cancelled():
        task.exception()


def _to_api_info(name: str, raw: Any) -> ApiInfo:
    if not isinstance(raw, dict) or "path" not in raw:
        raise StationError(f"remote does not provide {name}")
    try:
        max_version = int(raw.get("maxVersion", 1))
    except (TypeError, ValueError) as e:
        raise StationError(f"invalid version for {name}: {raw}") from e
    return ApiInfo(name=name, path=str(raw["path"]), max_version=max_version)
