from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


AUTH_API = "SYNO.API.Auth"
TASK_API = "SYNO.DownloadStation.Task"

PARAM_ERROR = 101
SESSION_ERROR_CODES = frozenset((105, 106, 107, 119))


@dataclass(frozen=True)
class ApiInfo:
    """Where and how to call one remote API"""

    name: str
    path: str
    max_version: int


@dataclass(frozen=True)
class Capabilities:
    auth: ApiInfo
    task: ApiInfo


@dataclass(frozen=True)
class Ok:
    data: dict[str, Any]


@dataclass(frozen=True)
class Err:
    code: int | None


type Envelope = Ok | Err


class TaskStatus(StrEnum):
    WAITING = "waiting"
    DOWNLOADING = "downloading"
    PAUSED = "paused"
    FINISHING = "finishing"
    FINISHED = "finished"
    HASHING = "hashing"
    HASH_CHECKING = "hash_checking"
    CHECKING = "checking"
    SEEDING = "seeding"
    FILEHOSTING_WAITING = "filehosting_waiting"
    FILEHOSTING_DOWNLOADING = "filehosting_downloading"
    EXTRACTING = "extracting"
    ERROR = "error"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: object) -> "TaskStatus":
        try:
            return cls(str(value))
        except ValueError:
            return cls.UNKNOWN


ACTIVE_STATUSES = frozenset(
    (
        TaskStatus.WAITING,
        TaskStatus.DOWNLOADING,
        TaskStatus.FINISHING,
        TaskStatus.HASHING,
        TaskStatus.HASH_CHECKING,
        TaskStatus.CHECKING,
        TaskStatus.SEEDING,
        TaskStatus.EXTRACTING,
        TaskStatus.FILEHOSTING_WAITING,
        TaskStatus.FILEHOSTING_DOWNLOADING,
    )
)


@dataclass(frozen=True)
class TaskRecord:
    """One download task as listed by the remote"""

    id: str
    status: TaskStatus
    size: int
    size_downloaded: int
    speed_download: int
    speed_upload: int
    create_time: int
    title: str


@dataclass(frozen=True)
class TaskPage:
    tasks: list[TaskRecord]
    total: int


@dataclass(frozen=True)
class TaskSnapshot:
    tasks: list[TaskRecord]
    total: int


@dataclass(frozen=True)
class TaskSummary:
    total: int
    counts: dict[str, int]
    active: int
    speed_download: int
    speed_upload: int


@dataclass(frozen=True)
class SubmissionAttempt:
    tag: str
    destination: str | None
    outcome: str


@dataclass(frozen=True)
class SweepResult:
    checked: int
    seeding: int
    paused: int
    failed: list[str] = field(default_factory=list)
