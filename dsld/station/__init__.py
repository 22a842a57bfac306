"""
Client side of the remote Download Station web API.

This package provides:
- A session aware API client
- Task creation with fallback strategies
- Task listing and pausing
- The seeding sweeper
"""

from .client import (
    SessionClient,
    classify_error,
    create_session_client,
    decode_envelope,
    make_params,
    unwrap,
)
from .exceptions import (
    AllStrategiesExhausted,
    RemoteRejected,
    SessionExpired,
    StationError,
    TransportError,
)
from .seeding import SeedingSweeper, watch_seeding
from .submit import TaskSubmitter
from .tasks import TaskSnapshotReader, pause_tasks, recent_tasks, summarize
from .types import (
    ApiInfo,
    Capabilities,
    Envelope,
    Err,
    Ok,
    SubmissionAttempt,
    SweepResult,
    TaskPage,
    TaskRecord,
    TaskSnapshot,
    TaskStatus,
    TaskSummary,
)


__all__ = [
    # Client
    "SessionClient",
    "classify_error",
    "create_session_client",
    "decode_envelope",
    "make_params",
    "unwrap",
    # Errors
    "AllStrategiesExhausted",
    "RemoteRejected",
    "SessionExpired",
    "StationError",
    "TransportError",
    # Operations
    "SeedingSweeper",
    "TaskSnapshotReader",
    "TaskSubmitter",
    "pause_tasks",
    "recent_tasks",
    "summarize",
    "watch_seeding",
    # Models
    "ApiInfo",
    "Capabilities",
    "Envelope",
    "Err",
    "Ok",
    "SubmissionAttempt",
    "SweepResult",
    "TaskPage",
    "TaskRecord",
    "TaskSnapshot",
    "TaskStatus",
    "TaskSummary",
]
