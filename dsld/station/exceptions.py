from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from .types import SubmissionAttempt


class StationError(Exception):
    pass


class SessionExpired(StationError):
    def __init__(self, code: int | None = None) -> None:
        super().__init__(f"session expired (code: {code})")
        self.code = code


class RemoteRejected(StationError):
    def __init__(self, code: int | None) -> None:
        super().__init__(
            f"rejected by remote (code: {code})" if code else "rejected by remote"
        )
        self.code = code


class TransportError(StationError):
    pass


class AllStrategiesExhausted(StationError):
    def __init__(
        self,
        reason: Exception | None,
        attempts: "list[SubmissionAttempt] | None" = None,
    ) -> None:
        super().__init__(f"all submission strategies failed: {reason}")
        self.reason = reason
        self.attempts = attempts or []
