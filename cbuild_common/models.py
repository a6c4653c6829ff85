"""
Data models for remote builds.

These models represent the domain objects passed between the orchestrator,
the log tailer, the completion waiter and the remote service clients.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .errors import RemoteCallError

# Log group naming convention of the remote build service
LOG_GROUP_TEMPLATE = "/remote/{project}"
BUILD_ID_SEPARATOR = ":"


@dataclass(frozen=True)
class Job:
    """
    A submitted remote build.

    Created once the build service accepts a submission and never modified
    afterwards.
    """

    build_id: str
    log_group: str
    log_stream: str
    submitted_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_build_id(
        cls, project: str, build_id: str, submitted_at: datetime | None = None
    ) -> "Job":
        """
        Derive the job and its log locator from a build id.

        The build service names the log stream after the part of the build id
        following the first separator, e.g. "proj:abc123" -> "abc123".

        Raises:
            RemoteCallError: If the build id does not follow that convention
        """
        parts = build_id.split(BUILD_ID_SEPARATOR)
        if len(parts) < 2 or not parts[1]:
            raise RemoteCallError(
                f"Unexpected build id format: {build_id!r}",
                operation="submitting build",
            )

        return cls(
            build_id=build_id,
            log_group=LOG_GROUP_TEMPLATE.format(project=project),
            log_stream=parts[1],
            submitted_at=submitted_at or datetime.now(UTC),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "build_id": self.build_id,
            "log_group": self.log_group,
            "log_stream": self.log_stream,
            "submitted_at": self.submitted_at.isoformat(),
        }


@dataclass(frozen=True)
class LogLine:
    """A single line of remote build output."""

    timestamp: datetime
    message: str

    def format(self) -> str:
        """Render the line for display. Naive timestamps are taken as UTC."""
        ts = self.timestamp
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=UTC)
        ts = ts.astimezone(UTC)
        return f"ts={ts.strftime('%Y-%m-%dT%H:%M:%SZ')} msg={self.message}"

    def dedup_key(self) -> str:
        """Key identifying this line for duplicate suppression (timestamp + message)."""
        return self.format()


@dataclass
class LogPage:
    """One page of log lines and the token to request the next page."""

    lines: list[LogLine] = field(default_factory=list)
    next_token: str | None = None


@dataclass
class BuildStatus:
    """
    Status of a build as reported by the build service.

    build_complete is the terminal flag; build_status carries the phase result
    (e.g. "SUCCEEDED", "FAILED", "IN_PROGRESS").
    """

    build_id: str
    build_complete: bool
    build_status: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.build_id,
            "build_complete": self.build_complete,
            "build_status": self.build_status,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BuildStatus":
        return cls(
            build_id=data["id"],
            build_complete=bool(data.get("build_complete", False)),
            build_status=data.get("build_status"),
        )


class WaitState(Enum):
    """
    Observed state of a build.

    Builds start RUNNING and move to exactly one terminal state.
    """

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not WaitState.RUNNING

    @classmethod
    def from_status(cls, status: BuildStatus) -> "WaitState":
        if not status.build_complete:
            return cls.RUNNING
        if (status.build_status or "").upper() == "SUCCEEDED":
            return cls.SUCCEEDED
        return cls.FAILED


@dataclass
class BuildResult:
    """Outcome of one orchestrated build."""

    job: Job
    status: BuildStatus
    tailer_error: Exception | None = None
    lines_emitted: int = 0

    @property
    def state(self) -> WaitState:
        return WaitState.from_status(self.status)

    @property
    def succeeded(self) -> bool:
        return self.state is WaitState.SUCCEEDED
