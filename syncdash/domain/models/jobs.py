"""Models for tracking the server-side orphan analysis job.

The analysis is computed asynchronously by the backend. Each fetch returns
the dependency maps computed so far plus a status of "loading" or
"complete".
"""

import asyncio
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional

from syncdash.domain.models.common import TenantId

STATUS_LOADING = "loading"
STATUS_COMPLETE = "complete"
KNOWN_JOB_STATUSES = (STATUS_LOADING, STATUS_COMPLETE)


class UnexpectedJobStatusError(ValueError):
    """Raised when the job endpoint reports a status outside the known set."""
    def __init__(self, status: Any):
        self.status = status
        super().__init__(f"Unexpected orphan analysis status: {status!r}")


@dataclass(frozen=True)
class OrphanAnalysisData:
    """Dependency maps keyed by content id. An empty list marks an orphan."""
    status: str
    story_fragments: Dict[str, List[str]] = field(default_factory=dict)
    panes: Dict[str, List[str]] = field(default_factory=dict)
    menus: Dict[str, List[str]] = field(default_factory=dict)
    files: Dict[str, List[str]] = field(default_factory=dict)
    resources: Dict[str, List[str]] = field(default_factory=dict)
    beliefs: Dict[str, List[str]] = field(default_factory=dict)
    epinets: Dict[str, List[str]] = field(default_factory=dict)
    tractstacks: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        return self.status == STATUS_COMPLETE

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "OrphanAnalysisData":
        """Builds the model from the backend's camelCase JSON payload.

        Raises:
            UnexpectedJobStatusError: If ``status`` is not loading/complete.
        """
        if not isinstance(payload, Mapping):
            raise UnexpectedJobStatusError(None)
        status = payload.get("status")
        if status not in KNOWN_JOB_STATUSES:
            raise UnexpectedJobStatusError(status)
        return cls(
            status=status,
            story_fragments=dict(payload.get("storyFragments") or {}),
            panes=dict(payload.get("panes") or {}),
            menus=dict(payload.get("menus") or {}),
            files=dict(payload.get("files") or {}),
            resources=dict(payload.get("resources") or {}),
            beliefs=dict(payload.get("beliefs") or {}),
            epinets=dict(payload.get("epinets") or {}),
            tractstacks=dict(payload.get("tractstacks") or {}),
        )

    def dependency_maps(self) -> Dict[str, Dict[str, List[str]]]:
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name != "status"}


def count_orphans(data: Optional[OrphanAnalysisData]) -> int:
    """Counts items whose dependency list is empty, across every map."""
    if data is None:
        return 0
    return sum(
        1
        for deps_by_id in data.dependency_maps().values()
        for deps in deps_by_id.values()
        if len(deps) == 0
    )


@dataclass(frozen=True)
class JobState:
    """Per-tenant view of the job, as observed by the dashboard."""
    data: Optional[OrphanAnalysisData] = None
    is_loading: bool = False
    error: Optional[str] = None
    last_fetched: Optional[float] = None


@dataclass(frozen=True)
class PollPolicy:
    """Backoff and ceiling configuration for the job poller (seconds)."""
    initial_delay: float = 10.0
    backoff_factor: float = 2.0
    max_delay: float = 30.0
    max_attempts: int = 25
    max_duration: float = 10 * 60.0
    max_consecutive_errors: int = 5
    freshness_window: float = 5 * 60.0

    def delay_for(self, attempt_index: int) -> float:
        """Delay before the attempt following ``attempt_index`` (0-indexed)."""
        return min(self.initial_delay * (self.backoff_factor ** attempt_index), self.max_delay)


@dataclass
class PollingSession:
    """Ephemeral record for one polling run of one tenant.

    Created on trigger, dropped on success, cap or error threshold.
    """
    tenant_id: TenantId
    start_time: float
    last_attempt_time: float
    attempts: int = 0
    consecutive_errors: int = 0
    timer: Optional[Any] = None
    finished: asyncio.Event = field(default_factory=asyncio.Event)

    def elapsed(self, now: float) -> float:
        return now - self.start_time

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None
