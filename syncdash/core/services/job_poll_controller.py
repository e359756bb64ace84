"""Controller that tracks the server-side orphan analysis job.

Repeatedly re-fetches the job until the backend reports "complete",
with exponential backoff between attempts, hard ceilings on attempts and
elapsed time, and an abort after too many consecutive failures. Progress
is published only through the tenant's JobState in the store.
"""

import logging
from typing import Callable, Dict, Optional

from syncdash.core.services.background import BackgroundTasks
from syncdash.domain.events.sync_events import (
    EventSink, PollAttemptStarted, PollRetryScheduled, PollingStopped, dispatch_event
)
from syncdash.domain.interfaces.clock import Clock
from syncdash.domain.interfaces.remote_api import RemoteApi
from syncdash.domain.models.api import unwrap
from syncdash.domain.models.common import TenantId
from syncdash.domain.models.jobs import JobState, OrphanAnalysisData, PollingSession, PollPolicy
from syncdash.infrastructure.config.settings import get_tenant_id
from syncdash.infrastructure.store.tenant_store import TenantPartitionedStore

logger = logging.getLogger(__name__)

CAP_REACHED_MESSAGE = "Orphan analysis is taking longer than expected. Please retry manually."

# PollingStopped reasons
STOP_COMPLETE = "complete"
STOP_MAX_ATTEMPTS = "max_attempts"
STOP_MAX_DURATION = "max_duration"
STOP_ERRORS = "errors"
STOP_RESET = "reset"
STOP_RESTARTED = "restarted"


class JobPollController:
    """Per-tenant Idle -> Fetching -> Polling/Complete/Failed state machine."""

    def __init__(
        self,
        api: RemoteApi,
        store: TenantPartitionedStore[JobState],
        clock: Clock,
        policy: Optional[PollPolicy] = None,
        tenant_resolver: Callable[[], str] = get_tenant_id,
        event_sink: Optional[EventSink] = None,
    ):
        """Initializes the controller.

        Args:
            api: Backend client used for the job status endpoint.
            store: Store receiving every JobState update.
            clock: Time source and timer factory for the backoff.
            policy: Backoff and ceilings (defaults: 10s/20s/30s..., 25 attempts,
                10 minutes, 5 consecutive errors, 5 minute freshness).
            tenant_resolver: Resolves the tenant when none is passed.
            event_sink: Optional receiver for domain events.
        """
        self.api = api
        self.store = store
        self.clock = clock
        self.policy = policy or PollPolicy()
        self._resolve_tenant = tenant_resolver
        self._event_sink = event_sink
        self._sessions: Dict[TenantId, PollingSession] = {}
        # Tenant -> session owning the outstanding fetch
        self._fetching: Dict[TenantId, PollingSession] = {}
        self._tasks = BackgroundTasks()

        logger.info(
            f"JobPollController initialized: initial_delay={self.policy.initial_delay}s, "
            f"max_delay={self.policy.max_delay}s, max_attempts={self.policy.max_attempts}, "
            f"max_duration={self.policy.max_duration}s, max_errors={self.policy.max_consecutive_errors}"
        )

    def _tenant(self, tenant_id: Optional[str]) -> TenantId:
        return TenantId(tenant_id or self._resolve_tenant())

    # --- Public triggers ---

    async def load(self, tenant_id: Optional[str] = None) -> None:
        """Starts a polling session for the tenant unless one is redundant.

        No-op when a fetch is already outstanding for the tenant, or when a
        complete result was fetched within the freshness window. Otherwise
        any previous session (and its timer) is discarded and a fresh one
        performs its first fetch before this coroutine returns.
        """
        tenant = self._tenant(tenant_id)
        now = self.clock.now()
        state = self.store.get(tenant)

        if (
            state.last_fetched is not None
            and now - state.last_fetched < self.policy.freshness_window
            and state.data is not None
            and state.data.is_complete
        ):
            logger.debug(f"Orphan analysis for '{tenant}' is fresh and complete; skipping reload.")
            return

        if tenant in self._fetching:
            logger.debug(f"Orphan analysis fetch already in flight for '{tenant}'; ignoring trigger.")
            return

        previous = self._sessions.get(tenant)
        if previous is not None:
            self._finish(previous, STOP_RESTARTED)

        session = PollingSession(tenant_id=tenant, start_time=now, last_attempt_time=now)
        self._sessions[tenant] = session
        logger.info(f"Starting orphan analysis polling for tenant '{tenant}'")
        await self._attempt(session)

    def reset(self, tenant_id: Optional[str] = None) -> None:
        """Stops polling, clears the in-flight flag and resets the tenant's state."""
        tenant = self._tenant(tenant_id)
        session = self._sessions.get(tenant)
        if session is not None:
            self._finish(session, STOP_RESET)
        self._fetching.pop(tenant, None)
        self.store.reset(tenant)
        logger.info(f"Orphan analysis state cleared for tenant '{tenant}'")

    def is_polling(self, tenant_id: Optional[str] = None) -> bool:
        return self._tenant(tenant_id) in self._sessions

    async def wait_until_settled(self, tenant_id: Optional[str] = None) -> None:
        """Waits until the tenant has no active session (follows restarts)."""
        tenant = self._tenant(tenant_id)
        while True:
            session = self._sessions.get(tenant)
            if session is None:
                return
            await session.finished.wait()

    # --- State machine ---

    def _cap_reason(self, session: PollingSession) -> Optional[str]:
        if session.attempts >= self.policy.max_attempts:
            return STOP_MAX_ATTEMPTS
        if session.elapsed(self.clock.now()) >= self.policy.max_duration:
            return STOP_MAX_DURATION
        return None

    def _on_timer(self, session: PollingSession) -> None:
        session.timer = None
        if self._sessions.get(session.tenant_id) is session:
            self._tasks.spawn(self._attempt(session))

    async def _attempt(self, session: PollingSession) -> None:
        tenant = session.tenant_id
        reason = self._cap_reason(session)
        if reason:
            self._fail_capped(session, reason)
            return

        self._fetching[tenant] = session
        session.attempts += 1
        session.last_attempt_time = self.clock.now()
        dispatch_event(PollAttemptStarted(tenant_id=tenant, attempt_number=session.attempts), self._event_sink)
        self.store.set(tenant, {"is_loading": True, "error": None})

        data: Optional[OrphanAnalysisData] = None
        error: Optional[Exception] = None
        try:
            response = await self.api.fetch_orphan_analysis(tenant)
            data = OrphanAnalysisData.from_payload(unwrap(response, "Failed to fetch orphan analysis"))
        except Exception as e:
            error = e
        finally:
            if self._fetching.get(tenant) is session:
                del self._fetching[tenant]

        if self._sessions.get(tenant) is not session:
            logger.info(f"Discarding orphan analysis result for '{tenant}': session was replaced or reset.")
            return

        if error is not None:
            self._on_error(session, error)
        else:
            self._on_data(session, data)

    def _on_data(self, session: PollingSession, data: OrphanAnalysisData) -> None:
        tenant = session.tenant_id
        session.consecutive_errors = 0
        if data.is_complete:
            self.store.set(tenant, {"data": data, "is_loading": False, "error": None, "last_fetched": self.clock.now()})
            logger.info(f"Orphan analysis complete for '{tenant}' after {session.attempts} attempt(s)")
            self._finish(session, STOP_COMPLETE)
            return

        self.store.set(tenant, {"data": data, "is_loading": True, "error": None, "last_fetched": self.clock.now()})
        self._schedule_next(session, after_error=False)

    def _on_error(self, session: PollingSession, error: Exception) -> None:
        tenant = session.tenant_id
        session.consecutive_errors += 1
        detail = str(error) or type(error).__name__

        if session.consecutive_errors >= self.policy.max_consecutive_errors:
            logger.error(
                f"Orphan analysis polling for '{tenant}' aborted after "
                f"{session.consecutive_errors} consecutive errors. Last error: {detail}"
            )
            self.store.set(tenant, {
                "is_loading": False,
                "error": f"Orphan analysis failed after {session.consecutive_errors} consecutive errors: {detail}",
            })
            self._finish(session, STOP_ERRORS)
            return

        logger.warning(
            f"Orphan analysis fetch for '{tenant}' failed on attempt {session.attempts} "
            f"({session.consecutive_errors}/{self.policy.max_consecutive_errors} consecutive): {detail}"
        )
        self.store.set(tenant, {
            "is_loading": False,
            "error": f"Failed to fetch orphan analysis (attempt {session.attempts}): {detail}",
        })
        self._schedule_next(session, after_error=True)

    def _schedule_next(self, session: PollingSession, after_error: bool) -> None:
        reason = self._cap_reason(session)
        if reason:
            self._fail_capped(session, reason)
            return

        session.cancel_timer()
        delay = self.policy.delay_for(session.attempts - 1)
        session.timer = self.clock.call_later(delay, lambda: self._on_timer(session))
        logger.debug(f"Next orphan analysis fetch for '{session.tenant_id}' in {delay:.1f}s")
        dispatch_event(PollRetryScheduled(
            tenant_id=session.tenant_id,
            attempt_number=session.attempts + 1,
            delay_seconds=delay,
            after_error=after_error,
        ), self._event_sink)

    def _fail_capped(self, session: PollingSession, reason: str) -> None:
        logger.warning(
            f"Orphan analysis polling for '{session.tenant_id}' stopped ({reason}) after "
            f"{session.attempts} attempts / {session.elapsed(self.clock.now()):.0f}s"
        )
        self.store.set(session.tenant_id, {"is_loading": False, "error": CAP_REACHED_MESSAGE})
        self._finish(session, reason)

    def _finish(self, session: PollingSession, reason: str) -> None:
        session.cancel_timer()
        if self._sessions.get(session.tenant_id) is session:
            del self._sessions[session.tenant_id]
        session.finished.set()
        dispatch_event(PollingStopped(tenant_id=session.tenant_id, reason=reason, attempts=session.attempts), self._event_sink)
