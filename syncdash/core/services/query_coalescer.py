"""Controller that coalesces rapid query input into race-safe backend calls.

Keystrokes feed ``discover_terms``: input is debounced, discovery calls
are throttled to a minimum spacing, and a response for a query that is no
longer the in-flight one is dropped. Committing a suggestion or an exact
term triggers a single retrieval call.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from syncdash.core.services.background import BackgroundTasks
from syncdash.domain.events.sync_events import (
    DiscoveryDiscarded, DiscoveryDispatched, EventSink, RetrievalStarted, dispatch_event
)
from syncdash.domain.interfaces.clock import Clock
from syncdash.domain.interfaces.remote_api import RemoteApi
from syncdash.domain.models.api import unwrap
from syncdash.domain.models.common import QueryText, SearchTerm, TenantId
from syncdash.domain.models.search import (
    CoalescerSession, DiscoverySuggestion, SearchState, SearchTiming, parse_suggestions
)
from syncdash.infrastructure.config.settings import get_tenant_id
from syncdash.infrastructure.store.tenant_store import TenantPartitionedStore

logger = logging.getLogger(__name__)

IDLE_POLL_SECONDS = 0.05


class QueryCoalescer:
    """Debounce -> throttle -> dispatch pipeline for discovery, plus retrieval."""

    def __init__(
        self,
        api: RemoteApi,
        store: TenantPartitionedStore[SearchState],
        clock: Clock,
        timing: Optional[SearchTiming] = None,
        tenant_resolver: Callable[[], str] = get_tenant_id,
        event_sink: Optional[EventSink] = None,
    ):
        self.api = api
        self.store = store
        self.clock = clock
        self.timing = timing or SearchTiming()
        self._resolve_tenant = tenant_resolver
        self._event_sink = event_sink
        self.session = CoalescerSession()
        self._tasks = BackgroundTasks()
        logger.info(f"QueryCoalescer initialized: debounce={self.timing.debounce}s, throttle={self.timing.throttle}s")

    def _tenant(self, tenant_id: Optional[str] = None) -> TenantId:
        return TenantId(tenant_id or self._resolve_tenant())

    # --- Discovery ---

    def discover_terms(self, query: str) -> None:
        """Feeds one keystroke's worth of input into the pipeline.

        Never performs I/O directly: an empty query resets discovery state
        at once, anything else arms the debounce timer.
        """
        self.session.cancel_timers()
        self.session.retrieve_epoch += 1
        tenant = self._tenant()

        if not query.strip():
            self.session.pending_query = None
            self.session.pending_tenant = None
            self.session.inflight_query = None
            self.store.set(tenant, {
                "search_results": None,
                "retrieve_error": None,
                "suggestions": (),
                "discover_error": None,
                "is_discovering": False,
            })
            return

        self.store.set(tenant, {"search_results": None, "retrieve_error": None})
        self.session.pending_query = QueryText(query)
        self.session.pending_tenant = tenant
        self.session.debounce_timer = self.clock.call_later(self.timing.debounce, self._on_debounce)

    def _on_debounce(self) -> None:
        self.session.debounce_timer = None
        wait = self.session.throttle_wait(self.clock.now(), self.timing.throttle)
        if wait <= 0:
            self._execute_pending()
        else:
            logger.debug(f"Discovery throttled; dispatching in {wait:.3f}s")
            self.session.throttle_timer = self.clock.call_later(wait, self._on_throttle)

    def _on_throttle(self) -> None:
        self.session.throttle_timer = None
        self._execute_pending()

    def _execute_pending(self) -> None:
        query = self.session.pending_query
        tenant = self.session.pending_tenant
        if not query or tenant is None:
            return
        self.session.pending_query = None
        self.session.pending_tenant = None
        # Stamped at scheduling time, before the response is known
        self.session.last_dispatch_time = self.clock.now()
        self._tasks.spawn(self._perform_discovery(tenant, query))

    async def _perform_discovery(self, tenant: TenantId, raw_query: QueryText) -> None:
        query = QueryText(raw_query.strip())
        if not query:
            self.store.set(tenant, {"suggestions": ()})
            return
        if self.session.inflight_query == query:
            logger.debug(f"Discovery for '{query}' already in flight")
            return

        self.session.inflight_query = query
        dispatch_event(DiscoveryDispatched(tenant_id=tenant, query=query, dispatched_at=self.clock.now()), self._event_sink)
        self.store.set(tenant, {"is_discovering": True, "discover_error": None})

        suggestions: tuple = ()
        error: Optional[str] = None
        try:
            response = await self.api.discover(tenant, query)
            suggestions = tuple(parse_suggestions(unwrap(response, "Discovery failed")))
        except Exception as e:
            logger.warning(f"Discovery for '{query}' failed: {e}")
            error = str(e) or "Discovery failed"

        if self.session.inflight_query != query:
            logger.debug(f"Discarding discovery response for superseded query '{query}'")
            dispatch_event(DiscoveryDiscarded(
                tenant_id=tenant, query=query, current_query=self.session.inflight_query
            ), self._event_sink)
            return

        self.session.inflight_query = None
        self.store.set(tenant, {"suggestions": suggestions, "discover_error": error, "is_discovering": False})

    # --- Retrieval ---

    async def retrieve(self, term: str, is_topic: bool = False, tenant_id: Optional[str] = None) -> None:
        """Clears suggestions, then fetches categorized results for a committed term.

        The result is dropped if new input or clear_all() arrived meanwhile.
        """
        tenant = self._tenant(tenant_id)
        self.session.retrieve_epoch += 1
        epoch = self.session.retrieve_epoch
        dispatch_event(RetrievalStarted(tenant_id=tenant, term=term, is_topic=is_topic), self._event_sink)
        self.store.set(tenant, {
            "suggestions": (),
            "discover_error": None,
            "is_retrieving": True,
            "retrieve_error": None,
        })

        results: Any = None
        error: Optional[str] = None
        try:
            response = await self.api.retrieve(tenant, SearchTerm(term), is_topic)
            results = unwrap(response, "Retrieval failed")
        except Exception as e:
            logger.warning(f"Retrieval for '{term}' failed: {e}")
            error = str(e) or "Retrieval failed"

        if epoch != self.session.retrieve_epoch:
            logger.debug(f"Discarding retrieval results for '{term}': superseded")
            return
        self.store.set(tenant, {"search_results": results, "retrieve_error": error, "is_retrieving": False})

    def select_suggestion(self, suggestion: DiscoverySuggestion) -> "asyncio.Task[None]":
        """Commits a suggestion: clears suggestions, then retrieves it."""
        tenant = self._tenant()
        return self._tasks.spawn(self.retrieve(suggestion.term, suggestion.is_topic, tenant))

    def select_exact_match(self, term: str) -> "asyncio.Task[None]":
        """Commits a free-typed term; it is a topic if a current suggestion says so."""
        tenant = self._tenant()
        match = next(
            (s for s in self.store.get(tenant).suggestions if s.term.lower() == term.lower()),
            None,
        )
        is_topic = match is not None and match.is_topic
        return self._tasks.spawn(self.retrieve(term, is_topic, tenant))

    # --- Teardown ---

    def clear_all(self) -> None:
        """Cancels timers and resets all search state, including in-flight tracking."""
        self.session.cancel_timers()
        self.session.pending_query = None
        self.session.pending_tenant = None
        self.session.inflight_query = None
        self.session.retrieve_epoch += 1
        self.store.reset(self._tenant())

    async def wait_until_idle(self) -> None:
        """Waits until no timer is armed and no call is outstanding.

        Polls on real time, so it is meant for use with LoopClock.
        """
        while True:
            if len(self._tasks):
                await self._tasks.join()
            elif self.session.has_armed_timer:
                await asyncio.sleep(IDLE_POLL_SECONDS)
            else:
                return
