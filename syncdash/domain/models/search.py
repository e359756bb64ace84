"""Models for the two-phase search protocol (discovery, then retrieval)."""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from syncdash.domain.models.common import QueryText, SearchTerm, TenantId

TOPIC_SUGGESTION = "TOPIC"

# Retrieval output is passed through as the backend categorizes it,
# e.g. {"storyFragmentResults": [...], "contextResults": [...]}.
CategorizedResults = Dict[str, Any]


@dataclass(frozen=True)
class DiscoverySuggestion:
    """A term proposed by the discovery endpoint."""
    term: SearchTerm
    type: str

    @property
    def is_topic(self) -> bool:
        return self.type == TOPIC_SUGGESTION

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "DiscoverySuggestion":
        return cls(term=SearchTerm(str(payload["term"])), type=str(payload.get("type", "")))


def parse_suggestions(data: Any) -> List[DiscoverySuggestion]:
    """Extracts suggestions from a discovery payload ({"suggestions": [...]})."""
    raw = data.get("suggestions") if isinstance(data, Mapping) else data
    return [DiscoverySuggestion.from_payload(item) for item in raw or []]


@dataclass(frozen=True)
class SearchState:
    """Observable search state; discovery and retrieval are tracked separately."""
    suggestions: Tuple[DiscoverySuggestion, ...] = ()
    is_discovering: bool = False
    discover_error: Optional[str] = None
    search_results: Optional[CategorizedResults] = None
    is_retrieving: bool = False
    retrieve_error: Optional[str] = None


@dataclass(frozen=True)
class SearchTiming:
    """Debounce and throttle windows, in seconds."""
    debounce: float = 0.1
    throttle: float = 1.2


@dataclass
class CoalescerSession:
    """Mutable bookkeeping for one QueryCoalescer instance.

    ``last_dispatch_time`` is stamped when a discovery call is scheduled,
    not when it resolves.
    """
    pending_query: Optional[QueryText] = None
    pending_tenant: Optional[TenantId] = None
    inflight_query: Optional[QueryText] = None
    last_dispatch_time: float = 0.0
    # Bumped whenever retrieved results stop being wanted
    retrieve_epoch: int = 0
    debounce_timer: Optional[Any] = None
    throttle_timer: Optional[Any] = None

    def cancel_timers(self) -> None:
        for name in ("debounce_timer", "throttle_timer"):
            timer = getattr(self, name)
            if timer is not None:
                timer.cancel()
                setattr(self, name, None)

    @property
    def has_armed_timer(self) -> bool:
        return self.debounce_timer is not None or self.throttle_timer is not None

    def throttle_wait(self, now: float, throttle: float) -> float:
        """Seconds left before another discovery may be dispatched (0 if none)."""
        elapsed = now - self.last_dispatch_time
        if elapsed >= throttle:
            return 0.0
        return throttle - elapsed
