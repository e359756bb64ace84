"""Domain Events emitted by the synchronization controllers.

Examples include events for poll attempts, scheduled retries, polling
termination, and discovery dispatch or discard.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


EventSink = Callable[[DomainEvent], None]

# --- Job Polling Events ---

@dataclass
class PollAttemptStarted(DomainEvent):
    """A fetch of the job status is about to be made."""
    tenant_id: str
    attempt_number: int
    timestamp: float = field(default_factory=time.time)

@dataclass
class PollRetryScheduled(DomainEvent):
    """The next fetch has been armed after a loading status or a failure."""
    tenant_id: str
    attempt_number: int
    delay_seconds: float
    after_error: bool = False
    timestamp: float = field(default_factory=time.time)

@dataclass
class PollingStopped(DomainEvent):
    """A polling session ended ('complete', 'max_attempts', 'max_duration', 'errors', 'reset')."""
    tenant_id: str
    reason: str
    attempts: int
    timestamp: float = field(default_factory=time.time)

# --- Search Events ---

@dataclass
class DiscoveryDispatched(DomainEvent):
    """A discovery call left the coalescer."""
    tenant_id: str
    query: str
    dispatched_at: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class DiscoveryDiscarded(DomainEvent):
    """A discovery response arrived for a superseded query and was dropped."""
    tenant_id: str
    query: str
    current_query: Optional[str]
    timestamp: float = field(default_factory=time.time)

@dataclass
class RetrievalStarted(DomainEvent):
    """A retrieval call was made for a committed term."""
    tenant_id: str
    term: str
    is_topic: bool
    timestamp: float = field(default_factory=time.time)


def dispatch_event(event: DomainEvent, sink: Optional[EventSink] = None) -> None:
    """Logs the event and forwards it to ``sink`` when one is attached."""
    logger.debug(f"EVENT: {event}")
    if sink is not None:
        sink(event)
