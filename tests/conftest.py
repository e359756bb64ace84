import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import pytest
from typer.testing import CliRunner

from syncdash.domain.interfaces.clock import Clock
from syncdash.domain.interfaces.remote_api import RemoteApi
from syncdash.domain.models.api import ApiResponse
from syncdash.infrastructure.cli.display import ConsoleDisplay
from syncdash.infrastructure.config import settings


async def settle(rounds: int = 10) -> None:
    """Lets spawned tasks run until they block on something external."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeTimer:
    def __init__(self, due: float, seq: int, callback: Callable[[], None]):
        self.due = due
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeClock(Clock):
    """Manual clock: time only moves when a test calls advance()."""

    def __init__(self, start: float = 1000.0):
        self._now = start
        self._seq = 0
        self._timers: List[FakeTimer] = []

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        self._seq += 1
        timer = FakeTimer(self._now + max(0.0, delay), self._seq, callback)
        self._timers.append(timer)
        return timer

    @property
    def armed(self) -> List[FakeTimer]:
        return [t for t in self._timers if not t.cancelled]

    async def advance(self, seconds: float) -> None:
        """Moves time forward, firing due timers in order and letting tasks run."""
        target = self._now + seconds
        while True:
            await settle()
            due = sorted(
                (t for t in self._timers if not t.cancelled and t.due <= target + 1e-9),
                key=lambda t: (t.due, t.seq),
            )
            if not due:
                break
            timer = due[0]
            self._timers.remove(timer)
            self._now = max(self._now, timer.due)
            timer.callback()
        self._now = target
        await settle()


@dataclass
class RecordedCall:
    method: str
    endpoint: str
    tenant_id: str
    params: Optional[Dict[str, Any]]
    payload: Optional[Any]
    at: float


class ScriptedApi(RemoteApi):
    """RemoteApi double answering from per-endpoint scripts.

    Each script entry is an ApiResponse, an exception to raise, or a
    callable(params, payload) returning either (or an awaitable of one).
    The last entry of a script repeats.
    """

    def __init__(self, clock: Optional[FakeClock] = None):
        self.clock = clock
        self.calls: List[RecordedCall] = []
        self._scripts: Dict[str, List[Any]] = {}

    def script(self, endpoint: str, *entries: Any) -> None:
        self._scripts[endpoint] = list(entries)

    def calls_to(self, endpoint: str) -> List[RecordedCall]:
        return [c for c in self.calls if c.endpoint == endpoint]

    async def request(self, method, endpoint, tenant_id, params=None, payload=None) -> ApiResponse:
        self.calls.append(RecordedCall(
            method, endpoint, tenant_id, params, payload, self.clock.now() if self.clock else 0.0
        ))
        script = self._scripts[endpoint]
        entry = script.pop(0) if len(script) > 1 else script[0]
        if callable(entry) and not isinstance(entry, ApiResponse):
            entry = entry(params, payload)
        if inspect.isawaitable(entry):
            entry = await entry
        if isinstance(entry, BaseException):
            raise entry
        return entry


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scripted_api(fake_clock) -> ScriptedApi:
    return ScriptedApi(fake_clock)


@pytest.fixture
def events() -> List[Any]:
    """Collects domain events; pass ``events.append`` as an event_sink."""
    return []


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keeps tenant/config state from leaking between tests."""
    monkeypatch.delenv(settings.TENANT_ENV_VAR, raising=False)
    monkeypatch.setattr(settings, "_config", {})
    monkeypatch.setattr(settings, "_runtime_config", {})
    settings.clear_test_config()
    yield
    settings.clear_test_config()


# --- CLI integration fixtures ---

class ClosableScriptedApi(ScriptedApi):
    """ScriptedApi standing in for RemoteApiClient, including aclose()."""

    def __init__(self):
        super().__init__()
        self.closed = False

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def mock_remote_client(mocker):
    """Patches RemoteApiClient in main.py with a scripted double."""
    api = ClosableScriptedApi()
    mocker.patch('syncdash.main.RemoteApiClient', return_value=api)
    return api


@pytest.fixture
def mock_console_display(mocker):
    """Mocks the ConsoleDisplay to capture output easily."""
    mock = mocker.MagicMock(spec=ConsoleDisplay)
    mocker.patch('syncdash.main.ConsoleDisplay', return_value=mock)
    return mock


@pytest.fixture(autouse=True)
def quiet_bootstrap(mocker):
    """Keeps CLI runs from reading local config files or replacing log handlers."""
    mocker.patch('syncdash.main.load_configuration')
    mocker.patch('syncdash.main.setup_logging_from_config')
