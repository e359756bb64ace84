import asyncio

import pytest

from syncdash.core.services.job_poll_controller import CAP_REACHED_MESSAGE, JobPollController
from syncdash.domain.events.sync_events import PollingStopped, PollRetryScheduled
from syncdash.domain.interfaces.remote_api import ORPHAN_ANALYSIS_ENDPOINT
from syncdash.domain.models.api import ApiResponse
from syncdash.domain.models.jobs import JobState, PollPolicy
from syncdash.infrastructure.store.tenant_store import TenantPartitionedStore
from tests.conftest import settle

LOADING = ApiResponse.ok({"status": "loading", "panes": {"p1": []}})
COMPLETE = ApiResponse.ok({"status": "complete", "panes": {"p1": [], "p2": ["sf1"]}})
FAILED = ApiResponse.fail("backend exploded")


@pytest.fixture
def job_store():
    return TenantPartitionedStore(JobState, tenant_resolver=lambda: "acme")


@pytest.fixture
def make_poller(scripted_api, job_store, fake_clock, events):
    def factory(policy=None):
        return JobPollController(
            api=scripted_api,
            store=job_store,
            clock=fake_clock,
            policy=policy,
            tenant_resolver=lambda: "acme",
            event_sink=events.append,
        )
    return factory


def stops(events):
    return [e for e in events if isinstance(e, PollingStopped)]


def retry_delays(events):
    return [e.delay_seconds for e in events if isinstance(e, PollRetryScheduled)]


@pytest.mark.asyncio
async def test_complete_on_first_fetch(make_poller, scripted_api, job_store, fake_clock, events):
    scripted_api.script(ORPHAN_ANALYSIS_ENDPOINT, COMPLETE)
    poller = make_poller()

    await poller.load()

    state = job_store.get("acme")
    assert state.is_loading is False
    assert state.error is None
    assert state.data.is_complete
    assert state.last_fetched == fake_clock.now()
    assert not poller.is_polling()
    assert stops(events)[0].reason == "complete"
    assert fake_clock.armed == []


@pytest.mark.asyncio
async def test_duplicate_trigger_while_fetching_makes_one_call(make_poller, scripted_api, job_store):
    response = asyncio.get_running_loop().create_future()
    scripted_api.script(ORPHAN_ANALYSIS_ENDPOINT, lambda params, payload: response)
    poller = make_poller()

    first = asyncio.create_task(poller.load("acme"))
    await settle()
    await poller.load("acme")

    assert len(scripted_api.calls) == 1
    assert job_store.get("acme").is_loading is True

    response.set_result(COMPLETE)
    await first
    assert len(scripted_api.calls) == 1


@pytest.mark.asyncio
async def test_backoff_sequence_until_complete(make_poller, scripted_api, job_store, fake_clock, events):
    scripted_api.script(ORPHAN_ANALYSIS_ENDPOINT, LOADING, LOADING, LOADING, LOADING, LOADING, COMPLETE)
    poller = make_poller()

    await poller.load()
    assert job_store.get("acme").is_loading is True
    await fake_clock.advance(500)

    times = [c.at for c in scripted_api.calls]
    gaps = [b - a for a, b in zip(times, times[1:])]
    assert gaps == pytest.approx([10, 20, 30, 30, 30])
    assert retry_delays(events) == [10, 20, 30, 30, 30]
    assert len(scripted_api.calls) == 6
    assert stops(events)[-1].attempts == 6
    state = job_store.get("acme")
    assert state.is_loading is False
    assert state.data.is_complete


@pytest.mark.asyncio
async def test_loading_state_keeps_interim_data(make_poller, scripted_api, job_store):
    scripted_api.script(ORPHAN_ANALYSIS_ENDPOINT, LOADING)
    poller = make_poller()

    await poller.load()

    state = job_store.get("acme")
    assert state.data.status == "loading"
    assert state.is_loading is True
    assert state.last_fetched is not None
    assert poller.is_polling()


@pytest.mark.asyncio
async def test_attempt_cap_stops_at_25(make_poller, scripted_api, job_store, fake_clock, events):
    scripted_api.script(ORPHAN_ANALYSIS_ENDPOINT, LOADING)
    poller = make_poller(PollPolicy(max_duration=10 ** 6))

    await poller.load()
    await fake_clock.advance(10_000)

    assert len(scripted_api.calls) == 25
    state = job_store.get("acme")
    assert state.is_loading is False
    assert state.error == CAP_REACHED_MESSAGE
    assert stops(events)[-1].reason == "max_attempts"
    assert not poller.is_polling()
    assert fake_clock.armed == []


@pytest.mark.asyncio
async def test_duration_cap_stops_at_ten_minutes(make_poller, scripted_api, job_store, fake_clock, events):
    scripted_api.script(ORPHAN_ANALYSIS_ENDPOINT, LOADING)
    poller = make_poller()
    started = fake_clock.now()

    await poller.load()
    await fake_clock.advance(10_000)

    # Attempts at 0, 10, 30, 60 ... 570s; the tick at 600s hits the ceiling
    assert len(scripted_api.calls) == 21
    assert scripted_api.calls[-1].at - started == pytest.approx(570)
    assert stops(events)[-1].reason == "max_duration"
    state = job_store.get("acme")
    assert state.is_loading is False
    assert state.error == CAP_REACHED_MESSAGE


@pytest.mark.asyncio
async def test_five_consecutive_errors_abort(make_poller, scripted_api, job_store, fake_clock, events):
    scripted_api.script(ORPHAN_ANALYSIS_ENDPOINT, FAILED, ConnectionError("network down"), FAILED, FAILED, FAILED, LOADING)
    poller = make_poller()

    await poller.load()
    await fake_clock.advance(1_000)

    assert len(scripted_api.calls) == 5
    assert retry_delays(events) == [10, 20, 30, 30]
    assert stops(events)[-1].reason == "errors"
    state = job_store.get("acme")
    assert state.is_loading is False
    assert "5 consecutive errors" in state.error
    assert state.error != CAP_REACHED_MESSAGE


@pytest.mark.asyncio
async def test_success_resets_consecutive_error_count(make_poller, scripted_api, job_store, fake_clock):
    scripted_api.script(
        ORPHAN_ANALYSIS_ENDPOINT,
        FAILED, FAILED, FAILED, FAILED, LOADING, FAILED, FAILED, FAILED, FAILED, COMPLETE,
    )
    poller = make_poller()

    await poller.load()
    await fake_clock.advance(1_000)

    assert len(scripted_api.calls) == 10
    state = job_store.get("acme")
    assert state.error is None
    assert state.data.is_complete


@pytest.mark.asyncio
async def test_transient_error_message_includes_attempt(make_poller, scripted_api, job_store):
    scripted_api.script(ORPHAN_ANALYSIS_ENDPOINT, FAILED)
    poller = make_poller()

    await poller.load()

    state = job_store.get("acme")
    assert state.error == "Failed to fetch orphan analysis (attempt 1): backend exploded"
    assert state.is_loading is False
    assert state.last_fetched is None
    assert poller.is_polling()


@pytest.mark.asyncio
async def test_unexpected_status_is_an_error(make_poller, scripted_api, job_store):
    scripted_api.script(ORPHAN_ANALYSIS_ENDPOINT, ApiResponse.ok({"status": "queued"}))
    poller = make_poller()

    await poller.load()

    assert "Unexpected orphan analysis status: 'queued'" in job_store.get("acme").error


@pytest.mark.asyncio
async def test_fresh_complete_result_short_circuits(make_poller, scripted_api, fake_clock):
    scripted_api.script(ORPHAN_ANALYSIS_ENDPOINT, COMPLETE)
    poller = make_poller()

    await poller.load()
    await fake_clock.advance(60)
    await poller.load()
    assert len(scripted_api.calls) == 1

    await fake_clock.advance(300)
    await poller.load()
    assert len(scripted_api.calls) == 2


@pytest.mark.asyncio
async def test_new_trigger_between_polls_restarts_session(make_poller, scripted_api, fake_clock, events):
    scripted_api.script(ORPHAN_ANALYSIS_ENDPOINT, LOADING)
    poller = make_poller()

    await poller.load()
    await fake_clock.advance(5)
    await poller.load()

    assert len(scripted_api.calls) == 2
    assert stops(events)[0].reason == "restarted"
    assert len(fake_clock.armed) == 1
    # The restarted session waits its own first delay
    await fake_clock.advance(9.9)
    assert len(scripted_api.calls) == 2
    await fake_clock.advance(0.1)
    assert len(scripted_api.calls) == 3


@pytest.mark.asyncio
async def test_reset_during_fetch_discards_result(make_poller, scripted_api, job_store):
    response = asyncio.get_running_loop().create_future()
    scripted_api.script(ORPHAN_ANALYSIS_ENDPOINT, lambda params, payload: response)
    poller = make_poller()

    task = asyncio.create_task(poller.load())
    await settle()
    poller.reset()
    response.set_result(COMPLETE)
    await task

    assert job_store.get("acme") == JobState()
    assert not poller.is_polling()


@pytest.mark.asyncio
async def test_tenants_poll_independently(make_poller, scripted_api, job_store):
    slow = asyncio.get_running_loop().create_future()
    scripted_api.script(
        ORPHAN_ANALYSIS_ENDPOINT,
        lambda params, payload: slow,
        COMPLETE,
    )
    poller = make_poller()

    acme = asyncio.create_task(poller.load("acme"))
    await settle()
    await poller.load("beta")

    assert [c.tenant_id for c in scripted_api.calls] == ["acme", "beta"]
    assert job_store.get("beta").data.is_complete
    assert job_store.get("acme").is_loading is True

    slow.set_result(LOADING)
    await acme
    assert job_store.get("acme").data.status == "loading"
    assert job_store.get("beta").data.is_complete


@pytest.mark.asyncio
async def test_wait_until_settled_returns_after_completion(make_poller, scripted_api, fake_clock):
    scripted_api.script(ORPHAN_ANALYSIS_ENDPOINT, LOADING, COMPLETE)
    poller = make_poller()

    await poller.load()
    waiter = asyncio.create_task(poller.wait_until_settled())
    await settle()
    assert not waiter.done()

    await fake_clock.advance(10)
    assert waiter.done()
