import asyncio
import logging

from conftest import FakeFetch, MemoryBackend
from ratedesk.jobs.refresh import RefreshOrchestrator
from ratedesk.schemas.indicator import INDICATORS, RATE_FX, REPO_RATES, WALLET_YIELDS
from ratedesk.state.store import StateStore


def _store() -> StateStore:
    store = StateStore(MemoryBackend())
    store.load()
    return store


def _recording_refreshers(events: list, delay: float = 0.0):
    refreshers = []
    for indicator in INDICATORS:
        async def refresh(store, config, fetch, indicator=indicator):
            events.append((indicator, "begin"))
            await asyncio.sleep(delay)
            cycle = len([e for e in events if e == (INDICATORS[0], "begin")])
            store.record_success(indicator, {"cycle": cycle}, f"cycle-{cycle}")
            events.append((indicator, "end"))
            return "ok"

        refreshers.append((indicator, refresh))
    return refreshers


def test_cycle_runs_fetchers_in_order(config) -> None:
    events: list = []
    orchestrator = RefreshOrchestrator(
        _store(), config, fetch=FakeFetch(), refreshers=_recording_refreshers(events)
    )

    report = asyncio.run(orchestrator.force_update())

    assert report.ok is True
    assert report.coalesced is False
    assert [name for name, phase in events if phase == "begin"] == list(INDICATORS)
    assert report.statuses == {name: "ok" for name in INDICATORS}
    assert report.finished_at >= report.started_at
    assert orchestrator.last_report == report


def test_unexpected_error_marks_indicator_and_continues(config) -> None:
    async def broken(store, config, fetch):
        raise RuntimeError("parser exploded")

    async def fine(store, config, fetch):
        store.record_success(REPO_RATES, {"raw": ["30.0%"]}, "https://iol.example")
        return "ok"

    store = _store()
    orchestrator = RefreshOrchestrator(
        store, config, fetch=FakeFetch(), refreshers=[(WALLET_YIELDS, broken), (REPO_RATES, fine)]
    )

    report = asyncio.run(orchestrator.force_update())

    assert report.ok is False
    assert report.errors == {WALLET_YIELDS: "parser exploded"}
    assert report.statuses == {WALLET_YIELDS: "error", REPO_RATES: "ok"}
    assert store.get(WALLET_YIELDS).value is None


def test_default_fetchers_fall_back_without_network(config) -> None:
    store = _store()
    orchestrator = RefreshOrchestrator(store, config, fetch=FakeFetch())

    report = asyncio.run(orchestrator.force_update())

    assert report.ok is True
    assert report.statuses == {name: "fallback" for name in INDICATORS}
    assert store.get(RATE_FX).value is None


def test_on_demand_waits_for_scheduled_cycle(config) -> None:
    events: list = []
    store = _store()
    orchestrator = RefreshOrchestrator(
        store, config, fetch=FakeFetch(), refreshers=_recording_refreshers(events, delay=0.01)
    )

    async def scenario():
        scheduled = asyncio.create_task(orchestrator.run_scheduled())
        await asyncio.sleep(0)
        assert orchestrator.running is True
        forced = asyncio.create_task(orchestrator.force_update())
        skipped = await orchestrator.run_scheduled()
        return await scheduled, await forced, skipped

    first, second, skipped = asyncio.run(scenario())

    assert skipped is None
    assert second.coalesced is False
    assert second.started_at >= first.finished_at
    # Two complete cycles, never interleaved.
    expected = [(name, phase) for name in INDICATORS for phase in ("begin", "end")]
    assert events == expected * 2
    for name in INDICATORS:
        snapshot = store.get(name)
        assert snapshot.value == {"cycle": 2}
        assert snapshot.source == "cycle-2"


def test_concurrent_requests_share_a_fresh_cycle(config) -> None:
    events: list = []
    orchestrator = RefreshOrchestrator(
        _store(), config, fetch=FakeFetch(), refreshers=_recording_refreshers(events, delay=0.01)
    )

    async def scenario():
        running = asyncio.create_task(orchestrator.run_cycle())
        await asyncio.sleep(0)
        first = asyncio.create_task(orchestrator.force_update())
        second = asyncio.create_task(orchestrator.force_update())
        await running
        return await first, await second

    first, second = asyncio.run(scenario())

    assert first.coalesced is False
    assert second.coalesced is True
    assert second.started_at == first.started_at
    assert len([e for e in events if e == (INDICATORS[0], "begin")]) == 2


def test_startup_cycle_is_supervised(config, caplog) -> None:
    config.run_on_startup = True
    orchestrator = RefreshOrchestrator(_store(), config, fetch=FakeFetch())

    async def boom():
        raise RuntimeError("loop wedged")

    orchestrator.run_cycle = boom

    async def scenario():
        orchestrator.start()
        task = orchestrator._startup_task
        result = await task
        await orchestrator.stop()
        return result

    with caplog.at_level(logging.ERROR, logger="ratedesk.jobs.refresh"):
        result = asyncio.run(scenario())

    assert result is None
    assert "startup update cycle failed" in caplog.text


def test_start_registers_interval_job(config) -> None:
    config.refresh_interval_minutes = 15
    orchestrator = RefreshOrchestrator(_store(), config, fetch=FakeFetch())

    async def scenario():
        orchestrator.start()
        job = orchestrator._scheduler.get_job("refresh_indicators")
        await orchestrator.stop()
        return job

    job = asyncio.run(scenario())

    assert job is not None
    assert job.max_instances == 1
    assert job.coalesce is True
    assert orchestrator._scheduler is None


def test_stop_waits_for_running_cycle(config) -> None:
    events: list = []
    store = _store()
    orchestrator = RefreshOrchestrator(
        store, config, fetch=FakeFetch(), refreshers=_recording_refreshers(events, delay=0.01)
    )

    async def scenario():
        scheduled = asyncio.create_task(orchestrator.run_scheduled())
        await asyncio.sleep(0)
        assert orchestrator.running is True
        await orchestrator.stop()
        finished_before_stop_returned = scheduled.done()
        await scheduled
        return finished_before_stop_returned

    assert asyncio.run(scenario()) is True
    assert events[-1] == (INDICATORS[-1], "end")
    assert orchestrator.running is False
