"""
Update cycle orchestration.

One cycle runs every indicator fetcher in order, each finishing its state
writes before the next starts. Cycles never overlap: a scheduled tick that
finds a cycle running is skipped, while an on-demand request waits for the
running cycle and reuses a result only if that cycle began after the request.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from typing import Awaitable, Callable, Sequence

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ratedesk.config.settings import Settings
from ratedesk.providers.fx import refresh_fx
from ratedesk.providers.http import Fetch, HttpFetcher
from ratedesk.providers.rate_tables import refresh_repo_rates, refresh_term_deposits
from ratedesk.providers.wallets import refresh_wallets
from ratedesk.schemas.indicator import (
    RATE_FX,
    REPO_RATES,
    TERM_DEPOSIT_RATES,
    WALLET_YIELDS,
    CycleReport,
    IndicatorSnapshot,
)
from ratedesk.state.store import StateStore


logger = logging.getLogger(__name__)

Refresher = Callable[[StateStore, Settings, Fetch], Awaitable[str]]

DEFAULT_REFRESHERS: tuple[tuple[str, Refresher], ...] = (
    (RATE_FX, refresh_fx),
    (WALLET_YIELDS, refresh_wallets),
    (REPO_RATES, refresh_repo_rates),
    (TERM_DEPOSIT_RATES, refresh_term_deposits),
)

_JOB_ID = "refresh_indicators"


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class RefreshOrchestrator:
    def __init__(
        self,
        store: StateStore,
        config: Settings,
        fetch: Fetch | None = None,
        refreshers: Sequence[tuple[str, Refresher]] | None = None,
    ) -> None:
        self.store = store
        self.config = config
        self.fetch = fetch or HttpFetcher(config.user_agent)
        self.refreshers = list(refreshers or DEFAULT_REFRESHERS)
        self._lock = asyncio.Lock()
        self._cycles_started = 0
        self._last_report: CycleReport | None = None
        self._scheduler: AsyncIOScheduler | None = None
        self._startup_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._lock.locked()

    @property
    def last_report(self) -> CycleReport | None:
        return self._last_report

    def get_snapshot(self, indicator: str) -> IndicatorSnapshot:
        return self.store.get(indicator)

    def get_all_snapshots(self) -> dict[str, IndicatorSnapshot]:
        return self.store.get_all()

    async def _run_cycle_locked(self) -> CycleReport:
        self._cycles_started += 1
        report = CycleReport(ok=True, started_at=_utcnow())
        logger.info("=== Update cycle %d started ===", self._cycles_started)

        for indicator, refresher in self.refreshers:
            try:
                await refresher(self.store, self.config, self.fetch)
            except Exception as exc:
                logger.exception("%s: refresh raised unexpectedly", indicator)
                report.ok = False
                report.errors[indicator] = str(exc) or exc.__class__.__name__
                await self.store.save_failure(indicator, "error")
            report.statuses[indicator] = self.store.get(indicator).status

        report.finished_at = _utcnow()
        self._last_report = report
        logger.info(
            "=== Update cycle %d finished (%s) ===",
            self._cycles_started,
            ", ".join(f"{name}={status}" for name, status in report.statuses.items()),
        )
        return report

    async def run_cycle(self) -> CycleReport:
        """Run a full cycle, waiting for any cycle already in flight."""
        async with self._lock:
            return await self._run_cycle_locked()

    async def run_scheduled(self) -> CycleReport | None:
        if self._lock.locked():
            logger.info("Update cycle already running, skipping scheduled run")
            return None
        async with self._lock:
            return await self._run_cycle_locked()

    async def force_update(self) -> CycleReport:
        ticket = self._cycles_started
        async with self._lock:
            if self._cycles_started > ticket and self._last_report is not None:
                logger.info("Reusing update cycle that finished while the request waited")
                return self._last_report.model_copy(update={"coalesced": True})
            return await self._run_cycle_locked()

    async def _supervised(self, trigger: str) -> CycleReport | None:
        try:
            if trigger == "scheduled":
                return await self.run_scheduled()
            return await self.run_cycle()
        except Exception:
            logger.exception("%s update cycle failed", trigger)
            return None

    def start(self) -> None:
        """Kick off the startup cycle and the interval job; needs a running loop."""
        if self.config.run_on_startup and self._startup_task is None:
            self._startup_task = asyncio.get_running_loop().create_task(
                self._supervised("startup"), name="ratedesk-startup-refresh"
            )

        if self.config.refresh_interval_minutes <= 0 or self._scheduler is not None:
            return
        scheduler = AsyncIOScheduler(timezone=datetime.UTC)
        scheduler.add_job(
            self._supervised,
            trigger=IntervalTrigger(
                minutes=self.config.refresh_interval_minutes, timezone=datetime.UTC
            ),
            args=["scheduled"],
            id=_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info(
            "Scheduler started, refreshing every %s minutes", self.config.refresh_interval_minutes
        )

    async def stop(self) -> None:
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        task = self._startup_task
        self._startup_task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        # A scheduled cycle may still be running; let it finish its writes.
        async with self._lock:
            pass
